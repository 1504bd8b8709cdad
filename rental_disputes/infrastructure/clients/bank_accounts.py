"""Bank account registry HTTP client for resolving refund payout targets"""

import uuid

import httpx

from rental_disputes.config import settings
from rental_disputes.domain.exceptions import CollaboratorError


class BankAccountRegistry:
    """Client for the external bank account registry"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.bank_registry_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def exists(self, account_id: uuid.UUID, owner_id: uuid.UUID) -> bool:
        """
        Check that the account exists and belongs to the owner.

        Raises:
            CollaboratorError: When the registry cannot be reached or answers with garbage
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/bank-accounts/{account_id}",
                    params={"owner_id": str(owner_id)},
                )
                if response.status_code == 404:
                    return False
                response.raise_for_status()
                return bool(response.json()["exists"])

            except httpx.RequestError as e:
                raise CollaboratorError(
                    f"Bank account registry unreachable: {e}",
                    entity=str(account_id),
                    field="bank_account_id",
                ) from e
            except httpx.HTTPStatusError as e:
                raise CollaboratorError(
                    f"Bank account registry error: {e.response.status_code}",
                    entity=str(account_id),
                    field="bank_account_id",
                ) from e
            except (KeyError, ValueError, TypeError) as e:
                raise CollaboratorError(
                    f"Invalid bank account registry response: {e}",
                    entity=str(account_id),
                    field="bank_account_id",
                ) from e
