"""Evidence store HTTP client with exponential backoff retry logic"""

import asyncio
import uuid

import httpx

from rental_disputes.config import settings
from rental_disputes.domain.exceptions import StorageError
from rental_disputes.infrastructure.observability.metrics import (
    evidence_store_failure_counter,
    evidence_upload_latency_histogram,
)


class EvidenceStoreClient:
    """Client for the external blob store holding violation evidence"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.evidence_store_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.upload_max_retries
        self.backoff_base = settings.upload_backoff_base

    async def upload(self, content: bytes, filename: str, content_type: str, owner_id: uuid.UUID) -> str:
        """
        Upload one evidence file and return its public URL.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ...
        - Retries on 5xx errors and network failures, not on 4xx

        Raises:
            StorageError: When retries are exhausted or the store rejects the file
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while True:
                try:
                    with evidence_upload_latency_histogram.time():
                        response = await client.post(
                            f"{self.base_url}/evidence",
                            files={"file": (filename, content, content_type)},
                            data={"owner_id": str(owner_id), "folder": "violations"},
                        )
                        response.raise_for_status()
                    return response.json()["url"]

                except httpx.HTTPStatusError as e:
                    attempt += 1
                    evidence_store_failure_counter.labels(operation="upload").inc()
                    if e.response.status_code < 500 or attempt >= self.max_retries:
                        raise StorageError(
                            f"Evidence upload failed for '{filename}': {e.response.status_code}",
                            entity=filename,
                            field="evidence",
                        ) from e
                except httpx.RequestError as e:
                    attempt += 1
                    evidence_store_failure_counter.labels(operation="upload").inc()
                    if attempt >= self.max_retries:
                        raise StorageError(
                            f"Evidence store unreachable while uploading '{filename}'",
                            entity=filename,
                            field="evidence",
                        ) from e
                except (KeyError, ValueError) as e:
                    raise StorageError(
                        f"Invalid upload response for '{filename}': {e}",
                        entity=filename,
                        field="evidence",
                    ) from e

                await asyncio.sleep(self.backoff_base * (2 ** (attempt - 1)))

    async def delete(self, url: str) -> None:
        """
        Remove a previously uploaded file.

        Raises:
            StorageError: On timeout or HTTP errors
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.request("DELETE", f"{self.base_url}/evidence", params={"url": url})
                response.raise_for_status()
            except httpx.HTTPError as e:
                evidence_store_failure_counter.labels(operation="delete").inc()
                raise StorageError(f"Evidence delete failed for {url}", entity=url, field="evidence") from e
