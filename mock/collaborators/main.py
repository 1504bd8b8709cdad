from fastapi import FastAPI, File, HTTPException, UploadFile
from pathlib import Path
import json
import os
import uuid

app = FastAPI(title="Mock Collaborators Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path("/collaborator_stub") if os.path.exists("/collaborator_stub") else Path(__file__).resolve().parent

EVIDENCE: dict[str, bytes] = {}
NOTIFICATIONS: list[dict] = []


def load_bank_accounts() -> dict[str, str]:
    """account_id -> owner_id"""
    file = DATA_DIR / "bank_accounts.json"
    if not file.exists():
        return {}
    return {a["account_id"]: a["owner_id"] for a in json.loads(file.read_text())}


@app.get("/health")
def health(): return {"status": "ok"}


@app.post("/evidence")
async def upload_evidence(file: UploadFile = File(...)):
    url = f"https://evidence.local/{uuid.uuid4()}/{file.filename}"
    EVIDENCE[url] = await file.read()
    return {"url": url, "size": len(EVIDENCE[url])}


@app.delete("/evidence")
def delete_evidence(url: str):
    if EVIDENCE.pop(url, None) is None:
        raise HTTPException(status_code=404, detail="evidence not found")
    return {"deleted": url}


@app.post("/notifications")
def notify(payload: dict):
    NOTIFICATIONS.append(payload)
    return {"queued": len(NOTIFICATIONS)}


@app.get("/notifications")
def list_notifications(user_id: str | None = None):
    return [n for n in NOTIFICATIONS if user_id is None or n.get("user_id") == user_id]


@app.get("/bank-accounts/{account_id}")
def get_bank_account(account_id: str, owner_id: str):
    owner = load_bank_accounts().get(account_id)
    if owner is None:
        raise HTTPException(status_code=404, detail="account not found")
    return {"account_id": account_id, "exists": owner == owner_id}
