"""FastAPI server for walletguard."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional, Dict, Any

from fastapi import Body, Depends, FastAPI, Header, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from walletguard import (
    InMemoryStorage,
    SQLiteStorage,
    SpendingGuard,
    ValidationError,
    handle,
)
from walletguard.config import get_api_key, get_db_path, get_spending_limit
from walletguard.models import format_amount


def _require_api_key(x_api_key: Optional[str] = Header(default=None)) -> None:
    api_key = get_api_key()
    if api_key and x_api_key != api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


_guard: Optional[SpendingGuard] = None


def get_guard() -> SpendingGuard:
    """Process-wide guard; SQLite-backed when WALLETGUARD_DB_PATH is set."""
    global _guard
    if _guard is None:
        db_path = get_db_path()
        storage = SQLiteStorage(db_path=db_path) if db_path else InMemoryStorage()
        _guard = SpendingGuard(storage=storage)
    return _guard


app = FastAPI(title="walletguard API", version="0.1.0")


class CheckLimitRequest(BaseModel):
    public_key: str = Field(..., min_length=1, alias="publicKey")
    amount: Decimal = Field(Decimal("0"), ge=0)


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/smart-limit", dependencies=[Depends(_require_api_key)])
def smart_limit(
    payload: Dict[str, Any] = Body(...),
    guard: SpendingGuard = Depends(get_guard),
):
    result = handle(guard, payload)
    if not result["success"]:
        return JSONResponse(status_code=400, content=jsonable_encoder(result))
    return result


@app.get("/wallets/{wallet_key}/spending", dependencies=[Depends(_require_api_key)])
def spending_info(
    wallet_key: str,
    guard: SpendingGuard = Depends(get_guard),
):
    try:
        record = guard.get_spending_info(wallet_key)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"walletKey": wallet_key, "spendingInfo": record.to_info()}


@app.post("/check-limit", dependencies=[Depends(_require_api_key)])
def check_limit(req: CheckLimitRequest):
    """Stateless per-transaction ceiling check; consumes no allowance."""
    limit = get_spending_limit()
    allowed = req.amount <= limit
    verdict = "is within" if allowed else "exceeds"
    return {
        "allowed": allowed,
        "limit": limit,
        "requested": req.amount,
        "message": (
            f"Transaction amount {format_amount(req.amount)} XLM {verdict} "
            f"spending limit of {format_amount(limit)} XLM"
        ),
    }
