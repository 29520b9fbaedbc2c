from __future__ import annotations
"""Credit balance endpoint."""

from fastapi import APIRouter, Depends

from mediagen.dependencies import get_credit_ledger, require_user_id
from mediagen.schemas.notification import CreditBalanceResponse
from mediagen.services.credit_ledger import CreditLedger

router = APIRouter()


@router.get("/balance", response_model=CreditBalanceResponse)
async def get_balance(
    user_id: str = Depends(require_user_id),
    ledger: CreditLedger = Depends(get_credit_ledger),
):
    return {"user_id": user_id, "balance": await ledger.get_balance(user_id)}
