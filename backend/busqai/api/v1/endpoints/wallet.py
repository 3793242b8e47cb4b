"""
Wallet endpoints.

WHAT: Balance, movement history and recharge
WHY: Sellers keep a balance to cover deal commissions
HOW: FastAPI router over WalletService
"""

from typing import List

from fastapi import APIRouter, Depends, Query

from ....core.app_state import AppState, get_app_state
from ....core.config import settings
from ....models.api_schemas import BalanceResponse, RechargeRequest
from ....models.marketplace import WalletMovement

router = APIRouter()


@router.get("/wallet", response_model=BalanceResponse)
async def wallet_balance(state: AppState = Depends(get_app_state)):
    """Current balance."""
    balance = await state.wallet.balance()
    return BalanceResponse(balance=balance, currency=settings.CURRENCY_SYMBOL)


@router.get("/wallet/transactions", response_model=List[WalletMovement])
async def wallet_transactions(
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    state: AppState = Depends(get_app_state)
):
    """Movements, newest first."""
    return await state.wallet.transactions(limit, offset)


@router.post("/wallet/recharge", response_model=BalanceResponse)
async def wallet_recharge(request: RechargeRequest, state: AppState = Depends(get_app_state)):
    """Credit the wallet and return the new balance."""
    balance = await state.wallet.recharge(request.amount, request.method)
    return BalanceResponse(balance=balance, currency=settings.CURRENCY_SYMBOL)
