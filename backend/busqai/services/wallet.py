"""
Wallet service.

WHAT: Balance, movement history and recharges of the signed-in user's wallet
WHY: Commission on accepted deals is debited from the seller wallet
HOW: Reads on wallets/wallet_movements, credits through the add_wallet_credit RPC
"""

from typing import List, Literal

from ..dataservice.provider import DataService
from ..dataservice.types import DataServiceResponseError
from ..models.marketplace import WalletMovement
from ..utils.exceptions import AuthRequiredError, ValidationException
from ..utils.logger import get_logger

logger = get_logger(__name__)

RechargeMethod = Literal["transfer", "qr"]

_METHOD_LABELS = {"transfer": "bank transfer", "qr": "QR payment"}


class WalletService:
    """Wallet of the signed-in user."""

    def __init__(self, data_service: DataService):
        self.data_service = data_service

    def _user_id(self, action: str) -> str:
        user_id = self.data_service.user_id
        if user_id is None:
            raise AuthRequiredError(action)
        return user_id

    async def balance(self) -> float:
        """Current balance; 0 when the wallet row does not exist yet."""
        user_id = self._user_id("viewing your wallet")
        try:
            row = await self.data_service.select(
                "wallets",
                filters={"user_id": f"eq.{user_id}"},
                columns="balance",
                single=True
            )
        except DataServiceResponseError as e:
            if e.is_not_found:
                return 0.0
            raise
        return float(row.get("balance") or 0)

    async def transactions(self, limit: int = 10, offset: int = 0) -> List[WalletMovement]:
        """Wallet movements, newest first."""
        user_id = self._user_id("viewing your transactions")
        if limit < 1 or offset < 0:
            raise ValidationException("limit must be positive and offset non-negative")

        rows = await self.data_service.select(
            "wallet_movements",
            filters={"user_id": f"eq.{user_id}"},
            order="created_at.desc",
            limit=limit,
            offset=offset
        )
        return [WalletMovement.model_validate(row) for row in rows or []]

    async def recharge(self, amount: float, method: RechargeMethod) -> float:
        """
        Credit the wallet.

        Args:
            amount: Amount to add, strictly positive
            method: Payment method the user chose

        Returns:
            Balance after the recharge

        Raises:
            ValidationException: Non-positive amount or unknown method
        """
        user_id = self._user_id("recharging your wallet")
        if not amount or amount <= 0:
            raise ValidationException("Enter a valid amount", [{"field": "amount", "error": "not_positive"}])
        if method not in _METHOD_LABELS:
            raise ValidationException("Select a payment method", [{"field": "method", "error": "invalid"}])

        await self.data_service.rpc("add_wallet_credit", {
            "p_user_id": user_id,
            "p_amount": amount,
            "p_description": f"Recharge via {_METHOD_LABELS[method]}",
            "p_reference_type": "recharge",
        })
        logger.info(f"Wallet of user {user_id} recharged with {amount} ({method})")
        return await self.balance()
