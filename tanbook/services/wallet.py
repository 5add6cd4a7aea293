"""
Wallet - prepaid tanning hours per user.

The booking core reads the balance before booking and deducts one
session's worth of hours after a successful booking. Purchases are
recorded as-is; no payment is processed here.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

from loguru import logger

from tanbook.config import SESSION_HOURS
from tanbook.models.wallet import Purchase, WalletData


def can_user_book(remaining_hours: float) -> bool:
    """A user can book when at least one 15-minute session is left."""
    return remaining_hours >= SESSION_HOURS


class Wallet(ABC):
    """Interface of the prepaid-hours collaborator."""

    @abstractmethod
    async def get_wallet(self, user_id: str) -> WalletData:
        """The user's wallet, created with a zero balance on first access."""

    async def get_remaining_hours(self, user_id: str) -> float:
        wallet = await self.get_wallet(user_id)
        return wallet.remaining

    @abstractmethod
    async def deduct_hours(self, user_id: str, hours: float) -> WalletData:
        """Consume hours. The balance never drops below zero."""

    @abstractmethod
    async def add_hours(self, user_id: str, hours: float, amount: float = 0.0) -> WalletData:
        """Top up hours and record the purchase."""


class InMemoryWallet(Wallet):
    """
    In-memory wallet store.
    """

    def __init__(self):
        self._wallets: Dict[str, WalletData] = {}
        self._lock = asyncio.Lock()

    @property
    def wallets(self) -> Dict[str, WalletData]:
        """Access to the wallets dictionary."""
        return self._wallets

    def reset(self) -> None:
        self._wallets.clear()

    async def get_wallet(self, user_id: str) -> WalletData:
        return self._ensure(user_id).model_copy(deep=True)

    async def create_wallet(
        self,
        user_id: str,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> WalletData:
        """Create the wallet document for a newly signed-up user."""
        async with self._lock:
            wallet = self._ensure(user_id)
            if email is not None:
                wallet.email = email
            if display_name is not None:
                wallet.display_name = display_name
            return wallet.model_copy(deep=True)

    async def deduct_hours(self, user_id: str, hours: float) -> WalletData:
        if hours <= 0:
            raise ValueError("hours to deduct must be positive")

        async with self._lock:
            wallet = self._ensure(user_id)
            wallet.remaining = max(0.0, wallet.remaining - hours)
            wallet.hours_used_this_month += hours
            wallet.last_updated = datetime.now()

        logger.info(f"Deducted {hours}h from user {user_id}, {wallet.remaining}h left")
        return wallet.model_copy(deep=True)

    async def add_hours(self, user_id: str, hours: float, amount: float = 0.0) -> WalletData:
        purchase = Purchase(hours=hours, amount=amount)

        async with self._lock:
            wallet = self._ensure(user_id)
            wallet.remaining = wallet.remaining + hours
            wallet.purchase_history = [purchase, *wallet.purchase_history]
            wallet.last_updated = datetime.now()

        logger.info(f"Added {hours}h to user {user_id} (purchase {purchase.id})")
        return wallet.model_copy(deep=True)

    def _ensure(self, user_id: str) -> WalletData:
        wallet = self._wallets.get(user_id)
        if wallet is None:
            logger.info(f"Creating wallet for user {user_id}")
            wallet = WalletData(user_id=user_id)
            self._wallets[user_id] = wallet
        return wallet
