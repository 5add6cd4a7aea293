"""
HTTP clients for the ledger API.

HttpReservationLedger and HttpWallet talk to tanbook.api.ledger_server
over a pooled httpx.AsyncClient. The API has no push channel, so live
subscriptions poll and deliver a snapshot whenever the result changes.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional, Type, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from tanbook.config import get_settings
from tanbook.models.booking import NewReservation, Reservation, ReservationStatus
from tanbook.models.wallet import WalletData
from tanbook.services.ledger import (
    LedgerError,
    LedgerUnavailableError,
    OnChange,
    OnError,
    ReservationConflictError,
    ReservationLedger,
    ReservationNotFoundError,
    Subscription,
)
from tanbook.services.wallet import Wallet

ModelT = TypeVar("ModelT", bound=BaseModel)


class LedgerApiClient:
    """
    Shared connection handling for the ledger API.

    Transport failures and unexpected statuses surface as
    LedgerUnavailableError; 404 and 409 map to the ledger's not-found
    and conflict errors.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = get_settings()
        self._base_url = base_url or self.settings.ledger_api_url
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=httpx.Timeout(self.settings.ledger_api_timeout),
                limits=httpx.Limits(
                    max_connections=self.settings.connection_pool_size,
                    max_keepalive_connections=self.settings.connection_pool_size // 2,
                ),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        client = await self._get_client()

        try:
            response = await client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Request error calling ledger API {method} {url}: {e}")
            raise LedgerUnavailableError(f"Ledger API unreachable: {e}") from e

        if response.status_code == 404:
            raise ReservationNotFoundError(self._detail(response))
        if response.status_code == 409:
            raise ReservationConflictError(self._detail(response))

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error from ledger API {method} {url}: {e}")
            raise LedgerUnavailableError(f"Ledger API error: {e}") from e
        return response

    @staticmethod
    def _detail(response: httpx.Response) -> str:
        try:
            return str(response.json().get("detail", response.text))
        except (ValueError, AttributeError):
            return response.text

    @staticmethod
    def _payload(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise LedgerUnavailableError(f"Malformed ledger response: {e}") from e

    def _field(self, response: httpx.Response, key: str, default: Any = None) -> Any:
        payload = self._payload(response)
        if not isinstance(payload, dict):
            raise LedgerUnavailableError(f"Malformed ledger response: expected an object with {key!r}")
        return payload.get(key, default)

    def _validate(self, model: Type[ModelT], data: Any) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise LedgerUnavailableError(
                f"Malformed {model.__name__} from ledger API: {e.error_count()} errors"
            ) from e


class HttpReservationLedger(LedgerApiClient, ReservationLedger):
    """
    Reservation ledger backed by the ledger API.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        poll_interval: Optional[float] = None,
    ):
        super().__init__(base_url=base_url, transport=transport)
        self._poll_interval = (
            poll_interval if poll_interval is not None else self.settings.ledger_poll_interval
        )

    async def get(self, reservation_id: str) -> Optional[Reservation]:
        try:
            response = await self._request("GET", f"/api/v1/reservations/{reservation_id}")
        except ReservationNotFoundError:
            return None
        return self._validate(Reservation, self._payload(response))

    async def find_confirmed(self, date: str) -> List[Reservation]:
        response = await self._request(
            "GET", "/api/v1/reservations/confirmed", params={"date": date}
        )
        return self._parse_list(response)

    async def find_conflict(self, sunbed_id: str, date: str, time: str) -> Optional[Reservation]:
        response = await self._request(
            "GET",
            "/api/v1/reservations/conflict",
            params={"sunbed_id": sunbed_id, "date": date, "time": time},
        )
        data = self._field(response, "reservation")
        return self._validate(Reservation, data) if data else None

    async def insert(self, reservation: NewReservation) -> str:
        response = await self._request(
            "POST", "/api/v1/reservations", json=reservation.model_dump(mode="json")
        )
        reservation_id = self._field(response, "id")
        if not isinstance(reservation_id, str) or not reservation_id:
            raise LedgerUnavailableError("Malformed ledger response: missing reservation id")
        return reservation_id

    async def update_status(self, reservation_id: str, status: ReservationStatus) -> None:
        await self._request(
            "PATCH",
            f"/api/v1/reservations/{reservation_id}",
            json={"status": ReservationStatus(status).value},
        )

    async def find_by_user(self, user_id: str) -> List[Reservation]:
        response = await self._request(
            "GET", "/api/v1/reservations", params={"user_id": user_id}
        )
        return self._parse_list(response)

    def subscribe_confirmed(
        self, date: str, on_change: OnChange, on_error: Optional[OnError] = None
    ) -> Subscription:
        return self._start_polling(
            lambda: self.find_confirmed(date),
            on_change,
            on_error,
            description=f"confirmed reservations on {date}",
        )

    def subscribe_user(
        self, user_id: str, on_change: OnChange, on_error: Optional[OnError] = None
    ) -> Subscription:
        return self._start_polling(
            lambda: self.find_by_user(user_id),
            on_change,
            on_error,
            description=f"reservations of user {user_id}",
        )

    def _start_polling(
        self,
        fetch: Callable[[], Awaitable[List[Reservation]]],
        on_change: OnChange,
        on_error: Optional[OnError],
        description: str,
    ) -> Subscription:
        task = asyncio.create_task(self._poll(fetch, on_change, on_error, description))
        return Subscription(task.cancel, description=description)

    async def _poll(
        self,
        fetch: Callable[[], Awaitable[List[Reservation]]],
        on_change: OnChange,
        on_error: Optional[OnError],
        description: str,
    ) -> None:
        last_fingerprint = None
        while True:
            try:
                snapshot = await fetch()
            except LedgerError as e:
                logger.error(f"Polling {description} failed: {e}")
                # Redeliver once the ledger is reachable again
                last_fingerprint = None
                if on_error:
                    on_error(e)
            else:
                fingerprint = sorted(
                    (r.id, r.status.value, r.updated_at.isoformat()) for r in snapshot
                )
                if fingerprint != last_fingerprint:
                    last_fingerprint = fingerprint
                    try:
                        on_change(snapshot)
                    except Exception as e:
                        logger.error(f"Subscriber for {description} failed to handle snapshot: {e}")
                        if on_error:
                            on_error(e)
            await asyncio.sleep(self._poll_interval)

    def _parse_list(self, response: httpx.Response) -> List[Reservation]:
        items = self._field(response, "reservations", [])
        if not isinstance(items, list):
            raise LedgerUnavailableError("Malformed ledger response: reservations is not a list")
        return [self._validate(Reservation, item) for item in items]


class HttpWallet(LedgerApiClient, Wallet):
    """
    Wallet backed by the ledger API.
    """

    async def get_wallet(self, user_id: str) -> WalletData:
        response = await self._request("GET", f"/api/v1/wallets/{user_id}")
        return self._validate(WalletData, self._payload(response))

    async def deduct_hours(self, user_id: str, hours: float) -> WalletData:
        response = await self._request(
            "POST", f"/api/v1/wallets/{user_id}/deduct", json={"hours": hours}
        )
        return self._validate(WalletData, self._payload(response))

    async def add_hours(self, user_id: str, hours: float, amount: float = 0.0) -> WalletData:
        response = await self._request(
            "POST",
            f"/api/v1/wallets/{user_id}/purchases",
            json={"hours": hours, "amount": amount},
        )
        return self._validate(WalletData, self._payload(response))
