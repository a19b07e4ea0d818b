"""
Guest Ordering Workflow

Drives one diner's visit to one shop:

    1. Resolve the shop; an inactive shop ends the visit.
    2. Acquire device coordinates; failure halts with a remediation message.
    3. Check the browse geofence; too far halts with the distance shown.
       Retrying is manual (retry_location), never an automatic bypass.
    4. Load the shop's guest session or ask the diner for a name.
    5. Build a cart.
    6. Submit: the session is re-checked, the cart must not be empty, and
       the current position is sent along for the server's order geofence.
    7. Poll the diner's orders by (shopId, sessionId).

While a session is active two background tasks run: an expiry re-check
(60 s) that tears the visit back down to the identity prompt as soon as
the session lapses, and an order poll (15 s). Both are owned by the
workflow and cancelled on teardown or close().

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from qrmenu.core.clock import Clock, SystemClock
from qrmenu.core.config import get_settings
from qrmenu.core.exceptions import (
    EmptyCart,
    InvalidOrder,
    LocationUnavailable,
    OrderingError,
    ShopInactive,
    ShopNotFound,
    SubmissionFailed,
    TooFar,
)
from qrmenu.schemas import GuestOrderCreate, OrderFilter, OrderResponse, ShopResponse
from qrmenu.services.geo.base import BaseLocationProvider, GeofenceResult
from qrmenu.services.geo.geofence import GeofenceValidator, get_browse_geofence
from qrmenu.services.orders.base import BaseOrderRepository, BaseShopDirectory
from qrmenu.services.session.store import GuestSession, SessionStore
from qrmenu.services.workflow.cart import Cart, CartLine

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class WorkflowStage(str, Enum):
    """Where the diner's visit currently stands."""
    LOADING = "loading"
    SHOP_NOT_FOUND = "shop_not_found"
    SHOP_INACTIVE = "shop_inactive"
    LOCATION_REQUIRED = "location_required"
    TOO_FAR = "too_far"
    IDENTITY_REQUIRED = "identity_required"
    ORDERING = "ordering"
    CLOSED = "closed"


# Stages in which the diner has passed the location check
_ADMITTED = (WorkflowStage.IDENTITY_REQUIRED, WorkflowStage.ORDERING)
_RETRYABLE = (WorkflowStage.LOCATION_REQUIRED, WorkflowStage.TOO_FAR)


class OrderingWorkflow:
    """
    One diner's ordering session at one shop.

    Attributes:
        stage: Current WorkflowStage
        shop: Resolved shop, once loaded
        session: Active guest session, if any
        cart: Items picked so far
        orders: Last known orders for the session
        error: Error that halted the workflow (shown to the diner)
        submitting: True while an order submission is in flight

    Example:
        >>> async with OrderingWorkflow("demo-shop", shops, orders, location, sessions) as visit:
        ...     if await visit.open() == WorkflowStage.IDENTITY_REQUIRED:
        ...         await visit.start_session("Table 4")
        ...     visit.add_item("prod-dosa", price=120.0, quantity=2)
        ...     order = await visit.submit()
    """

    def __init__(
        self,
        shop_id: str,
        shops: BaseShopDirectory,
        orders: BaseOrderRepository,
        location: BaseLocationProvider,
        sessions: SessionStore,
        clock: Optional[Clock] = None,
        browse_geofence: Optional[GeofenceValidator] = None,
        poll_interval: Optional[float] = None,
        expiry_check_interval: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        settings = get_settings()

        self.shop_id = shop_id
        self._shops = shops
        self._orders = orders
        self._location = location
        self._sessions = sessions
        self._clock = clock or SystemClock()
        self._browse_geofence = browse_geofence or get_browse_geofence()
        if poll_interval is None:
            poll_interval = settings.order_poll_interval_seconds
        if expiry_check_interval is None:
            expiry_check_interval = settings.session_check_interval_seconds
        self.poll_interval = poll_interval
        self.expiry_check_interval = expiry_check_interval
        self._sleep = sleep

        self.stage = WorkflowStage.LOADING
        self.shop: Optional[ShopResponse] = None
        self.session: Optional[GuestSession] = None
        self.cart = Cart()
        self.orders: list[OrderResponse] = []
        self.error: Optional[OrderingError] = None
        self.browse_check: Optional[GeofenceResult] = None
        self.submitting = False
        self.last_refresh_error: Optional[Exception] = None

        self._expiry_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "OrderingWorkflow":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # =========================================================================
    # ADMISSION
    # =========================================================================

    async def open(self) -> WorkflowStage:
        """Run shop, location, geofence and session steps in order."""
        self._cancel_background_tasks()
        self.stage = WorkflowStage.LOADING
        self.error = None

        try:
            self.shop = await self._shops.get_shop(self.shop_id)
        except ShopNotFound as e:
            return self._halt(WorkflowStage.SHOP_NOT_FOUND, e)

        if not self.shop.is_active:
            return self._halt(WorkflowStage.SHOP_INACTIVE, ShopInactive(self.shop.id))

        return await self._admit()

    async def retry_location(self) -> WorkflowStage:
        """Re-acquire coordinates and re-run the browse geofence."""
        if self.shop is None:
            return await self.open()
        if self.stage not in _RETRYABLE:
            return self.stage
        return await self._admit()

    async def _admit(self) -> WorkflowStage:
        try:
            diner = await self._location.get_current_coordinates()
        except LocationUnavailable as e:
            return self._halt(WorkflowStage.LOCATION_REQUIRED, e)

        try:
            self.browse_check = self._browse_geofence.validate(diner, self.shop.coordinates)
        except TooFar as e:
            self.browse_check = None
            return self._halt(WorkflowStage.TOO_FAR, e)

        self.error = None
        session = self._sessions.load(self.shop_id)
        if session is None:
            self.stage = WorkflowStage.IDENTITY_REQUIRED
        else:
            self._activate(session)
        return self.stage

    def _halt(self, stage: WorkflowStage, error: OrderingError) -> WorkflowStage:
        logger.info(f"Visit to shop {self.shop_id} halted: {stage.value} ({error.message})")
        self.stage = stage
        self.error = error
        return stage

    # =========================================================================
    # IDENTITY
    # =========================================================================

    async def start_session(self, display_name: str, contact: Optional[str] = None) -> GuestSession:
        """
        Create this shop's guest session and start ordering.

        Raises:
            ValueError: Blank name
            RuntimeError: The diner has not passed the location check
        """
        if self.stage not in _ADMITTED:
            raise RuntimeError(f"Cannot start a session while {self.stage.value}")

        session = self._sessions.create(self.shop_id, display_name, contact)
        self._cancel_background_tasks()
        self.orders = []
        self._activate(session)
        return session

    async def edit_identity(self, display_name: str, contact: Optional[str] = None) -> GuestSession:
        """Replace the identity; this starts a fresh session and TTL window. The cart is kept."""
        return await self.start_session(display_name, contact)

    def reset_session(self) -> None:
        """Forget the identity on this device and discard the cart."""
        self._sessions.clear(self.shop_id)
        self._teardown_session()

    def _activate(self, session: GuestSession) -> None:
        self.session = session
        self.stage = WorkflowStage.ORDERING
        self._start_background_tasks()

    def _teardown_session(self) -> None:
        self._cancel_background_tasks()
        self.session = None
        self.cart.clear()
        self.orders = []
        if self.stage == WorkflowStage.ORDERING:
            self.stage = WorkflowStage.IDENTITY_REQUIRED

    def check_expiry(self) -> bool:
        """
        Re-check the stored session.

        Returns False, after tearing the visit down to the identity prompt,
        once the session has expired or been removed.
        """
        if self.session is None:
            return False

        stored = self._sessions.load(self.shop_id)
        if stored is None:
            logger.info(f"Session {self.session.session_id} expired; asking for identity again")
            self._teardown_session()
            return False

        # Another client on this device may have replaced the identity
        if stored.session_id != self.session.session_id:
            self.session = stored
            self.orders = []
        return True

    def remaining_time(self) -> Optional[timedelta]:
        if self.session is None:
            return None
        return self._sessions.remaining(self.session)

    def remaining_label(self) -> Optional[str]:
        """Countdown text such as "119m 05s", or "Expired"."""
        remaining = self.remaining_time()
        if remaining is None:
            return None
        total_seconds = int(remaining.total_seconds())
        if total_seconds <= 0:
            return "Expired"
        minutes, seconds = divmod(total_seconds, 60)
        return f"{minutes}m {seconds:02d}s"

    # =========================================================================
    # CART
    # =========================================================================

    def add_item(self, product_id: str, price: float, quantity: int = 1, name: Optional[str] = None) -> CartLine:
        return self.cart.add(product_id, price, quantity, name)

    def update_quantity(self, product_id: str, quantity: int) -> None:
        self.cart.update_quantity(product_id, quantity)

    def remove_item(self, product_id: str) -> None:
        self.cart.remove(product_id)

    @property
    def cart_total(self) -> float:
        return self.cart.total

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def submit(self) -> Optional[OrderResponse]:
        """
        Place the cart as an order.

        Returns None, with the visit back at the identity prompt, when the
        session has expired.

        Raises:
            EmptyCart: Nothing to order
            InvalidOrder: Identity or items do not fit the order format
            LocationUnavailable: Position could not be read (order not sent)
            TooFar: Server rejected the position
            ShopInactive: Shop switched its QR menu off meanwhile
            SubmissionFailed: Network or server failure; the cart is kept
        """
        if self.session is None:
            if self.stage in _ADMITTED:
                self.stage = WorkflowStage.IDENTITY_REQUIRED
            return None

        if not self.check_expiry():
            return None

        if self.cart.is_empty:
            raise EmptyCart()

        session = self.session
        self.submitting = True
        try:
            diner = await self._location.get_current_coordinates()

            try:
                payload = GuestOrderCreate(
                    shop_id=self.shop_id,
                    session_id=session.session_id,
                    customer_name=session.display_name,
                    customer_contact=session.contact,
                    items=self.cart.to_order_items(),
                    total_amount=self.cart.total,
                    latitude=diner.latitude,
                    longitude=diner.longitude,
                )
            except ValidationError as e:
                logger.warning(f"Order for session {session.session_id} is not valid: {e}")
                raise InvalidOrder() from e

            try:
                order = await self._orders.create_order(payload)
            except OrderingError:
                raise
            except Exception as e:
                logger.exception(f"Order submission for session {session.session_id} failed: {e}")
                raise SubmissionFailed() from e
        finally:
            self.submitting = False

        logger.info(f"Order {order.id} placed by session {session.session_id}")
        self.cart.clear()
        await self.refresh_orders()
        return order

    async def refresh_orders(self) -> list[OrderResponse]:
        """Fetch the session's orders; on failure keep the last known list."""
        if self.session is None:
            self.orders = []
            return self.orders

        session_id = self.session.session_id
        try:
            orders = await self._orders.find_orders(
                OrderFilter(shop_id=self.shop_id, session_id=session_id)
            )
        except Exception as e:
            logger.warning(f"Failed to fetch guest orders for session {session_id}: {e}")
            self.last_refresh_error = e
            return self.orders

        # Identity changed while the request was in flight
        if self.session is None or self.session.session_id != session_id:
            return self.orders

        self.last_refresh_error = None
        self.orders = orders
        return self.orders

    # =========================================================================
    # BACKGROUND TASKS
    # =========================================================================

    @property
    def background_tasks_running(self) -> bool:
        return any(
            task is not None and not task.done()
            for task in (self._expiry_task, self._poll_task)
        )

    def _start_background_tasks(self) -> None:
        self._cancel_background_tasks()
        self._expiry_task = asyncio.create_task(
            self._expiry_loop(), name=f"session-expiry-{self.shop_id}"
        )
        self._poll_task = asyncio.create_task(
            self._poll_loop(), name=f"order-poll-{self.shop_id}"
        )

    def _cancel_background_tasks(self) -> list[asyncio.Task]:
        # A loop tearing down the session must not cancel itself mid-step
        current = asyncio.current_task() if self._has_running_loop() else None
        cancelled = []
        for task in (self._expiry_task, self._poll_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
                cancelled.append(task)
        self._expiry_task = None
        self._poll_task = None
        return cancelled

    @staticmethod
    def _has_running_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    async def _expiry_loop(self) -> None:
        while True:
            await self._sleep(self.expiry_check_interval)
            try:
                active = self.check_expiry()
            except Exception as e:
                logger.warning(f"Session expiry check for shop {self.shop_id} failed, retrying: {e}")
                continue
            if not active:
                return

    async def _poll_loop(self) -> None:
        while True:
            await self.refresh_orders()
            await self._sleep(self.poll_interval)

    async def close(self) -> None:
        """Stop background work; the stored session is left in place."""
        cancelled = self._cancel_background_tasks()
        if cancelled:
            await asyncio.gather(*cancelled, return_exceptions=True)
        self.stage = WorkflowStage.CLOSED
