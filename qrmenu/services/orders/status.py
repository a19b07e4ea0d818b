"""
Order Status State Machine

    pending → preparing → ready → completed
       └──────────┴─────────┴──→ cancelled

Transitions are staff-triggered; guests only read status. Any staff member
may drive any legal transition. Concurrent staff updates are last write
wins: the repository has no version check, so two staff clicking different
buttons within one polling window end up with whichever write landed last.
"""

import logging
from typing import TYPE_CHECKING

from qrmenu.core.exceptions import InvalidTransition
from qrmenu.models import OrderStatus

if TYPE_CHECKING:
    from qrmenu.schemas import OrderResponse
    from qrmenu.services.orders.base import BaseOrderRepository

logger = logging.getLogger(__name__)

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

INITIAL_STATUS = OrderStatus.PENDING

# Display order for staff buttons
_STATUS_ORDER = list(OrderStatus)


class OrderStatusMachine:
    """Legal order status transitions."""

    def __init__(self, transitions: dict[OrderStatus, frozenset[OrderStatus]] = TRANSITIONS):
        self._transitions = transitions

    def allowed_transitions(self, current: OrderStatus) -> list[OrderStatus]:
        allowed = self._transitions.get(OrderStatus(current), frozenset())
        return [s for s in _STATUS_ORDER if s in allowed]

    def can_transition(self, current: OrderStatus, requested: OrderStatus) -> bool:
        return OrderStatus(requested) in self._transitions.get(OrderStatus(current), frozenset())

    def is_terminal(self, status: OrderStatus) -> bool:
        return not self._transitions.get(OrderStatus(status))

    def ensure_transition(self, current: OrderStatus, requested: OrderStatus) -> OrderStatus:
        """
        Return the requested status if the move is legal.

        Raises:
            InvalidTransition: If the table does not allow the move
        """
        if not self.can_transition(current, requested):
            raise InvalidTransition(current, requested)
        return OrderStatus(requested)

    async def apply(
        self,
        repository: "BaseOrderRepository",
        order_id: str,
        requested: OrderStatus,
    ) -> "OrderResponse":
        """
        Move a stored order to a new status.

        Reads the current status, validates, then writes. On rejection
        nothing is written.

        Raises:
            OrderNotFound: If the order does not exist
            InvalidTransition: If the move is not allowed
        """
        order = await repository.get_order(order_id)

        try:
            self.ensure_transition(order.status, requested)
        except InvalidTransition:
            logger.warning(
                f"Order {order_id}: rejected transition "
                f"{order.status.value} -> {OrderStatus(requested).value}"
            )
            raise

        updated = await repository.update_order_status(order_id, OrderStatus(requested))
        logger.info(f"Order {order_id}: {order.status.value} -> {updated.status.value}")
        return updated
