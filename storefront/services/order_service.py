"""Business logic for the client-side order history and checkout."""
import datetime
import logging
import uuid
from typing import Dict, List, Optional

from ..repositories.order_repository import OrderRepository
from .store_service import StoreService

PAYMENT_BRANDS = ('wallet', 'visa', 'mastercard', 'paypal', 'payoneer')


class OrderService:
    """Records placed orders, delegating persistence to
    :class:`~storefront.repositories.order_repository.OrderRepository`.

    Rules
    -----
    * Orders are only placed from a non-empty cart.
    * ``brand`` must be one of :data:`PAYMENT_BRANDS`.
    * Only the last four digits of a card number are kept.
    * A successful checkout empties the cart.
    """

    def __init__(self, repository: OrderRepository, store: StoreService) -> None:
        self._repo = repository
        self._store = store
        self._log = logging.getLogger('gameverse.orders')

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get_orders(self) -> List[Dict]:
        """Return the order history, newest first."""
        return list(self._repo.data)

    def add_order(self, order: Dict) -> None:
        """Record *order*; the oldest entry is evicted beyond the cap."""
        self._repo.add(order)

    def place_order(self, brand: str, card_number: str = '',
                    holder: str = '') -> Optional[Dict]:
        """Turn the current cart into a paid order.

        Returns:
            The new order, or ``None`` if the cart is empty or *brand* is
            not a known payment brand.
        """
        brand = (brand or '').strip().lower()
        if brand not in PAYMENT_BRANDS:
            return None
        items = self._store.cart
        if not items:
            return None

        payment: Dict = {'brand': brand}
        digits = ''.join(ch for ch in card_number or '' if ch.isdigit())
        if digits:
            payment['last4'] = digits[-4:]
        if holder and holder.strip():
            payment['holder'] = holder.strip()

        order = {
            'id': uuid.uuid4().hex,
            'created_at': datetime.datetime.now(datetime.timezone.utc).isoformat(timespec='seconds'),
            'total_cents': self._store.subtotal_cents,
            'items': items,
            'payment': payment,
            'status': 'paid',
        }
        self.add_order(order)
        self._store.clear_cart()
        self._log.info("Placed order %s (%d lines, %d cents)",
                       order['id'], len(items), order['total_cents'])
        return order
