"""Repository for the client-side order history ([order, ...])."""
from typing import Dict, List

from .base import BaseRepository
from .storage import KeyValueStore

ORDERS_KEY = 'gameverse_orders_v1'


class OrderRepository(BaseRepository):
    """Persists placed orders, newest first.

    Schema::

        [
            {
                "id":          "<str>",
                "created_at":  "<ISO-8601 UTC>",
                "total_cents": <int>,
                "items":       [<CartLine>, ...],
                "payment":     {"brand": "<str>", "last4": "<str>", "holder": "<str>"},
                "status":      "paid"
            },
            ...
        ]

    The list is capped at *max_size* entries; adding beyond the cap evicts
    the oldest order.
    """

    def __init__(self, store: KeyValueStore, key: str = ORDERS_KEY,
                 max_size: int = 50) -> None:
        super().__init__(store, key)
        self.max_size = max(1, int(max_size))
        raw = self._load([])
        self.data: List[Dict] = (
            [o for o in raw if isinstance(o, dict)][:self.max_size]
            if isinstance(raw, list) else []
        )

    def add(self, order: Dict) -> None:
        """Prepend *order* and persist (trimmed to *max_size*)."""
        self.data.insert(0, order)
        del self.data[self.max_size:]
        self.save()

    def save(self) -> None:
        self._save(self.data[:self.max_size])
