"""Repository for the local cart and wishlist drafts."""
from typing import Dict, Iterable, List, Tuple

from ..items import clamp_quantity
from .base import BaseRepository
from .storage import KeyValueStore

STORE_KEY = 'gameverse_store_v1'


class StoreRepository(BaseRepository):
    """Persists cart lines and wishlist items under one key.

    Schema::

        {
            "cart":     [<CartLine>, ...],
            "wishlist": [<StoreItem>, ...],
            "removed":  ["<item id>", ...]
        }

    See :mod:`storefront.items` for the item schemas.  ``removed`` lists
    wishlist ids the shopper took off the wishlist, so that a later sync does
    not bring them back.

    On load, entries that are not objects with an ``id`` are dropped, a
    repeated id keeps its first entry, and cart quantities are clamped to
    ``[1, 99]``.  A non-list container loads as empty.
    """

    def __init__(self, store: KeyValueStore, key: str = STORE_KEY) -> None:
        super().__init__(store, key)

    @staticmethod
    def _clean(entries) -> List[Dict]:
        if not isinstance(entries, list):
            return []
        seen = set()
        result = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get('id'):
                continue
            if entry['id'] in seen:
                continue
            seen.add(entry['id'])
            result.append(entry)
        return result

    def _load_blob(self) -> Dict:
        raw = self._load({})
        return raw if isinstance(raw, dict) else {}

    def load(self) -> Tuple[List[Dict], List[Dict]]:
        """Return ``(cart, wishlist)`` from storage."""
        raw = self._load_blob()
        cart = [dict(line, quantity=clamp_quantity(line.get('quantity', 1)))
                for line in self._clean(raw.get('cart'))]
        return cart, self._clean(raw.get('wishlist'))

    def load_removed(self) -> List[str]:
        """Return the ids removed from the wishlist, oldest first."""
        removed = self._load_blob().get('removed')
        if not isinstance(removed, list):
            return []
        return list(dict.fromkeys(r for r in removed if isinstance(r, str) and r))

    def save(self, cart: List[Dict], wishlist: List[Dict],
             removed: Iterable[str] = ()) -> None:
        self._save({'cart': cart, 'wishlist': wishlist, 'removed': list(removed)})
