"""Business logic for the local cart and wishlist drafts."""
import logging
import threading
from typing import Dict, Iterable, List, Union

from ..items import clamp_quantity, item_identity, normalize_item
from ..repositories.store_repository import StoreRepository

MAX_REMOVED_IDS = 500


class StoreService:
    """Holds cart lines and wishlist items for an anonymous or signed-in
    shopper, delegating persistence to
    :class:`~storefront.repositories.store_repository.StoreRepository`.

    Rules
    -----
    * Lines and wishlist entries are keyed by identity (see
      :func:`storefront.items.make_item_id`); an identity appears at most
      once per container.
    * Adding an identity already in the cart increments its quantity; the
      quantity always stays within ``[1, 99]``.
    * New cart lines are appended; new wishlist entries go to the front.
    * Taking an item off the wishlist remembers its id (the newest
      ``MAX_REMOVED_IDS``) so that a later server sync does not restore it;
      adding it back forgets the id.
    * State is read from storage by :meth:`hydrate`.  Any mutation hydrates
      first, so stored drafts are never overwritten by the empty initial
      state.  Every mutation is persisted immediately.
    """

    def __init__(self, repository: StoreRepository) -> None:
        self._repo = repository
        self._lock = threading.RLock()
        self._cart: List[Dict] = []
        self._wishlist: List[Dict] = []
        self._removed: List[str] = []
        self._hydrated = False
        self._log = logging.getLogger('gameverse.store')

    # ------------------------------------------------------------------
    # Hydration / persistence
    # ------------------------------------------------------------------

    @property
    def hydrated(self) -> bool:
        return self._hydrated

    def hydrate(self) -> None:
        """Load the drafts from storage (once)."""
        with self._lock:
            if self._hydrated:
                return
            self._cart, self._wishlist = self._repo.load()
            self._removed = self._repo.load_removed()[-MAX_REMOVED_IDS:]
            self._hydrated = True
            self._log.debug("Hydrated %d cart lines, %d wishlist items",
                            len(self._cart), len(self._wishlist))

    def _persist(self) -> None:
        self._repo.save(self._cart, self._wishlist, self._removed)

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def cart(self) -> List[Dict]:
        with self._lock:
            return [dict(line) for line in self._cart]

    @property
    def wishlist(self) -> List[Dict]:
        with self._lock:
            return [dict(item) for item in self._wishlist]

    @property
    def cart_count(self) -> int:
        """Number of distinct lines in the cart."""
        return len(self._cart)

    @property
    def cart_quantity(self) -> int:
        """Total number of units across all cart lines."""
        with self._lock:
            return sum(line.get('quantity', 1) for line in self._cart)

    @property
    def wishlist_count(self) -> int:
        return len(self._wishlist)

    @property
    def subtotal_cents(self) -> int:
        """Sum of unit price × quantity; lines without a known price are skipped."""
        with self._lock:
            total = 0
            for line in self._cart:
                cents = line.get('unit_price_cents')
                if isinstance(cents, int) and not isinstance(cents, bool):
                    total += cents * line.get('quantity', 1)
            return total

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def add_to_cart(self, item: Dict, quantity=1) -> Dict:
        """Add *quantity* units of *item*; returns the resulting line."""
        normalized = normalize_item(item)
        amount = clamp_quantity(quantity)
        with self._lock:
            self.hydrate()
            for idx, line in enumerate(self._cart):
                if line['id'] == normalized['id']:
                    updated = dict(line)
                    updated['quantity'] = clamp_quantity(line.get('quantity', 1) + amount)
                    self._cart[idx] = updated
                    break
            else:
                updated = dict(normalized, quantity=amount)
                self._cart.append(updated)
            self._persist()
            return dict(updated)

    def remove_from_cart(self, item_id: str) -> bool:
        """Remove the line for *item_id*.  Returns ``True`` if it existed."""
        with self._lock:
            self.hydrate()
            before = len(self._cart)
            self._cart = [line for line in self._cart if line['id'] != item_id]
            if len(self._cart) == before:
                return False
            self._persist()
            return True

    def set_cart_quantity(self, item_id: str, quantity) -> bool:
        """Set the quantity of an existing line; zero or junk removes it.

        Returns ``False`` if no line has *item_id*.
        """
        with self._lock:
            self.hydrate()
            try:
                wanted = int(quantity)
            except (TypeError, ValueError, OverflowError):
                wanted = 0
            if wanted <= 0:
                return self.remove_from_cart(item_id)
            for idx, line in enumerate(self._cart):
                if line['id'] == item_id:
                    self._cart[idx] = dict(line, quantity=clamp_quantity(wanted))
                    self._persist()
                    return True
            return False

    def clear_cart(self) -> None:
        with self._lock:
            self.hydrate()
            self._cart = []
            self._persist()

    # ------------------------------------------------------------------
    # Wishlist
    # ------------------------------------------------------------------

    @property
    def removed_ids(self) -> List[str]:
        """Ids taken off the wishlist that a sync must not restore."""
        with self._lock:
            return list(self._removed)

    def _mark_removed(self, item_id: str) -> None:
        if item_id in self._removed:
            self._removed.remove(item_id)
        self._removed.append(item_id)
        del self._removed[:-MAX_REMOVED_IDS]

    def _unmark_removed(self, item_id: str) -> None:
        if item_id in self._removed:
            self._removed.remove(item_id)

    def is_wishlisted(self, item_or_id: Union[str, Dict]) -> bool:
        item_id = item_identity(item_or_id)
        with self._lock:
            return any(entry['id'] == item_id for entry in self._wishlist)

    def toggle_wishlist(self, item: Dict) -> bool:
        """Add *item* if absent, remove it if present.

        Returns ``True`` when the item is wishlisted afterwards.
        """
        normalized = normalize_item(item)
        with self._lock:
            self.hydrate()
            if self.is_wishlisted(normalized['id']):
                self._wishlist = [e for e in self._wishlist if e['id'] != normalized['id']]
                self._mark_removed(normalized['id'])
                added = False
            else:
                self._wishlist.insert(0, normalized)
                self._unmark_removed(normalized['id'])
                added = True
            self._persist()
            return added

    def remove_wishlist(self, item_id: str) -> bool:
        """Remove *item_id* from the wishlist.  Absent ids are a no-op."""
        with self._lock:
            self.hydrate()
            before = len(self._wishlist)
            self._wishlist = [e for e in self._wishlist if e['id'] != item_id]
            if len(self._wishlist) == before:
                return False
            self._mark_removed(item_id)
            self._persist()
            return True

    def clear_wishlist(self) -> None:
        with self._lock:
            self.hydrate()
            for entry in self._wishlist:
                self._mark_removed(entry['id'])
            self._wishlist = []
            self._persist()

    def replace_wishlist(self, items: List[Dict]) -> None:
        """Replace the wishlist wholesale, dropping duplicate identities."""
        with self._lock:
            self.hydrate()
            seen = set()
            result = []
            for item in items:
                if item['id'] in seen:
                    continue
                seen.add(item['id'])
                result.append(dict(item))
            self._wishlist = result
            self._persist()

    def retain_removed(self, item_ids: Iterable[str]) -> None:
        """Forget removed ids not in *item_ids* (the server no longer has them)."""
        keep = set(item_ids)
        with self._lock:
            self.hydrate()
            self._removed = [i for i in self._removed if i in keep]
            self._persist()

    def reset_drafts(self) -> None:
        """Drop the cart, the wishlist and the removed ids."""
        with self._lock:
            self.hydrate()
            self._cart = []
            self._wishlist = []
            self._removed = []
            self._persist()
