"""Search suggestions: catalog lookup priced with Steam data and store
promotions."""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from ..cancellation import CancellationToken, check
from ..errors import OperationCancelled
from ..items import round_half_up
from .promotion_service import (
    PromotionService, apply_store_promotions, format_usd, format_usd_cents,
)

MIN_QUERY_LENGTH = 2
DEFAULT_LIMIT = 8
MAX_LIMIT = 20
DEFAULT_DEBOUNCE_SECONDS = 0.22


def clamp_limit(value: Any) -> int:
    """Clamp a requested suggestion count to ``[1, 20]``; junk gives 8."""
    try:
        limit = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_LIMIT
    return min(max(limit, 1), MAX_LIMIT)


def steam_app_id_of(game: Dict) -> Optional[int]:
    value = game.get('steamAppId', game.get('steam_app_id'))
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return None
    return value


def _is_cents(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def build_suggestion(game: Dict, details: Optional[Dict], promos: List[Dict]) -> Dict:
    """Combine a catalog entry, its Steam price data and the store promotions.

    Suggestion schema::

        {
            "steam_app_id":     <int|null>,
            "name":             "<str>",
            "avatar_url":       "<str|null>",
            "is_free":          <bool>,
            "price":            "<str|null>",   # e.g. "$8.00" or "Free"
            "original_price":   "<str|null>",   # set only when discounted
            "discount_percent": <int|null>
        }
    """
    details = details or {}
    overview = details.get('price_overview') or {}
    is_free = bool(details.get('is_free'))
    discount = overview.get('discount_percent')
    final_cents = overview.get('final')
    initial_cents = overview.get('initial')

    if is_free:
        price = 'Free'
    else:
        price = overview.get('final_formatted') or format_usd_cents(final_cents)

    original_price = None
    if discount and discount > 0:
        original_price = overview.get('initial_formatted') or format_usd_cents(initial_cents)

    if not is_free and _is_cents(final_cents):
        promo_usd, label = apply_store_promotions(final_cents / 100, promos)
        if label:
            base_cents = initial_cents if _is_cents(initial_cents) else final_cents
            original_price = original_price or format_usd_cents(base_cents)
            price = format_usd(promo_usd)
            discount = round_half_up((1 - (promo_usd * 100) / base_cents) * 100)

    return {
        'steam_app_id': steam_app_id_of(game),
        'name': game.get('name', ''),
        'avatar_url': game.get('avatarUrl') or game.get('imageUrl'),
        'is_free': is_free,
        'price': price,
        'original_price': original_price,
        'discount_percent': discount,
    }


class SearchService:
    """Looks up catalog entries by name and prices them for the suggestion
    list.

    One search costs one catalog request, one batched Steam price request
    and one promotions request.  Cancellation is checked between each.
    """

    def __init__(self, api_client, steam_client, promotions: PromotionService) -> None:
        self._api = api_client
        self._steam = steam_client
        self._promotions = promotions
        self._log = logging.getLogger('gameverse.search')

    def search(self, query: str, limit: Any = DEFAULT_LIMIT,
               cancel_token: Optional[CancellationToken] = None) -> List[Dict]:
        """Return suggestions for *query*.

        Raises:
            OperationCancelled: if *cancel_token* fires mid-search.
        """
        query = (query or '').strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []
        limit = clamp_limit(limit)

        check(cancel_token)
        games = self._api.list_games(search=query, limit=limit, cancel_token=cancel_token)
        games = [g for g in games if isinstance(g, dict)][:limit]
        if not games:
            return []

        check(cancel_token)
        prices = self._steam.get_price_overviews(
            [steam_app_id_of(g) for g in games if steam_app_id_of(g)],
            cancel_token=cancel_token)

        check(cancel_token)
        promos = self._promotions.fetch_active()
        check(cancel_token)

        self._log.debug("Search %r: %d results", query, len(games))
        return [build_suggestion(g, prices.get(steam_app_id_of(g)), promos) for g in games]


class DebouncedSearch:
    """Keystroke-driven search: waits for typing to pause, then searches.

    Each :meth:`update` cancels the pending timer and any search still in
    flight, so *on_results* only ever sees results for the latest query.
    *on_results* is called as ``on_results(query, suggestions)`` from a timer
    thread; an empty query is answered immediately with ``[]``.  Errors are
    reported as an empty suggestion list.
    """

    def __init__(self, search_service: SearchService,
                 on_results: Callable[[str, List[Dict]], None],
                 delay: float = DEFAULT_DEBOUNCE_SECONDS,
                 limit: Any = DEFAULT_LIMIT) -> None:
        self._search = search_service
        self._on_results = on_results
        self.delay = max(0.0, float(delay))
        self.limit = limit
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._cancel: Optional[CancellationToken] = None
        self._log = logging.getLogger('gameverse.search')

    def _cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._cancel is not None:
            self._cancel.cancel()
            self._cancel = None

    def update(self, query: str) -> None:
        query = (query or '').strip()
        with self._lock:
            self._cancel_pending()
            if query:
                cancel = CancellationToken()
                timer = threading.Timer(self.delay, self._fire, args=(query, cancel))
                timer.daemon = True
                self._cancel = cancel
                self._timer = timer
                timer.start()
        if not query:
            self._on_results(query, [])

    def _fire(self, query: str, cancel: CancellationToken) -> None:
        if cancel.cancelled:
            return
        try:
            results = self._search.search(query, self.limit, cancel_token=cancel)
        except OperationCancelled:
            return
        except Exception as exc:
            self._log.exception("Search for %r failed: %s", query, exc)
            results = []
        if cancel.cancelled:
            return
        self._on_results(query, results)

    def close(self) -> None:
        with self._lock:
            self._cancel_pending()
