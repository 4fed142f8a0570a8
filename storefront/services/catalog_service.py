"""Catalog browsing: paged game listings and game pages enriched with Steam
details and store promotions."""
import logging
from typing import Any, Dict, List, Optional

from .promotion_service import PromotionService
from .search_service import build_suggestion, steam_app_id_of

BROWSE_PAGE_SIZE = 24


def _norm_text(value: Any) -> str:
    if value is None:
        return ''
    return str(value).strip().lower()


def has_genre(details: Optional[Dict], genre: str) -> bool:
    """True if *details* lists *genre* (case-insensitive exact match)."""
    target = _norm_text(genre)
    if not target:
        return False
    genres = (details or {}).get('genres') or []
    return any(_norm_text((g or {}).get('description')) == target for g in genres)


def has_category(details: Optional[Dict], category: str) -> bool:
    """True if any category description of *details* contains *category*."""
    target = _norm_text(category)
    if not target:
        return False
    categories = (details or {}).get('categories') or []
    return any(target in _norm_text((c or {}).get('description')) for c in categories)


def build_card(game: Dict, details: Optional[Dict], promos: List[Dict]) -> Dict:
    """A priced suggestion plus the Steam genres and header image."""
    card = build_suggestion(game, details, promos)
    details = details or {}
    card['genres'] = [g.get('description') for g in details.get('genres') or []
                      if isinstance(g, dict) and g.get('description')]
    card['header_image'] = details.get('header_image')
    return card


class CatalogService:
    """Pages through the catalog the way the browse page does.

    Rules:
    - Pages are 1-based and hold ``BROWSE_PAGE_SIZE`` entries; page *n*
      starts at ``skip = (n - 1) * limit``.
    - Steam details for a page are fetched in one bounded fan-out.
    - A *genre* filter matches a Steam genre exactly; a *category* filter
      matches part of a Steam category.  Both ignore case, and entries
      without Steam data never pass a filter.
    - ``has_next`` is true when the catalog returned a full page.
    """

    def __init__(self, api_client, steam_client,
                 promotions: Optional[PromotionService] = None) -> None:
        self._api = api_client
        self._steam = steam_client
        self._promotions = promotions
        self._log = logging.getLogger('gameverse.catalog')

    def _active_promotions(self) -> List[Dict]:
        return self._promotions.fetch_active() if self._promotions else []

    def browse(self, search: Optional[str] = None, page: int = 1,
               genre: Optional[str] = None, category: Optional[str] = None,
               limit: int = BROWSE_PAGE_SIZE) -> Dict:
        """Return one browse page.

        Returns::

            {"page": <int>, "items": [<card>, ...], "has_next": <bool>}
        """
        page = max(int(page), 1)
        limit = min(max(int(limit), 1), 100)
        games = self._api.list_games(search=search, skip=(page - 1) * limit, limit=limit)
        games = [g for g in games if isinstance(g, dict)]

        app_ids = [steam_app_id_of(g) for g in games if steam_app_id_of(g)]
        details = self._steam.get_app_details_batch(app_ids) if app_ids else {}
        promos = self._active_promotions() if games else []

        items = []
        for game in games:
            info = details.get(steam_app_id_of(game))
            if genre and not has_genre(info, genre):
                continue
            if category and not has_category(info, category):
                continue
            items.append(build_card(game, info, promos))

        self._log.debug("Browse page %d: %d of %d entries kept", page, len(items), len(games))
        return {'page': page, 'items': items, 'has_next': len(games) == limit}

    def get_game(self, game_id: str) -> Optional[Dict]:
        """Return one catalog entry with its priced card under ``"card"``."""
        game = self._api.get_game(game_id)
        if not game:
            return None
        app_id = steam_app_id_of(game)
        details = self._steam.get_app_details(app_id) if app_id else None
        return dict(game, card=build_card(game, details, self._active_promotions()))
