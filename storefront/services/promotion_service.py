"""Business logic for store-wide promotions on top of catalog prices."""
import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from ..errors import StoreAPIError
from ..items import round_half_up

_NUMBER_RE = re.compile(r'-?\d+(\.\d+)?')


def parse_numeric_value(value: Any) -> Optional[float]:
    """Return *value* as a number: numbers pass through, strings yield their
    first signed decimal, anything else gives ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    m = _NUMBER_RE.search(value)
    if not m:
        return None
    number = float(m.group(0))
    return number if math.isfinite(number) else None


def round_to_cents(usd: float) -> float:
    return round_half_up(usd * 100) / 100


def format_usd(usd: float) -> str:
    return f"${usd:.2f}"


def format_usd_cents(cents: Any) -> Optional[str]:
    if isinstance(cents, bool) or not isinstance(cents, (int, float)):
        return None
    if not math.isfinite(cents):
        return None
    return format_usd(cents / 100)


def apply_store_promotions(usd: float, promos: List[Dict]) -> Tuple[float, Optional[str]]:
    """Return ``(price_usd, discount_label)`` after the best store promotion.

    Only promotions scoped to the whole store (``scope`` of ``"Store"``; a
    missing scope counts as ``"Publisher"``) that apply to all games are
    considered.
    ``Percentage`` promotions take ``applicationCondition`` percent off
    (clamped to 0-100) and are labelled ``-20%``; ``FixedAmount`` ones
    subtract a dollar amount (floored at $0) and are labelled ``-$3.00``.
    The lowest price wins; on a tie the earlier promotion is kept.  Prices
    that are not positive come back unchanged with no label.
    """
    if not isinstance(usd, (int, float)) or isinstance(usd, bool):
        return usd, None
    if not math.isfinite(usd) or usd <= 0:
        return usd, None
    if not isinstance(promos, list) or not promos:
        return usd, None

    best = usd
    best_label: Optional[str] = None

    for promo in promos:
        if not isinstance(promo, dict):
            continue
        if str(promo.get('scope') or 'Publisher') != 'Store':
            continue
        applicable = promo.get('applicableScope')
        if applicable and applicable != 'AllGames':
            continue

        raw = parse_numeric_value(promo.get('applicationCondition'))
        if raw is None:
            continue

        discount_type = promo.get('discountType')
        if discount_type == 'Percentage':
            percent = max(0.0, min(100.0, abs(raw)))
            discounted = max(0.0, round_to_cents(usd * (1 - percent / 100)))
            if discounted < best:
                best = discounted
                best_label = f"-{round_half_up(percent)}%"
        elif discount_type == 'FixedAmount':
            amount = max(0.0, abs(raw))
            discounted = max(0.0, round_to_cents(usd - amount))
            if discounted < best:
                best = discounted
                best_label = f"-${amount:.2f}"

    return best, best_label


class PromotionService:
    """Loads the active store promotions and prices items against them.

    Rules
    -----
    * Fetch failures of any kind yield no promotions; prices are then shown
      without store discounts.
    * The last successfully fetched list is kept in :attr:`active` so that
      pricing many items costs one request.
    """

    def __init__(self, api_client) -> None:
        self._api = api_client
        self.active: List[Dict] = []
        self._log = logging.getLogger('gameverse.promotions')

    def fetch_active(self) -> List[Dict]:
        """Fetch the active store promotions (``[]`` on failure)."""
        try:
            promos = self._api.get_active_store_promotions()
        except StoreAPIError as e:
            self._log.warning("Could not load store promotions: %s", e.message)
            return []
        self.active = [p for p in promos if isinstance(p, dict)]
        return self.active

    def price(self, usd: float, promos: Optional[List[Dict]] = None) -> Dict:
        """Price *usd* against *promos* (defaults to :attr:`active`).

        Returns ``{price_usd, price, discount_label}`` where ``price`` is the
        formatted label.
        """
        price_usd, label = apply_store_promotions(
            usd, self.active if promos is None else promos)
        return {
            'price_usd': price_usd,
            'price': format_usd(price_usd),
            'discount_label': label,
        }
