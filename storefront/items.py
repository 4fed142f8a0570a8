"""Normalisation helpers for catalog items entering the cart or wishlist.

Every page that can add a product (detail page, search result, card) hands
over a loosely-shaped dict; these helpers turn it into the canonical
``StoreItem`` schema::

    {
        "id":                   "steam:620" | "slug:my-game" | "item:<name>",
        "steam_app_id":         <int|null>,
        "slug":                 "<str|null>",
        "name":                 "<str>",
        "image":                "<str>",
        "price_label":          "<str|null>",
        "original_price_label": "<str|null>",
        "unit_price_cents":     <int|null>
    }

Cart lines add ``"quantity": <int>``.
"""
import math
import re
from typing import Any, Dict, Optional, Union

MAX_QUANTITY = 99

_PRICE_RE = re.compile(r'(\d+[.,]?\d{0,2})')

# Server payloads use camelCase; local records use snake_case.
_FIELD_ALIASES = {
    'steamAppId': 'steam_app_id',
    'priceLabel': 'price_label',
    'originalPriceLabel': 'original_price_label',
    'unitPriceCents': 'unit_price_cents',
    'imageUrl': 'image',
    'avatarUrl': 'image',
}


def _is_number(value: Any) -> bool:
    return (isinstance(value, (int, float)) and not isinstance(value, bool)
            and math.isfinite(value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def parse_price_to_cents(value: Optional[str]) -> Optional[int]:
    """Parse a display price such as ``"$19.99"`` or ``"19,99€"`` to cents.

    ``"Free"`` is 0; empty or unparsable labels give ``None``.
    """
    if value is None:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    if trimmed.lower() == 'free':
        return 0
    m = _PRICE_RE.search(trimmed)
    if not m:
        return None
    try:
        number = float(m.group(1).replace(',', '.'))
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return round_half_up(number * 100)


def clamp_quantity(value: Any) -> int:
    """Clamp a requested quantity to ``[1, MAX_QUANTITY]``; junk becomes 1."""
    if not _is_number(value):
        return 1
    return max(1, min(MAX_QUANTITY, int(math.floor(value))))


def normalize_input(raw: Dict) -> Dict:
    """Map a producer-side dict (snake_case or camelCase) to StoreItemInput."""
    data: Dict[str, Any] = {}
    for key, value in (raw or {}).items():
        target = _FIELD_ALIASES.get(key, key)
        if target == 'image' and data.get('image'):
            continue
        data[target] = value

    steam_app_id = data.get('steam_app_id')
    if isinstance(steam_app_id, str) and steam_app_id.strip().isdigit():
        steam_app_id = int(steam_app_id.strip())
    if not _is_number(steam_app_id):
        steam_app_id = None

    return {
        'steam_app_id': steam_app_id,
        'slug': data.get('slug') or None,
        'name': str(data.get('name') or ''),
        'image': str(data.get('image') or ''),
        'price_label': data.get('price_label'),
        'original_price_label': data.get('original_price_label'),
    }


def make_item_id(item_input: Dict) -> str:
    """Return the identity key: Steam app id first, then slug, then name."""
    steam_app_id = item_input.get('steam_app_id')
    if _is_number(steam_app_id):
        return f"steam:{int(math.floor(steam_app_id))}"
    if item_input.get('slug'):
        return f"slug:{item_input['slug']}"
    return f"item:{item_input.get('name', '')}"


def normalize_item(raw: Dict) -> Dict:
    """Return the canonical StoreItem for *raw*."""
    item = normalize_input(raw)
    item['id'] = make_item_id(item)
    item['unit_price_cents'] = parse_price_to_cents(item['price_label'])
    return item


def item_identity(item_or_id: Union[str, Dict]) -> str:
    """Accept an identity string, a StoreItem or a raw input; return its id."""
    if isinstance(item_or_id, str):
        return item_or_id
    if item_or_id.get('id'):
        return str(item_or_id['id'])
    return make_item_id(normalize_input(item_or_id))
