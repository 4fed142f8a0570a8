"""
GameVerse storefront client package.

Uses a layered architecture:

  storefront/repositories/   pure I/O (JSON blobs in a key-value store)
  storefront/services/       business logic (cart/wishlist rules, wishlist
                             sync, promotions, orders, search, auth, reports)

``Storefront`` (in ``gameverse.py``) is the integration point: it creates the
key-value store, repositories, clients and services in ``__init__`` and
exposes them as public attributes (e.g. ``storefront.orders``) alongside the
cart/wishlist shortcuts every caller needs.
"""
