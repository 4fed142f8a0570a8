#!/usr/bin/env python3
"""
GameVerse - storefront client for the GameVerse game marketplace.
Keeps a cart and wishlist that work before sign-in, syncs the wishlist with
the customer's account, prices Steam titles with store promotions and keeps a
local order history.
"""

import argparse
import getpass
import json
import logging
import os
import sys
from typing import Dict, List, Optional

from colorama import init, Fore, Style

from store_clients import GameStoreAPIClient, SteamStoreClient
from storefront.repositories import (
    JsonFileStore, KeyValueStore, OrderRepository, SessionRepository, StoreRepository,
)
from storefront.services import (
    AuthService, CatalogService, DebouncedSearch, OrderService, PromotionService,
    ReportService, SearchService, StoreService, WishlistSyncService,
)
from storefront.services.auth_service import PUBLISHER_PROFILE_FIELDS
from storefront.services.order_service import PAYMENT_BRANDS
from storefront.services.promotion_service import format_usd_cents
from storefront.services.wishlist_sync_service import STRATEGIES

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root GameVerse logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, str(level).upper(), logging.WARNING)
    logger = logging.getLogger('gameverse')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


# Module-level logger used throughout gameverse.py
logger = setup_logging(os.getenv('LOG_LEVEL', 'WARNING'))


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: Dict = {
    'game_store_api_base_url': None,
    'api_timeout_seconds': 10,
    'steam_country_code': 'us',
    'steam_language': 'english',
    'steam_revalidate_seconds': 15 * 60,
    'steam_concurrency': 6,
    'steam_cache_entries': 1024,
    'storage_path': '.gameverse_storage.json',
    'order_history_limit': 50,
    'wishlist_sync_strategy': 'merge',
    'wishlist_sync_background': False,
    'clear_drafts_on_logout': False,
    'search_debounce_ms': 220,
    'log_level': 'WARNING',
}

_INT_KEYS = ('api_timeout_seconds', 'steam_revalidate_seconds', 'steam_concurrency',
             'steam_cache_entries', 'order_history_limit', 'search_debounce_ms')


def load_config(config_path: str = 'config.json') -> Dict:
    """Load configuration from an optional JSON file with environment variable support

    Missing files give the defaults.  Environment variables take precedence
    over config file values:
    - GAME_STORE_API_BASE_URL (or API_BASE_URL) overrides game_store_api_base_url
    - STEAM_COUNTRY_CODE overrides steam_country_code
    - STEAM_LANGUAGE overrides steam_language
    - GAMEVERSE_STORAGE_PATH overrides storage_path
    - LOG_LEVEL overrides log_level
    """
    config = dict(DEFAULT_CONFIG)

    if os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                file_config = json.load(f)
        except json.JSONDecodeError as e:
            print(f"{Fore.RED}Error parsing config file: {e}")
            sys.exit(1)
        if not isinstance(file_config, dict):
            print(f"{Fore.RED}Error: Config file '{config_path}' must hold a JSON object")
            sys.exit(1)
        config.update(file_config)

    base_url = os.getenv('GAME_STORE_API_BASE_URL') or os.getenv('API_BASE_URL')
    if base_url:
        config['game_store_api_base_url'] = base_url
    if os.getenv('STEAM_COUNTRY_CODE'):
        config['steam_country_code'] = os.getenv('STEAM_COUNTRY_CODE')
    if os.getenv('STEAM_LANGUAGE'):
        config['steam_language'] = os.getenv('STEAM_LANGUAGE')
    if os.getenv('GAMEVERSE_STORAGE_PATH'):
        config['storage_path'] = os.getenv('GAMEVERSE_STORAGE_PATH')
    if os.getenv('LOG_LEVEL'):
        config['log_level'] = os.getenv('LOG_LEVEL')

    for key in _INT_KEYS:
        try:
            config[key] = int(config[key])
        except (TypeError, ValueError):
            logger.warning("Invalid %s %r; using %s", key, config[key], DEFAULT_CONFIG[key])
            config[key] = DEFAULT_CONFIG[key]

    if config['wishlist_sync_strategy'] not in STRATEGIES:
        logger.warning("Unknown wishlist_sync_strategy %r; using 'merge'",
                       config['wishlist_sync_strategy'])
        config['wishlist_sync_strategy'] = 'merge'

    return config


# ---------------------------------------------------------------------------
# Store context
# ---------------------------------------------------------------------------

class Storefront:
    """Process-wide storefront state.

    Wires the key-value store, repositories, HTTP clients and services
    together.  Every collaborator can be injected, so tests run against a
    :class:`~storefront.repositories.MemoryStore` and mocked clients.

    The cart/wishlist shortcuts (``cart_count``, ``add_to_cart``,
    ``toggle_wishlist``, ...) read straight from the store service, so counts
    are never stale.  Signing in as a customer triggers the wishlist sync;
    signing out resets it.
    """

    def __init__(self, config: Optional[Dict] = None,
                 kv_store: Optional[KeyValueStore] = None,
                 api_client: Optional[GameStoreAPIClient] = None,
                 steam_client: Optional[SteamStoreClient] = None,
                 restore_session: bool = True):
        self.config = dict(DEFAULT_CONFIG)
        self.config.update(config or {})
        setup_logging(self.config.get('log_level', 'WARNING'))

        timeout = self.config['api_timeout_seconds']
        self.kv_store = kv_store or JsonFileStore(self.config['storage_path'])
        self.api = api_client or GameStoreAPIClient(
            self.config.get('game_store_api_base_url'), timeout=timeout)
        self.steam = steam_client or SteamStoreClient(
            country_code=self.config['steam_country_code'],
            language=self.config['steam_language'],
            revalidate_seconds=self.config['steam_revalidate_seconds'],
            timeout=timeout,
            concurrency=self.config['steam_concurrency'],
            max_cache_entries=self.config['steam_cache_entries'])

        self.store = StoreService(StoreRepository(self.kv_store))
        self.sync = WishlistSyncService(self.store, self.api,
                                        strategy=self.config['wishlist_sync_strategy'])
        self.auth = AuthService(SessionRepository(self.kv_store), self.api)
        self.orders = OrderService(
            OrderRepository(self.kv_store, max_size=self.config['order_history_limit']),
            self.store)
        self.promotions = PromotionService(self.api)
        self.search = SearchService(self.api, self.steam, self.promotions)
        self.catalog = CatalogService(self.api, self.steam, self.promotions)
        self.reports = ReportService(self.auth, self.api)
        self._searchers: List[DebouncedSearch] = []

        self.auth.add_listener(self._on_auth_changed)
        self.store.hydrate()
        if restore_session:
            self.auth.restore()

    def _on_auth_changed(self, token: Optional[str], account_type: Optional[str]) -> None:
        self.sync.on_auth_changed(token, account_type,
                                  background=bool(self.config.get('wishlist_sync_background')))

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, account_type: str, email: str, password: str) -> Dict[str, str]:
        return self.auth.login(account_type, email, password)

    def logout(self) -> None:
        self.auth.logout()
        if self.config.get('clear_drafts_on_logout'):
            self.store.reset_drafts()

    # ------------------------------------------------------------------
    # Cart / wishlist shortcuts
    # ------------------------------------------------------------------

    @property
    def cart(self) -> List[Dict]:
        return self.store.cart

    @property
    def wishlist(self) -> List[Dict]:
        return self.store.wishlist

    @property
    def cart_count(self) -> int:
        return self.store.cart_count

    @property
    def wishlist_count(self) -> int:
        return self.store.wishlist_count

    @property
    def subtotal_cents(self) -> int:
        return self.store.subtotal_cents

    @property
    def wishlist_hydrated(self) -> bool:
        return self.sync.wishlist_hydrated

    @property
    def wishlist_error(self) -> Optional[str]:
        return self.sync.wishlist_error

    def add_to_cart(self, item: Dict, quantity=1) -> Dict:
        return self.store.add_to_cart(item, quantity)

    def remove_from_cart(self, item_id: str) -> bool:
        return self.store.remove_from_cart(item_id)

    def set_cart_quantity(self, item_id: str, quantity) -> bool:
        return self.store.set_cart_quantity(item_id, quantity)

    def clear_cart(self) -> None:
        self.store.clear_cart()

    def toggle_wishlist(self, item: Dict) -> bool:
        return self.store.toggle_wishlist(item)

    def is_wishlisted(self, item_or_id) -> bool:
        return self.store.is_wishlisted(item_or_id)

    def remove_wishlist(self, item_id: str) -> bool:
        return self.store.remove_wishlist(item_id)

    def clear_wishlist(self) -> None:
        self.store.clear_wishlist()

    def debounced_search(self, on_results, limit=8) -> DebouncedSearch:
        """Return a search-as-you-type helper bound to this store."""
        searcher = DebouncedSearch(self.search, on_results,
                                   delay=self.config['search_debounce_ms'] / 1000.0,
                                   limit=limit)
        self._searchers.append(searcher)
        return searcher

    def close(self) -> None:
        """Stop background work; pending results are discarded."""
        for searcher in self._searchers:
            searcher.close()
        self._searchers = []
        self.sync.close()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _item_from_args(args) -> Dict:
    return {
        'steam_app_id': args.steam_app_id,
        'slug': args.slug,
        'name': args.name or '',
        'image': args.image or '',
        'price_label': args.price,
    }


def _print_line(line: Dict) -> None:
    price = format_usd_cents(line.get('unit_price_cents')) or line.get('price_label') or '-'
    qty = line.get('quantity')
    qty_str = f" x{qty}" if qty else ''
    print(f"  {Fore.WHITE}{line['id']:<24} {Fore.CYAN}{line.get('name', '')}"
          f"{Fore.YELLOW}{qty_str} {Fore.GREEN}{price}")


def _print_message(message: Dict[str, str]) -> None:
    color = Fore.GREEN if message['type'] == 'success' else Fore.RED
    print(f"{color}{message['text']}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='GameVerse - storefront client for the GameVerse marketplace',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 gameverse.py cart add --steam-app-id 620 --name "Portal 2" --price '$9.99'
  python3 gameverse.py cart list
  python3 gameverse.py wishlist toggle --slug my-indie-game --name "My Indie Game"
  python3 gameverse.py search "portal"
  python3 gameverse.py browse --genre action --page 2
  python3 gameverse.py checkout visa --card 4111111111111111 --holder "Ada L"
        """
    )
    parser.add_argument(
        '--config', '-c',
        default='config.json',
        help='Path to config file (default: config.json)'
    )
    sub = parser.add_subparsers(dest='command', required=True)

    def add_item_args(p):
        p.add_argument('--steam-app-id', type=int, help='Steam application id')
        p.add_argument('--slug', help='Catalog slug (used when there is no Steam id)')
        p.add_argument('--name', help='Display name')
        p.add_argument('--image', help='Image URL')
        p.add_argument('--price', help='Price label, e.g. "$9.99" or "Free"')

    cart = sub.add_parser('cart', help='Manage the cart')
    cart_sub = cart.add_subparsers(dest='action', required=True)
    cart_sub.add_parser('list', help='Show cart lines')
    cart_add = cart_sub.add_parser('add', help='Add an item')
    add_item_args(cart_add)
    cart_add.add_argument('--quantity', '-q', type=int, default=1)
    cart_remove = cart_sub.add_parser('remove', help='Remove a line by id')
    cart_remove.add_argument('id')
    cart_sub.add_parser('clear', help='Empty the cart')

    wishlist = sub.add_parser('wishlist', help='Manage the wishlist')
    wl_sub = wishlist.add_subparsers(dest='action', required=True)
    wl_sub.add_parser('list', help='Show wishlist items')
    wl_toggle = wl_sub.add_parser('toggle', help='Add or remove an item')
    add_item_args(wl_toggle)
    wl_remove = wl_sub.add_parser('remove', help='Remove an item by id')
    wl_remove.add_argument('id')
    wl_sub.add_parser('sync', help='Fetch the wishlist saved on your account')

    search = sub.add_parser('search', help='Search the catalog')
    search.add_argument('query')
    search.add_argument('--limit', type=int, default=8)

    browse = sub.add_parser('browse', help='Page through the catalog')
    browse.add_argument('--search', help='Name filter')
    browse.add_argument('--page', type=int, default=1)
    browse.add_argument('--genre', help='Steam genre, e.g. "Action"')
    browse.add_argument('--category', help='Steam category, e.g. "Single-player"')

    game = sub.add_parser('game', help='Show one catalog entry')
    game.add_argument('id')

    sub.add_parser('orders', help='Show the order history')

    checkout = sub.add_parser('checkout', help='Place an order for the cart')
    checkout.add_argument('brand', choices=PAYMENT_BRANDS)
    checkout.add_argument('--card', default='', help='Card number (only the last 4 digits are kept)')
    checkout.add_argument('--holder', default='', help='Card holder name')

    sub.add_parser('promotions', help='List active store promotions')

    login = sub.add_parser('login', help='Sign in')
    login.add_argument('account_type', choices=('customer', 'publisher', 'admin'))
    login.add_argument('email')

    sub.add_parser('logout', help='Sign out')

    publisher = sub.add_parser('publisher', help='Publisher account tools')
    pub_sub = publisher.add_subparsers(dest='action', required=True)
    pub_update = pub_sub.add_parser('update', help='Edit the publisher profile')
    pub_update.add_argument('--publisher-name', dest='publisherName')
    pub_update.add_argument('--phone-number', dest='phoneNumber')
    pub_update.add_argument('--social-media', dest='socialMedia')
    pub_update.add_argument('--bank-type', dest='bankType')
    pub_update.add_argument('--bank-name', dest='bankName')
    return parser


def _run_command(store: Storefront, args) -> int:
    if args.command == 'cart':
        if args.action == 'add':
            line = store.add_to_cart(_item_from_args(args), args.quantity)
            print(f"{Fore.GREEN}Added {line['name'] or line['id']} (quantity {line['quantity']}).")
        elif args.action == 'remove':
            if not store.remove_from_cart(args.id):
                print(f"{Fore.YELLOW}No cart line with id {args.id}.")
                return 1
            print(f"{Fore.GREEN}Removed {args.id}.")
        elif args.action == 'clear':
            store.clear_cart()
            print(f"{Fore.GREEN}Cart cleared.")
        else:
            print(f"{Fore.CYAN}{Style.BRIGHT}Cart ({store.cart_count} lines)")
            for line in store.cart:
                _print_line(line)
            print(f"{Fore.WHITE}Subtotal: {format_usd_cents(store.subtotal_cents)}")
        return 0

    if args.command == 'wishlist':
        if args.action == 'toggle':
            added = store.toggle_wishlist(_item_from_args(args))
            print(f"{Fore.GREEN}{'Added to' if added else 'Removed from'} wishlist.")
        elif args.action == 'remove':
            store.remove_wishlist(args.id)
            print(f"{Fore.GREEN}Removed {args.id}.")
        elif args.action == 'sync':
            if store.sync.refresh() is None:
                print(f"{Fore.YELLOW}Sign in as a customer to sync your wishlist.")
                return 1
            if store.wishlist_error:
                print(f"{Fore.RED}{store.wishlist_error}")
                return 1
            print(f"{Fore.GREEN}Wishlist synced ({store.wishlist_count} items).")
        else:
            count = store.wishlist_count
            print(f"{Fore.CYAN}{Style.BRIGHT}Wishlist ({count} saved game{'' if count == 1 else 's'})")
            for item in store.wishlist:
                _print_line(item)
        return 0

    if args.command == 'search':
        results = store.search.search(args.query, args.limit)
        if not results:
            print(f"{Fore.YELLOW}No matches.")
        for s in results:
            extra = f" {Fore.WHITE}(was {s['original_price']})" if s['original_price'] else ''
            print(f"  {Fore.CYAN}{s['name']} {Fore.GREEN}{s['price'] or '-'}{extra}")
        return 0

    if args.command == 'browse':
        page = store.catalog.browse(search=args.search, page=args.page,
                                    genre=args.genre, category=args.category)
        if not page['items']:
            print(f"{Fore.YELLOW}No games on page {page['page']}.")
        for card in page['items']:
            genres = ', '.join(card['genres'])
            print(f"  {Fore.CYAN}{card['name']} {Fore.GREEN}{card['price'] or '-'}"
                  f" {Fore.WHITE}{genres}")
        if page['has_next']:
            print(f"{Fore.WHITE}More on page {page['page'] + 1}.")
        return 0

    if args.command == 'game':
        game = store.catalog.get_game(args.id)
        if game is None:
            print(f"{Fore.RED}Game {args.id} not found.")
            return 1
        card = game['card']
        print(f"{Fore.CYAN}{Style.BRIGHT}{card['name']}")
        print(f"{Fore.GREEN}{card['price'] or '-'}")
        if card['genres']:
            print(f"{Fore.WHITE}Genres: {', '.join(card['genres'])}")
        return 0

    if args.command == 'orders':
        orders = store.orders.get_orders()
        if not orders:
            print(f"{Fore.YELLOW}No orders yet.")
        for order in orders:
            print(f"{Fore.CYAN}{order['created_at']} {Fore.WHITE}{order['id']} "
                  f"{Fore.GREEN}{format_usd_cents(order['total_cents'])} ({len(order['items'])} lines)")
        return 0

    if args.command == 'checkout':
        order = store.orders.place_order(args.brand, args.card, args.holder)
        if order is None:
            print(f"{Fore.RED}Your cart is empty.")
            return 1
        print(f"{Fore.GREEN}Order {order['id']} placed: {format_usd_cents(order['total_cents'])}.")
        return 0

    if args.command == 'promotions':
        promos = store.promotions.fetch_active()
        if not promos:
            print(f"{Fore.YELLOW}No active store promotions.")
        for promo in promos:
            print(f"  {Fore.CYAN}{promo.get('promotionName', '?')} {Fore.WHITE}"
                  f"{promo.get('discountType', '')} {promo.get('applicationCondition', '')}")
        return 0

    if args.command == 'login':
        password = getpass.getpass('Password: ')
        message = store.login(args.account_type, args.email, password)
        _print_message(message)
        if message['type'] == 'success' and store.wishlist_error:
            print(f"{Fore.YELLOW}{store.wishlist_error}")
        return 0 if message['type'] == 'success' else 1

    if args.command == 'logout':
        store.logout()
        print(f"{Fore.GREEN}Signed out.")
        return 0

    if args.command == 'publisher':
        fields = {key: getattr(args, key) for key in PUBLISHER_PROFILE_FIELDS}
        message = store.auth.update_publisher_profile(fields)
        _print_message(message)
        return 0 if message['type'] == 'success' else 1

    return 1


def main(argv: Optional[List[str]] = None):
    """Main entry point"""
    args = _build_parser().parse_args(argv)
    config = load_config(args.config)
    store = None
    try:
        store = Storefront(config)
        code = _run_command(store, args)
    except KeyboardInterrupt:
        print(f"\n\n{Fore.YELLOW}Interrupted by user. Goodbye!")
        code = 1
    except Exception as e:
        logger.debug("Unhandled error", exc_info=True)
        print(f"\n{Fore.RED}An unexpected error occurred: {e}")
        code = 1
    finally:
        if store is not None:
            store.close()
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
