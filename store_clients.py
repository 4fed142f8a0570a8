"""
store_clients.py
================
HTTP clients used by the storefront:

* :class:`GameStoreAPIClient`: the GameVerse ``game-store-api`` REST backend
  (auth, catalog, publisher profile, statistics, reports, promotions and the
  per-customer wishlist).
* :class:`SteamStoreClient`: the public Steam Store ``appdetails`` endpoint,
  used for prices, genres and categories of Steam-sourced catalog entries.

All calls are JSON over HTTPS through a ``requests.Session``.  Authenticated
calls send ``Authorization: Bearer <token>``.

Error policy
------------
``GameStoreAPIClient`` raises :class:`storefront.errors.StoreAPIError` with a
message that can be shown to the user as-is; callers decide whether to
surface it.  Catalog reads (``list_games`` / ``get_game``) and every
``SteamStoreClient`` method log the failure and return an empty result
instead, because a missing price or listing must never break a page.

Configuration keys (``config.json``)
-------------------------------------
::

    "game_store_api_base_url": "http://localhost:3000",
    "api_timeout_seconds":     10,
    "steam_country_code":      "us",
    "steam_language":          "english",
    "steam_revalidate_seconds": 900,
    "steam_concurrency":       6,
    "steam_cache_entries":     1024
"""
from __future__ import annotations

import logging
import math
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests

from storefront.cancellation import check
from storefront.errors import StoreAPIError

logger = logging.getLogger('gameverse.clients')

DEFAULT_BASE_URL = 'http://localhost:3000'
_DEFAULT_TIMEOUT = 10  # seconds

ACCOUNT_TYPES = ('customer', 'publisher', 'admin')
REGISTERABLE_ACCOUNT_TYPES = ('customer', 'publisher')


def resolve_base_url(configured: Optional[str] = None) -> str:
    """Pick the API base URL: explicit value, then environment, then default."""
    return (configured
            or os.getenv('GAME_STORE_API_BASE_URL')
            or os.getenv('API_BASE_URL')
            or DEFAULT_BASE_URL)


def _error_message(data: Any, status: int) -> str:
    if isinstance(data, dict):
        err = data.get('error')
        if isinstance(err, dict) and err.get('message'):
            return str(err['message'])
        if data.get('message'):
            return str(data['message'])
    return f"Request failed (HTTP {status})."


# ---------------------------------------------------------------------------
# game-store-api
# ---------------------------------------------------------------------------

class GameStoreAPIClient:
    """Client for the GameVerse ``game-store-api`` backend."""

    def __init__(self, base_url: Optional[str] = None,
                 timeout: int = _DEFAULT_TIMEOUT) -> None:
        self.base_url = resolve_base_url(base_url).rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()
        self._log = logging.getLogger('gameverse.api')

    def url(self, path: str) -> str:
        """Join *path* onto the base URL with exactly one slash."""
        if not path.startswith('/'):
            path = '/' + path
        return f"{self.base_url}{path}"

    def _request(self, method: str, path: str, token: Optional[str] = None,
                 json_body: Optional[Dict] = None,
                 params: Optional[Dict] = None,
                 cancel_token=None) -> Any:
        """Perform one JSON request and return the decoded body.

        Raises:
            StoreAPIError: on network failure, a non-2xx status or a
                malformed JSON body.
            OperationCancelled: if *cancel_token* fires before or while the
                request is in flight.
        """
        check(cancel_token)
        headers = {'Accept': 'application/json'}
        if token:
            headers['Authorization'] = f"Bearer {token}"
        try:
            resp = self.session.request(method, self.url(path), headers=headers,
                                        json=json_body, params=params,
                                        timeout=self.timeout)
        except requests.RequestException as e:
            self._log.warning("%s %s failed: %s", method, path, e)
            raise StoreAPIError("Server connection error.") from e
        check(cancel_token)

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.ok:
            self._log.info("%s %s returned HTTP %s", method, path, resp.status_code)
            raise StoreAPIError(_error_message(data, resp.status_code), resp.status_code)
        if data is None and resp.content:
            raise StoreAPIError("Malformed response from server.", resp.status_code)
        return data

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def login(self, account_type: str, email: str, password: str) -> Dict:
        """POST ``/auth/<account_type>/login``; returns ``{token, user, ...}``."""
        if account_type not in ACCOUNT_TYPES:
            raise ValueError(f"Unknown account type: {account_type}")
        data = self._request('POST', f"/auth/{account_type}/login",
                             json_body={'email': email, 'password': password})
        return data if isinstance(data, dict) else {}

    def register(self, account_type: str, payload: Dict) -> Dict:
        """POST ``/auth/<account_type>/register``."""
        if account_type not in REGISTERABLE_ACCOUNT_TYPES:
            raise ValueError(f"Cannot register account type: {account_type}")
        data = self._request('POST', f"/auth/{account_type}/register", json_body=payload)
        return data if isinstance(data, dict) else {}

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def list_games(self, search: Optional[str] = None, skip: int = 0,
                   limit: int = 24, cancel_token=None) -> List[Dict]:
        """Return catalog entries, optionally filtered by *search*.

        *skip* is floored at 0 and *limit* clamped to ``[1, 100]``.  Returns
        an empty list on any error other than cancellation.
        """
        safe_skip = max(int(skip), 0)
        safe_limit = min(max(int(limit), 1), 100)
        params: Dict[str, Any] = {'skip': safe_skip, 'limit': safe_limit}
        if search and search.strip():
            params['search'] = search.strip()
        try:
            data = self._request('GET', '/games', params=params, cancel_token=cancel_token)
        except StoreAPIError as e:
            self._log.error("Failed to fetch games: %s", e.message)
            return []
        if not isinstance(data, list):
            return []
        return data[:safe_limit]

    def get_game(self, game_id: str) -> Optional[Dict]:
        """Return one catalog entry with ``avatarUrl``/``imageUrl`` both set
        when either is known, or ``None``."""
        if not game_id:
            return None
        try:
            data = self._request('GET', f"/games/{game_id}")
        except StoreAPIError as e:
            self._log.warning("Could not fetch game %s: %s", game_id, e.message)
            return None
        if not isinstance(data, dict):
            return None
        if not data.get('avatarUrl') and data.get('imageUrl'):
            data['avatarUrl'] = data['imageUrl']
        if not data.get('imageUrl') and data.get('avatarUrl'):
            data['imageUrl'] = data['avatarUrl']
        return data

    def get_active_store_promotions(self) -> List[Dict]:
        data = self._request('GET', '/promotions/store/active')
        return data if isinstance(data, list) else []

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_statistics_summary(self, token: str) -> Dict:
        data = self._request('GET', '/statistics/summary', token=token)
        return data if isinstance(data, dict) else {}

    def get_publisher_profile(self, token: str) -> Dict:
        data = self._request('GET', '/publisher/me', token=token)
        return data if isinstance(data, dict) else {}

    def update_publisher_profile(self, token: str, fields: Dict) -> Dict:
        data = self._request('PATCH', '/publisher/me', token=token, json_body=fields)
        return data if isinstance(data, dict) else {}

    def get_wishlist(self, token: str, cancel_token=None) -> List[Dict]:
        """Return the signed-in customer's server-side wishlist."""
        data = self._request('GET', '/customers/me/wishlist', token=token,
                             cancel_token=cancel_token)
        if isinstance(data, dict):
            data = data.get('items')
        return data if isinstance(data, list) else []

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def list_reports(self, path: str, token: str, status: str = '',
                     limit: int = 200) -> List[Dict]:
        params: Dict[str, Any] = {'limit': limit}
        if status:
            params['status'] = status
        data = self._request('GET', path, token=token, params=params)
        return data if isinstance(data, list) else []

    def submit_report(self, path: str, token: str, payload: Dict) -> Dict:
        data = self._request('POST', path, token=token, json_body=payload)
        return data if isinstance(data, dict) else {}


# ---------------------------------------------------------------------------
# Steam Store
# ---------------------------------------------------------------------------

DEFAULT_DETAIL_FILTERS = (
    'price_overview', 'is_free', 'recommendations', 'release_date',
    'genres', 'categories', 'header_image', 'steam_appid', 'name',
)
PRICE_FILTERS = ('price_overview', 'is_free', 'steam_appid')


def unique_positive_ints(values: Iterable[Any]) -> List[int]:
    """Floor numeric values, drop non-positive ones and duplicates (order kept)."""
    seen = set()
    result = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if not math.isfinite(value):
            continue
        ivalue = int(math.floor(value))
        if ivalue <= 0 or ivalue in seen:
            continue
        seen.add(ivalue)
        result.append(ivalue)
    return result


class SteamStoreClient:
    """Client for the public Steam Store ``appdetails`` API.

    Responses are cached in memory for *revalidate_seconds* (0 disables the
    cache), keyed by app id, filter set, country and language.  The cache
    holds at most *max_cache_entries* responses: expired ones are purged first,
    then the oldest are evicted.
    """

    STORE_URL = "https://store.steampowered.com/api/appdetails"

    def __init__(self, country_code: str = 'us', language: str = 'english',
                 revalidate_seconds: int = 15 * 60,
                 timeout: int = _DEFAULT_TIMEOUT,
                 concurrency: int = 6,
                 max_cache_entries: int = 1024) -> None:
        self.country_code = country_code
        self.concurrency = concurrency
        self.max_cache_entries = max(1, int(max_cache_entries))
        self.language = language
        self.revalidate_seconds = max(0, int(revalidate_seconds))
        self.timeout = timeout
        self.session = requests.Session()
        self._cache: Dict[Tuple, Tuple[float, Optional[Dict]]] = {}
        self._cache_lock = threading.Lock()
        self._log = logging.getLogger('gameverse.steam')

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def _cache_key(self, app_id: int, filters: Iterable[str]) -> Tuple:
        return (app_id, ','.join(filters), self.country_code, self.language)

    def _cache_get(self, key: Tuple):
        if not self.revalidate_seconds:
            return False, None
        with self._cache_lock:
            entry = self._cache.get(key)
            if entry is None:
                return False, None
            expires_at, value = entry
            if time.monotonic() >= expires_at:
                del self._cache[key]
                return False, None
            return True, value

    def _cache_put(self, key: Tuple, value: Optional[Dict]) -> None:
        if not self.revalidate_seconds:
            return
        now = time.monotonic()
        with self._cache_lock:
            self._cache.pop(key, None)
            if len(self._cache) >= self.max_cache_entries:
                for stale in [k for k, (expires_at, _) in self._cache.items()
                              if now >= expires_at]:
                    del self._cache[stale]
            while len(self._cache) >= self.max_cache_entries:
                del self._cache[next(iter(self._cache))]
            self._cache[key] = (now + self.revalidate_seconds, value)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _fetch(self, app_ids: List[int], filters: Iterable[str],
               cancel_token=None) -> Optional[Dict]:
        params = {
            'appids': ','.join(str(a) for a in app_ids),
            'filters': ','.join(filters),
            'cc': self.country_code,
            'l': self.language,
        }
        check(cancel_token)
        try:
            response = self.session.get(self.STORE_URL, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            self._log.warning("Could not fetch Steam details for %s: %s", params['appids'], e)
            return None
        check(cancel_token)
        return data if isinstance(data, dict) else None

    def get_app_details(self, app_id: int,
                        filters: Iterable[str] = DEFAULT_DETAIL_FILTERS) -> Optional[Dict]:
        """Return the ``data`` block for one app, or ``None``."""
        filters = tuple(filters)
        key = self._cache_key(app_id, filters)
        hit, value = self._cache_get(key)
        if hit:
            return value

        data = self._fetch([app_id], filters)
        if data is None:
            return None
        entry = data.get(str(app_id)) or {}
        details = entry.get('data') if entry.get('success') else None
        self._cache_put(key, details)
        return details

    def get_app_details_batch(self, app_ids: Iterable[Any],
                              filters: Iterable[str] = DEFAULT_DETAIL_FILTERS,
                              concurrency: Optional[int] = None) -> Dict[int, Dict]:
        """Fetch details for many apps, one request per app.

        Requests fan out over at most *concurrency* threads (defaults to the
        client setting, clamped to ``[1, 12]``).  Apps without data are omitted from the result.
        """
        unique_ids = unique_positive_ints(app_ids)
        if not unique_ids:
            return {}
        filters = tuple(filters)
        if concurrency is None:
            concurrency = self.concurrency
        max_workers = max(1, min(12, int(concurrency), len(unique_ids)))

        results: Dict[int, Dict] = {}
        with ThreadPoolExecutor(max_workers=max_workers,
                                thread_name_prefix='gameverse_steam') as executor:
            future_map = {executor.submit(self.get_app_details, app_id, filters): app_id
                          for app_id in unique_ids}
            for future in as_completed(future_map):
                app_id = future_map[future]
                try:
                    details = future.result()
                except Exception as exc:
                    self._log.debug("Detail fetch error for %s: %s", app_id, exc)
                    continue
                if details:
                    results[app_id] = details
        return results

    def get_price_overviews(self, app_ids: Iterable[Any],
                            cancel_token=None) -> Dict[int, Dict]:
        """Fetch ``price_overview``/``is_free`` for many apps in one request."""
        unique_ids = unique_positive_ints(app_ids)
        results: Dict[int, Dict] = {}
        missing: List[int] = []
        for app_id in unique_ids:
            hit, value = self._cache_get(self._cache_key(app_id, PRICE_FILTERS))
            if hit:
                if value:
                    results[app_id] = value
            else:
                missing.append(app_id)
        if not missing:
            return results

        data = self._fetch(missing, PRICE_FILTERS, cancel_token=cancel_token)
        if data is None:
            return results
        for app_id in missing:
            entry = data.get(str(app_id)) or {}
            details = entry.get('data') if entry.get('success') else None
            self._cache_put(self._cache_key(app_id, PRICE_FILTERS), details)
            if details:
                results[app_id] = details
        return results
