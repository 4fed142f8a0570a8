"""Synchronises the local wishlist draft with the signed-in customer's
server-side wishlist."""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional, Union

from ..cancellation import CancellationToken
from ..errors import OperationCancelled, StoreAPIError
from ..items import normalize_item
from .store_service import StoreService

IDLE = 'idle'
LOADING = 'loading'
HYDRATED = 'hydrated'
ERROR = 'error'

STRATEGY_MERGE = 'merge'
STRATEGY_SERVER = 'server'
STRATEGIES = (STRATEGY_MERGE, STRATEGY_SERVER)

DEFAULT_ERROR = "Failed to load your wishlist."


class WishlistSyncService:
    """Fetches the remote wishlist once a customer token is available and
    reconciles it into :class:`~storefront.services.store_service.StoreService`.

    State machine::

        idle ──(customer token)──> loading ──> hydrated
                                      │
                                      └──────> error ──(refresh)──> loading

    Rules
    -----
    * Only a ``customer`` session triggers a fetch; a token appearing (or
      changing) starts exactly one request.
    * Each :meth:`refresh` cancels the request before it.  Only the most
      recent request may apply its result; superseded or cancelled results
      are discarded (last write wins).
    * A failed fetch records a user-facing :attr:`wishlist_error` and leaves
      the local wishlist untouched.
    * Server items the shopper removed locally stay removed; a removed id is
      forgotten once the server no longer lists it.
    * ``merge`` puts server items first, then local drafts the server does
      not have; ``server`` replaces the drafts with the server copy.
    * Signing out cancels in-flight work and resets to ``idle``; the local
      drafts themselves are left alone.
    """

    def __init__(self, store: StoreService, api_client,
                 strategy: str = STRATEGY_MERGE, max_workers: int = 4) -> None:
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown wishlist sync strategy: {strategy}")
        self._store = store
        self._api = api_client
        self.strategy = strategy
        self._max_workers = max(2, int(max_workers))
        self._lock = threading.Lock()
        self._state = IDLE
        self._error: Optional[str] = None
        self._token: Optional[str] = None
        self._generation = 0
        self._cancel: Optional[CancellationToken] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False
        self._log = logging.getLogger('gameverse.sync')

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> str:
        return self._state

    @property
    def wishlist_hydrated(self) -> bool:
        return self._state == HYDRATED

    @property
    def wishlist_error(self) -> Optional[str]:
        return self._error

    # ------------------------------------------------------------------
    # Session transitions
    # ------------------------------------------------------------------

    def on_auth_changed(self, token: Optional[str], account_type: Optional[str],
                        background: bool = False) -> Union[bool, Future, None]:
        """Follow the session: fetch on a new customer token, reset on sign-out."""
        token = token if (token and account_type == 'customer') else None
        with self._lock:
            previous = self._token
            self._token = token
        if token and token != previous:
            return self.refresh(background=background)
        if not token and previous:
            self._reset()
        return None

    def _reset(self) -> None:
        with self._lock:
            if self._cancel is not None:
                self._cancel.cancel()
                self._cancel = None
            self._generation += 1
            self._state = IDLE
            self._error = None

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def refresh(self, background: bool = False) -> Union[bool, Future, None]:
        """Fetch the remote wishlist, superseding any request in flight.

        Returns:
            ``None`` when there is no customer session (or the service is
            closed); otherwise ``True``/``False`` for whether the result was
            applied, or a :class:`~concurrent.futures.Future` of that value
            when *background* is set.
        """
        with self._lock:
            if self._closed or not self._token:
                return None
            if self._cancel is not None:
                self._cancel.cancel()
            cancel = CancellationToken()
            self._cancel = cancel
            self._generation += 1
            generation = self._generation
            token = self._token
            self._state = LOADING

        if background:
            return self._get_executor().submit(self._run, token, generation, cancel)
        return self._run(token, generation, cancel)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self._max_workers,
                                                    thread_name_prefix='gameverse_sync')
            return self._executor

    def _run(self, token: str, generation: int, cancel: CancellationToken) -> bool:
        try:
            remote = self._api.get_wishlist(token, cancel_token=cancel)
            items = [normalize_item(raw) for raw in remote if isinstance(raw, dict)]
        except OperationCancelled:
            self._log.debug("Wishlist fetch %d cancelled", generation)
            return False
        except StoreAPIError as e:
            return self._finish(generation, cancel, error=e.message or DEFAULT_ERROR)
        except Exception as e:
            self._log.exception("Unexpected error fetching wishlist: %s", e)
            return self._finish(generation, cancel, error=DEFAULT_ERROR)
        return self._finish(generation, cancel, items=items)

    def _finish(self, generation: int, cancel: CancellationToken,
                items: Optional[List[Dict]] = None,
                error: Optional[str] = None) -> bool:
        with self._lock:
            if cancel.cancelled or generation != self._generation:
                self._log.debug("Discarding stale wishlist response %d", generation)
                return False
            self._cancel = None
            if error is not None:
                self._log.warning("Wishlist fetch failed: %s", error)
                self._state = ERROR
                self._error = error
                return False
            remote = items or []
            self._store.retain_removed(item['id'] for item in remote)
            self._store.replace_wishlist(self._reconcile(remote))
            self._state = HYDRATED
            self._error = None
            return True

    def _reconcile(self, remote: List[Dict]) -> List[Dict]:
        removed = set(self._store.removed_ids)
        remote = [item for item in remote if item['id'] not in removed]
        if self.strategy == STRATEGY_SERVER:
            return remote
        remote_ids = {item['id'] for item in remote}
        drafts = [item for item in self._store.wishlist if item['id'] not in remote_ids]
        return remote + drafts

    def close(self) -> None:
        """Cancel in-flight work; results arriving afterwards are ignored."""
        with self._lock:
            self._closed = True
            if self._cancel is not None:
                self._cancel.cancel()
                self._cancel = None
            self._generation += 1
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False)
