"""Repository for the signed-in session (user, token, publisher profile)."""
from typing import Dict, Optional

from .base import BaseRepository
from .storage import KeyValueStore

USER_KEY = 'user'
TOKEN_KEY = 'token'
PUBLISHER_KEY = 'publisher'


class SessionRepository(BaseRepository):
    """Persists the auth session across three keys.

    * ``user``: JSON object ``{"id", "name", "email", "account_type",
      "publisher_name"}``
    * ``token``: the bare JWT string (no ``Bearer`` prefix, not JSON-encoded)
    * ``publisher``: JSON object caching the publisher profile
    """

    def __init__(self, store: KeyValueStore) -> None:
        super().__init__(store, USER_KEY)

    def load_user(self) -> Optional[Dict]:
        user = self._load(None)
        return user if isinstance(user, dict) else None

    def load_token(self) -> Optional[str]:
        return self._load_raw(TOKEN_KEY) or None

    def save(self, user: Dict, token: str) -> None:
        self._save(user)
        self._save_raw(token, TOKEN_KEY)

    def load_publisher(self) -> Optional[Dict]:
        publisher = self._load(None, PUBLISHER_KEY)
        return publisher if isinstance(publisher, dict) else None

    def save_publisher(self, publisher: Dict) -> None:
        self._save(publisher, PUBLISHER_KEY)

    def clear_publisher(self) -> None:
        self._clear(PUBLISHER_KEY)

    def clear(self) -> None:
        """Drop user, token and publisher profile."""
        self._clear(USER_KEY)
        self._clear(TOKEN_KEY)
        self._clear(PUBLISHER_KEY)
