"""Business logic for the signed-in session."""
import logging
import re
from typing import Callable, Dict, List, Optional

from ..errors import StoreAPIError, user_message
from ..repositories.session_repository import SessionRepository

_BEARER_RE = re.compile(r'^Bearer\s+', re.IGNORECASE)

PUBLISHER_PROFILE_FIELDS = ('publisherName', 'phoneNumber', 'socialMedia',
                            'bankType', 'bankName')

AuthListener = Callable[[Optional[str], Optional[str]], None]


def clean_token(jwt: str) -> str:
    """Strip a leading ``Bearer`` scheme and whitespace from *jwt*."""
    return _BEARER_RE.sub('', jwt or '').strip()


def normalize_user(raw: Dict, account_type: Optional[str] = None) -> Dict:
    """Map a server user payload to the stored user schema."""
    user = {
        'id': raw.get('id') or raw.get('_id'),
        'name': raw.get('name') or raw.get('publisherName') or raw.get('publisher_name'),
        'email': raw.get('email'),
        'account_type': raw.get('account_type') or raw.get('accountType') or account_type,
        'publisher_name': raw.get('publisher_name') or raw.get('publisherName'),
    }
    if user['id'] is not None:
        user['id'] = str(user['id'])
    return {k: v for k, v in user.items() if v is not None}


class AuthService:
    """Keeps the user and bearer token for the current session, delegating
    persistence to
    :class:`~storefront.repositories.session_repository.SessionRepository`.

    Listeners registered with :meth:`add_listener` are called with
    ``(token, account_type)`` after every login, logout or restore, so that
    dependent state (the wishlist sync) can follow the session.
    """

    def __init__(self, repository: SessionRepository, api_client) -> None:
        self._repo = repository
        self._api = api_client
        self.user: Optional[Dict] = None
        self.token: Optional[str] = None
        self.publisher: Optional[Dict] = repository.load_publisher()
        self._listeners: List[AuthListener] = []
        self._log = logging.getLogger('gameverse.auth')

    # ------------------------------------------------------------------
    # Session state
    # ------------------------------------------------------------------

    @property
    def account_type(self) -> Optional[str]:
        return (self.user or {}).get('account_type')

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token and self.user)

    def add_listener(self, listener: AuthListener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self.token, self.account_type)

    def restore(self) -> bool:
        """Reload the stored session.

        A stored user without an id or email is treated as corrupt and the
        whole session (including the publisher cache) is cleared.

        Returns:
            ``True`` if a session was restored.
        """
        user = self._repo.load_user()
        token = self._repo.load_token()
        if not user or not token:
            return False
        if not user.get('id') and not user.get('email'):
            self._log.error("Auth restore failed: invalid user data")
            self._repo.clear()
            self.publisher = None
            return False
        self.user = user
        self.token = token
        self._notify()
        return True

    def login_with(self, user: Dict, jwt: str) -> None:
        """Store an already-issued session."""
        self.user = dict(user)
        self.token = clean_token(jwt)
        self._repo.save(self.user, self.token)
        self._notify()

    def logout(self) -> None:
        self.user = None
        self.token = None
        self.publisher = None
        self._repo.clear()
        self._notify()

    # ------------------------------------------------------------------
    # Remote flows
    # ------------------------------------------------------------------

    def login(self, account_type: str, email: str, password: str) -> Dict[str, str]:
        """Log in against ``/auth/<account_type>/login``.

        A publisher login also caches the publisher profile.

        Returns:
            A ``{type, text}`` message for the user.
        """
        try:
            data = self._api.login(account_type, (email or '').strip(), password)
        except StoreAPIError as e:
            return user_message('error', e.message)

        token = data.get('token')
        raw_user = data.get('user')
        if not token or not isinstance(raw_user, dict):
            return user_message(
                'error', data.get('message') or "Login failed. Please check your email/password.")

        user = normalize_user(raw_user, account_type)
        if account_type == 'publisher':
            if not user.get('id'):
                return user_message('error', "Could not load the publisher profile.")
            self.set_publisher({k: user[k] for k in ('id', 'name', 'email') if k in user})
        self.login_with(user, token)
        return user_message('success', "Logged in!")

    def register(self, account_type: str, payload: Dict) -> Dict[str, str]:
        """Register a new account; customers are logged in straight away."""
        try:
            self._api.register(account_type, payload)
        except (StoreAPIError, ValueError) as e:
            return user_message('error', getattr(e, 'message', str(e)))
        if account_type == 'customer':
            result = self.login('customer', payload.get('email', ''), payload.get('password', ''))
            if result['type'] == 'error':
                return user_message('error', "Account created, but sign-in failed: " + result['text'])
            return user_message('success', "Account created! You are now signed in.")
        return user_message('success', "Registration successful. Please log in.")

    # ------------------------------------------------------------------
    # Publisher
    # ------------------------------------------------------------------

    def set_publisher(self, publisher: Dict) -> None:
        self.publisher = dict(publisher)
        self._repo.save_publisher(self.publisher)

    def clear_publisher(self) -> None:
        self.publisher = None
        self._repo.clear_publisher()

    def refresh_publisher_profile(self) -> Optional[Dict]:
        """Fetch ``/publisher/me`` and update the cached profile."""
        if not self.token or self.account_type != 'publisher':
            return None
        try:
            profile = self._api.get_publisher_profile(self.token)
        except StoreAPIError as e:
            self._log.warning("Could not load publisher profile: %s", e.message)
            return None
        self.set_publisher(profile)
        return profile

    def update_publisher_profile(self, fields: Dict) -> Dict[str, str]:
        """PATCH ``/publisher/me`` with the editable profile fields.

        Only ``PUBLISHER_PROFILE_FIELDS`` are sent; string values are
        stripped.  On success the cached publisher is merged with the
        server's answer.
        """
        if not self.token or self.account_type != 'publisher':
            return user_message('error', "Sign in as a publisher to edit the profile.")
        payload = {}
        for key in PUBLISHER_PROFILE_FIELDS:
            if fields.get(key) is None:
                continue
            value = fields[key]
            payload[key] = value.strip() if isinstance(value, str) else value
        if not payload:
            return user_message('error', "Nothing to update.")
        try:
            updated = self._api.update_publisher_profile(self.token, payload)
        except StoreAPIError as e:
            return user_message('error', e.message)
        profile = dict(self.publisher or {})
        profile.update(payload)
        profile.update(updated)
        self.set_publisher(profile)
        return user_message('success', "Profile updated.")

    def get_statistics_summary(self) -> Optional[Dict]:
        """Return ``/statistics/summary`` for a signed-in publisher."""
        if not self.token or self.account_type != 'publisher':
            return None
        try:
            return self._api.get_statistics_summary(self.token)
        except StoreAPIError as e:
            self._log.warning("Could not load statistics: %s", e.message)
            return None
