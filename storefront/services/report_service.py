"""Business logic for reporting games and reviews."""
from typing import Dict, List, Optional, Tuple

from ..errors import StoreAPIError, user_message
from .auth_service import AuthService

REPORT_CATEGORIES = (
    'Spam', 'Harassment', 'HateSpeech', 'Illegal', 'Copyright', 'Scam', 'Other',
)
TARGET_TYPES = ('game', 'review')
GAME_TYPES = ('steam', 'custom')
REPORT_STATUSES = ('Pending', 'Resolved', 'Rejected')
MIN_REASON_LENGTH = 10

_ENDPOINTS = {
    'customer': '/customers/me/reports',
    'publisher': '/publisher/me/reports',
}


class ReportService:
    """Submits and lists abuse reports for the signed-in account.

    Rules
    -----
    * Only customers and publishers may report; each has its own endpoint.
    * The reason text, once trimmed, needs at least ten characters.
    * Unknown categories fall back to ``"Other"``.
    """

    def __init__(self, auth: AuthService, api_client) -> None:
        self._auth = auth
        self._api = api_client

    @property
    def endpoint(self) -> Optional[str]:
        return _ENDPOINTS.get(self._auth.account_type or '')

    @property
    def can_report(self) -> bool:
        return bool(self._auth.token) and self.endpoint is not None

    def submit(self, target_type: str, target_id, reason_text: str,
               category: str = 'Other',
               target_game_type: Optional[str] = None) -> Dict[str, str]:
        """Submit a report; returns a ``{type, text}`` message."""
        if not self.can_report:
            return user_message('error', "Please sign in as a customer or publisher to report.")
        if target_type not in TARGET_TYPES:
            return user_message('error', "Unknown report target.")
        trimmed = (reason_text or '').strip()
        if len(trimmed) < MIN_REASON_LENGTH:
            return user_message('error', "Please enter at least 10 characters.")
        if category not in REPORT_CATEGORIES:
            category = 'Other'

        payload: Dict = {
            'targetType': target_type,
            'targetId': str(target_id),
            'reasonCategory': category,
            'reasonText': trimmed,
        }
        if target_game_type in GAME_TYPES:
            payload['targetGameType'] = target_game_type

        try:
            self._api.submit_report(self.endpoint, self._auth.token, payload)
        except StoreAPIError as e:
            text = e.message
            if e.status is not None and text.startswith('Request failed'):
                text = f"Failed to submit report (HTTP {e.status})."
            return user_message('error', text)
        return user_message('success', "Report submitted. Thank you.")

    def list_reports(self, status: str = '') -> Tuple[List[Dict], Optional[Dict[str, str]]]:
        """Return ``(reports, message)``; *message* is ``None`` on success."""
        if not self.can_report:
            return [], user_message('error', "Please sign in to view your reports.")
        if status and status not in REPORT_STATUSES:
            status = ''
        try:
            reports = self._api.list_reports(self.endpoint, self._auth.token, status=status)
        except StoreAPIError as e:
            return [], user_message('error', e.message or "Failed to load reports")
        return reports, None
