"""
OAuth2 access token management.

The TokenManager keeps a single AccessToken and refreshes it lazily through
the client-credentials grant once the token is within REFRESH_SKEW of its
expiry. The current token is an immutable object behind one reference:
readers take whatever reference is current, and the refresh path builds a
complete new token before swapping it in. Refreshes are serialized so
concurrent scrapes do not request several tokens at once.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import requests

from ..models.azure import AccessToken
from ..models.config import DEFAULT_REQUEST_TIMEOUT, Credentials
from .errors import AuthError, error_code_from_response

logger = logging.getLogger(__name__)

LOGIN_URL = "https://login.microsoftonline.com"
MANAGEMENT_RESOURCE = "https://management.azure.com/"

# A token is refreshed once it is this close to expiring.
REFRESH_SKEW = timedelta(minutes=10)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """
    Obtains and lazily refreshes the bearer token used for Azure API calls.
    """

    def __init__(
        self,
        credentials: Credentials,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        login_url: str = LOGIN_URL,
        resource: str = MANAGEMENT_RESOURCE,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the token manager.

        Args:
            credentials: Service principal used for the client-credentials grant
            session: HTTP session, a new one is created when omitted
            timeout: Timeout in seconds for the token request
            login_url: Identity endpoint base URL
            resource: Resource the token is requested for
            clock: Returns the current UTC time, replaceable in tests
        """
        self.credentials = credentials
        self.session = session or requests.Session()
        self.timeout = timeout
        self.login_url = login_url.rstrip("/")
        self.resource = resource
        self._clock = clock
        self._token: Optional[AccessToken] = None
        self._refresh_lock = threading.Lock()

    @property
    def token(self) -> Optional[AccessToken]:
        """The current token, possibly expired, or None before the first grant."""
        return self._token

    def needs_refresh(self, token: Optional[AccessToken] = None) -> bool:
        """True when ``token`` (default: the current one) is missing or close to expiry."""
        if token is None:
            token = self._token
        return token is None or not token.is_usable(self._clock(), REFRESH_SKEW)

    def ensure_token(self) -> AccessToken:
        """
        Return a usable token, refreshing it first when needed.

        Returns:
            An AccessToken valid for at least REFRESH_SKEW

        Raises:
            AuthError: If a refresh was needed and failed
        """
        token = self._token
        if not self.needs_refresh(token):
            return token

        with self._refresh_lock:
            # Another caller may have refreshed while we waited for the lock.
            token = self._token
            if not self.needs_refresh(token):
                return token

            token = self._request_token()
            self._token = token
            logger.info(f"Obtained new access token, expires on {token.expires_on.isoformat()}")
            return token

    def _request_token(self) -> AccessToken:
        target = f"{self.login_url}/{self.credentials.tenant_id}/oauth2/token"
        form = {
            "grant_type": "client_credentials",
            "resource": self.resource,
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
        }

        try:
            response = self.session.post(target, data=form, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthError(f"Error authenticating against Azure API: {e}") from e

        if response.status_code != 200:
            raise AuthError(
                f"Did not get status code 200, got: {response.status_code}",
                status_code=response.status_code,
                code=error_code_from_response(response),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AuthError(
                f"Error decoding token response body: {e}", status_code=response.status_code
            ) from e

        if not isinstance(data, dict):
            raise AuthError("Token response body is not an object", status_code=response.status_code)

        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthError("Token response carries no access_token", status_code=response.status_code)

        try:
            expires_on = datetime.fromtimestamp(int(str(data.get("expires_on"))), tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as e:
            raise AuthError(
                f"Token response carries an invalid expires_on: {data.get('expires_on')!r}",
                status_code=response.status_code,
            ) from e

        return AccessToken(token=access_token, expires_on=expires_on)
