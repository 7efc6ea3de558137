"""Session-gated gateway to the LodeStar API.

This module handles:
- Logging in and holding the single LodeStar session token
- Refusing domain calls until a session exists
- Injecting the session token into every authenticated request
- Prefixing upstream failures with the operation that produced them

Concurrency: the gateway runs on one event loop. Logins are serialized by a
lock, so the token is written by one login at a time and the last login to
complete wins. Domain calls read the token once when they start and are not
serialized against logins; a call that is already in flight keeps using the
token it read even if a later login replaces it.
"""
import asyncio
from typing import Any, Mapping, Optional
import logging

from .api_client import LodeStarAPIClient
from .config import LodeStarConfig, LOG_SESSION_EVENTS
from .errors import AuthenticationError, UpstreamError, ValidationError
from .models import LoginResponse, Session, SessionStatus, utc_now

logger = logging.getLogger(__name__)

LOGIN_PATH = "/Login/login.php"
SESSION_FIELD = "session_id"
TOKEN_PREVIEW_LENGTH = 8


def truncate_token(token: str) -> str:
    """Show only the first few characters of a session token."""
    return f"{token[:TOKEN_PREVIEW_LENGTH]}..."


class SessionGateway:
    """Owns the LodeStar session and exposes every API operation.

    State machine: unauthenticated until the first successful login, then
    authenticated for the rest of the process. A later successful login
    replaces the token; nothing ever clears it.
    """

    def __init__(self, config: LodeStarConfig, client: Optional[LodeStarAPIClient] = None):
        self.config = config
        self.client = client or LodeStarAPIClient(config)
        self._session = Session()
        self._login_lock = asyncio.Lock()

    async def close(self):
        """Close the underlying HTTP client."""
        await self.client.close()

    # ==========================================================================
    # Session Management
    # ==========================================================================

    @property
    def session_id(self) -> Optional[str]:
        return self._session.token

    @property
    def is_authenticated(self) -> bool:
        return bool(self._session.token)

    async def authenticate(self, username: Optional[str] = None, password: Optional[str] = None) -> Any:
        """Log in to LodeStar.

        Explicit arguments override the configured credentials. The raw login
        response is returned whether or not LodeStar accepted the credentials;
        callers inspect its ``status`` field. The session token is stored only
        when ``status == 1`` and a ``session_id`` is present.

        Raises:
            ValidationError: If no username or password is available
            UpstreamError: If the login request fails at the transport level
        """
        username = username or self.config.username or ""
        password = password or self.config.password or ""
        if not username or not password:
            raise ValidationError("Username and password are required for login")

        async with self._login_lock:
            try:
                result = await self.client.request(
                    "POST",
                    LOGIN_PATH,
                    form={"username": username, "password": password},
                    check_status=False,
                )
            except UpstreamError as e:
                raise UpstreamError(f"Login failed: {e}", status_code=e.status_code) from e

            login = LoginResponse.model_validate(result) if isinstance(result, dict) else LoginResponse()
            if login.succeeded:
                self._session.token = login.session_id
                self._session.authenticated_at = utc_now()
                self._session.login_count += 1
                if LOG_SESSION_EVENTS:
                    logger.info(
                        f"[SessionGateway] Logged in as {username}: "
                        f"session {truncate_token(login.session_id)} (login #{self._session.login_count})"
                    )
            elif LOG_SESSION_EVENTS:
                logger.warning(
                    f"[SessionGateway] Login rejected for {username}: status={login.status}, "
                    f"message={(login.model_extra or {}).get('message')}"
                )

        return result

    def get_session_status(self) -> SessionStatus:
        """Report session state without contacting LodeStar."""
        token = self._session.token
        return SessionStatus(
            authenticated=bool(token),
            session_id=truncate_token(token) if token else None,
            status="Ready for API calls" if token else "Not authenticated - please login first",
        )

    def _require_session(self) -> str:
        token = self._session.token
        if not token:
            raise AuthenticationError("Not authenticated. Please login first.")
        return token

    async def _call(
        self,
        context: str,
        method: str,
        path: str,
        data: Mapping[str, Any],
    ) -> Any:
        """Attach the session token and forward one authenticated request."""
        token = self._require_session()
        payload = {**data, SESSION_FIELD: token}

        try:
            if method == "GET":
                return await self.client.request("GET", path, params=payload)
            return await self.client.request(method, path, json_body=payload)
        except UpstreamError as e:
            logger.error(f"[SessionGateway] {context}: {e}")
            raise UpstreamError(f"{context}: {e}", status_code=e.status_code) from e

    # ==========================================================================
    # Closing Cost Operations
    # ==========================================================================

    async def calculate_closing_costs(self, request: Mapping[str, Any]) -> Any:
        """Calculate title agent fees, title premiums, recording fees and transfer taxes."""
        return await self._call(
            "Closing cost calculation failed", "POST", "/closing_cost_calculations.php", request
        )

    async def get_property_tax(self, params: Mapping[str, Any]) -> Any:
        """Estimate property tax for an address."""
        return await self._call("Property tax request failed", "GET", "/property_tax.php", params)

    async def get_questions(self, request: Mapping[str, Any]) -> Any:
        """Get county-specific questions for a transaction."""
        return await self._call("Get questions failed", "POST", "/questions.php", request)

    # ==========================================================================
    # Lookup Operations
    # ==========================================================================

    async def get_endorsements(self, params: Mapping[str, Any]) -> Any:
        return await self._call("Get endorsements failed", "GET", "/endorsements.php", params)

    async def get_appraisal_modifiers(self, params: Mapping[str, Any]) -> Any:
        """Get appraisal modifiers; ``loan_info`` is sent as ``loan_info[key]`` query fields."""
        return await self._call(
            "Get appraisal modifiers failed", "GET", "/appraisal_modifiers.php", params
        )

    async def get_sub_agents(self, params: Mapping[str, Any]) -> Any:
        return await self._call("Get sub agents failed", "GET", "/sub_agents.php", params)

    async def get_counties(self, state: str) -> Any:
        return await self._call("Get counties failed", "GET", "/counties.php", {"state": state})

    async def get_townships(self, params: Mapping[str, Any]) -> Any:
        return await self._call("Get townships failed", "GET", "/townships.php", params)

    async def geocode(self, params: Mapping[str, Any]) -> Any:
        """Check whether an address lies in a township with additional fees."""
        return await self._call("Geocode failed", "GET", "/geocode.php", params)
