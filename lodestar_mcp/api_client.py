"""HTTP client for the LodeStar API.

This client is a thin transport wrapper: it knows the base URL, the timeout,
and how LodeStar encodes requests and reports failures. It holds no session
state; callers pass the session token in with the request data.
"""
import httpx
from typing import Any, Mapping, Optional
import logging

from .config import LodeStarConfig
from .errors import UpstreamError

logger = logging.getLogger(__name__)

_NO_BODY = object()


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "1" if value else "0"
    return value


def flatten_query_params(params: Mapping[str, Any], prefix: Optional[str] = None) -> dict[str, Any]:
    """Flatten nested mappings into bracketed query keys.

    LodeStar parses query strings PHP-style, so ``{"loan_info": {"prop_type": 1}}``
    has to be sent as ``loan_info[prop_type]=1`` rather than as nested JSON.
    Lists are indexed (``endorsements[0][endo_id]=5``) and ``None`` values are
    dropped.
    """
    flat: dict[str, Any] = {}
    for key, value in params.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            flat.update(flatten_query_params(value, name))
        elif isinstance(value, (list, tuple)):
            flat.update(flatten_query_params({str(i): item for i, item in enumerate(value)}, name))
        else:
            flat[name] = _query_value(value)
    return flat


def _upstream_failure_message(body: Any) -> Optional[str]:
    """Return the failure message if the body declares ``status == 0``."""
    if isinstance(body, dict) and body.get("status") == 0:
        return body.get("message") or body.get("error") or "API request failed"
    return None


class LodeStarAPIClient:
    """Client for the LodeStar REST API.

    - GET parameters go on the query string, flattened to bracketed keys
    - POST bodies are JSON, except login which is a URL-encoded form
    - Any non-2xx status, timeout, network error or ``status: 0`` body
      raises UpstreamError
    """

    def __init__(
        self,
        config: LodeStarConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the API client.

        Args:
            config: Connection settings (base URL, timeout)
            transport: Optional httpx transport, used by tests to fake the upstream
        """
        self.config = config
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self.config.effective_base_url

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.config.timeout_seconds,
                headers={"Accept": "application/json"},
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json_body: Optional[Mapping[str, Any]] = None,
        form: Optional[Mapping[str, str]] = None,
        check_status: bool = True,
    ) -> Any:
        """Send one request to the LodeStar API.

        Args:
            method: HTTP method (GET or POST)
            path: Endpoint path relative to the base URL (e.g. "/counties.php")
            params: Query parameters (GET); nested mappings are flattened
            json_body: JSON request body (POST)
            form: URL-encoded form body (POST); takes precedence over json_body
            check_status: Raise when a 2xx JSON body carries ``status: 0``

        Returns:
            Parsed JSON response, unmodified

        Raises:
            UpstreamError: If the request fails at any layer
        """
        client = await self._get_http_client()
        method = method.upper()

        logger.debug(f"[APIClient] {method} {path}")

        try:
            if method == "GET":
                response = await client.get(path, params=flatten_query_params(params or {}))
            elif method == "POST":
                if form is not None:
                    response = await client.post(path, data=dict(form))
                else:
                    response = await client.post(path, json=dict(json_body or {}))
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.TimeoutException as e:
            logger.error(f"[APIClient] Timeout on {method} {path}: {e}")
            raise UpstreamError(
                f"Request timed out after {self.config.timeout_seconds:g}s"
            ) from e
        except httpx.RequestError as e:
            logger.error(f"[APIClient] Network error on {method} {path}: {e}")
            raise UpstreamError(f"Network error: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = _NO_BODY

        if not response.is_success:
            message = _upstream_failure_message(body) or f"API error {response.status_code}: {response.text}"
            logger.warning(f"[APIClient] {method} {path} returned {response.status_code}")
            raise UpstreamError(message, status_code=response.status_code)

        if body is _NO_BODY:
            raise UpstreamError(
                f"Invalid JSON response from {path}", status_code=response.status_code
            )

        if check_status:
            message = _upstream_failure_message(body)
            if message is not None:
                logger.warning(f"[APIClient] {method} {path} reported failure: {message}")
                raise UpstreamError(message, status_code=response.status_code)

        return body
