"""Exception types shared by the API client, session gateway and tool dispatcher."""
from typing import Optional


class LodeStarError(Exception):
    """Base class for every failure the gateway reports to callers."""
    kind = "ExecutionError"


class ValidationError(LodeStarError):
    """Raised when caller input is missing or malformed, before any network call."""
    kind = "ValidationError"


class AuthenticationError(LodeStarError):
    """Raised when a domain operation is attempted without a session token."""
    kind = "AuthenticationError"


class UpstreamError(LodeStarError):
    """Raised on a non-2xx response, a timeout, or an upstream-declared failure."""
    kind = "UpstreamError"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UnknownToolError(LodeStarError):
    """Raised when dispatching on a tool name that is not in the catalog."""
    kind = "UnknownOperation"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name
