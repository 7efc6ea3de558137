"""LodeStar MCP Server.

Exposes the LodeStar title insurance and closing cost API as agent tools.

Architecture:
- LodeStarAPIClient issues HTTP requests and normalizes upstream failures
- SessionGateway holds the single LodeStar session and gates every call on it
- ToolDispatcher validates tool arguments, routes them to the gateway and
  wraps every outcome in a ToolEnvelope
- main.py serves the dispatcher over MCP stdio and as an HTTP proxy

Run with:
    python -m lodestar_mcp.main stdio
"""
from .config import LodeStarConfig
from .errors import (
    LodeStarError,
    ValidationError,
    AuthenticationError,
    UpstreamError,
    UnknownToolError,
)
from .api_client import LodeStarAPIClient, flatten_query_params
from .session_gateway import SessionGateway
from .tools import ToolDispatcher, ToolDefinition, TOOL_CATALOG
from .models import (
    Session,
    SessionStatus,
    LoginResponse,
    TransactionPurpose,
    LoanInfo,
    ToolEnvelope,
    ToolError,
)

__all__ = [
    # Configuration
    "LodeStarConfig",
    # Errors
    "LodeStarError",
    "ValidationError",
    "AuthenticationError",
    "UpstreamError",
    "UnknownToolError",
    # API client
    "LodeStarAPIClient",
    "flatten_query_params",
    # Gateway
    "SessionGateway",
    # Tools
    "ToolDispatcher",
    "ToolDefinition",
    "TOOL_CATALOG",
    # Models
    "Session",
    "SessionStatus",
    "LoginResponse",
    "TransactionPurpose",
    "LoanInfo",
    "ToolEnvelope",
    "ToolError",
]
