"""Configuration for the LodeStar MCP Server"""
import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# LodeStar API Configuration
DEFAULT_CLIENT_NAME = "LodeStar_Demo"
LODESTAR_LIVE_URL_TEMPLATE = "https://www.lodestarss.com/Live/{client_name}/"

# Upstream calls are never retried; this is the whole budget per request
REQUEST_TIMEOUT_SECONDS = float(os.getenv("LODESTAR_TIMEOUT_SECONDS", "30"))

# Logging
LOG_LEVEL = os.getenv("LODESTAR_LOG_LEVEL", "INFO").upper()
LOG_SESSION_EVENTS = os.getenv("LOG_SESSION_EVENTS", "true").lower() == "true"

# HTTP proxy server
HTTP_HOST = os.getenv("LODESTAR_HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.getenv("LODESTAR_HTTP_PORT", "8003"))


class LodeStarConfig(BaseModel):
    """Immutable connection settings for the LodeStar API."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    base_url: Optional[str] = Field(default=None, description="Explicit API base URL override")
    client_name: str = Field(default=DEFAULT_CLIENT_NAME, description="LodeStar client namespace")
    username: Optional[str] = Field(default=None, description="Default login username")
    password: Optional[str] = Field(default=None, description="Default login password")
    timeout_seconds: float = Field(default=REQUEST_TIMEOUT_SECONDS, gt=0)

    @property
    def effective_base_url(self) -> str:
        """Base URL used for every upstream request."""
        if self.base_url:
            return self.base_url
        return LODESTAR_LIVE_URL_TEMPLATE.format(client_name=self.client_name or DEFAULT_CLIENT_NAME)

    @classmethod
    def from_env(cls) -> "LodeStarConfig":
        return cls(
            base_url=os.getenv("LODESTAR_BASE_URL") or None,
            client_name=os.getenv("LODESTAR_CLIENT_NAME") or DEFAULT_CLIENT_NAME,
            username=os.getenv("LODESTAR_USERNAME") or None,
            password=os.getenv("LODESTAR_PASSWORD") or None,
        )
