"""LodeStar MCP Server.

Exposes the LodeStar closing cost API as agent tools through two front-ends
that share one SessionGateway:

- MCP over stdio: list_tools / call_tool, for agent hosts
- HTTP proxy (FastAPI): GET /tools, POST /tools/{name}, GET /session

Run with:
    python -m lodestar_mcp.main stdio

Or:
    python -m lodestar_mcp.main http --port 8003
"""
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Optional

import mcp.types as types
from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from .config import LodeStarConfig, LOG_LEVEL, HTTP_HOST, HTTP_PORT
from .errors import UnknownToolError
from .models import SessionStatus, ToolEnvelope
from .session_gateway import SessionGateway
from .tools import ToolDispatcher


# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,  # stdout carries the MCP stdio transport
)
logger = logging.getLogger(__name__)

SERVER_NAME = "lodestar-apollo3-server"
SERVER_VERSION = "1.0.0"


# ==============================================================================
# MCP Server
# ==============================================================================

def build_mcp_server(dispatcher: ToolDispatcher) -> Server:
    """Create a low-level MCP server whose tools come from the dispatcher's catalog."""
    server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
                annotations=types.ToolAnnotations(**tool.annotations),
            )
            for tool in dispatcher.list_tools()
        ]

    # Arguments are validated by the dispatcher so failures share one envelope format
    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: Optional[dict[str, Any]]) -> types.CallToolResult:
        envelope = await dispatcher.invoke(name, arguments)
        return types.CallToolResult(
            content=[types.TextContent(type="text", text=envelope.to_text())],
            isError=not envelope.ok,
        )

    return server


async def run_stdio(dispatcher: ToolDispatcher) -> None:
    """Serve MCP on stdin/stdout until the host disconnects."""
    server = build_mcp_server(dispatcher)
    logger.info("[Server] LodeStar Apollo3 MCP server running on stdio")
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    finally:
        logger.info("[Server] Shutting down...")
        await dispatcher.gateway.close()


# ==============================================================================
# HTTP Proxy
# ==============================================================================

def envelope_status_code(envelope: ToolEnvelope) -> int:
    """HTTP status for a tool envelope returned by the proxy."""
    if envelope.ok:
        return 200
    if envelope.error.kind == "UnknownOperation":
        return 404
    if envelope.error.kind == "ValidationError":
        return 422
    if envelope.error.cause == "AuthenticationError":
        return 401
    if envelope.error.cause == "ValidationError":
        return 400
    return 502


def create_app(dispatcher: ToolDispatcher) -> FastAPI:
    """Build the HTTP proxy around a dispatcher."""

    @asynccontextmanager
    async def app_lifespan(app: FastAPI):
        logger.info("[Server] Starting LodeStar HTTP proxy")
        yield
        logger.info("[Server] Shutting down...")
        await dispatcher.gateway.close()

    app = FastAPI(
        title="LodeStar MCP Proxy",
        description=(
            "HTTP access to the LodeStar closing cost tools.\n\n"
            "- `GET /tools` - tool catalog with input schemas\n"
            "- `POST /tools/{name}` - call a tool with a JSON object of arguments\n"
            "- `GET /session` - current LodeStar session status"
        ),
        version=SERVER_VERSION,
        lifespan=app_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "service": "lodestar-mcp",
            "authenticated": dispatcher.gateway.is_authenticated,
        }

    @app.get("/tools", tags=["Tools"])
    async def list_tools():
        """List every tool with its input schema."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": tool.input_schema,
                "annotations": tool.annotations,
            }
            for tool in dispatcher.list_tools()
        ]

    @app.get("/tools/{name}", tags=["Tools"])
    async def get_tool(name: str):
        """Describe a single tool."""
        try:
            tool = dispatcher.get_tool(name)
        except UnknownToolError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return {"name": tool.name, "description": tool.description, "inputSchema": tool.input_schema}

    @app.post("/tools/{name}", response_model=ToolEnvelope, tags=["Tools"])
    async def call_tool(name: str, arguments: Any = Body(default=None)):
        """Call a tool with a JSON object of arguments.

        Any JSON body is accepted so that a non-object body comes back as a
        ValidationError envelope (422) rather than a framework error.
        """
        envelope = await dispatcher.invoke(name, arguments)
        return JSONResponse(
            status_code=envelope_status_code(envelope),
            content=envelope.model_dump(mode="json"),
        )

    @app.get("/session", response_model=SessionStatus, tags=["Session"])
    async def session_status():
        """Current LodeStar session status (token truncated)."""
        return dispatcher.gateway.get_session_status()

    return app


# ==============================================================================
# Default Instances
# ==============================================================================

config = LodeStarConfig.from_env()
gateway = SessionGateway(config)
dispatcher = ToolDispatcher(gateway)
app = create_app(dispatcher)


# ==============================================================================
# Entry Point
# ==============================================================================

def main():
    """Run the MCP stdio server or the HTTP proxy."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="LodeStar MCP Server")
    parser.add_argument(
        "transport",
        nargs="?",
        choices=["stdio", "http"],
        default="stdio",
        help="Serve MCP on stdio (default) or the HTTP proxy",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=HTTP_HOST,
        help=f"Host to bind the HTTP proxy to (default: {HTTP_HOST})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=HTTP_PORT,
        help=f"Port to bind the HTTP proxy to (default: {HTTP_PORT})"
    )

    args = parser.parse_args()

    logger.info(f"[Server] LodeStar API: {config.effective_base_url}")

    if args.transport == "stdio":
        asyncio.run(run_stdio(dispatcher))
        return

    logger.info(f"[Server] Starting on {args.host}:{args.port}")
    logger.info(f"[Server] API Docs: http://{args.host}:{args.port}/docs")
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
