"""MCP Tools for LodeStar.

This module defines the tool catalog the agent can call and the dispatcher
that runs it. Each call:
- Looks the tool up by name
- Validates the arguments against the tool's Pydantic input model
- Routes to the matching SessionGateway operation
- Wraps the result or the failure in a ToolEnvelope

No exception raised by a tool escapes ToolDispatcher.invoke.
"""
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
import logging

import pydantic

from .errors import LodeStarError, UnknownToolError
from .models import (
    ToolEnvelope,
    ToolInput,
    LoginInput,
    ClosingCostInput,
    PropertyTaxInput,
    EndorsementsInput,
    AppraisalModifiersInput,
    SubAgentsInput,
    CountiesInput,
    TownshipsInput,
    QuestionsInput,
    GeocodeInput,
    SessionStatusInput,
)
from .session_gateway import SessionGateway

logger = logging.getLogger(__name__)

ToolHandler = Callable[[SessionGateway, Any], Awaitable[Any]]


# ==============================================================================
# Tool Functions
# ==============================================================================

async def login_tool(gateway: SessionGateway, params: LoginInput) -> Any:
    """Log in with the given or configured credentials; returns the raw login response."""
    return await gateway.authenticate(params.username, params.password)


async def closing_cost_calculations_tool(gateway: SessionGateway, params: ClosingCostInput) -> Any:
    return await gateway.calculate_closing_costs(params.to_upstream())


async def property_tax_tool(gateway: SessionGateway, params: PropertyTaxInput) -> Any:
    return await gateway.get_property_tax(params.to_upstream())


async def get_endorsements_tool(gateway: SessionGateway, params: EndorsementsInput) -> Any:
    return await gateway.get_endorsements(params.to_upstream())


async def get_appraisal_modifiers_tool(gateway: SessionGateway, params: AppraisalModifiersInput) -> Any:
    return await gateway.get_appraisal_modifiers(params.to_upstream())


async def get_sub_agents_tool(gateway: SessionGateway, params: SubAgentsInput) -> Any:
    return await gateway.get_sub_agents(params.to_upstream())


async def get_counties_tool(gateway: SessionGateway, params: CountiesInput) -> Any:
    return await gateway.get_counties(params.state)


async def get_townships_tool(gateway: SessionGateway, params: TownshipsInput) -> Any:
    return await gateway.get_townships(params.to_upstream())


async def get_questions_tool(gateway: SessionGateway, params: QuestionsInput) -> Any:
    return await gateway.get_questions(params.to_upstream())


async def geocode_tool(gateway: SessionGateway, params: GeocodeInput) -> Any:
    return await gateway.geocode(params.to_upstream())


async def get_session_status_tool(gateway: SessionGateway, params: SessionStatusInput) -> Any:
    """Report session state from local memory only."""
    return gateway.get_session_status().model_dump()


# ==============================================================================
# Tool Catalog
# ==============================================================================

@dataclass(frozen=True)
class ToolDefinition:
    """A callable operation and its input contract."""
    name: str
    title: str
    description: str
    input_model: type[ToolInput]
    handler: ToolHandler = field(repr=False)
    read_only: bool = True
    open_world: bool = True

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema of the tool's arguments."""
        return self.input_model.model_json_schema()

    @property
    def annotations(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "readOnlyHint": self.read_only,
            "destructiveHint": False,
            "idempotentHint": self.read_only,
            "openWorldHint": self.open_world,
        }


TOOL_CATALOG: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="lodestar_login",
        title="Login",
        description="Login to LodeStar API system with username and password",
        input_model=LoginInput,
        handler=login_tool,
        read_only=False,
    ),
    ToolDefinition(
        name="lodestar_closing_cost_calculations",
        title="Calculate Closing Costs",
        description="Calculate title agent fees, title premiums, recording fees, and transfer taxes",
        input_model=ClosingCostInput,
        handler=closing_cost_calculations_tool,
    ),
    ToolDefinition(
        name="lodestar_property_tax",
        title="Property Tax",
        description="Get property tax information (estimate)",
        input_model=PropertyTaxInput,
        handler=property_tax_tool,
    ),
    ToolDefinition(
        name="lodestar_get_endorsements",
        title="Get Endorsements",
        description="Get available endorsements for a location and transaction purpose",
        input_model=EndorsementsInput,
        handler=get_endorsements_tool,
    ),
    ToolDefinition(
        name="lodestar_get_appraisal_modifiers",
        title="Get Appraisal Modifiers",
        description="Get available appraisal modifiers (required for appraisal fee calculations)",
        input_model=AppraisalModifiersInput,
        handler=get_appraisal_modifiers_tool,
    ),
    ToolDefinition(
        name="lodestar_get_sub_agents",
        title="Get Sub Agents",
        description="Get available sub agents (title companies) for a location",
        input_model=SubAgentsInput,
        handler=get_sub_agents_tool,
    ),
    ToolDefinition(
        name="lodestar_get_counties",
        title="Get Counties",
        description="Get all available counties for a state",
        input_model=CountiesInput,
        handler=get_counties_tool,
    ),
    ToolDefinition(
        name="lodestar_get_townships",
        title="Get Townships",
        description="Get all available townships for a county",
        input_model=TownshipsInput,
        handler=get_townships_tool,
    ),
    ToolDefinition(
        name="lodestar_get_questions",
        title="Get County Questions",
        description="Get county-specific questions for a transaction",
        input_model=QuestionsInput,
        handler=get_questions_tool,
    ),
    ToolDefinition(
        name="lodestar_geocode",
        title="Geocode Address",
        description="Check if address is in a township and has additional fees",
        input_model=GeocodeInput,
        handler=geocode_tool,
    ),
    ToolDefinition(
        name="lodestar_get_session_status",
        title="Get Session Status",
        description="Check if currently authenticated and get session info",
        input_model=SessionStatusInput,
        handler=get_session_status_tool,
        open_world=False,
    ),
)


def format_validation_error(e: pydantic.ValidationError) -> str:
    """Flatten Pydantic errors into one line: ``field: problem; field: problem``."""
    problems = []
    for error in e.errors():
        location = ".".join(str(part) for part in error["loc"]) or "arguments"
        problems.append(f"{location}: {error['msg']}")
    return "; ".join(problems)


# ==============================================================================
# Dispatcher
# ==============================================================================

class ToolDispatcher:
    """Routes tool calls by name to a SessionGateway.

    The dispatcher holds a reference to the gateway but does not own it; the
    catalog is shared and immutable.
    """

    def __init__(self, gateway: SessionGateway, catalog: tuple[ToolDefinition, ...] = TOOL_CATALOG):
        self.gateway = gateway
        self._catalog = catalog
        self._tools = {tool.name: tool for tool in catalog}

    def list_tools(self) -> list[ToolDefinition]:
        """All tools, in catalog order."""
        return list(self._catalog)

    def get_tool(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    async def invoke(self, name: str, arguments: Any = None) -> ToolEnvelope:
        """Run one tool call and wrap its outcome.

        Returns a failure envelope of kind ``UnknownOperation`` for names not in
        the catalog, ``ValidationError`` for arguments that do not match the
        tool's input model, and ``ExecutionError`` for anything the tool
        raises. No network call is made in the first two cases.
        """
        try:
            tool = self.get_tool(name)
        except UnknownToolError as e:
            logger.warning(f"[Tools] {e}")
            return ToolEnvelope.failure(e.kind, str(e))

        if arguments is not None and not isinstance(arguments, dict):
            detail = f"arguments must be a JSON object, got {type(arguments).__name__}"
            logger.warning(f"[Tools] {name} rejected arguments: {detail}")
            return ToolEnvelope.failure(
                "ValidationError", f"Invalid arguments for {name}: {detail}", detail=detail
            )

        try:
            params = tool.input_model.model_validate(arguments or {})
        except pydantic.ValidationError as e:
            detail = format_validation_error(e)
            logger.warning(f"[Tools] {name} rejected arguments: {detail}")
            return ToolEnvelope.failure(
                "ValidationError", f"Invalid arguments for {name}: {detail}", detail=detail
            )

        try:
            result = await tool.handler(self.gateway, params)
        except Exception as e:
            kind = e.kind if isinstance(e, LodeStarError) else type(e).__name__
            logger.error(f"[Tools] {name} failed ({kind}): {e}")
            return ToolEnvelope.failure(
                "ExecutionError", f"Tool execution failed: {e}", detail=str(e), cause=kind
            )

        return ToolEnvelope.success(result)
