"""Pydantic models for the LodeStar MCP Server"""
import json
from pydantic import BaseModel, Field, ConfigDict, StrictBool, StrictFloat, StrictInt, field_validator
from typing import Annotated, Any, Optional, Union
from datetime import datetime, timezone
from enum import Enum


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


# ==============================================================================
# Session Models
# ==============================================================================

class Session(BaseModel):
    """The single upstream session held by the gateway."""
    model_config = ConfigDict(validate_assignment=True)

    token: Optional[str] = Field(default=None, description="Current LodeStar session_id")
    authenticated_at: Optional[datetime] = Field(default=None, description="Time of the last successful login")
    login_count: int = Field(default=0, description="Number of successful logins in this process")


class LoginResponse(BaseModel):
    """Typed view over the fields of a login response the gateway inspects.

    Everything else in the upstream body is kept as extra data and passed
    through untouched.
    """
    model_config = ConfigDict(extra="allow")

    status: Any = None
    session_id: Optional[str] = None

    @field_validator("session_id", mode="before")
    @classmethod
    def _session_id_as_text(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @property
    def succeeded(self) -> bool:
        return self.status == 1 and bool(self.session_id)


class SessionStatus(BaseModel):
    """Local-only report on the gateway session."""
    authenticated: bool
    session_id: Optional[str] = Field(None, description="Session token (truncated for security)")
    status: str


# ==============================================================================
# Shared Request Components
# ==============================================================================

# Integers stay integers on the wire; numeric strings and booleans are rejected
Number = Union[StrictInt, StrictFloat]
Amount = Union[Annotated[StrictInt, Field(ge=0)], Annotated[StrictFloat, Field(ge=0)]]


class TransactionPurpose(str, Enum):
    """LodeStar transaction purpose codes."""
    REFINANCE = "00"
    REFINANCE_REISSUE = "04"
    PURCHASE = "11"


class LoanInfo(BaseModel):
    """Loan characteristics used by closing cost and question lookups."""
    model_config = ConfigDict(extra="forbid")

    prop_type: Optional[StrictInt] = Field(
        None, ge=1, le=7,
        description="1=Single Family, 2=Multi Family, 3=Condo, 4=Coop, 5=PUD, 6=Manufactured, 7=Land",
    )
    amort_type: Optional[StrictInt] = Field(None, ge=1, le=2, description="1=Fixed Rate, 2=Adjustable Rate")
    loan_type: Optional[StrictInt] = Field(None, ge=1, le=4, description="1=Conventional, 2=FHA, 3=VA, 4=USDA")
    prop_purpose: Optional[StrictInt] = Field(None, ge=1, le=3, description="1=Primary, 2=Secondary, 3=Investment")
    prop_usage: Optional[StrictInt] = Field(None, ge=1, le=3, description="1=Residential, 2=Commercial, 3=Mixed-use")
    number_of_families: Optional[StrictInt] = Field(None, ge=1)
    is_first_time_home_buyer: Optional[StrictInt] = Field(None, ge=0, le=1)
    is_federal_credit_union: Optional[StrictInt] = Field(None, ge=0, le=1)
    is_same_lender_as_previous: Optional[StrictInt] = Field(None, ge=0, le=1)
    is_same_borrwers_as_previous: Optional[StrictInt] = Field(None, ge=0, le=1)


class AppraisalLoanInfo(BaseModel):
    """Loan characteristics accepted as appraisal modifier filters."""
    model_config = ConfigDict(extra="forbid")

    prop_type: Optional[StrictInt] = Field(None, ge=1, le=7)
    amort_type: Optional[StrictInt] = Field(None, ge=1, le=2)
    loan_type: Optional[StrictInt] = Field(None, ge=1, le=6)


class Endorsement(BaseModel):
    """An endorsement selected for a closing cost calculation."""
    model_config = ConfigDict(extra="forbid")

    endo_id: StrictInt = Field(..., description="Endorsement ID from the endorsements endpoint")
    endo_amount: Optional[Number] = None


class AppraisalModifier(BaseModel):
    """An appraisal modifier selected for a closing cost calculation."""
    model_config = ConfigDict(extra="forbid")

    id: StrictInt = Field(..., description="Modifier ID from the appraisal modifiers endpoint")


# ==============================================================================
# Tool Input Models
# ==============================================================================

def _state():
    return Field(..., description='2 letter state abbreviation (e.g., "NJ")', pattern=r"^[A-Za-z]{2}$")


def _county():
    return Field(..., description='County name without "County" word (e.g., "Hudson")', min_length=1)


def _city():
    return Field(..., description='City name (e.g., "Hoboken")', min_length=1)


def _address():
    return Field(..., description='Property address (e.g., "110 Jefferson St. Apt 2")', min_length=1)


_CLOSE_DATE_FORMAT = r"^\d{4}-\d{2}-\d{2}$"


class ToolInput(BaseModel):
    """Base for tool inputs: unknown fields are rejected, strings are trimmed."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
    )

    def to_upstream(self) -> dict[str, Any]:
        """Dump the fields the caller actually supplied, JSON-ready."""
        return self.model_dump(mode="json", exclude_none=True)


class LoginInput(ToolInput):
    """Input parameters for the login tool."""
    username: Optional[str] = Field(None, description="Username for authentication (optional if set in config)")
    password: Optional[str] = Field(None, description="Password for authentication (optional if set in config)")


class ClosingCostInput(ToolInput):
    """Input parameters for the closing cost calculation tool."""
    state: str = _state()
    county: str = _county()
    city: str = _city()
    address: str = _address()
    purchase_price: Amount = Field(..., description="Purchase price (e.g., 230000)")
    close_date: Optional[str] = Field(None, description="Closing date (YYYY-MM-DD format)", pattern=_CLOSE_DATE_FORMAT)
    file_name: Optional[str] = Field(None, description="File name for the transaction")
    purpose: Optional[TransactionPurpose] = Field(
        None, description="Transaction purpose: 00=Refinance, 04=Refinance Reissue, 11=Purchase"
    )
    loan_amount: Optional[Amount] = Field(None, description="Loan amount")
    sub_agent_id: Optional[StrictInt] = Field(None, description="Sub agent ID from sub_agents endpoint")
    endorsements: Optional[list[Endorsement]] = Field(None, description="Array of endorsement objects")
    appraisal_modifiers: Optional[list[AppraisalModifier]] = Field(None, description="Array of appraisal modifier objects")
    loan_info: Optional[LoanInfo] = Field(None, description="Loan information object")
    include_pdf: Optional[StrictBool] = Field(None, description="Include base64 encoded PDF in response")
    include_hud: Optional[StrictBool] = Field(None, description="Include base64 encoded HUD in response")
    include_cfpb: Optional[StrictBool] = Field(None, description="Include base64 encoded CFPB in response")
    include_breakdown: Optional[StrictBool] = Field(None, description="Include fee breakdown in response")
    include_documents: Optional[StrictBool] = Field(None, description="Include document list in response")
    include_questions: Optional[StrictBool] = Field(None, description="Include questions list in response")
    include_line_1101_breakdown: Optional[StrictBool] = Field(None, description="Include line 1101 breakdown in response")
    include_line_1201_breakdown: Optional[StrictBool] = Field(None, description="Include line 1201 breakdown in response")
    include_line_1203_breakdown: Optional[StrictBool] = Field(None, description="Include line 1203 breakdown in response")


class PropertyTaxInput(ToolInput):
    """Input parameters for the property tax tool."""
    state: str = _state()
    county: str = _county()
    city: str = _city()
    address: str = _address()
    close_date: str = Field(..., description="Closing date (YYYY-MM-DD)", pattern=_CLOSE_DATE_FORMAT)
    file_name: str = Field(..., description="File name", min_length=1)
    purchase_price: Amount = Field(..., description="Purchase price for tax calculation")


class EndorsementsInput(ToolInput):
    """Input parameters for the endorsements tool."""
    state: str = _state()
    county: str = _county()
    purpose: str = Field(..., description='Transaction purpose (e.g., "11")', min_length=1)


class AppraisalModifiersInput(ToolInput):
    """Input parameters for the appraisal modifiers tool."""
    state: str = _state()
    county: str = _county()
    purpose: str = Field(..., description="Transaction purpose", min_length=1)
    loan_info: Optional[AppraisalLoanInfo] = Field(
        None, description="Optional loan information for filtering modifiers"
    )


class SubAgentsInput(ToolInput):
    """Input parameters for the sub agents tool."""
    state: str = _state()
    county: str = _county()


class CountiesInput(ToolInput):
    """Input parameters for the counties tool."""
    state: str = _state()


class TownshipsInput(ToolInput):
    """Input parameters for the townships tool."""
    state: str = _state()
    county: str = _county()


class QuestionsInput(ToolInput):
    """Input parameters for the county questions tool."""
    state: str = _state()
    county: str = _county()
    city: str = _city()
    address: str = _address()
    purchase_price: Amount = Field(..., description="Purchase price")
    close_date: Optional[str] = Field(None, description="Closing date (YYYY-MM-DD)", pattern=_CLOSE_DATE_FORMAT)
    file_name: Optional[str] = Field(None, description="File name")
    purpose: Optional[str] = Field(None, description="Transaction purpose")
    loan_amount: Optional[Amount] = Field(None, description="Loan amount")
    sub_agent_id: Optional[StrictInt] = Field(None, description="Sub agent ID")
    loan_info: Optional[LoanInfo] = Field(None, description="Loan information object")


class GeocodeInput(ToolInput):
    """Input parameters for the geocode tool."""
    state: str = _state()
    county: str = _county()
    city: str = _city()
    address: str = _address()


class SessionStatusInput(ToolInput):
    """The session status tool takes no arguments."""


# ==============================================================================
# Tool Result Envelope
# ==============================================================================

class ToolError(BaseModel):
    """Failure half of the tool envelope."""
    kind: str = Field(..., description="Error kind (UnknownOperation, ValidationError, ExecutionError)")
    message: str = Field(..., description="Human-readable message shown to the caller")
    detail: Optional[str] = Field(None, description="Message of the underlying error, without the dispatcher prefix")
    cause: Optional[str] = Field(None, description="Kind of the underlying error (AuthenticationError, UpstreamError, ...)")


class ToolEnvelope(BaseModel):
    """Uniform wrapper returned for every tool call."""
    ok: bool
    result: Any = None
    error: Optional[ToolError] = None

    @classmethod
    def success(cls, result: Any) -> "ToolEnvelope":
        return cls(ok=True, result=result)

    @classmethod
    def failure(
        cls, kind: str, message: str, detail: Optional[str] = None, cause: Optional[str] = None
    ) -> "ToolEnvelope":
        return cls(ok=False, error=ToolError(kind=kind, message=message, detail=detail, cause=cause))

    def to_text(self) -> str:
        """Render for text-only transports: indented JSON payload or the error message."""
        if self.ok:
            return json.dumps(self.result, indent=2)
        return self.error.message
