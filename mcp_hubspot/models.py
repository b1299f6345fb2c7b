"""Pydantic models for HubSpot entities."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


class StrictBaseModel(BaseModel):
    """Base model with strict validation that forbids extra fields.

    Typos or unknown parameter names in tool calls are rejected with a clear
    validation error instead of being silently ignored. String fields are
    stripped of leading/trailing whitespace.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class ResponseFormat(str, Enum):
    """Output format for tool responses.

    Attributes:
        MARKDOWN: Human-readable markdown format
        JSON: Machine-readable JSON format with full metadata
    """

    MARKDOWN = "markdown"
    JSON = "json"


def _normalize_format(v: str) -> str:
    """Normalize response format to lowercase."""
    if isinstance(v, str):
        return v.lower()
    return v


ResponseFormatInput = Annotated[ResponseFormat, BeforeValidator(_normalize_format)]

# HubSpot object ids are numeric strings
TicketId = Annotated[str, Field(min_length=1, max_length=32, pattern=r"^\d+$")]


class TicketNotFoundError(ValueError):
    """Raised when a ticket id does not exist in the portal.

    Attributes:
        ticket_id: The ticket ID that was not found
        message: Explanation with guidance
    """

    def __init__(self, ticket_id: str) -> None:
        """Initialize the exception with helpful guidance."""
        self.ticket_id = ticket_id
        self.message = (
            f"Ticket {ticket_id} not found. "
            f"Use hubspot_list_tickets (optionally with search_text) to look up valid ticket IDs."
        )
        super().__init__(self.message)


class AssociationRef(BaseModel):
    """Reference to an associated record."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    type: str | None = None


def _unwrap_associations(value: Any) -> Any:
    """Flatten the ``{"kind": {"results": [...]}}`` envelope into ``{"kind": [...]}``."""
    if not isinstance(value, dict):
        return value
    flattened: dict[str, Any] = {}
    for kind, refs in value.items():
        if isinstance(refs, dict):
            refs = refs.get("results", [])
        flattened[kind] = refs or []
    return flattened


class Ticket(BaseModel):
    """HubSpot ticket."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    properties: dict[str, str | None] = Field(default_factory=dict)
    associations: Annotated[dict[str, list[AssociationRef]] | None, BeforeValidator(_unwrap_associations)] = None

    def prop(self, name: str, default: str = "") -> str:
        """Return a property value, or ``default`` when missing or null."""
        return self.properties.get(name) or default

    def association_ids(self, kind: str) -> list[str]:
        """Return the ids linked under an association kind, in vendor order."""
        if not self.associations:
            return []
        return [ref.id for ref in self.associations.get(kind, [])]


class CrmRecord(BaseModel):
    """Generic CRM object as returned by the objects API (emails, notes)."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    properties: dict[str, str | None] = Field(default_factory=dict)
    created_at: str | None = Field(None, alias="createdAt")
    updated_at: str | None = Field(None, alias="updatedAt")

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Any:
        """Accept datetimes as well as vendor ISO strings."""
        if isinstance(v, datetime):
            return v.isoformat()
        return v


class ConversationMessage(BaseModel):
    """One email of a ticket conversation, normalized to plain text."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    subject: str | None = None
    from_: str | None = Field(None, alias="from", description="Sender address")
    to: str | None = None
    text: str = Field(default="", description="Plain-text body, markup removed")
    created_at: datetime = Field(description="Resolved creation timestamp")
    timestamp_estimated: bool = Field(
        default=False, description="True when no timestamp field was usable and the fetch time was substituted"
    )


class VendorOwner(BaseModel):
    """Directory user as returned by the owners API."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    email: str | None = None
    first_name: str | None = Field(None, alias="firstName")
    last_name: str | None = Field(None, alias="lastName")


class Owner(BaseModel):
    """Assignable HubSpot user."""

    id: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    full_name: str = ""

    @classmethod
    def from_vendor(cls, owner: VendorOwner) -> "Owner":
        """Build an owner with a derived full name."""
        first_name = owner.first_name or ""
        last_name = owner.last_name or ""
        return cls(
            id=owner.id,
            email=owner.email or "",
            first_name=first_name,
            last_name=last_name,
            full_name=f"{first_name} {last_name}".strip(),
        )


class OwnerMatch(BaseModel):
    """Owner summary returned by name lookups."""

    id: str
    email: str
    full_name: str


class FilterOperator(str, Enum):
    """Search filter operators used by the ticket search."""

    IN = "IN"
    CONTAINS_TOKEN = "CONTAINS_TOKEN"


class SearchFilter(BaseModel):
    """One search criterion, serialized with the vendor's field names."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    property_name: str = Field(alias="propertyName")
    operator: FilterOperator
    values: list[str] | None = None
    value: str | None = None

    def to_api(self) -> dict[str, Any]:
        """Render as a search API filter object."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TicketFilters(StrictBaseModel):
    """Optional selection criteria for listing tickets."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, frozen=True)

    groups: list[str] | None = None
    statuses: list[str] | None = None
    priorities: list[str] | None = None
    owners: list[str] | None = None
    search_text: str | None = None


class ListTicketsParams(StrictBaseModel):
    """List tickets request parameters."""

    groups: list[str] | None = Field(None, description='Filter by group names (e.g., ["Mobile", "Front-end"])')
    statuses: list[str] | None = Field(None, description="Filter by pipeline stage IDs")
    priorities: list[str] | None = Field(None, description='Filter by priority levels (e.g., ["HIGH", "MEDIUM"])')
    owners: list[str] | None = Field(
        None, description="Filter by owner IDs (use hubspot_find_owners to get IDs from names)"
    )
    search_text: str | None = Field(
        None, max_length=200, description='Search for a token in the ticket subject (e.g., "Vehicles Syncing")'
    )
    limit: int = Field(default=100, ge=1, le=100, description="Max tickets to return (1-100)")
    response_format: ResponseFormatInput = Field(
        default=ResponseFormat.MARKDOWN, description="Output format: \"markdown\" (default) or \"json\""
    )

    def to_filters(self) -> TicketFilters:
        """Extract the selection criteria."""
        return TicketFilters(
            groups=self.groups,
            statuses=self.statuses,
            priorities=self.priorities,
            owners=self.owners,
            search_text=self.search_text,
        )


class GetTicketParams(StrictBaseModel):
    """Get ticket request parameters."""

    ticket_id: TicketId = Field(description="The HubSpot ticket ID")
    response_format: ResponseFormatInput = Field(
        default=ResponseFormat.MARKDOWN, description="Output format: \"markdown\" (default) or \"json\""
    )


class GetTicketEmailsParams(StrictBaseModel):
    """Get ticket emails request parameters."""

    ticket_id: TicketId = Field(description="The HubSpot ticket ID")
    response_format: ResponseFormatInput = Field(
        default=ResponseFormat.MARKDOWN, description="Output format: \"markdown\" (default) or \"json\""
    )


class FindOwnersParams(StrictBaseModel):
    """Find owners request parameters."""

    search_name: str = Field(
        min_length=1,
        max_length=255,
        description='Name or email to search for (e.g., "Ryan", "Ryan J", "ryan@example.com")',
    )
    response_format: ResponseFormatInput = Field(
        default=ResponseFormat.MARKDOWN, description="Output format: \"markdown\" (default) or \"json\""
    )


class AddNoteParams(StrictBaseModel):
    """Add note request parameters."""

    ticket_id: TicketId = Field(description="The HubSpot ticket ID")
    note: str = Field(min_length=1, max_length=65536, description="The note body text (supports HTML)")


class ListParams(StrictBaseModel):
    """List resource request parameters."""

    response_format: ResponseFormatInput = Field(
        default=ResponseFormat.MARKDOWN, description="Output format: \"markdown\" (default) or \"json\""
    )
