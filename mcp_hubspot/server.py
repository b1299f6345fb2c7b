"""HubSpot MCP Server implementation."""

import json
import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import requests  # type: ignore[import-untyped]
from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse

from .client import HubSpotAPIError, HubSpotClient
from .models import (
    AddNoteParams,
    ConversationMessage,
    FindOwnersParams,
    GetTicketEmailsParams,
    GetTicketParams,
    ListParams,
    ListTicketsParams,
    Owner,
    OwnerMatch,
    ResponseFormat,
    Ticket,
)
from .service import HubSpotService

# Configure logging
logger = logging.getLogger(__name__)

# Constants
CHARACTER_LIMIT = 25000  # Maximum response size per MCP best practices
TICKET_CONTENT_TRUNCATE_LENGTH = 1000  # Maximum length for ticket content in markdown formatting
RESOURCE_EMAIL_LIMIT = 50


def _read_only_annotations(title: str) -> ToolAnnotations:
    """Create read-only tool annotations with title."""
    return ToolAnnotations(
        readOnlyHint=True,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=True,
        title=title,
    )


def _write_annotations(title: str) -> ToolAnnotations:
    """Create write tool annotations with title."""
    return ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=False,
        openWorldHint=True,
        title=title,
    )


def _serialize_json(obj: dict[str, Any], *, use_compact: bool) -> str:
    """Serialize a response object, compact when space is tight."""
    if use_compact:
        return json.dumps(obj, separators=(",", ":"), default=str)
    return json.dumps(obj, indent=2, default=str)


def _fit_items(obj: dict[str, Any], items: list[Any], limit: int, *, use_compact: bool) -> int:
    """Binary search for the largest ``items`` prefix that serializes under limit."""
    left, right = 0, len(items)
    while left < right:
        mid = (left + right + 1) // 2
        obj["items"] = items[:mid]
        if len(_serialize_json(obj, use_compact=use_compact)) <= limit:
            left = mid
        else:
            right = mid - 1
    return left


def _truncate_json_response(content: str, obj: dict[str, Any], limit: int) -> str:
    """Shrink the ``items`` array of a JSON response and flag the truncation."""
    original_size = len(content)
    use_compact = original_size > limit * 1.2
    has_items = isinstance(obj.get("items"), list)

    if has_items:
        items = obj["items"]
        obj["items"] = items[: _fit_items(obj, items, limit, use_compact=use_compact)]

    meta = obj.setdefault("_meta", {})
    meta.update(
        {
            "truncated": True,
            "original_size": original_size,
            "limit": limit,
            "note": "Response truncated; lower limit or add filters.",
        }
    )

    # metadata itself may push us back over the limit
    if has_items:
        json_str = _serialize_json(obj, use_compact=use_compact)
        while obj["items"] and len(json_str) > limit:
            obj["items"].pop()
            json_str = _serialize_json(obj, use_compact=use_compact)

    return _serialize_json(obj, use_compact=use_compact)


def _truncate_text_response(content: str, limit: int) -> str:
    """Cut a markdown response and append a warning."""
    truncated = content[:limit]
    truncated += "\n\n⚠️ **Response Truncated**\n"
    truncated += f"Response size ({len(content)} chars) exceeds limit ({limit} chars).\n"
    truncated += "Lower the limit or add filters (groups, statuses, owners, search_text) to see less."
    return truncated


def truncate_response(content: str, limit: int = CHARACTER_LIMIT) -> str:
    """Truncate response with helpful message if over limit.

    JSON responses stay valid: the ``items`` array is shortened and a
    ``_meta.truncated`` flag is added. Markdown gets a trailing warning.
    """
    if len(content) <= limit:
        return content

    if content.lstrip().startswith(("{", "[")):
        try:
            obj = json.loads(content)
            if isinstance(obj, dict):
                return _truncate_json_response(content, obj, limit)
        except (json.JSONDecodeError, TypeError) as e:
            logger.debug("Failed to parse/truncate JSON response: %s", e, exc_info=True)

    return _truncate_text_response(content, limit)


def _list_response(items: list[dict[str, Any]], **extra: Any) -> str:
    """Wrap serialized items in the common list envelope."""
    response: dict[str, Any] = {
        "items": items,
        "count": len(items),
        **extra,
        "_meta": {},  # Pre-allocated for truncation flags
    }
    return json.dumps(response, indent=2, default=str)


def _format_tickets_markdown(tickets: list[Ticket], query_info: str = "All tickets") -> str:
    """Format tickets as markdown for human readability.

    Args:
        tickets: List of tickets to format
        query_info: Description of the applied filters

    Returns:
        Markdown-formatted string
    """
    lines = [f"# Ticket List: {query_info}", ""]
    lines.append(f"Found {len(tickets)} ticket(s)")
    lines.append("")

    for ticket in tickets:
        lines.append(f"## Ticket {ticket.id} - {ticket.prop('subject', '(no subject)')}")
        lines.append(f"- **Status**: {ticket.prop('hs_pipeline_stage', 'Unknown')}")
        lines.append(f"- **Priority**: {ticket.prop('hs_ticket_priority', 'Unknown')}")
        lines.append(f"- **Group**: {ticket.prop('group', 'None')}")
        lines.append(f"- **Owner ID**: {ticket.prop('hubspot_owner_id', 'Unassigned')}")
        lines.append(f"- **Created**: {ticket.prop('createdate', 'Unknown')}")
        lines.append("")

    return "\n".join(lines)


def _format_tickets_json(tickets: list[Ticket], limit: int) -> str:
    """Format tickets as JSON for programmatic processing."""
    return _list_response(
        [ticket.model_dump(exclude_none=True) for ticket in tickets],
        limit=limit,
        has_more=len(tickets) == limit,  # heuristic, no cursor is followed
    )


def _format_ticket_detail_markdown(ticket: Ticket) -> str:
    """Format single ticket with full details as markdown."""
    lines = [f"# Ticket {ticket.id} - {ticket.prop('subject', '(no subject)')}", ""]
    lines.append(f"**Status**: {ticket.prop('hs_pipeline_stage', 'Unknown')}")
    lines.append(f"**Priority**: {ticket.prop('hs_ticket_priority', 'Unknown')}")
    lines.append(f"**Group**: {ticket.prop('group', 'None')}")
    lines.append(f"**Category**: {ticket.prop('hs_ticket_category', 'None')}")
    lines.append(f"**Owner ID**: {ticket.prop('hubspot_owner_id', 'Unassigned')}")
    lines.append(f"**Created**: {ticket.prop('createdate', 'Unknown')}")
    lines.append("")

    content = ticket.prop("content")
    if content:
        if len(content) > TICKET_CONTENT_TRUNCATE_LENGTH:
            content = content[:TICKET_CONTENT_TRUNCATE_LENGTH] + "...\n(truncated)"
        lines.extend(["## Content", "", content, ""])

    contacts = ticket.association_ids("contacts")
    companies = ticket.association_ids("companies")
    if contacts or companies:
        lines.extend(["## Associations", ""])
        if contacts:
            lines.append(f"- **Contacts**: {', '.join(contacts)}")
        if companies:
            lines.append(f"- **Companies**: {', '.join(companies)}")
        lines.append("")

    return "\n".join(lines)


def _format_emails_markdown(ticket_id: str, emails: list[ConversationMessage]) -> str:
    """Format an email thread as markdown, oldest first."""
    lines = [f"# Email Thread for Ticket {ticket_id}", ""]
    lines.append(f"Found {len(emails)} email(s)")
    lines.append("")

    for i, email in enumerate(emails, 1):
        date = email.created_at.isoformat()
        if email.timestamp_estimated:
            date += " (estimated)"
        lines.append(f"## Email {i} - {email.subject or '(no subject)'}")
        lines.append(f"- **From**: {email.from_ or 'Unknown'}")
        lines.append(f"- **To**: {email.to or 'Unknown'}")
        lines.append(f"- **Date**: {date}")
        lines.append("")
        lines.append(email.text or "(empty body)")
        lines.append("")

    return "\n".join(lines)


def _format_emails_json(ticket_id: str, emails: list[ConversationMessage]) -> str:
    """Format an email thread as JSON."""
    return _list_response(
        [email.model_dump(mode="json", by_alias=True) for email in emails],
        ticket_id=ticket_id,
    )


def _format_owners_markdown(owners: list[Owner] | list[OwnerMatch], query_info: str = "All owners") -> str:
    """Format owners as markdown for human readability."""
    lines = [f"# Owner List: {query_info}", ""]
    lines.append(f"Found {len(owners)} owner(s)")
    lines.append("")

    for owner in sorted(owners, key=lambda o: (o.full_name.lower(), o.id)):
        lines.append(f"- **{owner.full_name or 'N/A'}** (ID: {owner.id}) - {owner.email or 'N/A'}")

    return "\n".join(lines)


def _format_owners_json(owners: list[Owner] | list[OwnerMatch]) -> str:
    """Format owners as JSON."""
    return _list_response([owner.model_dump() for owner in owners])


def _handle_api_error(e: Exception, context: str = "operation") -> str:
    """Format errors with actionable guidance for LLM agents.

    Args:
        e: The exception that occurred
        context: Description of what was being attempted

    Returns:
        Formatted error message with guidance
    """
    status = e.status_code if isinstance(e, HubSpotAPIError) else None
    error_msg = str(e).lower()

    # HubSpot's 401 body reads "Authentication credentials not found."
    if status == 401 or (status is None and "unauthorized" in error_msg):
        return f"Error: Authentication failed for {context}. Check HUBSPOT_API_KEY is valid."

    if status == 404 or (status is None and "not found" in error_msg):
        return f"Error: Resource not found during {context}. Please verify the ID is correct and you have access."

    if status == 403 or (status is None and "forbidden" in error_msg):
        return f"Error: Permission denied for {context}. The private app token lacks the required CRM scopes."

    if status == 429:
        return f"Error: Rate limit reached during {context}. Wait a few seconds and try again."

    if isinstance(e, requests.exceptions.Timeout) or "timeout" in error_msg:
        return f"Error: Request timeout during {context}. HubSpot may be slow - try again or reduce the scope."

    if isinstance(e, requests.exceptions.ConnectionError) or "connection" in error_msg:
        return f"Error: Network issue during {context}. Check HUBSPOT_BASE_URL and that the API is reachable."

    return f"Error during {context}: {type(e).__name__} - {e}"


def _describe_filters(params: ListTicketsParams) -> str:
    """Summarize the applied filters for the markdown header."""
    filter_parts = {
        "groups": params.groups,
        "statuses": params.statuses,
        "priorities": params.priorities,
        "owners": params.owners,
        "search_text": params.search_text,
    }
    filters = [f"{k}={v!r}" for k, v in filter_parts.items() if v]
    return ", ".join(filters) if filters else "All tickets"


class HubSpotMCPServer:
    """HubSpot MCP Server with proper client lifecycle management."""

    def __init__(self, host: str = "127.0.0.1", port: int = 8000) -> None:
        """Initialize the server.

        Args:
            host: Host to bind for HTTP transport (default: 127.0.0.1)
            port: Port to bind for HTTP transport (default: 8000)
        """
        self.client: HubSpotClient | None = None
        self.service: HubSpotService | None = None
        self.mcp = FastMCP("hubspot_mcp", host=host, port=port, lifespan=self._create_lifespan())
        self._setup_tools()
        self._setup_resources()
        self._setup_prompts()

    def _create_lifespan(self) -> Any:
        """Create the lifespan context manager for the server."""

        @asynccontextmanager
        async def lifespan(_app: FastMCP) -> AsyncIterator[None]:
            """Initialize resources on startup and cleanup on shutdown."""
            await self.initialize()
            try:
                yield
            finally:
                if self.client is not None:
                    self.client.session.close()
                    self.client = None
                    self.service = None
                    logger.info("HubSpot client cleaned up")

        return lifespan

    def get_service(self) -> HubSpotService:
        """Get the HubSpot service, ensuring it's initialized."""
        if not self.service:
            raise RuntimeError("HubSpot client not initialized")
        return self.service

    async def initialize(self) -> None:
        """Initialize the HubSpot client on server startup."""
        cwd_env = Path.cwd() / ".env"
        if cwd_env.exists():
            load_dotenv(cwd_env)
            logger.info("Loaded environment from %s", cwd_env)

        envrc_path = Path.cwd() / ".envrc"
        if envrc_path.exists() and not os.environ.get("HUBSPOT_API_KEY"):
            logger.warning(
                "Found .envrc but environment variables not loaded. Consider using direnv or creating a .env file"
            )

        # Also support loading from parent directories (for when running from subdirs)
        load_dotenv()

        try:
            self.client = HubSpotClient()
            self.service = HubSpotService(self.client)
            logger.info("HubSpot client initialized successfully")
        except Exception:
            logger.exception("Failed to initialize HubSpot client")
            raise

        if self.service.test_connection():
            logger.info("Connected to HubSpot API at %s", self.client.base_url)
        else:
            logger.warning("HubSpot connection test failed; tools will report errors until access is fixed")

    def _setup_tools(self) -> None:
        """Register all tools with the MCP server."""
        self._setup_ticket_tools()
        self._setup_owner_tools()
        self._setup_system_tools()

    def _setup_ticket_tools(self) -> None:
        """Register ticket-related tools."""

        @self.mcp.tool(annotations=_read_only_annotations("List Tickets"))
        def hubspot_list_tickets(params: ListTicketsParams) -> str:
            """List or search HubSpot tickets with optional filters.

            Args:
                params (ListTicketsParams): Validated parameters containing:
                    - groups (list[str] | None): Group names, e.g. ["Mobile", "Front-end"]
                    - statuses (list[str] | None): Pipeline stage IDs
                    - priorities (list[str] | None): Priority levels, e.g. ["HIGH"]
                    - owners (list[str] | None): Owner IDs (see hubspot_find_owners)
                    - search_text (str | None): Token to find in the ticket subject
                    - limit (int): Max tickets to return, 1-100 (default: 100)
                    - response_format (ResponseFormat): Output format (default: "markdown")

            Returns:
                str: Ticket ID, subject, group, priority, status, owner and creation date.

                JSON format:
                ```json
                {
                    "items": [{"id": "123", "properties": {"subject": "...", "hs_pipeline_stage": "1"}}],
                    "count": 1,
                    "limit": 100,
                    "has_more": false
                }
                ```

            Examples:
                - Use when: "High priority Mobile tickets" -> groups=["Mobile"], priorities=["HIGH"]
                - Use when: "Tickets about Vehicles Syncing" -> search_text="Vehicles Syncing"
                - Use when: "Tickets for Ryan" -> hubspot_find_owners first, then owners=[id]
                - Don't use when: You have a ticket ID (use hubspot_get_ticket)

            Note:
                All supplied filters must match (AND). Without filters the most recent
                page of tickets is listed. At most 100 tickets are fetched.
            """
            service = self.get_service()
            tickets = service.list_tickets(params.to_filters())[: params.limit]

            if params.response_format == ResponseFormat.JSON:
                result = _format_tickets_json(tickets, params.limit)
            else:
                result = _format_tickets_markdown(tickets, _describe_filters(params))

            return truncate_response(result)

        @self.mcp.tool(annotations=_read_only_annotations("Get Ticket Details"))
        def hubspot_get_ticket(params: GetTicketParams) -> str:
            """Get full details for a specific HubSpot ticket.

            Includes subject, content, group, priority, status, category, owner
            and the IDs of associated contacts and companies.

            Args:
                params (GetTicketParams): ticket_id and response_format

            Error Handling:
                - Raises TicketNotFoundError if the ticket does not exist
                - Other API errors are reported as tool errors
            """
            ticket = self.get_service().get_ticket_details(params.ticket_id)

            if params.response_format == ResponseFormat.JSON:
                result = json.dumps(ticket.model_dump(exclude_none=True), indent=2, default=str)
            else:
                result = _format_ticket_detail_markdown(ticket)

            return truncate_response(result)

        @self.mcp.tool(annotations=_read_only_annotations("Get Ticket Emails"))
        def hubspot_get_ticket_emails(params: GetTicketEmailsParams) -> str:
            """Get the full email conversation thread for a ticket.

            Returns all associated emails with subject, from, to, date and a
            cleaned plain-text body (HTML stripped), sorted oldest first.

            Args:
                params (GetTicketEmailsParams): ticket_id and response_format

            Error Handling:
                - Returns "No emails found for this ticket." when nothing is linked
                - Emails that cannot be loaded are skipped, the rest are returned
                - Raises TicketNotFoundError if the ticket does not exist

            Note:
                A date marked "(estimated)" is the fetch time, not the send time.
            """
            emails = self.get_service().get_ticket_emails(params.ticket_id)
            if not emails:
                return "No emails found for this ticket."

            if params.response_format == ResponseFormat.JSON:
                result = _format_emails_json(params.ticket_id, emails)
            else:
                result = _format_emails_markdown(params.ticket_id, emails)

            return truncate_response(result)

        @self.mcp.tool(annotations=_write_annotations("Add Ticket Note"))
        def hubspot_add_note(params: AddNoteParams) -> str:
            """Add an internal note to a HubSpot ticket.

            Use for recording findings, status updates, or analysis results.
            The note body supports HTML.

            Args:
                params (AddNoteParams): ticket_id and note

            Returns:
                str: Confirmation, or a failure message if HubSpot rejected the note.
            """
            if self.get_service().add_note_to_ticket(params.ticket_id, params.note):
                return f"Note added to ticket {params.ticket_id}."
            return f"Failed to add note to ticket {params.ticket_id}."

    def _setup_owner_tools(self) -> None:
        """Register owner directory tools."""

        @self.mcp.tool(annotations=_read_only_annotations("List Owners"))
        def hubspot_list_owners(params: ListParams) -> str:
            """List all HubSpot owners (users) with their IDs, names, and emails (cached).

            Use this to find owner IDs for filtering tickets. The owner list is
            loaded once per server process.
            """
            owners = self.get_service().list_owners()

            if params.response_format == ResponseFormat.JSON:
                result = _format_owners_json(owners)
            else:
                result = _format_owners_markdown(owners)

            return truncate_response(result)

        @self.mcp.tool(annotations=_read_only_annotations("Find Owners by Name"))
        def hubspot_find_owners(params: FindOwnersParams) -> str:
            """Search HubSpot owners by name or email fragment.

            Matching is a case-insensitive substring match on full name, first
            name, last name or email.

            Examples:
                - Use when: "Tickets for Ryan J" -> search_name="Ryan J", then hubspot_list_tickets(owners=[id])
                - Use when: "Who is ryan@example.com" -> search_name="ryan@example.com"
            """
            owners = self.get_service().find_owners_by_name(params.search_name)
            if not owners:
                return f'No owners found matching "{params.search_name}".'

            if params.response_format == ResponseFormat.JSON:
                result = _format_owners_json(owners)
            else:
                result = _format_owners_markdown(owners, f"matching '{params.search_name}'")

            return truncate_response(result)

    def _setup_system_tools(self) -> None:
        """Register connectivity tools."""

        @self.mcp.tool(annotations=_read_only_annotations("Test Connection"))
        def hubspot_test_connection() -> str:
            """Test the HubSpot API connection.

            Verifies the API key works and has permission to read tickets.
            """
            if self.get_service().test_connection():
                return "HubSpot connection successful."
            return "HubSpot connection failed."

    def _setup_resources(self) -> None:
        """Register all resources with the MCP server."""
        self._setup_ticket_resource()
        self._setup_ticket_emails_resource()
        self._setup_owners_resource()

    def _setup_ticket_resource(self) -> None:
        """Register ticket resource."""

        @self.mcp.resource("hubspot://ticket/{ticket_id}")
        def get_ticket_resource(ticket_id: str) -> str:
            """Get a ticket as a resource."""
            service = self.get_service()
            try:
                ticket = service.get_ticket_details(ticket_id)
                return truncate_response(_format_ticket_detail_markdown(ticket))
            except (HubSpotAPIError, requests.exceptions.RequestException, ValueError, ValidationError) as e:
                return _handle_api_error(e, context=f"retrieving ticket {ticket_id}")

    def _setup_ticket_emails_resource(self) -> None:
        """Register ticket conversation resource."""

        @self.mcp.resource("hubspot://ticket/{ticket_id}/emails")
        def get_ticket_emails_resource(ticket_id: str) -> str:
            """Get a ticket's email thread as plain text."""
            service = self.get_service()
            try:
                emails = service.get_ticket_emails(ticket_id)
            except (HubSpotAPIError, requests.exceptions.RequestException, ValueError, ValidationError) as e:
                return _handle_api_error(e, context=f"retrieving emails for ticket {ticket_id}")

            if not emails:
                return f"Ticket {ticket_id} has no emails."

            lines = [f"Email thread for ticket {ticket_id}", ""]
            for email in emails[-RESOURCE_EMAIL_LIMIT:]:
                lines.extend(
                    [
                        f"--- {email.created_at.isoformat()} from {email.from_ or 'Unknown'} ---",
                        f"Subject: {email.subject or '(no subject)'}",
                        email.text,
                        "",
                    ]
                )
            if len(emails) > RESOURCE_EMAIL_LIMIT:
                lines.append(f"(showing the latest {RESOURCE_EMAIL_LIMIT} of {len(emails)} emails)")

            return truncate_response("\n".join(lines))

    def _setup_owners_resource(self) -> None:
        """Register owner directory resource."""

        @self.mcp.resource("hubspot://owners")
        def get_owners_resource() -> str:
            """Get the owner directory as a resource."""
            owners = self.get_service().list_owners()
            return truncate_response(_format_owners_markdown(owners))

    def _setup_prompts(self) -> None:
        """Register all prompts with the MCP server."""

        @self.mcp.prompt()
        def analyze_ticket(ticket_id: str) -> str:
            """Generate a prompt to analyze a ticket."""
            return f"""Please analyze HubSpot ticket {ticket_id}.
Use the hubspot_get_ticket tool to retrieve the ticket details, then hubspot_get_ticket_emails
for the full conversation.

After retrieving the ticket, provide:
1. A summary of the issue
2. Current status and priority
3. Timeline of the email exchange
4. Suggested next steps or resolution

If useful, record your findings with hubspot_add_note."""

        @self.mcp.prompt()
        def draft_reply(ticket_id: str, tone: str = "professional") -> str:
            """Generate a prompt to draft a reply to a ticket conversation."""
            return f"""Please help draft a {tone} reply for HubSpot ticket {ticket_id}.

First, use hubspot_get_ticket_emails to read the conversation, oldest first. Then draft a reply that:
1. Acknowledges the customer's latest message
2. Provides a clear solution or next steps
3. Maintains a {tone} tone throughout
4. Is concise and easy to understand

Do not send the reply. If approved, save it as an internal note with hubspot_add_note."""

        @self.mcp.prompt()
        def owner_workload(owner_name: str, group: str | None = None) -> str:
            """Generate a prompt to summarize the tickets assigned to an owner."""
            group_filter = f" in group '{group}'" if group else ""
            group_arg = f", groups=[\"{group}\"]" if group else ""
            return f"""Please summarize the tickets owned by "{owner_name}"{group_filter}.

1. Use hubspot_find_owners with search_name="{owner_name}" to get the owner ID(s)
2. Use hubspot_list_tickets with owners=[...]{group_arg}
3. Group the tickets by status and priority
4. Highlight the oldest open tickets and anything marked HIGH priority

If several owners match, list them and ask which one is meant."""


# Create the server instance with host/port from environment
# This allows HTTP transport to bind to the configured address
_host = os.getenv("MCP_HOST", "127.0.0.1")
_port = int(os.getenv("MCP_PORT", "8000"))
server = HubSpotMCPServer(host=_host, port=_port)

# Export the MCP server instance
mcp = server.mcp


# Health check endpoint for HTTP transport
@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> JSONResponse:  # noqa: ARG001
    """Health check endpoint for HTTP transport.

    Args:
        request: The incoming HTTP request (required by FastMCP).

    Returns:
        JSONResponse with health status.
    """
    return JSONResponse({"status": "healthy", "transport": "http"})


def _configure_logging() -> None:
    """Configure logging from LOG_LEVEL environment variable.

    Reads LOG_LEVEL (default: INFO) and configures the root logger. Valid
    values: DEBUG, INFO, WARNING, ERROR, CRITICAL.
    """
    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

    if log_level_str not in valid_levels:
        invalid_level = log_level_str
        log_level_str = "INFO"
        logger.warning(
            "Invalid LOG_LEVEL '%s', defaulting to INFO. Valid values: %s",
            invalid_level,
            ", ".join(sorted(valid_levels)),
        )

    log_level = getattr(logging, log_level_str)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root_logger.addHandler(handler)


def main() -> None:
    """Main entry point for the server."""
    _configure_logging()
    mcp.run()
