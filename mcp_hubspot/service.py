"""Ticket, conversation and owner operations on top of the HubSpot client."""

import logging
import time

from .client import HubSpotClient, HubSpotNotFoundError
from .models import (
    ConversationMessage,
    CrmRecord,
    FilterOperator,
    Owner,
    OwnerMatch,
    SearchFilter,
    Ticket,
    TicketFilters,
    TicketNotFoundError,
    VendorOwner,
)
from .text import normalize_body, resolve_timestamp

logger = logging.getLogger(__name__)

PAGE_SIZE = 100

TICKET_PROPERTIES = [
    "subject",
    "content",
    "group",
    "hs_ticket_priority",
    "hs_pipeline_stage",
    "createdate",
    "hubspot_owner_id",
]

TICKET_DETAIL_PROPERTIES = [*TICKET_PROPERTIES, "hs_ticket_category"]
TICKET_DETAIL_ASSOCIATIONS = ["contacts", "companies"]

EMAIL_PROPERTIES = [
    "hs_email_text",
    "hs_email_html",
    "hs_email_subject",
    "hs_email_from",
    "hs_email_to",
    "hs_timestamp",
    "hs_email_date",
    "hs_createdate",
]

# HubSpot-defined association type id for note -> ticket
NOTE_TO_TICKET_ASSOCIATION_TYPE_ID = 16

# (criteria attribute, ticket property) in clause order
_IN_FILTER_FIELDS = (
    ("groups", "group"),
    ("statuses", "hs_pipeline_stage"),
    ("priorities", "hs_ticket_priority"),
    ("owners", "hubspot_owner_id"),
)


def build_search_filters(criteria: TicketFilters | None) -> list[SearchFilter] | None:
    """Translate selection criteria into search filters.

    Every non-empty list becomes an ``IN`` clause and a search text becomes a
    ``CONTAINS_TOKEN`` clause on the subject.

    Returns:
        The clauses to AND together, or None when nothing was selected and a
        plain listing should be used instead.
    """
    if criteria is None:
        return None

    filters: list[SearchFilter] = []
    for attr, property_name in _IN_FILTER_FIELDS:
        values = getattr(criteria, attr)
        if values:
            filters.append(SearchFilter(property_name=property_name, operator=FilterOperator.IN, values=list(values)))

    if criteria.search_text:
        filters.append(
            SearchFilter(property_name="subject", operator=FilterOperator.CONTAINS_TOKEN, value=criteria.search_text)
        )

    return filters or None


class HubSpotService:
    """Ticketing operations exposed by the MCP tools.

    The owner directory is loaded once and kept for the lifetime of the
    instance; it is never refreshed.
    """

    def __init__(self, client: HubSpotClient) -> None:
        self.client = client
        self._owner_cache: list[Owner] | None = None

    def test_connection(self) -> bool:
        """Check that the token can read tickets."""
        try:
            self.client.get_tickets_page(limit=1, properties=["subject"])
        except Exception as e:
            logger.warning("HubSpot connection test failed: %s", e)
            return False
        return True

    def list_owners(self) -> list[Owner]:
        """Return all owners, loading them on first use.

        A failed load returns an empty list and is not cached.
        """
        if self._owner_cache is not None:
            return list(self._owner_cache)

        try:
            response = self.client.get_owners_page(limit=PAGE_SIZE)
            owners = [Owner.from_vendor(VendorOwner.model_validate(o)) for o in response.get("results", [])]
        except Exception as e:
            logger.warning("Failed to load HubSpot owners: %s", e)
            return []

        self._owner_cache = owners
        logger.info("Cached %d HubSpot owners", len(owners))
        return list(owners)

    def find_owners_by_name(self, search_name: str) -> list[OwnerMatch]:
        """Find owners whose name or email contains the search term (case-insensitive)."""
        needle = search_name.lower()
        return [
            OwnerMatch(id=owner.id, email=owner.email, full_name=owner.full_name)
            for owner in self.list_owners()
            if needle in owner.full_name.lower()
            or needle in owner.first_name.lower()
            or needle in owner.last_name.lower()
            or needle in owner.email.lower()
        ]

    def list_tickets(self, criteria: TicketFilters | None = None) -> list[Ticket]:
        """List tickets, searching only when some criterion was supplied."""
        filters = build_search_filters(criteria)

        if filters:
            logger.debug("Searching tickets with %d filter(s)", len(filters))
            response = self.client.search_tickets(
                filter_groups=[{"filters": [f.to_api() for f in filters]}],
                properties=TICKET_PROPERTIES,
                limit=PAGE_SIZE,
            )
        else:
            response = self.client.get_tickets_page(limit=PAGE_SIZE, properties=TICKET_PROPERTIES)

        return [
            Ticket(id=ticket.id, properties=ticket.properties)
            for ticket in (Ticket.model_validate(r) for r in response.get("results", []))
        ]

    def get_ticket_details(self, ticket_id: str) -> Ticket:
        """Fetch a ticket with its detail properties and contact/company links.

        Raises:
            TicketNotFoundError: If the ticket does not exist
        """
        try:
            data = self.client.get_ticket(
                ticket_id, properties=TICKET_DETAIL_PROPERTIES, associations=TICKET_DETAIL_ASSOCIATIONS
            )
        except HubSpotNotFoundError as e:
            raise TicketNotFoundError(ticket_id) from e
        return Ticket.model_validate(data)

    def get_ticket_emails(self, ticket_id: str) -> list[ConversationMessage]:
        """Return the email thread of a ticket, oldest first.

        Emails that cannot be fetched or parsed are left out.

        Raises:
            TicketNotFoundError: If the ticket does not exist
        """
        try:
            data = self.client.get_ticket(ticket_id, properties=["subject"], associations=["emails"])
        except HubSpotNotFoundError as e:
            raise TicketNotFoundError(ticket_id) from e

        email_ids = Ticket.model_validate(data).association_ids("emails")
        if not email_ids:
            return []

        emails: list[ConversationMessage] = []
        for email_id in email_ids:
            email = self.get_email_content(email_id)
            if email is not None:
                emails.append(email)

        if len(emails) < len(email_ids):
            logger.warning("Ticket %s: dropped %d of %d emails", ticket_id, len(email_ids) - len(emails), len(email_ids))

        emails.sort(key=lambda email: email.created_at)
        return emails

    def get_email_content(self, email_id: str) -> ConversationMessage | None:
        """Fetch and normalize one email, or None if that fails."""
        try:
            record = CrmRecord.model_validate(self.client.get_email(email_id, properties=EMAIL_PROPERTIES))
            props = record.properties
            created_at, estimated = resolve_timestamp(props, record.created_at)
            return ConversationMessage(
                id=record.id,
                subject=props.get("hs_email_subject") or None,
                from_=props.get("hs_email_from") or None,
                to=props.get("hs_email_to") or None,
                text=normalize_body(props.get("hs_email_html"), props.get("hs_email_text")),
                created_at=created_at,
                timestamp_estimated=estimated,
            )
        except Exception as e:
            logger.warning("Skipping email %s: %s", email_id, e)
            return None

    def add_note_to_ticket(self, ticket_id: str, note_body: str) -> bool:
        """Attach an internal note to a ticket. Returns False on any failure."""
        properties = {
            "hs_timestamp": str(int(time.time() * 1000)),
            "hs_note_body": note_body,
        }
        associations = [
            {
                "to": {"id": ticket_id},
                "types": [
                    {
                        "associationCategory": "HUBSPOT_DEFINED",
                        "associationTypeId": NOTE_TO_TICKET_ASSOCIATION_TYPE_ID,
                    }
                ],
            }
        ]
        try:
            self.client.create_note(properties=properties, associations=associations)
        except Exception as e:
            logger.warning("Failed to add note to ticket %s: %s", ticket_id, e)
            return False
        logger.info("Added note to ticket %s", ticket_id)
        return True
