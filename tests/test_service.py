"""Tests for ticket, conversation and owner operations."""

from datetime import datetime, timezone
from unittest.mock import Mock, call

import pytest
import requests

from mcp_hubspot.client import HubSpotAPIError, HubSpotNotFoundError
from mcp_hubspot.models import FilterOperator, Owner, TicketFilters, TicketNotFoundError
from mcp_hubspot.service import (
    EMAIL_PROPERTIES,
    NOTE_TO_TICKET_ASSOCIATION_TYPE_ID,
    PAGE_SIZE,
    TICKET_DETAIL_PROPERTIES,
    TICKET_PROPERTIES,
    HubSpotService,
    build_search_filters,
)

# ==================== FILTER TRANSLATION ====================


@pytest.mark.parametrize(
    "criteria",
    [
        None,
        TicketFilters(),
        TicketFilters(groups=[], statuses=[], priorities=[], owners=[]),
        TicketFilters(search_text=""),
    ],
)
def test_build_search_filters_returns_none_without_criteria(criteria):
    """Empty or absent criteria select the plain listing path."""
    assert build_search_filters(criteria) is None


@pytest.mark.parametrize(
    ("field", "property_name"),
    [
        ("groups", "group"),
        ("statuses", "hs_pipeline_stage"),
        ("priorities", "hs_ticket_priority"),
        ("owners", "hubspot_owner_id"),
    ],
)
def test_build_search_filters_single_list(field, property_name):
    """One non-empty list yields exactly one IN clause on its property."""
    filters = build_search_filters(TicketFilters(**{field: ["a", "b"]}))

    assert filters is not None
    assert len(filters) == 1
    assert filters[0].property_name == property_name
    assert filters[0].operator == FilterOperator.IN
    assert filters[0].values == ["a", "b"]


def test_build_search_filters_all_criteria_in_order():
    """All criteria combine into one clause list, search text last."""
    criteria = TicketFilters(
        groups=["Mobile"],
        statuses=["1", "2"],
        priorities=["HIGH"],
        owners=["101"],
        search_text="Vehicles Syncing",
    )

    filters = build_search_filters(criteria)

    assert [f.to_api() for f in filters] == [
        {"propertyName": "group", "operator": "IN", "values": ["Mobile"]},
        {"propertyName": "hs_pipeline_stage", "operator": "IN", "values": ["1", "2"]},
        {"propertyName": "hs_ticket_priority", "operator": "IN", "values": ["HIGH"]},
        {"propertyName": "hubspot_owner_id", "operator": "IN", "values": ["101"]},
        {"propertyName": "subject", "operator": "CONTAINS_TOKEN", "value": "Vehicles Syncing"},
    ]


def test_build_search_filters_empty_list_is_not_supplied():
    """An empty list next to a non-empty one produces no clause of its own."""
    filters = build_search_filters(TicketFilters(groups=[], priorities=["LOW"]))

    assert len(filters) == 1
    assert filters[0].property_name == "hs_ticket_priority"


# ==================== LIST TICKETS ====================


def test_list_tickets_without_filters_uses_listing(service, mock_client, ticket_factory):
    """No criteria: plain listing, never the search endpoint."""
    mock_client.get_tickets_page.return_value = {"results": [ticket_factory("1"), ticket_factory("2")]}

    tickets = service.list_tickets(TicketFilters(groups=[]))

    mock_client.get_tickets_page.assert_called_once_with(limit=PAGE_SIZE, properties=TICKET_PROPERTIES)
    mock_client.search_tickets.assert_not_called()
    assert [t.id for t in tickets] == ["1", "2"]
    assert tickets[0].properties["subject"] == "Vehicles not syncing"


def test_list_tickets_with_filters_uses_single_and_group(service, mock_client, ticket_factory):
    """All clauses go into one filter group so every criterion must match."""
    mock_client.search_tickets.return_value = {"total": 1, "results": [ticket_factory("7")]}

    tickets = service.list_tickets(TicketFilters(owners=["101"], search_text="sync"))

    mock_client.get_tickets_page.assert_not_called()
    mock_client.search_tickets.assert_called_once_with(
        filter_groups=[
            {
                "filters": [
                    {"propertyName": "hubspot_owner_id", "operator": "IN", "values": ["101"]},
                    {"propertyName": "subject", "operator": "CONTAINS_TOKEN", "value": "sync"},
                ]
            }
        ],
        properties=TICKET_PROPERTIES,
        limit=PAGE_SIZE,
    )
    assert len(tickets) == 1
    assert tickets[0].id == "7"


def test_list_tickets_strips_associations(service, mock_client, ticket_factory):
    """Listing results carry properties only."""
    payload = ticket_factory("9")
    payload["associations"] = {"emails": {"results": [{"id": "1", "type": "ticket_to_email"}]}}
    mock_client.get_tickets_page.return_value = {"results": [payload]}

    tickets = service.list_tickets()

    assert tickets[0].associations is None


def test_list_tickets_contradictory_criteria_returns_empty(service, mock_client):
    """Criteria that cannot match are sent as-is and yield an empty list."""
    mock_client.search_tickets.return_value = {"total": 0, "results": []}

    assert service.list_tickets(TicketFilters(groups=["Mobile"], statuses=["closed-only-in-web"])) == []


def test_list_tickets_propagates_upstream_errors(service, mock_client):
    """Read paths do not swallow API failures."""
    mock_client.search_tickets.side_effect = HubSpotAPIError(400, "Invalid filter")

    with pytest.raises(HubSpotAPIError, match="Invalid filter"):
        service.list_tickets(TicketFilters(groups=["x"]))


# ==================== OWNER DIRECTORY ====================


def test_list_owners_builds_full_names(service, mock_client, owner_payload):
    """Owner names are derived and missing fields default to empty strings."""
    mock_client.get_owners_page.return_value = owner_payload

    owners = service.list_owners()

    assert [o.full_name for o in owners] == ["Ryan Jones", "Sam Lee", "Bryant Smith", "Alice", ""]
    assert owners[4] == Owner(id="105", email="", first_name="", last_name="", full_name="")
    mock_client.get_owners_page.assert_called_once_with(limit=PAGE_SIZE)


def test_list_owners_cache_is_never_refreshed(service, mock_client, owner_payload):
    """After a successful load the directory is not queried again."""
    mock_client.get_owners_page.return_value = owner_payload

    first = service.list_owners()
    mock_client.get_owners_page.return_value = {"results": [{"id": "999", "email": "new@x.com"}]}
    second = service.list_owners()
    third = service.list_owners()

    assert second == first
    assert third == first
    mock_client.get_owners_page.assert_called_once()


def test_list_owners_callers_cannot_change_cache(service, mock_client, owner_payload):
    """Mutating a returned list leaves the cached directory intact."""
    mock_client.get_owners_page.return_value = owner_payload

    first = service.list_owners()
    first.sort(key=lambda o: o.full_name)
    first.append(Owner(id="999"))

    assert [o.id for o in service.list_owners()] == ["101", "102", "103", "104", "105"]
    mock_client.get_owners_page.assert_called_once()


def test_list_owners_failure_is_not_cached(service, mock_client, owner_payload):
    """A failed load returns [] and the next call retries."""
    mock_client.get_owners_page.side_effect = [requests.exceptions.ConnectionError("down"), owner_payload]

    assert service.list_owners() == []
    assert len(service.list_owners()) == 5
    assert mock_client.get_owners_page.call_count == 2


def test_find_owners_by_name_substring_semantics(service, mock_client, owner_payload):
    """Matching is a case-insensitive substring OR across name parts and email."""
    mock_client.get_owners_page.return_value = owner_payload

    matches = service.find_owners_by_name("ryan")

    # Ryan Jones by name, Sam Lee by email, Bryant Smith because "bryant" contains "ryan"
    assert [m.id for m in matches] == ["101", "102", "103"]
    assert matches[0].full_name == "Ryan Jones"
    assert matches[0].email == "ryan@x.com"


@pytest.mark.parametrize(
    ("term", "expected_ids"),
    [
        ("RYAN J", ["101"]),
        ("smith", ["103"]),
        ("@x.com", ["101", "103", "104"]),
        ("alice", ["104"]),
        ("nobody", []),
    ],
)
def test_find_owners_by_name_terms(service, mock_client, owner_payload, term, expected_ids):
    """Full-name, last-name and email fragments all match."""
    mock_client.get_owners_page.return_value = owner_payload

    assert [m.id for m in service.find_owners_by_name(term)] == expected_ids


def test_find_owners_by_name_when_directory_unavailable(service, mock_client):
    """Lookup degrades to no matches when owners cannot be loaded."""
    mock_client.get_owners_page.side_effect = HubSpotAPIError(403, "Missing scopes")

    assert service.find_owners_by_name("ryan") == []


# ==================== TICKET DETAILS ====================


def test_get_ticket_details(service, mock_client, ticket_factory):
    """Details include the category and contact/company associations."""
    payload = ticket_factory("55", hs_ticket_category="PRODUCT_ISSUE")
    payload["associations"] = {
        "contacts": {"results": [{"id": "c1", "type": "ticket_to_contact"}]},
        "companies": {"results": [{"id": 42, "type": "ticket_to_company"}]},
    }
    mock_client.get_ticket.return_value = payload

    ticket = service.get_ticket_details("55")

    mock_client.get_ticket.assert_called_once_with(
        "55", properties=TICKET_DETAIL_PROPERTIES, associations=["contacts", "companies"]
    )
    assert ticket.properties["hs_ticket_category"] == "PRODUCT_ISSUE"
    assert ticket.association_ids("contacts") == ["c1"]
    assert ticket.association_ids("companies") == ["42"]


def test_get_ticket_details_not_found(service, mock_client):
    """A 404 becomes the domain not-found error."""
    mock_client.get_ticket.side_effect = HubSpotNotFoundError(404, "Object not found")

    with pytest.raises(TicketNotFoundError) as exc_info:
        service.get_ticket_details("404")

    assert exc_info.value.ticket_id == "404"
    assert "hubspot_list_tickets" in str(exc_info.value)


def test_get_ticket_details_other_errors_propagate(service, mock_client):
    """Non-404 failures are not converted."""
    mock_client.get_ticket.side_effect = HubSpotAPIError(401, "Authentication credentials not found")

    with pytest.raises(HubSpotAPIError):
        service.get_ticket_details("1")


# ==================== CONVERSATION ASSEMBLY ====================


def _ticket_with_emails(*email_ids):
    return {
        "id": "1001",
        "properties": {"subject": "Help"},
        "associations": {"emails": {"results": [{"id": e, "type": "ticket_to_email"} for e in email_ids]}},
    }


def test_get_ticket_emails_without_associations(service, mock_client):
    """No linked emails: empty result and no email fetches."""
    mock_client.get_ticket.return_value = {"id": "1001", "properties": {"subject": "Help"}}

    assert service.get_ticket_emails("1001") == []

    mock_client.get_ticket.assert_called_once_with("1001", properties=["subject"], associations=["emails"])
    mock_client.get_email.assert_not_called()


def test_get_ticket_emails_sorted_oldest_first(service, mock_client, email_factory):
    """Emails come back in timestamp order regardless of association order."""
    mock_client.get_ticket.return_value = _ticket_with_emails("e3", "e1", "e2")
    emails = {
        "e1": email_factory("e1", hs_email_date="1704067200000", hs_email_text="first"),
        "e2": email_factory("e2", hs_timestamp="1704153600000", hs_email_text="second"),
        "e3": email_factory("e3", hs_createdate="2024-01-03T00:00:00Z", hs_email_text="third"),
    }
    mock_client.get_email.side_effect = lambda email_id, properties: emails[email_id]

    result = service.get_ticket_emails("1001")

    assert [e.id for e in result] == ["e1", "e2", "e3"]
    assert [e.text for e in result] == ["first", "second", "third"]
    assert mock_client.get_email.call_args_list == [
        call("e3", properties=EMAIL_PROPERTIES),
        call("e1", properties=EMAIL_PROPERTIES),
        call("e2", properties=EMAIL_PROPERTIES),
    ]


def test_get_ticket_emails_drops_failed_message(service, mock_client, email_factory):
    """A message that fails to load is dropped and the rest are returned sorted."""
    mock_client.get_ticket.return_value = _ticket_with_emails("e1", "e2", "e3")
    mock_client.get_email.side_effect = [
        email_factory("e1", hs_email_date="1704153600000", hs_email_text="later"),
        HubSpotAPIError(500, "Internal error"),
        email_factory("e3", hs_email_date="1704067200000", hs_email_text="earlier"),
    ]

    result = service.get_ticket_emails("1001")

    assert [e.id for e in result] == ["e3", "e1"]
    assert mock_client.get_email.call_count == 3


def test_get_ticket_emails_keeps_deeply_nested_html(service, mock_client, email_factory):
    """Heavily nested markup is still part of the thread."""
    mock_client.get_ticket.return_value = _ticket_with_emails("e1")
    mock_client.get_email.return_value = email_factory(
        "e1", hs_email_html="<div>" * 1000 + "deep reply" + "</div>" * 1000, hs_email_date="1704067200000"
    )

    result = service.get_ticket_emails("1")

    assert [e.text for e in result] == ["deep reply"]


def test_get_ticket_emails_drops_malformed_record(service, mock_client, email_factory):
    """A record that fails validation is treated like a failed fetch."""
    mock_client.get_ticket.return_value = _ticket_with_emails("e1", "e2")
    mock_client.get_email.side_effect = [
        {"properties": {"hs_email_text": "no id"}},
        email_factory("e2", hs_email_text="ok", hs_email_date="1704067200000"),
    ]

    result = service.get_ticket_emails("1001")

    assert [e.id for e in result] == ["e2"]


def test_get_ticket_emails_not_found(service, mock_client):
    """A missing ticket raises the domain error instead of returning []."""
    mock_client.get_ticket.side_effect = HubSpotNotFoundError(404, "Object not found")

    with pytest.raises(TicketNotFoundError):
        service.get_ticket_emails("123")


def test_get_email_content_normalizes_fields(service, mock_client, email_factory):
    """HTML wins over text, empty headers become None."""
    mock_client.get_email.return_value = email_factory(
        "e1",
        hs_email_html='<p>Hello <a href="https://example.com/track">team</a></p><img src="x.png">',
        hs_email_text="Hello team (text part)",
        hs_email_subject="Re: Sync",
        hs_email_from="customer@example.com",
        hs_email_to="",
        hs_email_date="1704067200000",
    )

    email = service.get_email_content("e1")

    assert email is not None
    assert email.text == "Hello team"
    assert email.subject == "Re: Sync"
    assert email.from_ == "customer@example.com"
    assert email.to is None
    assert email.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert email.timestamp_estimated is False


def test_get_email_content_uses_record_created_at(service, mock_client, email_factory):
    """Record-level creation time is used when no property timestamp exists."""
    mock_client.get_email.return_value = email_factory("e1", created_at="2024-02-01T10:00:00.000Z", hs_email_text="x")

    email = service.get_email_content("e1")

    assert email.created_at == datetime(2024, 2, 1, 10, 0, tzinfo=timezone.utc)
    assert email.timestamp_estimated is False


def test_get_email_content_falls_back_to_now(service, mock_client, email_factory):
    """No timestamp at all still yields a timestamp, flagged as estimated."""
    mock_client.get_email.return_value = email_factory("e1", hs_email_text="x")
    before = datetime.now(timezone.utc)

    email = service.get_email_content("e1")

    assert email.timestamp_estimated is True
    assert email.created_at >= before
    assert email.model_dump(mode="json")["created_at"].startswith(str(before.year))


def test_get_email_content_returns_none_on_error(service, mock_client):
    """Fetch errors are swallowed for single messages."""
    mock_client.get_email.side_effect = requests.exceptions.Timeout("slow")

    assert service.get_email_content("e1") is None


# ==================== NOTES ====================


def test_add_note_to_ticket(service, mock_client):
    """A note is created with body, timestamp and the ticket association."""
    mock_client.create_note.return_value = {"id": "n1"}

    assert service.add_note_to_ticket("1001", "<p>Investigated</p>") is True

    kwargs = mock_client.create_note.call_args.kwargs
    assert kwargs["properties"]["hs_note_body"] == "<p>Investigated</p>"
    assert kwargs["properties"]["hs_timestamp"].isdigit()
    assert kwargs["associations"] == [
        {
            "to": {"id": "1001"},
            "types": [
                {"associationCategory": "HUBSPOT_DEFINED", "associationTypeId": NOTE_TO_TICKET_ASSOCIATION_TYPE_ID}
            ],
        }
    ]
    assert NOTE_TO_TICKET_ASSOCIATION_TYPE_ID == 16


@pytest.mark.parametrize(
    "error",
    [
        HubSpotAPIError(403, "This app hasn't been granted all required scopes"),
        HubSpotAPIError(400, "Property values were not valid"),
        requests.exceptions.ConnectionError("reset by peer"),
    ],
)
def test_add_note_to_ticket_failure_returns_false(service, mock_client, error):
    """Create failures never escape as exceptions."""
    mock_client.create_note.side_effect = error

    assert service.add_note_to_ticket("1001", "note") is False


# ==================== CONNECTION ====================


def test_test_connection_success(service, mock_client):
    """A readable ticket page means the connection works."""
    mock_client.get_tickets_page.return_value = {"results": []}

    assert service.test_connection() is True
    mock_client.get_tickets_page.assert_called_once_with(limit=1, properties=["subject"])


def test_test_connection_failure(mock_client):
    """Any failure reports False."""
    mock_client.get_tickets_page.side_effect = HubSpotAPIError(401, "Unauthorized")

    assert HubSpotService(mock_client).test_connection() is False


def test_service_does_not_share_owner_cache():
    """Each service owns its cache slot."""
    first = HubSpotService(Mock())
    second = HubSpotService(Mock())
    first.client.get_owners_page.return_value = {"results": [{"id": "1"}]}
    second.client.get_owners_page.return_value = {"results": []}

    assert len(first.list_owners()) == 1
    assert second.list_owners() == []
