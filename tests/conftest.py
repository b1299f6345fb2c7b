"""Shared fixtures for HubSpot MCP tests."""

from collections.abc import Callable
from typing import Any
from unittest.mock import Mock

import pytest

from mcp_hubspot.service import HubSpotService


@pytest.fixture
def decorator_capturer():
    """Capture functions registered through a FastMCP decorator (tool, prompt, resource).

    Usage:
        test_tools, capture_tool = decorator_capturer(server.mcp.tool)
        server.mcp.tool = capture_tool
        server._setup_tools()
        test_tools["hubspot_list_tickets"](params)
    """

    def _make(original: Callable[..., Any]) -> tuple[dict[str, Callable[..., Any]], Callable[..., Any]]:
        captured: dict[str, Callable[..., Any]] = {}

        def capture(*args: Any, **kwargs: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
            original(*args, **kwargs)  # keep argument validation of the real decorator factory

            def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
                captured[func.__name__] = func
                return func

            return decorator

        return captured, capture

    return _make


@pytest.fixture
def mock_client():
    """A HubSpotClient stand-in with no responses configured."""
    client = Mock()
    client.base_url = "https://api.hubapi.com"
    return client


@pytest.fixture
def service(mock_client):
    """HubSpotService wired to the mock client."""
    return HubSpotService(mock_client)


@pytest.fixture
def owner_payload():
    """Owners API page with a mix of complete and partial users."""
    return {
        "results": [
            {"id": "101", "email": "ryan@x.com", "firstName": "Ryan", "lastName": "Jones"},
            {"id": "102", "email": "ryan@y.com", "firstName": "Sam", "lastName": "Lee"},
            {"id": "103", "email": "b.smith@x.com", "firstName": "Bryant", "lastName": "Smith"},
            {"id": "104", "email": "alice@x.com", "firstName": "Alice", "lastName": None},
            {"id": 105},
        ]
    }


@pytest.fixture
def ticket_factory():
    """Factory fixture to create ticket payloads with custom properties."""

    def _make_ticket(ticket_id: str = "1001", **properties: Any) -> dict[str, Any]:
        base_properties = {
            "subject": "Vehicles not syncing",
            "content": "The fleet page shows stale data.",
            "group": "Mobile",
            "hs_ticket_priority": "HIGH",
            "hs_pipeline_stage": "1",
            "createdate": "2024-01-01T00:00:00Z",
            "hubspot_owner_id": "101",
        }
        base_properties.update(properties)
        return {"id": ticket_id, "properties": base_properties}

    return _make_ticket


@pytest.fixture
def email_factory():
    """Factory fixture to create email engagement payloads."""

    def _make_email(email_id: str, created_at: str | None = None, **properties: str | None) -> dict[str, Any]:
        payload: dict[str, Any] = {"id": email_id, "properties": dict(properties)}
        if created_at is not None:
            payload["createdAt"] = created_at
        return payload

    return _make_email
