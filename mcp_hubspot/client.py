"""HubSpot CRM API client wrapper for the MCP server."""

import logging
import os
from typing import Any
from urllib.parse import quote

import requests  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.hubapi.com"
DEFAULT_TIMEOUT = 30.0


class HubSpotAPIError(Exception):
    """Raised when the HubSpot API answers with a non-success status."""

    def __init__(self, status_code: int, message: str, category: str | None = None) -> None:
        """Initialize API error.

        Args:
            status_code: HTTP status code returned by HubSpot
            message: Error message from the response body
            category: HubSpot error category (e.g. OBJECT_NOT_FOUND), if any
        """
        self.status_code = status_code
        self.message = message
        self.category = category
        super().__init__(f"HubSpot API error {status_code}: {message}")


class HubSpotNotFoundError(HubSpotAPIError):
    """Raised when the requested object does not exist (HTTP 404)."""


class HubSpotClient:
    """Thin wrapper around the HubSpot CRM v3 REST API.

    Each method performs exactly one HTTP request and returns the decoded JSON
    payload. Validation of the payload is left to the caller.
    """

    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the client from arguments or environment variables.

        Args:
            access_token: Private app access token (default: HUBSPOT_API_KEY)
            base_url: API root (default: HUBSPOT_BASE_URL or https://api.hubapi.com)
            timeout: Request timeout in seconds (default: HUBSPOT_TIMEOUT or 30)

        Raises:
            ValueError: If no access token is configured
        """
        token = access_token or os.getenv("HUBSPOT_API_KEY") or os.getenv("HUBSPOT_ACCESS_TOKEN")
        if not token:
            raise ValueError("HUBSPOT_API_KEY environment variable is required")

        self.base_url = (base_url or os.getenv("HUBSPOT_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else float(os.getenv("HUBSPOT_TIMEOUT", str(DEFAULT_TIMEOUT)))

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and decode the JSON body.

        Raises:
            HubSpotNotFoundError: On HTTP 404
            HubSpotAPIError: On any other non-2xx status
            requests.exceptions.RequestException: On transport failures
        """
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)

        if not response.ok:
            message, category = _error_details(response)
            if response.status_code == 404:
                raise HubSpotNotFoundError(response.status_code, message, category)
            raise HubSpotAPIError(response.status_code, message, category)

        if not response.content:
            return {}
        return response.json()

    def get_tickets_page(self, limit: int, properties: list[str]) -> dict[str, Any]:
        """List tickets without filters (single page)."""
        params = {"limit": limit, "properties": ",".join(properties), "archived": "false"}
        return self._request("GET", "/crm/v3/objects/tickets", params=params)

    def search_tickets(self, filter_groups: list[dict[str, Any]], properties: list[str], limit: int) -> dict[str, Any]:
        """Run a ticket search (single page, no sorting)."""
        body = {
            "filterGroups": filter_groups,
            "properties": properties,
            "limit": limit,
            "sorts": [],
            "after": "0",
        }
        return self._request("POST", "/crm/v3/objects/tickets/search", json=body)

    def get_ticket(self, ticket_id: str, properties: list[str], associations: list[str] | None = None) -> dict[str, Any]:
        """Fetch one ticket, optionally expanding associations."""
        params: dict[str, Any] = {"properties": ",".join(properties), "archived": "false"}
        if associations:
            params["associations"] = ",".join(associations)
        return self._request("GET", f"/crm/v3/objects/tickets/{quote(ticket_id, safe='')}", params=params)

    def get_email(self, email_id: str, properties: list[str]) -> dict[str, Any]:
        """Fetch one email engagement record."""
        params = {"properties": ",".join(properties), "archived": "false"}
        return self._request("GET", f"/crm/v3/objects/emails/{quote(email_id, safe='')}", params=params)

    def get_owners_page(self, limit: int = 100) -> dict[str, Any]:
        """List directory owners (single page)."""
        return self._request("GET", "/crm/v3/owners", params={"limit": limit, "archived": "false"})

    def create_note(self, properties: dict[str, str], associations: list[dict[str, Any]]) -> dict[str, Any]:
        """Create a note engagement with associations."""
        body = {"properties": properties, "associations": associations}
        return self._request("POST", "/crm/v3/objects/notes", json=body)


def _error_details(response: requests.Response) -> tuple[str, str | None]:
    """Extract message and category from a HubSpot error body."""
    try:
        payload = response.json()
    except ValueError:
        return (response.text or response.reason or "Unknown error"), None
    if not isinstance(payload, dict):
        return str(payload), None
    return payload.get("message") or response.reason or "Unknown error", payload.get("category")
