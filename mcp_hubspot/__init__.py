"""HubSpot MCP Server - ticket, conversation and owner tools for HubSpot Service Hub."""

__version__ = "0.1.0"
