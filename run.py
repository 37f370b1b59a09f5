#!/usr/bin/env python3
"""Entry point for the Salesforce MCP server."""
from salesforce_mcp.server import run_mcp_server

if __name__ == "__main__":
    run_mcp_server()
