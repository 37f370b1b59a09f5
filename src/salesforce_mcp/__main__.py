"""Main entry point for salesforce_mcp"""
from salesforce_mcp.server import run_mcp_server


def main():
    """Salesforce MCP server: read-only Salesforce tools over MCP."""
    run_mcp_server()


if __name__ == "__main__":
    main()
