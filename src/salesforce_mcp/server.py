"""MCP server exposing the Salesforce tools."""
import logging
import sys
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp.server import FastMCP
from mcp.types import ToolAnnotations

from .config import ServerConfig, load_config
from .errors import ConfigError, ErrorCode, SalesforceMCPError, is_retriable_error, to_mcp_error
from .salesforce import SalesforceClient
from .tools import ToolRegistry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

INSTRUCTIONS = """Salesforce integration - read-only data operations.

Use validate_soql and explain_query_plan to check a SOQL query before running
it with soql_query. Always select explicit fields and add a LIMIT clause.
logout drops the session and clears any stored tokens.
"""


class SalesforceMCPServer(FastMCP):
    """FastMCP server with one tool per registry entry."""

    def __init__(self, config: ServerConfig, client: Optional[SalesforceClient] = None,
                 registry: Optional[ToolRegistry] = None):
        super().__init__(
            name=config.name,
            instructions=INSTRUCTIONS,
            host=config.http_host,
            port=config.http_port,
        )
        self.config = config
        self.client = client or SalesforceClient(config.salesforce)
        self.registry = registry or ToolRegistry()
        self._setup_tools()

    def call_tool_sync(self, name: str, params: Dict[str, Any]):
        """Run a registry tool, turning failures into an error dict."""
        try:
            return self.registry.execute(name, params, self.client)
        except SalesforceMCPError as e:
            logger.error(f"Tool {name} failed: {e.message}")
            error = to_mcp_error(e)
            data = dict(error["data"], retriable=is_retriable_error(e))
            return {"success": False, "error": error["message"], "code": error["code"], "data": data}
        except Exception as e:
            logger.exception(f"Tool {name} failed unexpectedly: {str(e)}")
            return {
                "success": False,
                "error": str(e),
                "code": int(ErrorCode.INTERNAL_ERROR),
                "data": {"type": type(e).__name__, "retriable": False},
            }

    def _tool_options(self, name: str) -> Dict[str, Any]:
        tool = self.registry.get(name)
        return {
            "name": name,
            "description": tool.description,
            "annotations": ToolAnnotations(**tool.annotations),
        }

    def _setup_tools(self):
        """Set up the server's tools."""
        @self.tool(**self._tool_options("validate_soql"))
        async def validate_soql(query: str):
            return self.call_tool_sync("validate_soql", {"query": query})

        @self.tool(**self._tool_options("explain_query_plan"))
        async def explain_query_plan(query: str):
            return self.call_tool_sync("explain_query_plan", {"query": query})

        @self.tool(**self._tool_options("get_picklist_values"))
        async def get_picklist_values(objectName: str, fieldName: str, includeInactive: bool = False):
            return self.call_tool_sync("get_picklist_values", {
                "objectName": objectName,
                "fieldName": fieldName,
                "includeInactive": includeInactive,
            })

        @self.tool(**self._tool_options("sosl_search"))
        async def sosl_search(searchTerm: str, objects: Optional[List[str]] = None, limit: int = 20,
                              fields: Optional[List[str]] = None):
            return self.call_tool_sync("sosl_search", {
                "searchTerm": searchTerm,
                "objects": objects or [],
                "limit": limit,
                "fields": fields or [],
            })

        @self.tool(**self._tool_options("soql_query"))
        async def soql_query(query: str, limit: int = 200):
            return self.call_tool_sync("soql_query", {"query": query, "limit": limit})

        @self.tool(**self._tool_options("get_record"))
        async def get_record(objectName: str, recordId: str, fields: Optional[List[str]] = None):
            return self.call_tool_sync("get_record", {
                "objectName": objectName,
                "recordId": recordId,
                "fields": fields,
            })

        @self.tool(**self._tool_options("describe_object"))
        async def describe_object(objectName: str):
            return self.call_tool_sync("describe_object", {"objectName": objectName})

        @self.tool(**self._tool_options("list_objects"))
        async def list_objects(objectType: str = "all", limit: int = 100):
            return self.call_tool_sync("list_objects", {"objectType": objectType, "limit": limit})

        @self.tool(**self._tool_options("get_org_limits"))
        async def get_org_limits():
            return self.call_tool_sync("get_org_limits", {})

        @self.tool(**self._tool_options("get_user_info"))
        async def get_user_info():
            return self.call_tool_sync("get_user_info", {})

        @self.tool(**self._tool_options("get_recent_items"))
        async def get_recent_items():
            return self.call_tool_sync("get_recent_items", {})

        @self.tool(**self._tool_options("describe_layout"))
        async def describe_layout(objectName: str, recordTypeId: Optional[str] = None):
            return self.call_tool_sync("describe_layout", {
                "objectName": objectName,
                "recordTypeId": recordTypeId,
            })

        @self.tool(**self._tool_options("logout"))
        async def logout():
            return self.call_tool_sync("logout", {})


def setup_logging(config: ServerConfig):
    """Log to stderr, and to a file when one is configured."""
    # stdout carries the stdio transport
    handlers = [logging.StreamHandler(sys.stderr)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format=LOG_FORMAT,
        handlers=handlers,
    )


def run_mcp_server():
    """Run the MCP server."""
    try:
        config = load_config()
    except ConfigError as e:
        logging.basicConfig(format=LOG_FORMAT, handlers=[logging.StreamHandler(sys.stderr)])
        logger.error(f"Invalid configuration: {e.message}")
        raise SystemExit(1)

    setup_logging(config)
    transport = "streamable-http" if config.transport == "http" else "stdio"
    logger.info(f"Starting Salesforce MCP server ({transport} transport)")
    server = SalesforceMCPServer(config)
    server.run(transport=transport)


if __name__ == "__main__":
    run_mcp_server()
