"""Tool base class and the registry that dispatches tool calls by name."""
import logging
from typing import Any, Dict, List, Optional

from ..errors import AuthenticationError, ErrorCode, ToolError, ValidationError
from ..salesforce import SalesforceClient

logger = logging.getLogger(__name__)

READ_ONLY = {"readOnlyHint": True, "idempotentHint": True}


class Tool:
    """A single MCP tool.

    Subclasses set ``name``, ``description`` and ``annotations`` and implement
    ``execute``, which returns the text content of the tool result.
    """

    name: str = ""
    description: str = ""
    annotations: Dict[str, Any] = READ_ONLY

    def execute(self, params: Dict[str, Any], client: SalesforceClient) -> str:
        raise NotImplementedError

    def _require_connection(self, client: SalesforceClient):
        """Return a live connection, connecting first when needed."""
        if not client.is_connected():
            try:
                client.connect()
            except AuthenticationError as e:
                raise ToolError(
                    f"Failed to connect to Salesforce: {e.message}",
                    ErrorCode.CONNECTION_FAILED,
                    self.name,
                    cause=e,
                )
        sf = client.get_connection()
        if sf is None:
            raise ToolError("No Salesforce connection available", ErrorCode.CONNECTION_FAILED, self.name)
        return sf

    def _connection_or_none(self, client: SalesforceClient):
        """Like ``_require_connection`` for tools that report failures as text."""
        try:
            return self._require_connection(client)
        except ToolError as e:
            logger.error(f"{self.name}: {e.message}")
            return None


class ToolRegistry:
    def __init__(self, tools: Optional[List[Tool]] = None):
        self._tools: Dict[str, Tool] = {}
        for tool in tools if tools is not None else default_tools():
            self.register(tool)

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool {tool.name}")

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def list_tools(self) -> List[Tool]:
        return list(self._tools.values())

    def execute(self, name: str, params: Dict[str, Any], client: SalesforceClient) -> str:
        tool = self.get(name)
        if tool is None:
            raise ToolError(f"Tool '{name}' not found", ErrorCode.METHOD_NOT_FOUND, name)
        if not isinstance(params, dict):
            raise ValidationError(f"Parameters for tool '{name}' must be an object")
        logger.info(f"Executing tool {name}")
        result = tool.execute(params, client)
        logger.debug(f"Tool {name} completed")
        return result


def default_tools() -> List[Tool]:
    from .admin import GetOrgLimitsTool, GetRecentItemsTool, GetUserInfoTool
    from .analysis import ExplainQueryPlanTool, GetPicklistValuesTool, ValidateSoqlTool
    from .layout import DescribeLayoutTool
    from .objects import DescribeObjectTool, ListObjectsTool, SoqlQueryTool
    from .search import GetRecordTool, SoslSearchTool
    from .session import LogoutTool

    return [
        DescribeObjectTool(),
        ListObjectsTool(),
        SoqlQueryTool(),
        GetRecordTool(),
        SoslSearchTool(),
        GetPicklistValuesTool(),
        ValidateSoqlTool(),
        ExplainQueryPlanTool(),
        GetOrgLimitsTool(),
        GetUserInfoTool(),
        GetRecentItemsTool(),
        DescribeLayoutTool(),
        LogoutTool(),
    ]
