"""Session management tools."""
import logging

from ..errors import ErrorCode, ToolError, error_message
from .base import Tool

logger = logging.getLogger(__name__)


class LogoutTool(Tool):
    name = "logout"
    description = "Log out of Salesforce and clear any stored OAuth tokens"
    annotations = {"readOnlyHint": False, "destructiveHint": False, "idempotentHint": True}

    def execute(self, params, client):
        logger.info("Logging out of Salesforce")
        try:
            client.logout()
        except Exception as e:
            logger.error(f"Logout failed: {str(e)}")
            raise ToolError(f"Failed to log out: {error_message(e)}", ErrorCode.INTERNAL_ERROR, self.name, cause=e)
        return "Successfully logged out of Salesforce."
