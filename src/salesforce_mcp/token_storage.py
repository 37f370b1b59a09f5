"""OAuth token persistence in the operating system keyring."""
import json
import logging
from typing import Any, Dict, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

logger = logging.getLogger(__name__)

TOKEN_SERVICE_NAME = "salesforce_mcp"
TOKEN_KEY_NAME = "oauth_tokens"


class TokenStorage:
    """Stores ``{access_token, refresh_token, instance_url}`` as one keyring entry."""

    def __init__(self, service_name: str = TOKEN_SERVICE_NAME, key_name: str = TOKEN_KEY_NAME):
        self.service_name = service_name
        self.key_name = key_name

    def get_tokens(self) -> Optional[Dict[str, Any]]:
        """Load tokens, returning None when absent or unreadable."""
        try:
            logger.debug("Loading tokens from keyring")
            raw = keyring.get_password(self.service_name, self.key_name)
        except KeyringError as e:
            logger.error(f"Error loading tokens: {str(e)}")
            return None
        if not raw:
            return None
        try:
            tokens = json.loads(raw)
        except ValueError:
            logger.warning("Stored tokens are corrupted, ignoring them")
            return None
        if not isinstance(tokens, dict) or not tokens.get("access_token"):
            return None
        return tokens

    def save_tokens(self, tokens: Dict[str, Any]) -> bool:
        try:
            logger.debug("Saving tokens to keyring")
            keyring.set_password(self.service_name, self.key_name, json.dumps(tokens))
            return True
        except KeyringError as e:
            logger.error(f"Error saving tokens: {str(e)}")
            return False

    def clear_tokens(self) -> None:
        try:
            keyring.delete_password(self.service_name, self.key_name)
        except PasswordDeleteError:
            logger.debug("No stored tokens to clear")
        except KeyringError as e:
            logger.error(f"Error clearing tokens: {str(e)}")
