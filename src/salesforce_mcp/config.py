"""Server configuration loaded from environment variables."""
import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import ConfigError

LOG_LEVELS = ("debug", "info", "warning", "error")
TRANSPORTS = ("stdio", "http")


@dataclass(frozen=True)
class SalesforceConfig:
    """Connection settings for the Salesforce org."""
    instance_url: Optional[str] = None
    api_version: str = "v59.0"
    client_id: Optional[str] = None
    access_token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    security_token: Optional[str] = None
    domain: str = "login"
    timeout_ms: int = 30000
    max_retries: int = 3

    @property
    def version_number(self) -> str:
        """API version without the leading ``v`` as simple-salesforce expects it."""
        return self.api_version.lstrip("v")

    @property
    def timeout_seconds(self) -> Optional[float]:
        return self.timeout_ms / 1000 if self.timeout_ms else None


@dataclass(frozen=True)
class ServerConfig:
    name: str = "salesforce-mcp"
    transport: str = "stdio"
    http_host: str = "127.0.0.1"
    http_port: int = 8000
    log_level: str = "info"
    log_file: Optional[str] = None
    salesforce: SalesforceConfig = field(default_factory=SalesforceConfig)


def _get(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _get_int(env: Mapping[str, str], key: str, default: int, minimum: int = 0,
             maximum: Optional[int] = None) -> int:
    raw = _get(env, key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigError(f"{key} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ConfigError(f"{key} must be <= {maximum}")
    return value


def load_salesforce_config(env: Mapping[str, str]) -> SalesforceConfig:
    instance_url = _get(env, "SFDC_INSTANCE_URL")
    if instance_url and not re.match(r"^https?://\S+$", instance_url, re.IGNORECASE):
        raise ConfigError("SFDC_INSTANCE_URL must be a valid HTTP or HTTPS URL")

    api_version = _get(env, "SFDC_API_VERSION") or "v59.0"
    if not re.match(r"^v\d+\.\d+$", api_version):
        raise ConfigError("SFDC_API_VERSION must be in format vXX.0")

    domain = _get(env, "SFDC_DOMAIN") or "login"
    if domain not in ("login", "test"):
        raise ConfigError("SFDC_DOMAIN must be 'login' or 'test'")

    return SalesforceConfig(
        instance_url=instance_url.rstrip("/") if instance_url else None,
        api_version=api_version,
        client_id=_get(env, "SFDC_CLIENT_ID"),
        access_token=_get(env, "SFDC_ACCESS_TOKEN"),
        username=_get(env, "SFDC_USERNAME"),
        password=_get(env, "SFDC_PASSWORD"),
        security_token=_get(env, "SFDC_SECURITY_TOKEN"),
        domain=domain,
        timeout_ms=_get_int(env, "SFDC_TIMEOUT", 30000),
        max_retries=_get_int(env, "SFDC_MAX_RETRIES", 3),
    )


def load_config(env: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """Build the server configuration, raising ConfigError on invalid values."""
    if env is None:
        env = os.environ

    transport = (_get(env, "MCP_TRANSPORT") or "stdio").lower()
    if transport not in TRANSPORTS:
        raise ConfigError(f"MCP_TRANSPORT must be one of {', '.join(TRANSPORTS)}")

    log_level = (_get(env, "LOG_LEVEL") or "info").lower()
    if log_level == "warn":
        log_level = "warning"
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

    return ServerConfig(
        transport=transport,
        http_host=_get(env, "MCP_HTTP_HOST") or "127.0.0.1",
        http_port=_get_int(env, "MCP_HTTP_PORT", 8000, minimum=1024, maximum=65535),
        log_level=log_level,
        log_file=_get(env, "MCP_LOG_FILE"),
        salesforce=load_salesforce_config(env),
    )
