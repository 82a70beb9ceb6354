"""Configuration module for devshop-server using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DevShopSettings(BaseSettings):
    """Main configuration settings for devshop-server.

    All settings can be overridden via environment variables with the DEVSHOP_ prefix.
    For example, DEVSHOP_MAX_EXCHANGES will override the max_exchanges setting.
    List values are read as JSON, e.g. DEVSHOP_MCP_SERVER_COMMAND='["node", "server.js"]'.
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Data directories (relative to data_dir)
    data_dir: str = "."
    state_dir: str = "state"
    audit_dir: str = "logs"

    # Tool server subprocess; an empty command disables the tool client
    mcp_server_command: list[str] = Field(default_factory=list)
    mcp_server_cwd: str | None = None
    client_name: str = "devshop-server"
    client_version: str = "0.1.0"
    protocol_version: str = "2024-11-05"

    # Request deadlines in seconds; LLM tools get the longer bound
    request_timeout: float = Field(default=30.0, gt=0)
    llm_request_timeout: float = Field(default=60.0, gt=0)
    llm_tool_prefix: str = "llm_"

    # Circuit breaker
    circuit_breaker_threshold: int = Field(default=3, ge=1)

    # Agent communication
    max_exchanges: int = Field(default=5, ge=1)
    exchange_warning_threshold: int = Field(default=3, ge=1)

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="DEVSHOP_")

    # --- Resolved paths (computed from data_dir + relative dirs) ---

    @property
    def resolved_state_dir(self) -> Path:
        """Get the full path to the state store directory."""
        return Path(self.data_dir) / self.state_dir

    @property
    def resolved_audit_dir(self) -> Path:
        """Get the full path to the audit log directory."""
        return Path(self.data_dir) / self.audit_dir
