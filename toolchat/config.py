from typing import Optional

from pydantic import BaseModel, ValidationError

from toolchat.core.errors import ConfigurationError


class MCPServerConfig(BaseModel):
    """Configuration for an MCP server launched as a stdio subprocess"""

    command: str
    args: list[str] = []
    env: dict[str, str] | None = None


class Config(BaseModel):
    """Configuration manager"""

    model_name: str
    temperature: float = 0.0
    max_iterations: int = 10
    tool_timeout: Optional[float] = None
    completion_timeout: Optional[float] = None
    system_prompt_path: Optional[str] = None
    system_context: str = ""
    credentials_path: Optional[str] = None
    api_base: Optional[str] = None
    mcpServers: dict[str, MCPServerConfig] = {}


def load_config(config_path: str = "config.json") -> Config:
    """Load configuration from file"""
    try:
        with open(config_path, "r") as f:
            return Config.model_validate_json(f.read())
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {config_path}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e
