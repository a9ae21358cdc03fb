"""
Credential resolution for the completion gateway.

Credentials are resolved once by the entry point and injected into the
gateway; nothing in toolchat.core reads secrets from disk.
"""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, SecretStr

from toolchat.config import Config
from toolchat.core.errors import ConfigurationError

DEFAULT_API_KEY_ENV = "TOOLCHAT_API_KEY"


class Credentials(BaseModel):
    """Already-resolved credentials plus where they came from"""

    model_config = ConfigDict(frozen=True)

    api_key: Optional[SecretStr] = None
    api_base: Optional[str] = None
    source: str = "explicit"


def read_secret_file(path: str | Path) -> str:
    """Read a secret from a text file, stripping surrounding whitespace"""
    try:
        secret = Path(path).read_text().strip()
    except OSError as e:
        raise ConfigurationError(f"Failed to read secret file {path}: {e}") from e

    if not secret:
        raise ConfigurationError(f"Secret file {path} is empty")
    return secret


def resolve_credentials(
    config: Config, env_var: str = DEFAULT_API_KEY_ENV
) -> Credentials:
    """
    Resolve the API key for the gateway.

    The file named by ``config.credentials_path`` wins over the environment.
    When neither is set the returned credentials carry no key and LiteLLM
    falls back to its provider-specific environment variables.
    """
    if config.credentials_path:
        return Credentials(
            api_key=SecretStr(read_secret_file(config.credentials_path)),
            api_base=config.api_base,
            source=f"file:{config.credentials_path}",
        )

    api_key = os.environ.get(env_var)
    if api_key:
        return Credentials(
            api_key=SecretStr(api_key.strip()),
            api_base=config.api_base,
            source=f"env:{env_var}",
        )

    return Credentials(api_base=config.api_base, source="provider-default")
