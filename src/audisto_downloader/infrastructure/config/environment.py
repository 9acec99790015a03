"""Environment variable loading from .env files with precedence support."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Credentials may be supplied here instead of on the command line
CREDENTIAL_KEYS = {
    "AUDISTO_USERNAME": "Audisto API username",
    "AUDISTO_PASSWORD": "Audisto API password",
}

OPTIONAL_KEYS = {
    "AUDISTO_CONFIG": "Custom configuration file path (defaults to audisto.toml)",
    "AUDISTO_API_URL": "API base URL override (defaults to https://api.audisto.com)",
}


def load_environment_variables(dotenv_path: Path | str | None = None) -> None:
    """
    Load environment variables from .env file with automatic detection.

    Environment variables from the system environment take precedence over
    .env file values (load_dotenv is called with override=False).

    Args:
        dotenv_path: Optional path to .env file. If None, searches for .env file in:
                     - Current working directory
                     - Parent directories (up to 3 levels)
    """
    if dotenv_path is None:
        current = Path.cwd()
        search_paths = [
            current / ".env",
            current.parent / ".env",
            current.parent.parent / ".env",
            current.parent.parent.parent / ".env",
        ]

        for path in search_paths:
            if path.exists():
                dotenv_path = path
                logger.debug(f"Loading .env file from: {path}")
                break

        if dotenv_path is None:
            load_dotenv(override=False)
            return

    dotenv_path = Path(dotenv_path)
    if dotenv_path.exists():
        load_dotenv(dotenv_path, override=False)
        logger.debug(f"Loaded .env file from: {dotenv_path}")
    else:
        logger.debug(f".env file not found at: {dotenv_path}")


def get_env(key: str, default: str | None = None) -> str | None:
    """
    Get environment variable value.

    Args:
        key: Environment variable name
        default: Default value if not found

    Returns:
        Environment variable value or default
    """
    return os.getenv(key, default)


def resolve_credential(value: str | None, key: str) -> str:
    """
    Pick a credential from an explicit value or the environment.

    Explicit values win; surrounding whitespace is trimmed either way.

    Args:
        value: Value given on the command line (may be None or blank)
        key: Environment variable to fall back to

    Returns:
        Trimmed credential, or "" if neither source provides one
    """
    if value is not None and value.strip():
        return value.strip()
    env_value = get_env(key)
    if env_value:
        logger.debug(f"Using {key} from environment")
        return env_value.strip()
    return ""


def require_credential(value: str | None, key: str) -> str:
    """
    Like resolve_credential, but fail with guidance when nothing is set.

    Raises:
        ValueError: If the credential is missing from both sources
    """
    resolved = resolve_credential(value, key)
    if resolved:
        return resolved

    desc = CREDENTIAL_KEYS.get(key, "credential")
    flag = "--" + key.removeprefix("AUDISTO_").lower()
    raise ValueError(
        f"{desc} is missing.\n"
        f"  How to fix: pass {flag} or set {key} in your environment or a .env file.\n"
        f"  Example: {key}=your-value-here"
    )
