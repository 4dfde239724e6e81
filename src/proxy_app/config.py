"""Proxy settings, read from the environment and ``.env`` files."""

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from relay_library.backend_client import DEFAULT_BACKEND_URL, DEFAULT_TIMEOUT


class ProxySettings(BaseModel):
    backend_api_key: Optional[str] = None
    backend_url: str = DEFAULT_BACKEND_URL
    backend_timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str]) -> "ProxySettings":
        return cls(
            backend_api_key=environ.get("BACKEND_API_KEY") or None,
            backend_url=environ.get("BACKEND_URL") or DEFAULT_BACKEND_URL,
            backend_timeout=environ.get("BACKEND_TIMEOUT") or DEFAULT_TIMEOUT,
            log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        )


def load_env_files(root_dir: Path) -> None:
    """Load ``.env`` first, then any other ``*.env`` file without overriding."""
    load_dotenv(root_dir / ".env")
    for env_file in sorted(root_dir.glob("*.env")):
        if env_file.name != ".env":
            load_dotenv(env_file, override=False)


def load_settings(root_dir: Optional[Path] = None) -> ProxySettings:
    load_env_files(root_dir or Path.cwd())
    return ProxySettings.from_env(os.environ)
