"""Runtime settings from the environment (and an optional .env file)."""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_PORT = 1234

_TRUE = {"1", "true", "yes", "on"}


class Config(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    use_ipv6: bool = False
    timeout: Optional[float] = Field(default=None, gt=0)
    keys_file: Optional[str] = None
    transcripts_dir: str = "transcripts"
    verbose: bool = False


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE


def load_env_config() -> Config:
    """
    Read SERVER_HOST, SERVER_PORT, USE_IPV6, SOCKET_TIMEOUT, KEYS_FILE,
    TRANSCRIPTS_DIR and VERBOSE. Variables already set in the process
    environment win over .env entries.
    """
    load_dotenv()

    use_ipv6 = _flag("USE_IPV6")
    timeout = os.getenv("SOCKET_TIMEOUT")

    return Config(
        host=os.getenv("SERVER_HOST", "::1" if use_ipv6 else "127.0.0.1"),
        port=int(os.getenv("SERVER_PORT", str(DEFAULT_PORT))),
        use_ipv6=use_ipv6,
        timeout=float(timeout) if timeout else None,
        keys_file=os.getenv("KEYS_FILE") or None,
        transcripts_dir=os.getenv("TRANSCRIPTS_DIR", "transcripts"),
        verbose=_flag("VERBOSE"),
    )
