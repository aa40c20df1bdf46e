import os
from dataclasses import dataclass
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    rpc_url: str
    block: Optional[str] = None
    request_timeout: int = 10
    max_retries: int = 3
    backoff_seconds: float = 0.5
    log_level: str = "WARNING"


def load_config(rpc_url: Optional[str] = None) -> Config:
    """Load configuration from environment variables; ``rpc_url`` overrides RPC_URL."""
    url = (rpc_url or os.getenv("RPC_URL") or "").strip()
    if not url:
        raise ValueError("RPC_URL is required but not set.")

    block = os.getenv("BLOCK_TAG")
    timeout = int(os.getenv("REQUEST_TIMEOUT", "10"))
    max_retries = int(os.getenv("REQUEST_RETRIES", "3"))
    backoff = float(os.getenv("REQUEST_BACKOFF_SECONDS", "0.5"))
    log_level = os.getenv("LOG_LEVEL", "WARNING").strip().upper()

    return Config(
        rpc_url=url,
        block=block.strip() if block else None,
        request_timeout=timeout,
        max_retries=max_retries,
        backoff_seconds=backoff,
        log_level=log_level,
    )
