from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _default_db_path() -> str:
    preferred_dir = "/data"
    try:
        if os.path.isdir(preferred_dir) and os.access(preferred_dir, os.W_OK):
            return os.path.join(preferred_dir, "room-gateway.db")
    except OSError:
        pass

    return os.path.join(os.getcwd(), ".data", "room-gateway.db")


@dataclass(frozen=True)
class AppConfig:
    port: int
    db_path: str
    bridge_host: Optional[str]
    application_key: Optional[str]
    nanoleaf_port: int
    operation_timeout_seconds: float
    retry_max_attempts: int
    retry_base_delay_ms: int

    @staticmethod
    def from_env() -> "AppConfig":
        return AppConfig(
            port=int(os.getenv("PORT", "8000")),
            db_path=os.getenv("DB_PATH") or _default_db_path(),
            bridge_host=os.getenv("HUE_BRIDGE_HOST"),
            application_key=os.getenv("HUE_APPLICATION_KEY"),
            nanoleaf_port=int(os.getenv("NANOLEAF_PORT", "16021")),
            operation_timeout_seconds=float(os.getenv("OPERATION_TIMEOUT_SECONDS", "15")),
            retry_max_attempts=int(os.getenv("RETRY_MAX_ATTEMPTS", "1")),
            retry_base_delay_ms=int(os.getenv("RETRY_BASE_DELAY_MS", "200")),
        )
