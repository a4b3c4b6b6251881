# Attendance board — configuration
# Override via board.yaml, environment variables, or CLI args.

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from .backend import HttpBackend, InMemoryBackend, SqliteBackend
from .notify import LoggingSink, Notifier, TelegramSink
from .schema import ConfigError, ReasonPolicy, Severity
from .store import AttendanceStore

CONFIG_PATH = Path(__file__).parent / "board.yaml"

BACKENDS = ("memory", "sqlite", "http")

# Environment variable → field
ENV_OVERRIDES = {
    "ATTENDANCE_BOARD_URL": "server_url",
    "ATTENDANCE_API_KEY": "api_key",
    "ATTENDANCE_DB": "db_path",
    "ATTENDANCE_LOG_LEVEL": "log_level",
    "TELEGRAM_BOT_TOKEN": "telegram_token",
    "TELEGRAM_CHAT_ID": "telegram_chat_id",
}


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


@dataclass
class BoardConfig:
    """Runtime configuration for the attendance board."""

    # Backend
    backend: str = "sqlite"                 # "memory" | "sqlite" | "http"
    server_url: str = "http://127.0.0.1:3000"
    api_key: str = ""
    db_path: str = "~/.local/share/attendance-kanban/attendance.db"
    request_timeout: float = 10.0

    # Gating: lanes that need a reason
    reason_required: List[str] = field(default_factory=lambda: ["Excused"])

    # Touch ghost indicator size (px)
    ghost_width: float = 200
    ghost_height: float = 100

    # Notifications
    telegram_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    telegram_errors_only: bool = False

    log_level: str = "INFO"

    def validate(self) -> None:
        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown backend '{self.backend}'. Available: {list(BACKENDS)}")
        if self.backend == "http" and not self.server_url:
            raise ConfigError("backend 'http' needs server_url")
        for attr in ("ghost_width", "ghost_height", "request_timeout"):
            try:
                setattr(self, attr, float(getattr(self, attr)))
            except (TypeError, ValueError) as e:
                raise ConfigError(f"{attr} must be a number, got {getattr(self, attr)!r}") from e
        if self.ghost_width <= 0 or self.ghost_height <= 0:
            raise ConfigError("ghost_width and ghost_height must be positive")
        try:
            self.reason_policy()
        except ValueError as e:
            raise ConfigError(f"reason_required: {e}") from e

    def reason_policy(self) -> ReasonPolicy:
        return ReasonPolicy.from_statuses(self.reason_required)

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML, then environment overrides, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        data = {}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
        elif path:
            raise ConfigError(f"Config file not found: {cfg_path}")

        cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        for env, attr in ENV_OVERRIDES.items():
            value = os.environ.get(env)
            if value:
                setattr(cfg, attr, value)
        cfg.db_path = str(Path(cfg.db_path).expanduser())
        cfg.validate()
        return cfg

    # ── Collaborators ────────────────────────────────────────────────────────

    def build_backend(self):
        if self.backend == "memory":
            return InMemoryBackend()
        if self.backend == "http":
            return HttpBackend(self.server_url, api_key=self.api_key, timeout=float(self.request_timeout))
        return SqliteBackend(AttendanceStore(self.db_path, policy=self.reason_policy()))

    def build_notifier(self):
        notifier = Notifier()
        notifier.subscribe(LoggingSink())
        if self.telegram_token and self.telegram_chat_id:
            notifier.subscribe(TelegramSink(
                self.telegram_token,
                str(self.telegram_chat_id),
                min_severity=Severity.ERROR if self.telegram_errors_only else Severity.INFO,
            ))
        return notifier
