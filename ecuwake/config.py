"""Configuration helpers for ecuwake."""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from .settings import CONFIG_FILE, DEFAULT_PORT, DEFAULT_TOOL_PATH

logger = logging.getLogger(__name__)

KLINE_BAUDRATE = 10400
PARITIES = ("N", "E", "O", "M", "S")
STOPBITS = (1, 1.5, 2)
HANDSHAKES = ("none", "rtscts", "xonxoff")


def _ensure_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        # Directory creation failures will surface during write; keep silent here.
        pass


def _coerce_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _coerce_positive_int(value: Any, default: int) -> int:
    parsed = _coerce_int(value, default)
    return parsed if parsed > 0 else default


@dataclass(frozen=True)
class PortConfiguration:
    """Immutable serial parameters for one K-line session."""

    port: str
    baudrate: int = KLINE_BAUDRATE
    bytesize: int = 8
    parity: str = "N"
    stopbits: float = 1
    handshake: str = "none"
    read_timeout_ms: int = 1000
    write_timeout_ms: int = 1000

    @property
    def read_timeout(self) -> float:
        return self.read_timeout_ms / 1000.0

    @property
    def write_timeout(self) -> float:
        return self.write_timeout_ms / 1000.0

    def validate(self) -> None:
        """Raise ``ValueError`` when a parameter cannot be applied to a port."""

        if not self.port:
            raise ValueError("Port identifier is empty")
        if self.baudrate <= 0:
            raise ValueError(f"Invalid baud rate: {self.baudrate}")
        if self.bytesize not in (5, 6, 7, 8):
            raise ValueError(f"Invalid data bits: {self.bytesize}")
        if self.parity not in PARITIES:
            raise ValueError(f"Invalid parity: {self.parity!r}")
        if self.stopbits not in STOPBITS:
            raise ValueError(f"Invalid stop bits: {self.stopbits}")
        if self.handshake not in HANDSHAKES:
            raise ValueError(f"Invalid handshake mode: {self.handshake!r}")
        if self.read_timeout_ms <= 0 or self.write_timeout_ms <= 0:
            raise ValueError("Timeouts must be greater than zero")


@dataclass
class AppConfig:
    port: str = DEFAULT_PORT
    baudrate: int = KLINE_BAUDRATE
    read_timeout_ms: int = 1000
    write_timeout_ms: int = 1000
    grace_period_ms: int = 500
    tool_path: str = DEFAULT_TOOL_PATH
    connect_on_start: bool = True
    always_on_top: bool = False
    bot_token: str = ""
    chat_id: str = ""

    def port_configuration(self) -> PortConfiguration:
        """Build the immutable serial parameters for the configured port."""

        return PortConfiguration(
            port=self.port,
            baudrate=self.baudrate,
            read_timeout_ms=self.read_timeout_ms,
            write_timeout_ms=self.write_timeout_ms,
        )

    @property
    def grace_period(self) -> float:
        return self.grace_period_ms / 1000.0


def load_config(path: str | Path = CONFIG_FILE) -> AppConfig:
    """Load configuration data from *path* or return defaults on failure."""

    defaults = AppConfig()
    cfg_path = Path(path)
    if not cfg_path.exists():
        return defaults

    try:
        raw = json.loads(cfg_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        logger.error("Config file %s contains invalid JSON: %s", cfg_path, exc)
        return defaults
    except OSError as exc:
        logger.error("Could not read config file %s: %s", cfg_path, exc)
        return defaults

    if not isinstance(raw, dict):
        logger.error("Config file %s did not contain an object", cfg_path)
        return defaults

    data = asdict(defaults)
    data["port"] = str(raw.get("port", data["port"])).strip() or defaults.port
    data["baudrate"] = _coerce_positive_int(raw.get("baudrate"), defaults.baudrate)
    data["read_timeout_ms"] = _coerce_positive_int(
        raw.get("read_timeout_ms"), defaults.read_timeout_ms
    )
    data["write_timeout_ms"] = _coerce_positive_int(
        raw.get("write_timeout_ms"), defaults.write_timeout_ms
    )
    data["grace_period_ms"] = max(
        0, _coerce_int(raw.get("grace_period_ms"), defaults.grace_period_ms)
    )
    data["tool_path"] = str(raw.get("tool_path", data["tool_path"]))
    data["connect_on_start"] = bool(
        raw.get("connect_on_start", data["connect_on_start"])
    )
    data["always_on_top"] = bool(raw.get("always_on_top", data["always_on_top"]))
    data["bot_token"] = str(raw.get("bot_token", data["bot_token"]))
    data["chat_id"] = str(raw.get("chat_id", data["chat_id"]))

    return AppConfig(**data)


def save_config(config: AppConfig, path: str | Path = CONFIG_FILE) -> None:
    """Persist *config* to *path*, logging errors without raising."""

    cfg_path = Path(path)
    _ensure_parent(cfg_path)
    try:
        cfg_path.write_text(json.dumps(asdict(config), indent=4), encoding="utf-8")
    except OSError as exc:
        logger.error("Could not write config file %s: %s", cfg_path, exc)
