"""Application context container for shared services."""
from __future__ import annotations

from dataclasses import dataclass

from .messaging import TelegramNotifier
from .runner import LoopRunner
from .services.system import PortService, ToolLauncher


@dataclass
class AppContext:
    notifier: TelegramNotifier
    port_service: PortService
    launcher: ToolLauncher
    runner: LoopRunner
