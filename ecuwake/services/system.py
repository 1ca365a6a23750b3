"""Service utilities for serial port discovery and external tool launch."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Optional

import serial.tools.list_ports

logger = logging.getLogger(__name__)


@dataclass
class PortSelection:
    """Snapshot of available ports and the recommended selection."""

    ports: List[str]
    selected: Optional[str]


class PortService:
    """Provide serial port discovery helpers decoupled from the GUI."""

    def list_ports(self) -> List[str]:
        try:
            return sorted(port.device for port in serial.tools.list_ports.comports())
        except Exception as exc:
            logger.error("Could not enumerate serial ports: %s", exc)
            return []

    def build_selection(self, current: Optional[str]) -> PortSelection:
        """Return the list of ports and a suggested selection.

        Args:
            current: Port configured or chosen by the caller. It is kept even
                when not enumerated, since USB adapters can be plugged in
                after the list was taken.
        """

        ports = self.list_ports()
        normalized = (current or "").strip()
        if normalized:
            selected: Optional[str] = normalized
        else:
            selected = ports[0] if ports else None
        return PortSelection(ports=ports, selected=selected)


class ToolLauncher:
    """Start the external diagnostic application that takes over the port."""

    def launch(self, path: str) -> subprocess.Popen:
        if not path or not os.path.isfile(path):
            raise FileNotFoundError(f"File not found: {path}")
        kwargs = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = subprocess.DETACHED_PROCESS
        else:
            kwargs["start_new_session"] = True
        logger.info("Launching external tool %s", path)
        return subprocess.Popen([path], cwd=os.path.dirname(path) or None, **kwargs)
