"""Host services used by the desktop shell."""

from .system import PortSelection, PortService, ToolLauncher

__all__ = ["PortSelection", "PortService", "ToolLauncher"]
