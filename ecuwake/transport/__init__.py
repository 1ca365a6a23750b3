"""Transport layer abstractions for ecuwake."""

from .link import LinkHandle, LinkState

__all__ = [
    "LinkHandle",
    "LinkState",
]
