"""ecuwake: K-line slow-init wake-up for automotive control units."""

from __future__ import annotations

__all__ = ["main"]


def main() -> None:
    """Launch the ecuwake GUI application."""

    from .app import main as _app_main

    _app_main()
