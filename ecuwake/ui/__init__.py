"""Tkinter views for the ecuwake desktop shell."""

from .views import ConnectionView, PortSelectorView

__all__ = ["ConnectionView", "PortSelectorView"]
