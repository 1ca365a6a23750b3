"""Reusable Tkinter view components."""
from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Callable


class PortSelectorView:
    """Encapsulate the K-line adapter port selection widgets."""

    def __init__(
        self,
        master: tk.Misc,
        *,
        selected_port: tk.StringVar,
        on_refresh: Callable[[], None],
        on_select: Callable[[], None],
    ) -> None:
        self.frame = tk.LabelFrame(
            master, text="1. Select K-line COM Port", padx=10, pady=10
        )
        self.frame.pack(padx=10, pady=10, fill="x")

        self.combobox = ttk.Combobox(self.frame, textvariable=selected_port)
        self.combobox.pack(side=tk.LEFT, fill="x", expand=True)
        self.combobox.bind("<<ComboboxSelected>>", lambda _event: on_select())
        self.combobox.bind("<Return>", lambda _event: on_select())

        self.refresh_button = tk.Button(
            self.frame, text="Refresh", command=on_refresh
        )
        self.refresh_button.pack(side=tk.LEFT, padx=(10, 0))

    def set_ports(self, ports: list[str]) -> None:
        self.combobox["values"] = ports

    def set_enabled(self, enabled: bool) -> None:
        state = tk.NORMAL if enabled else tk.DISABLED
        self.combobox.config(state=state)
        self.refresh_button.config(state=state)


class ConnectionView:
    """Connect/disconnect/cancel controls for the ECU session."""

    def __init__(
        self,
        master: tk.Misc,
        *,
        on_connect: Callable[[], None],
        on_disconnect: Callable[[], None],
        on_cancel: Callable[[], None],
        on_launch: Callable[[], None],
    ) -> None:
        self.frame = tk.LabelFrame(master, text="2. ECU Connection", padx=10, pady=10)
        self.frame.pack(padx=10, pady=10, fill="x")

        self.connect_button = tk.Button(
            self.frame,
            text="Connect",
            command=on_connect,
            font=("Helvetica", 11, "bold"),
            bg="#4CAF50",
            fg="white",
        )
        self.connect_button.grid(row=0, column=0, sticky="ew")

        self.disconnect_button = tk.Button(
            self.frame, text="Disconnect", command=on_disconnect
        )
        self.disconnect_button.grid(row=0, column=1, sticky="ew", padx=(5, 0))

        self.cancel_button = tk.Button(
            self.frame, text="Cancel", command=on_cancel, bg="red", fg="white"
        )
        self.cancel_button.grid(row=0, column=2, sticky="ew", padx=(5, 0))

        self.launch_button = tk.Button(
            self.frame, text="Open Tuning Tool", command=on_launch, bg="#1976D2", fg="white"
        )
        self.launch_button.grid(row=1, column=0, columnspan=3, sticky="ew", pady=(8, 0))

        for column in range(3):
            self.frame.grid_columnconfigure(column, weight=1)

    def set_busy(self, busy: bool) -> None:
        idle_state = tk.DISABLED if busy else tk.NORMAL
        self.connect_button.config(state=idle_state)
        self.disconnect_button.config(state=idle_state)
        self.launch_button.config(state=idle_state)
        self.cancel_button.config(state=tk.NORMAL if busy else tk.DISABLED)
