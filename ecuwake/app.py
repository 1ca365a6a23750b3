import concurrent.futures
import logging
import threading
import tkinter as tk
from tkinter import messagebox

from .config import AppConfig
from .config import load_config as load_app_config
from .config import save_config as save_app_config
from .context import AppContext
from .errors import InvalidStateError
from .handshake import Outcome
from .messaging import TelegramNotifier
from .runner import LoopRunner
from .services.system import PortSelection, PortService, ToolLauncher
from .session import LinkSession
from .settings import configure_logging
from .ui import ConnectionView, PortSelectorView

logger = logging.getLogger(__name__)


class LinkControllerApp:
    """Main window driving the K-line wake-up session."""

    def __init__(
        self,
        root,
        *,
        context: AppContext | None = None,
        config: AppConfig | None = None,
    ):
        self.root = root
        self.root.title("ECU Wake-up (K-line)")
        self.root.geometry("420x260")

        self.config = config or load_app_config()

        if context is None:
            context = AppContext(
                notifier=TelegramNotifier(self.config.bot_token, self.config.chat_id),
                port_service=PortService(),
                launcher=ToolLauncher(),
                runner=LoopRunner(),
            )
        self.context = context
        self.runner = self.context.runner
        self.notifier = self.context.notifier

        self.session = LinkSession.from_config(self.config.port_configuration())
        self.busy = False
        self.closing = False

        # --- UI Construction ---
        self.selected_port = tk.StringVar(root, value=self.config.port)
        self.port_view = PortSelectorView(
            self.root,
            selected_port=self.selected_port,
            on_refresh=self.refresh_ports,
            on_select=self.apply_selected_port,
        )
        self.connection_view = ConnectionView(
            self.root,
            on_connect=self.connect,
            on_disconnect=self.disconnect,
            on_cancel=self.cancel_operation,
            on_launch=self.launch_tool,
        )
        self.pin_var = tk.BooleanVar(value=self.config.always_on_top)
        self.pin_check = tk.Checkbutton(
            self.root,
            text="Pin window (always on top)",
            variable=self.pin_var,
            command=self.toggle_always_on_top,
        )
        self.pin_check.pack(padx=10, anchor="w")
        self.status_text = tk.StringVar(value="Status: Disconnected.")
        self.status_bar = tk.Label(
            self.root,
            textvariable=self.status_text,
            relief=tk.SUNKEN,
            anchor="w",
            padx=5,
        )
        self.status_bar.pack(side=tk.BOTTOM, fill="x")

        self._apply_topmost()
        self._set_busy(False)
        self.refresh_ports()
        self.root.protocol("WM_DELETE_WINDOW", self.on_close)

        self.runner.start()
        if self.config.connect_on_start:
            self.root.after(100, self.connect)

    # -- Session operations ------------------------------------------------------
    def connect(self) -> None:
        """Run the wake-up handshake on the selected port."""
        if self.busy or self.closing:
            return
        if not self.apply_selected_port():
            return
        self._set_busy(True)
        self.status_text.set(f"Status: Connecting to {self.session.link.port}...")
        self._submit("Connect", self.session.connect())

    def disconnect(self) -> None:
        if self.busy or self.closing:
            return
        self._set_busy(True)
        self.status_text.set("Status: Disconnecting...")
        self._submit("Disconnect", self.session.disconnect())

    def cancel_operation(self) -> None:
        """Abort the delays of the running operation and re-arm cancellation."""
        self.session.cancel_current_operation()
        self.status_text.set("Status: Cancelling...")

    def launch_tool(self) -> None:
        """Release the port, then hand control to the external diagnostic tool."""
        if self.busy or self.closing:
            return
        try:
            if self.session.is_connected:
                self.status_text.set("Status: Releasing port...")
                self.root.update_idletasks()
                if not self.session.disconnect_blocking():
                    logger.warning("Port %s was not released cleanly", self.session.link.port)
                self.status_text.set("Status: Disconnected.")
            self.context.launcher.launch(self.config.tool_path)
        except FileNotFoundError:
            messagebox.showerror("Error", f"File not found: {self.config.tool_path}")
        except OSError as exc:
            messagebox.showerror("Error", f"Failed to open tool: {exc}")

    def _submit(self, name: str, coro) -> None:
        def done(future: concurrent.futures.Future) -> None:
            self.root.after(0, lambda: self._on_outcome(name, future))

        try:
            self.runner.submit(coro, done)
        except RuntimeError as exc:
            logger.error("%s could not be scheduled: %s", name, exc)
            self._set_busy(False)
            self.status_text.set(f"Status: {name} unavailable.")

    def _on_outcome(self, name: str, future: concurrent.futures.Future) -> None:
        try:
            outcome = future.result()
        except Exception as exc:
            logger.error("%s raised unexpectedly", name, exc_info=True)
            outcome = Outcome.failed(str(exc), exc)
        self._set_busy(False)
        if self.closing:
            return
        self._report(name, outcome)

    def _report(self, name: str, outcome: Outcome) -> None:
        if outcome.ok:
            state = "Connected" if self.session.is_connected else "Disconnected"
            self.status_text.set(f"Status: {state}.")
            return
        if outcome.is_cancelled:
            self.status_text.set(f"Status: {name} cancelled.")
            return
        self.status_text.set(f"Status: {name} failed.")
        if isinstance(outcome.error, InvalidStateError):
            messagebox.showwarning("Warning", f"{name}: {outcome.reason}")
        else:
            messagebox.showerror("Error", f"{name} failed: {outcome.reason}")
            threading.Thread(
                target=self.notifier.notify_outcome,
                args=(name, self.session.link.port, outcome),
                name="OutcomeNotifier",
                daemon=True,
            ).start()

    def _set_busy(self, busy: bool) -> None:
        self.busy = busy
        self.connection_view.set_busy(busy)
        self.port_view.set_enabled(not busy)

    # -- Port selection ----------------------------------------------------------
    def refresh_ports(self) -> None:
        """Refresh the available COM ports using the port service."""
        selection = self.context.port_service.build_selection(self.selected_port.get())
        self._apply_port_selection(selection)

    def _apply_port_selection(self, selection: PortSelection) -> None:
        self.port_view.set_ports(list(selection.ports))
        if selection.selected:
            self.selected_port.set(selection.selected)

    def apply_selected_port(self) -> bool:
        """Point the session at the selected port. Only allowed while closed."""
        port = self.selected_port.get().strip()
        if not port:
            messagebox.showerror("Error", "Please select a COM port.")
            return False
        if port == self.session.link.port:
            return True
        if self.session.is_connected:
            messagebox.showwarning("Warning", "Disconnect before changing the port.")
            self.selected_port.set(self.session.link.port)
            return False
        self.config.port = port
        self.session.link.configure(self.config.port_configuration())
        self.save_config()
        return True

    # -- Options -----------------------------------------------------------------
    def toggle_always_on_top(self) -> None:
        self.config.always_on_top = bool(self.pin_var.get())
        self._apply_topmost()
        self.save_config()

    def _apply_topmost(self) -> None:
        try:
            self.root.attributes("-topmost", self.config.always_on_top)
        except Exception as e:
            logger.error(f"Could not set always-on-top: {e}")

    def save_config(self) -> None:
        """Persist the current settings to the config file."""
        save_app_config(self.config)
        logger.info("Configuration saved.")

    # -- Teardown ----------------------------------------------------------------
    def on_close(self) -> None:
        """Cancel, give the running operation a grace period, release the port, exit."""
        if self.closing:
            return
        self.closing = True
        self.connection_view.set_busy(True)
        self.status_text.set("Status: Closing...")

        def done(_future: concurrent.futures.Future) -> None:
            self.root.after(0, self._finish_close)

        try:
            self.runner.submit(self.session.close(self.config.grace_period), done)
        except RuntimeError:
            self.session.link.dispose()
            self._finish_close()

    def _finish_close(self) -> None:
        self.runner.stop()
        self.root.destroy()


def create_application(
    *,
    root: tk.Tk | None = None,
    config: AppConfig | None = None,
    context: AppContext | None = None,
) -> LinkControllerApp:
    """Construct the ecuwake GUI without entering the Tk main loop."""

    root = root or tk.Tk()
    cfg = config or load_app_config()
    return LinkControllerApp(root, context=context, config=cfg)


def main() -> None:
    """Launch the ecuwake GUI application."""

    configure_logging()
    app = create_application()
    app.root.mainloop()


if __name__ == "__main__":
    main()
