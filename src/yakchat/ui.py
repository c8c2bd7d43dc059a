"""
yakchat - Textual-based terminal user interface.

One window, one peer at a time: a status line, the recipient address with a
Set/Reset button, a message box with Send, and the output log. While idle the
app accepts a single inbound connection; once a session exists further
inbound connections are refused.
"""

import logging
from typing import Optional, Tuple

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.widgets import Button, Footer, Header, Input, Label, RichLog

from .bigint import DomainParameters
from .constants import APP_NAME, DEFAULT_HOST, HANDSHAKE_TIMEOUT, UI_MAX_LOG_LINES
from .errors import YakChatError
from .network import PeerConnection, PeerListener, open_connection
from .session import SessionStatus
from .utils import format_fingerprint, parse_address

logger = logging.getLogger(__name__)

LOG_STYLES = {
    "net": "bold cyan",
    "msg": "bold green",
}


def status_label(active: bool) -> Tuple[str, str]:
    """Return the (style, label) pair for the status indicator."""
    if active:
        return "bold green", "Active"
    return "bold red", "Inactive"


def set_reset_label(active: bool) -> str:
    """Label of the button that toggles the connection."""
    return "Reset" if active else "Set"


def format_log_line(prefix: str, message: str) -> Text:
    """Build one output line, e.g. ``[net] keys have been exchanged``."""
    return Text.assemble((f"[{prefix}] ", LOG_STYLES.get(prefix, "bold")), message)


class YakChatApp(App):
    """Main yakchat application with Textual UI."""

    TITLE = APP_NAME

    CSS = """
    #info-panel {
        height: auto;
        padding: 0 1;
        border-bottom: solid $primary;
    }

    .info-row {
        height: auto;
    }

    .row-label {
        width: 12;
        padding: 1 0;
    }

    #status-indicator {
        padding: 1 0;
    }

    #set-reset {
        min-width: 10;
    }

    #recipient {
        width: 1fr;
    }

    #message-row {
        height: auto;
        padding: 0 1;
    }

    #message-input {
        width: 1fr;
    }

    #output {
        height: 1fr;
        border: solid $secondary;
    }
    """

    BINDINGS = [
        Binding("ctrl+r", "toggle_connection", "Set/Reset"),
        Binding("ctrl+q", "quit", "Quit"),
    ]

    def __init__(
        self,
        port: int,
        domain: Optional[DomainParameters] = None,
        host: str = DEFAULT_HOST,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        theme: str = "dark",
    ):
        super().__init__()
        self.listen_host = host
        self.listen_port = port
        self.domain = domain or DomainParameters.default()
        self.handshake_timeout = handshake_timeout
        self.ui_theme = theme

        self.listener: Optional[PeerListener] = None
        self.connection: Optional[PeerConnection] = None
        self._connecting = False

    @property
    def is_active(self) -> bool:
        """True while a connection exists (handshaking or secure)."""
        return self._connecting or (
            self.connection is not None
            and self.connection.status in (SessionStatus.CONNECTING, SessionStatus.SECURE)
        )

    def compose(self) -> ComposeResult:
        """Compose the main application layout."""
        yield Header()
        with Vertical(id="info-panel"):
            with Horizontal(classes="info-row"):
                yield Label("Status", classes="row-label")
                yield Label("", id="status-indicator")
            with Horizontal(classes="info-row"):
                yield Label("Recipient", classes="row-label")
                yield Button(set_reset_label(False), id="set-reset")
                yield Input(placeholder="host:port", id="recipient")
        with Horizontal(id="message-row"):
            yield Input(placeholder="Message", id="message-input")
            yield Button("Send", variant="primary", id="send-btn")
        yield RichLog(id="output", max_lines=UI_MAX_LOG_LINES, wrap=True)
        yield Footer()

    def on_mount(self) -> None:
        """Apply the theme and start listening."""
        self.theme = "textual-light" if self.ui_theme == "light" else "textual-dark"
        self._refresh_status()
        self.run_worker(self.start_listener_worker)

    async def start_listener_worker(self) -> None:
        """Worker to bind the listener."""
        self.listener = PeerListener(
            self.listen_host,
            self.listen_port,
            self.domain,
            handshake_timeout=self.handshake_timeout,
            on_connection=self._accept_connection,
        )
        try:
            await self.listener.start()
        except YakChatError as e:
            self.listener = None
            self.log_line("net", e.message)
            return
        self.log_line("net", f"listening on {self.listen_host}:{self.listener.port}")

    async def on_unmount(self) -> None:
        """Close the session and the listener."""
        if self.connection is not None:
            await self.connection.close()
        if self.listener is not None:
            await self.listener.stop()

    def log_line(self, prefix: str, message: str) -> None:
        """Append a line to the output log."""
        self.query_one("#output", RichLog).write(format_log_line(prefix, message))

    def _refresh_status(self) -> None:
        active = self.is_active
        style, label = status_label(active)
        self.query_one("#status-indicator", Label).update(Text(label, style=style))
        self.query_one("#set-reset", Button).label = set_reset_label(active)
        self.query_one("#recipient", Input).disabled = active
        self.query_one("#send-btn", Button).disabled = not (
            self.connection is not None and self.connection.status is SessionStatus.SECURE
        )

    def _attach(self, connection: PeerConnection) -> None:
        self.connection = connection
        connection.on_plaintext_received = self._on_plaintext_received
        connection.on_status_change = self._on_status_change

    def _accept_connection(self, connection: PeerConnection) -> bool:
        if self.is_active:
            logger.info(f"Busy, refusing connection from {connection.address}")
            return False
        self._attach(connection)
        self.log_line("net", f"receiving from {self._format_address(connection.address)}")
        self._refresh_status()
        return True

    def _on_plaintext_received(self, text: str) -> None:
        self.log_line("msg", text)

    def _on_status_change(self, status: SessionStatus, detail: Optional[str]) -> None:
        if status is SessionStatus.SECURE:
            fingerprint = self.connection.fingerprint if self.connection else None
            message = "keys have been exchanged"
            if fingerprint:
                message += f" (fingerprint {format_fingerprint(fingerprint)})"
            self.log_line("net", message)
        elif status is SessionStatus.FAULTED:
            self.log_line("net", detail or "secure connection failed")
        elif status is SessionStatus.CLOSED:
            self.log_line("net", "the recipient has disconnected")
        self._refresh_status()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button presses."""
        if event.button.id == "set-reset":
            self.action_toggle_connection()
        elif event.button.id == "send-btn":
            self._send_message()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle Enter in either input."""
        if event.input.id == "message-input":
            self._send_message()
        elif event.input.id == "recipient" and not self.is_active:
            self.action_toggle_connection()

    def action_toggle_connection(self) -> None:
        """Connect to the recipient, or disconnect the current session."""
        if self.is_active:
            self.run_worker(self.disconnect_worker)
        else:
            address = self.query_one("#recipient", Input).value
            self.run_worker(self.connect_worker(address))

    async def connect_worker(self, address: str) -> None:
        """Worker to open an outbound session."""
        try:
            host, port = parse_address(address)
        except YakChatError as e:
            self.log_line("net", f"failed to connect: {e.message}")
            return

        self._connecting = True
        self._refresh_status()
        try:
            connection = await open_connection(
                host,
                port,
                self.domain,
                handshake_timeout=self.handshake_timeout,
                on_plaintext_received=self._on_plaintext_received,
                on_status_change=self._on_status_change,
            )
        except YakChatError as e:
            self._connecting = False
            self.log_line("net", f"failed to connect: {e.message}")
            self._refresh_status()
            return

        self._connecting = False
        self.connection = connection
        self.log_line("net", f"connecting to {host}:{port}")
        self._refresh_status()

    async def disconnect_worker(self) -> None:
        """Worker to close the current session."""
        connection = self.connection
        if connection is None:
            return
        connection.on_status_change = None
        await connection.close()
        self.connection = None
        self.log_line("net", "disconnected")
        self._refresh_status()

    def _send_message(self) -> None:
        message_input = self.query_one("#message-input", Input)
        text = message_input.value
        if not text or self.connection is None:
            return
        try:
            self.connection.submit_plaintext(text)
        except YakChatError as e:
            self.log_line("net", f"failed to send: {e.message}")
            self._refresh_status()
            return
        message_input.value = ""

    @staticmethod
    def _format_address(address) -> str:
        if isinstance(address, tuple) and len(address) >= 2:
            return f"{address[0]}:{address[1]}"
        return str(address)
