"""
yakchat - Secure session protocol.

A SessionProtocol drives one connection from handshake to message loop:

1. start(): the transport is up and CONNECTING is reported. The Initiator
   sends its YAK message; the Responder waits for the Initiator's, verifies
   it and only then answers. A rejected Initiator gets no reply and faults
   when the connection drops.
2. On a verified peer message both RC4 states are keyed from the same key
   material and the session becomes SECURE.
3. submit_plaintext() encrypts through the send state; feed() decrypts
   inbound TEXT_MESSAGE frames through the receive state and hands the text
   to the presentation layer.

The class is synchronous and not thread-safe. Whoever owns the connection
must serialize calls into it (see network.PeerConnection).
"""

import logging
import secrets
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, Optional

from .bigint import DomainParameters, EntropySource
from .constants import (
    KEY_MATERIAL_LENGTH,
    MAX_TEXT_MESSAGE_SIZE,
    RC4_DROP_BYTES,
    SECURE_CONNECTION_FAILED,
)
from .errors import (
    ErrorCode,
    ProtocolError,
    SessionStateError,
    TransportError,
    YakChatError,
)
from .protocol import MessageType, Protocol
from .rc4 import CipherState
from .session_fsm import SessionEvent, SessionState, SessionStateMachine
from .utils import key_fingerprint
from .yak import YakEngine

logger = logging.getLogger(__name__)


class SessionRole(Enum):
    """Which side opened the connection; the Initiator speaks first."""

    INITIATOR = "initiator"
    RESPONDER = "responder"


class SessionStatus(Enum):
    """Coarse status reported to the presentation layer."""

    CONNECTING = "connecting"
    SECURE = "secure"
    FAULTED = "faulted"
    CLOSED = "closed"


STATUS_BY_STATE: Dict[SessionState, SessionStatus] = {
    SessionState.DISCONNECTED: SessionStatus.CONNECTING,
    SessionState.HANDSHAKE_IN_PROGRESS: SessionStatus.CONNECTING,
    SessionState.SECURE: SessionStatus.SECURE,
    SessionState.CLOSED: SessionStatus.CLOSED,
    SessionState.FAULTED: SessionStatus.FAULTED,
}


class Transport(ABC):
    """Ordered, reliable byte stream for one connection."""

    @abstractmethod
    def send(self, data: bytes) -> None:
        """Queue ``data`` for delivery. Raises TransportError on failure."""

    def close(self) -> None:
        """Release the underlying connection."""


class SessionProtocol:
    """One secure session over one transport connection."""

    def __init__(
        self,
        domain: DomainParameters,
        transport: Transport,
        role: SessionRole,
        *,
        rng: EntropySource = secrets.randbelow,
        key_length: int = KEY_MATERIAL_LENGTH,
        drop: int = RC4_DROP_BYTES,
        on_plaintext_received: Optional[Callable[[str], None]] = None,
        on_status_change: Optional[Callable[[SessionStatus, Optional[str]], None]] = None,
    ):
        self.domain = domain
        self.transport = transport
        self.role = role
        self.key_length = key_length
        self.drop = drop
        self._rng = rng

        self.fsm = SessionStateMachine()
        self.fsm.on_state_change = self._on_fsm_state_change

        self._yak: Optional[YakEngine] = None
        self._send_cipher: Optional[CipherState] = None
        self._recv_cipher: Optional[CipherState] = None
        self._handshake_sent = False
        self.buffer = b""

        self.fingerprint: Optional[str] = None
        self.last_error: Optional[YakChatError] = None
        self.messages_sent = 0
        self.messages_received = 0

        # Callbacks
        self.on_plaintext_received = on_plaintext_received
        self.on_status_change = on_status_change

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self.fsm.get_state()

    @property
    def status(self) -> SessionStatus:
        """Current presentation status."""
        return STATUS_BY_STATE[self.fsm.get_state()]

    def is_secure(self) -> bool:
        return self.fsm.is_secure()

    def is_terminal(self) -> bool:
        return self.fsm.is_terminal()

    def start(self) -> None:
        """
        Begin the handshake once the transport is connected.

        Raises:
            SessionStateError: If the session was already started
        """
        if not self.fsm.transition(SessionEvent.CONNECTION_ESTABLISHED):
            raise SessionStateError(
                message=f"Cannot start session in state {self.state.name}",
                details={"state": self.state.name},
            )

        logger.info(f"Starting handshake as {self.role.value}")
        try:
            self._yak = YakEngine(self.domain, self._rng)
            if self.role is SessionRole.INITIATOR:
                self._send_handshake()
        except YakChatError as e:
            self._fault(e)

    def feed(self, data: bytes) -> None:
        """
        Accept raw bytes from the transport and process every complete frame.

        Bytes arriving after the session ended are ignored.
        """
        if self.fsm.is_terminal():
            logger.debug(f"Ignoring {len(data)} bytes received after session end")
            return

        self.buffer += data
        while self.buffer and not self.fsm.is_terminal():
            try:
                result = Protocol.unpack_message(self.buffer)
            except ProtocolError as e:
                self._protocol_violation(e)
                return

            if result is None:
                break

            msg_type, payload, consumed = result
            self.buffer = self.buffer[consumed:]
            self._dispatch(msg_type, payload)

    def submit_plaintext(self, text: str) -> None:
        """
        Encrypt ``text`` with the send keystream and hand it to the transport.

        Raises:
            SessionStateError: If the session is not SECURE
            ProtocolError: If the text exceeds MAX_TEXT_MESSAGE_SIZE
            TransportError: If the transport fails; the session is CLOSED
        """
        if not self.fsm.is_secure() or self._send_cipher is None:
            raise SessionStateError(
                message=f"Cannot send in state {self.state.name}",
                details={"state": self.state.name},
            )

        data = text.encode("utf-8")
        if len(data) > MAX_TEXT_MESSAGE_SIZE:
            raise ProtocolError(
                ErrorCode.E207_MESSAGE_TOO_LARGE,
                f"Text message too large: {len(data)} > {MAX_TEXT_MESSAGE_SIZE}",
                {"size": len(data), "max_size": MAX_TEXT_MESSAGE_SIZE},
            )

        ciphertext = self._send_cipher.process(data)
        try:
            self.transport.send(Protocol.create_text_message(ciphertext))
        except TransportError as e:
            logger.error(f"Transport failed while sending: {e}")
            self.last_error = e
            self._end_session()
            raise

        self.messages_sent += 1
        self.fsm.transition(SessionEvent.MESSAGE_SENT)

    def connection_lost(self) -> None:
        """The transport disconnected; discard all key material."""
        if self.fsm.is_terminal():
            return
        if self.state == SessionState.DISCONNECTED:
            logger.debug("Connection lost before session start")
            return
        self._end_session(self._handshake_reason("Connection closed during handshake"))

    def close(self) -> None:
        """Disconnect locally, telling the peer first when possible."""
        if not self.fsm.is_terminal() and self.state != SessionState.DISCONNECTED:
            try:
                self.transport.send(Protocol.create_disconnect())
            except TransportError as e:
                logger.debug(f"Could not send disconnect: {e}")
            self._end_session(self._handshake_reason("Session closed during handshake"))
        self.transport.close()

    def _send_handshake(self) -> None:
        self.transport.send(Protocol.create_handshake(self._yak.create_message()))
        self._handshake_sent = True
        logger.debug("Sent handshake message")

    def _dispatch(self, msg_type: MessageType, payload: bytes) -> None:
        if msg_type == MessageType.HANDSHAKE:
            self._handle_handshake(payload)
        elif msg_type == MessageType.TEXT_MESSAGE:
            self._handle_ciphertext(payload)
        elif msg_type == MessageType.DISCONNECT:
            logger.info("Peer disconnected")
            self.connection_lost()

    def _handle_handshake(self, payload: bytes) -> None:
        if not self.fsm.is_handshaking():
            self._protocol_violation(
                ProtocolError(message=f"Unexpected handshake message in state {self.state.name}")
            )
            return

        try:
            message = Protocol.decode_handshake(payload)
            self._yak.process_peer_message(message)
            # A rejected Initiator gets no reply
            if not self._handshake_sent:
                self._send_handshake()
            key = self._yak.key_material(self.key_length)
            self._send_cipher = CipherState.from_key(key, self.drop)
            self._recv_cipher = CipherState.from_key(key, self.drop)
            self.fingerprint = key_fingerprint(key)
        except YakChatError as e:
            self._fault(e)
            return

        # The ciphers own the key material from here on
        self._yak = None
        self.fsm.transition(SessionEvent.SECRET_DERIVED)

    def _handle_ciphertext(self, payload: bytes) -> None:
        if not self.fsm.is_secure():
            self._protocol_violation(
                ProtocolError(message=f"Ciphertext received in state {self.state.name}")
            )
            return

        plaintext = self._recv_cipher.process(payload)
        # A desynchronized keystream yields garbage, not an error
        text = plaintext.decode("utf-8", errors="replace")
        self.messages_received += 1
        self.fsm.transition(SessionEvent.MESSAGE_RECEIVED)

        if self.on_plaintext_received:
            self.on_plaintext_received(text)

    def _fault(self, error: YakChatError) -> None:
        logger.error(f"Handshake failed: {error}")
        self.last_error = error
        self._discard_keys()
        self.fsm.transition(SessionEvent.HANDSHAKE_FAILED, error_msg=str(error))

    def _protocol_violation(self, error: ProtocolError) -> None:
        if self.fsm.is_handshaking():
            self._fault(error)
            return
        logger.error(f"Protocol violation, closing session: {error}")
        self.last_error = error
        self._end_session()

    def _handshake_reason(self, reason: str) -> Optional[str]:
        return reason if self.fsm.is_handshaking() else None

    def _end_session(self, reason: Optional[str] = None) -> None:
        self._discard_keys()
        self.fsm.transition(SessionEvent.TRANSPORT_CLOSED, error_msg=reason)

    def _discard_keys(self) -> None:
        self._yak = None
        self._send_cipher = None
        self._recv_cipher = None
        self.buffer = b""

    def _on_fsm_state_change(self, old_state: SessionState, new_state: SessionState) -> None:
        if not self.on_status_change:
            return
        status = STATUS_BY_STATE[new_state]
        detail = SECURE_CONNECTION_FAILED if new_state == SessionState.FAULTED else None
        # CONNECTING is reported once, when the handshake starts
        if old_state == SessionState.DISCONNECTED or STATUS_BY_STATE[old_state] != status:
            self.on_status_change(status, detail)
