"""
yakchat - Asynchronous peer-to-peer networking layer.

This module implements:
- Direct TCP connections using asyncio
- A queued byte transport feeding one SessionProtocol per connection
- Outbound connections (Initiator role) and a listener (Responder role)

Every call into a SessionProtocol happens on the event loop thread: inbound
bytes from the receive task, outbound text from submit_plaintext (or from
other threads through submit_plaintext_threadsafe).
"""

import asyncio
import logging
import secrets
from typing import Callable, Optional, Set

from .bigint import DomainParameters, EntropySource
from .constants import (
    CONNECT_TIMEOUT,
    FLUSH_TIMEOUT,
    HANDSHAKE_TIMEOUT,
    READ_CHUNK_SIZE,
    SEND_QUEUE_MAX_SIZE,
)
from .errors import ErrorCode, NetworkError, TransportError, YakChatError
from .session import SessionProtocol, SessionRole, SessionStatus, Transport

logger = logging.getLogger(__name__)


class StreamTransport(Transport):
    """
    Transport over an asyncio StreamWriter.

    send() only queues; the owning PeerConnection's send task writes the
    queue out in order.
    """

    def __init__(self, writer: asyncio.StreamWriter, max_queue: int = SEND_QUEUE_MAX_SIZE):
        self.writer = writer
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue)
        self.closed = False

    def send(self, data: bytes) -> None:
        if self.closed:
            raise TransportError(ErrorCode.E203_CONNECTION_CLOSED, "Transport is closed")
        try:
            self.queue.put_nowait(data)
        except asyncio.QueueFull:
            raise TransportError(
                ErrorCode.E204_SEND_FAILED,
                "Send queue full",
                {"max_size": self.queue.maxsize},
            )

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            # Wake the send task; it exits once the queue is drained
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            pass


class PeerConnection:
    """A TCP connection carrying one secure session."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        domain: DomainParameters,
        role: SessionRole,
        *,
        rng: EntropySource = secrets.randbelow,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        on_plaintext_received: Optional[Callable[[str], None]] = None,
        on_status_change: Optional[Callable[[SessionStatus, Optional[str]], None]] = None,
    ):
        self.reader = reader
        self.writer = writer
        self.address = writer.get_extra_info("peername")
        self.role = role
        self.handshake_timeout = handshake_timeout

        self.transport = StreamTransport(writer)
        self.session = SessionProtocol(
            domain,
            self.transport,
            role,
            rng=rng,
            on_plaintext_received=self._on_plaintext_received,
            on_status_change=self._on_status_change,
        )

        self.receive_task: Optional[asyncio.Task] = None
        self.send_task: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_started = False
        self._closed = asyncio.Event()

        # Connection statistics for diagnostics
        self.bytes_sent = 0
        self.bytes_received = 0

        # Callbacks
        self.on_plaintext_received = on_plaintext_received
        self.on_status_change = on_status_change

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def fingerprint(self) -> Optional[str]:
        return self.session.fingerprint

    def start(self) -> None:
        """Start the background tasks and begin the handshake."""
        if self.receive_task is not None:
            raise NetworkError(ErrorCode.E210_INVALID_SESSION_STATE, "Connection already started")

        self._loop = asyncio.get_running_loop()
        self.send_task = asyncio.create_task(self._send_loop())
        self.receive_task = asyncio.create_task(self._receive_loop())
        logger.info(f"Connected to {self.address} as {self.role.value}")
        self.session.start()

    async def run(self) -> None:
        """Start the connection and wait until it is closed."""
        self.start()
        await self.wait_closed()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def is_closed(self) -> bool:
        return self._closed.is_set()

    def submit_plaintext(self, text: str) -> None:
        """
        Encrypt and queue ``text`` for the peer.

        Raises:
            SessionStateError: If the session is not secure
            TransportError: If the send queue rejected the frame
        """
        self.session.submit_plaintext(text)

    def submit_plaintext_threadsafe(self, text: str) -> None:
        """Hand ``text`` over from another thread; failures are logged."""
        if self._loop is None:
            raise NetworkError(ErrorCode.E210_INVALID_SESSION_STATE, "Connection not started")
        self._loop.call_soon_threadsafe(self._submit_logged, text)

    def _submit_logged(self, text: str) -> None:
        try:
            self.session.submit_plaintext(text)
        except YakChatError as e:
            logger.error(f"Failed to send message to {self.address}: {e}")

    async def close(self) -> None:
        """Disconnect locally, sending DISCONNECT first."""
        self.session.close()
        if self.receive_task is None:
            await self._shutdown()
            return
        await self.wait_closed()

    async def _receive_loop(self) -> None:
        """Background task feeding inbound bytes to the session."""
        logger.debug(f"Receive loop started for {self.address}")
        deadline = self._loop.time() + self.handshake_timeout

        try:
            while not self.session.is_terminal():
                timeout = None
                if not self.session.is_secure():
                    timeout = max(deadline - self._loop.time(), 0)

                try:
                    data = await asyncio.wait_for(self.reader.read(READ_CHUNK_SIZE), timeout=timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Handshake with {self.address} timed out")
                    self.session.connection_lost()
                    break
                except (ConnectionError, OSError) as e:
                    logger.warning(f"Connection to {self.address} failed: {e}")
                    self.session.connection_lost()
                    break

                if not data:
                    logger.info(f"Connection closed by {self.address}")
                    self.session.connection_lost()
                    break

                self.bytes_received += len(data)
                self.session.feed(data)
        except asyncio.CancelledError:
            logger.debug(f"Receive loop cancelled for {self.address}")
        finally:
            logger.debug(f"Receive loop ended for {self.address}")
            await self._shutdown()

    async def _send_loop(self) -> None:
        """Background task writing queued frames in order."""
        logger.debug(f"Send loop started for {self.address}")
        queue = self.transport.queue

        try:
            while True:
                data = await queue.get()
                if data is None:
                    break
                self.writer.write(data)
                await self.writer.drain()
                self.bytes_sent += len(data)
                if self.transport.closed and queue.empty():
                    break
        except (ConnectionError, OSError) as e:
            logger.warning(f"Send to {self.address} failed: {e}")
            self.session.connection_lost()
            self._request_shutdown()
        finally:
            logger.debug(f"Send loop ended for {self.address}")

    def _request_shutdown(self) -> None:
        self.transport.close()
        task = self.receive_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()

    async def _shutdown(self) -> None:
        if self._shutdown_started:
            await self._closed.wait()
            return
        self._shutdown_started = True

        self.transport.close()
        if self.send_task is not None:
            try:
                await asyncio.wait_for(self.send_task, timeout=FLUSH_TIMEOUT)
            except asyncio.TimeoutError:
                logger.debug(f"Send queue for {self.address} not flushed before close")

        try:
            self.writer.close()
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error closing writer for {self.address}: {e}")

        self.session.connection_lost()
        self._closed.set()
        logger.info(f"Connection to {self.address} closed")

    def _on_plaintext_received(self, text: str) -> None:
        if self.on_plaintext_received:
            self.on_plaintext_received(text)

    def _on_status_change(self, status: SessionStatus, detail: Optional[str]) -> None:
        if status in (SessionStatus.CLOSED, SessionStatus.FAULTED):
            self._request_shutdown()
        if self.on_status_change:
            self.on_status_change(status, detail)


async def open_connection(
    host: str,
    port: int,
    domain: DomainParameters,
    *,
    timeout: float = CONNECT_TIMEOUT,
    **kwargs,
) -> PeerConnection:
    """
    Connect to a peer and start the handshake as Initiator.

    Extra keyword arguments are passed to PeerConnection.

    Raises:
        NetworkError: If the TCP connection cannot be established
    """
    logger.info(f"Connecting to {host}:{port}")
    try:
        reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except asyncio.TimeoutError:
        raise NetworkError(
            ErrorCode.E202_CONNECTION_TIMEOUT,
            f"Connection to {host}:{port} timed out",
            {"host": host, "port": port, "timeout": timeout},
        )
    except OSError as e:
        raise NetworkError(
            ErrorCode.E201_CONNECTION_FAILED,
            f"Failed to connect to {host}:{port}: {e}",
            {"host": host, "port": port},
        )

    connection = PeerConnection(reader, writer, domain, SessionRole.INITIATOR, **kwargs)
    connection.start()
    return connection


class PeerListener:
    """
    Listens for incoming connections using asyncio.

    Each accepted socket becomes a Responder PeerConnection that is offered to
    ``on_connection`` before it starts. Returning False refuses it.
    """

    def __init__(
        self,
        host: str,
        port: int,
        domain: DomainParameters,
        *,
        rng: EntropySource = secrets.randbelow,
        handshake_timeout: float = HANDSHAKE_TIMEOUT,
        on_connection: Optional[Callable[[PeerConnection], bool]] = None,
    ):
        self.host = host
        self.requested_port = port
        self.domain = domain
        self.rng = rng
        self.handshake_timeout = handshake_timeout
        self.on_connection = on_connection

        self.server: Optional[asyncio.AbstractServer] = None
        self.connections: Set[PeerConnection] = set()

    @property
    def port(self) -> int:
        """The bound port (differs from the requested one when that was 0)."""
        if self.server is None or not self.server.sockets:
            return self.requested_port
        return self.server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """
        Start listening for connections.

        Raises:
            NetworkError: If the address cannot be bound
        """
        try:
            self.server = await asyncio.start_server(self._handle_client, self.host, self.requested_port)
        except OSError as e:
            raise NetworkError(
                ErrorCode.E201_CONNECTION_FAILED,
                f"Failed to listen on {self.host}:{self.requested_port}: {e}",
                {"host": self.host, "port": self.requested_port},
            )
        logger.info(f"Listening on {self.host}:{self.port}")

    async def stop(self) -> None:
        """Stop listening and close accepted connections."""
        for connection in list(self.connections):
            await connection.close()
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            logger.info("Listener stopped")

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        address = writer.get_extra_info("peername")
        logger.debug(f"Incoming connection from {address}")

        connection = PeerConnection(
            reader,
            writer,
            self.domain,
            SessionRole.RESPONDER,
            rng=self.rng,
            handshake_timeout=self.handshake_timeout,
        )

        accepted = True
        if self.on_connection:
            if asyncio.iscoroutinefunction(self.on_connection):
                accepted = await self.on_connection(connection)
            else:
                accepted = self.on_connection(connection)

        if not accepted:
            logger.info(f"Refused connection from {address}")
            try:
                writer.close()
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug(f"Error closing refused connection from {address}: {e}")
            return

        self.connections.add(connection)
        try:
            await connection.run()
        finally:
            self.connections.discard(connection)
