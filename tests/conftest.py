"""
Pytest configuration and fixtures for yakchat tests.

Provides small domain parameters, deterministic entropy sources and an
in-memory transport pair for driving two sessions against each other.
"""

import random
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator, List, Tuple

import pytest

from yakchat.bigint import DomainParameters
from yakchat.errors import TransportError
from yakchat.session import SessionProtocol, SessionRole, Transport

# p=23 with primitive root 5; small enough to reason about by hand
TOY_PRIME = 23
TOY_GENERATOR = 5


class LoopbackTransport(Transport):
    """
    In-memory transport that queues outbound frames until pumped.

    Frames are not delivered synchronously so a session is never re-entered
    from inside its own send call.
    """

    def __init__(self):
        self.outbox: List[bytes] = []
        self.sent: List[bytes] = []
        self.closed = False
        self.fail_sends = False

    def send(self, data: bytes) -> None:
        if self.fail_sends:
            raise TransportError(message="Simulated transport failure")
        if self.closed:
            raise TransportError(message="Transport is closed")
        self.outbox.append(data)
        self.sent.append(data)

    def close(self) -> None:
        self.closed = True

    def drain(self) -> bytes:
        data = b"".join(self.outbox)
        self.outbox.clear()
        return data


class SessionPair:
    """Initiator and Responder sessions wired through loopback transports."""

    def __init__(
        self,
        domain: DomainParameters,
        initiator_rng: Callable[[int], int],
        responder_rng: Callable[[int], int],
        **kwargs,
    ):
        self.initiator_transport = LoopbackTransport()
        self.responder_transport = LoopbackTransport()
        self.initiator_received: List[str] = []
        self.responder_received: List[str] = []
        self.initiator_statuses: List[Tuple] = []
        self.responder_statuses: List[Tuple] = []

        self.initiator = SessionProtocol(
            domain,
            self.initiator_transport,
            SessionRole.INITIATOR,
            rng=initiator_rng,
            on_plaintext_received=self.initiator_received.append,
            on_status_change=lambda status, detail: self.initiator_statuses.append((status, detail)),
            **kwargs,
        )
        self.responder = SessionProtocol(
            domain,
            self.responder_transport,
            SessionRole.RESPONDER,
            rng=responder_rng,
            on_plaintext_received=self.responder_received.append,
            on_status_change=lambda status, detail: self.responder_statuses.append((status, detail)),
            **kwargs,
        )

    def start(self) -> None:
        self.initiator.start()
        self.responder.start()

    def pump(self, max_rounds: int = 10) -> None:
        """Deliver queued frames in both directions until both outboxes are empty."""
        for _ in range(max_rounds):
            to_responder = self.initiator_transport.drain()
            to_initiator = self.responder_transport.drain()
            if not to_responder and not to_initiator:
                return
            if to_responder:
                self.responder.feed(to_responder)
            if to_initiator:
                self.initiator.feed(to_initiator)

    def handshake(self) -> None:
        self.start()
        self.pump()


def seeded_rng(seed: int) -> Callable[[int], int]:
    """Deterministic randbelow-style entropy source."""
    return random.Random(seed).randrange


@pytest.fixture
def toy_domain() -> DomainParameters:
    """Domain parameters p=23, g=5."""
    return DomainParameters(prime=TOY_PRIME, generator=TOY_GENERATOR)


@pytest.fixture
def default_domain() -> DomainParameters:
    """The compiled-in production parameters."""
    return DomainParameters.default()


@pytest.fixture
def rng_factory() -> Callable[[int], Callable[[int], int]]:
    """Factory for seeded entropy sources."""
    return seeded_rng


@pytest.fixture
def make_pair() -> Callable[..., SessionPair]:
    """Factory for SessionPair(domain, initiator_rng, responder_rng, **session_kwargs)."""
    return SessionPair


@pytest.fixture
def session_pair(default_domain) -> SessionPair:
    """Two sessions over the default domain with fixed entropy."""
    return SessionPair(default_domain, seeded_rng(1), seeded_rng(2))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test data.

    Yields:
        Path: Temporary directory path
    """
    tmp = Path(tempfile.mkdtemp(prefix="yakchat_test_"))
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


# Pytest marks
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
