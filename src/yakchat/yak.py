"""
yakchat - YAK key exchange engine.

Each peer generates an ephemeral key pair, proves knowledge of its private
exponent with a Schnorr proof, and sends {public, proof} to the other side.
After verifying the peer's proof both sides compute the Diffie-Hellman value
peer_public ^ own_private mod p and converge on the same secret.

The engine is transport-agnostic: it produces and consumes HandshakeMessage
values and never touches sockets.
"""

import logging
import secrets
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional

from . import schnorr
from .bigint import DomainParameters, EntropySource, powmod, random_below, to_fixed_bytes
from .constants import KEY_MATERIAL_LENGTH
from .errors import ErrorCode, HandshakeFailedError
from .schnorr import ProofOfKnowledge

logger = logging.getLogger(__name__)


class YakState(Enum):
    """Key exchange states."""

    AWAITING_PEER_MESSAGE = auto()
    SECRET_DERIVED = auto()


@dataclass
class EphemeralKeyPair:
    """Per-session key pair; ``private`` never leaves this object."""

    private: int = field(repr=False)
    public: int

    @classmethod
    def generate(
        cls, domain: DomainParameters, rng: EntropySource = secrets.randbelow
    ) -> "EphemeralKeyPair":
        """
        Generate a key pair whose public value a peer will accept.

        Exponents that land on 1 or p-1 are re-drawn; this only matters for
        toy parameters where such collisions are likely.
        """
        while True:
            private = random_below(domain.order, rng)
            public = powmod(domain.generator, private, domain.prime)
            if domain.is_valid_public(public):
                return cls(private=private, public=public)


@dataclass(frozen=True)
class HandshakeMessage:
    """The single structured payload each peer sends before encryption starts."""

    public: int
    proof: ProofOfKnowledge


def derive_key_material(secret: int, length: int = KEY_MATERIAL_LENGTH) -> bytes:
    """
    Reduce the shared secret to cipher key bytes.

    Pinned scheme: little-endian serialization at a fixed width. Secrets wider
    than ``length`` bytes keep their low-order bytes; narrower ones are zero
    padded.

    Args:
        secret: Shared Diffie-Hellman value
        length: Key length in bytes

    Returns:
        Key material of exactly ``length`` bytes
    """
    return to_fixed_bytes(secret, length, "little")


class YakEngine:
    """
    One side of a YAK exchange.

    Usage:
        engine = YakEngine(domain)
        transport.send(encode(engine.create_message()))
        secret = engine.process_peer_message(peer_message)
    """

    def __init__(self, domain: DomainParameters, rng: EntropySource = secrets.randbelow):
        self.domain = domain
        self._rng = rng
        self.keypair = EphemeralKeyPair.generate(domain, rng)
        self.state = YakState.AWAITING_PEER_MESSAGE
        self._message: Optional[HandshakeMessage] = None
        self._shared_secret: Optional[int] = None

    def create_message(self) -> HandshakeMessage:
        """Return this peer's handshake message, building the proof on first use."""
        if self._message is None:
            proof = schnorr.prove(
                self.keypair.private, self.keypair.public, self.domain, self._rng
            )
            self._message = HandshakeMessage(public=self.keypair.public, proof=proof)
        return self._message

    def process_peer_message(self, message: HandshakeMessage) -> int:
        """
        Verify the peer's proof and derive the shared secret.

        Args:
            message: Handshake message received from the peer

        Returns:
            Shared secret

        Raises:
            HandshakeFailedError: If the proof does not verify, the peer values
                are out of range, or a secret was already derived
        """
        if self.state is YakState.SECRET_DERIVED:
            raise HandshakeFailedError(message="Peer handshake message already processed")

        if not schnorr.verify(message.public, message.proof, self.domain):
            logger.warning("Peer proof of knowledge did not verify")
            raise HandshakeFailedError(
                ErrorCode.E103_INVALID_PROOF, "Peer proof of knowledge did not verify"
            )

        self._shared_secret = powmod(message.public, self.keypair.private, self.domain.prime)
        self.state = YakState.SECRET_DERIVED
        logger.debug("Shared secret derived")
        return self._shared_secret

    @property
    def shared_secret(self) -> Optional[int]:
        """The derived secret, or None until the peer message is processed."""
        return self._shared_secret

    def key_material(self, length: int = KEY_MATERIAL_LENGTH) -> bytes:
        """Key bytes for the stream cipher; only valid after SECRET_DERIVED."""
        if self._shared_secret is None:
            raise HandshakeFailedError(message="No shared secret has been derived")
        return derive_key_material(self._shared_secret, length)
