"""
yakchat - Two-party chat over an authenticated key exchange

Two peers agree on a shared secret with a YAK-style authenticated
Diffie-Hellman exchange (Schnorr proofs of exponent knowledge) and exchange
text encrypted with an RC4 keystream per direction.

This is a teaching implementation of a weak cipher suite, not a hardened
crypto library.

License: MIT
"""

from .constants import APP_NAME, VERSION

__version__ = VERSION
__license__ = "MIT"

# Import core modules for easy access
from .bigint import DomainParameters, mulmod, powmod, random_below
from .config import Config
from .errors import (
    CipherError,
    ConfigError,
    CryptoError,
    ErrorCode,
    HandshakeFailedError,
    InvalidProofError,
    InvalidPublicValueError,
    ModularArithmeticError,
    NetworkError,
    ProtocolError,
    SessionStateError,
    TransportError,
    YakChatError,
)
from .rc4 import CipherState, init_state, next_byte, rc4_process
from .schnorr import ProofOfKnowledge
from .session import SessionProtocol, SessionRole, SessionStatus, Transport
from .session_fsm import SessionState
from .yak import EphemeralKeyPair, HandshakeMessage, YakEngine, derive_key_material

__all__ = [
    "APP_NAME",
    "VERSION",
    "CipherError",
    "CipherState",
    "Config",
    "ConfigError",
    "CryptoError",
    "DomainParameters",
    "EphemeralKeyPair",
    "ErrorCode",
    "HandshakeFailedError",
    "HandshakeMessage",
    "InvalidProofError",
    "InvalidPublicValueError",
    "ModularArithmeticError",
    "NetworkError",
    "ProofOfKnowledge",
    "ProtocolError",
    "SessionProtocol",
    "SessionRole",
    "SessionState",
    "SessionStateError",
    "SessionStatus",
    "Transport",
    "TransportError",
    "YakChatError",
    "YakEngine",
    "__license__",
    "__version__",
    "derive_key_material",
    "init_state",
    "mulmod",
    "next_byte",
    "powmod",
    "random_below",
    "rc4_process",
]
