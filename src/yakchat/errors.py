"""
yakchat - Custom Exception Classes and Error Codes

This module defines the custom exceptions and error codes used throughout
yakchat. Each error has a unique code for logging and debugging.

Handshake-stage errors are session-fatal: the session moves to FAULTED and the
user has to reconnect. Arithmetic errors indicate programming misuse.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Enumeration of all yakchat error codes."""

    # General Errors (E001-E099)
    E001_UNKNOWN_ERROR = "E001"
    E002_INVALID_ARGUMENT = "E002"

    # Crypto Errors (E100-E199)
    E100_CRYPTO_ERROR = "E100"
    E101_ARITHMETIC_ERROR = "E101"
    E102_INVALID_PUBLIC_VALUE = "E102"
    E103_INVALID_PROOF = "E103"
    E104_HANDSHAKE_FAILED = "E104"
    E105_INVALID_KEY = "E105"

    # Network Errors (E200-E299)
    E200_NETWORK_ERROR = "E200"
    E201_CONNECTION_FAILED = "E201"
    E202_CONNECTION_TIMEOUT = "E202"
    E203_CONNECTION_CLOSED = "E203"
    E204_SEND_FAILED = "E204"
    E206_INVALID_MESSAGE = "E206"
    E207_MESSAGE_TOO_LARGE = "E207"
    E210_INVALID_SESSION_STATE = "E210"

    # Config Errors (E700-E799)
    E700_CONFIG_ERROR = "E700"
    E701_CONFIG_LOAD_FAILED = "E701"
    E702_CONFIG_SAVE_FAILED = "E702"
    E704_CONFIG_PARSE_ERROR = "E704"


class YakChatError(Exception):
    """Base exception class for all yakchat errors.

    Attributes:
        code: Error code from ErrorCode enum
        message: Human-readable error message
        details: Additional error details (optional)
    """

    def __init__(self, code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize a yakchat error.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            details: Additional error context (optional)
        """
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization.

        Returns:
            Dictionary containing error information
        """
        return {"code": self.code.value, "message": self.message, "details": self.details}


class CryptoError(YakChatError):
    """Exception raised for cryptographic operation failures."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E100_CRYPTO_ERROR,
        message: str = "Cryptographic operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ModularArithmeticError(CryptoError, ArithmeticError):
    """Invalid modulus, exponent or sampling bound.

    Also an ArithmeticError so callers can catch it alongside the builtins.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E101_ARITHMETIC_ERROR,
        message: str = "Invalid modular arithmetic operand",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class HandshakeFailedError(CryptoError):
    """Umbrella for any rejection during the key exchange."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E104_HANDSHAKE_FAILED,
        message: str = "Handshake failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class InvalidPublicValueError(HandshakeFailedError):
    """Peer public value is the identity, zero, or otherwise out of range."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E102_INVALID_PUBLIC_VALUE,
        message: str = "Public value out of range",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class InvalidProofError(HandshakeFailedError):
    """Proof components are out of range and cannot be verified."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E103_INVALID_PROOF,
        message: str = "Proof of knowledge is malformed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class CipherError(CryptoError):
    """Exception raised for stream cipher misuse (e.g. an empty key)."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E105_INVALID_KEY,
        message: str = "Invalid cipher key",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class NetworkError(YakChatError):
    """Exception raised for network and session operation failures."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E200_NETWORK_ERROR,
        message: str = "Network operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class TransportError(NetworkError):
    """Exception surfaced from the byte transport (send failed, connection gone)."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E204_SEND_FAILED,
        message: str = "Transport failure",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ProtocolError(NetworkError):
    """Exception raised for malformed frames or handshake payloads."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E206_INVALID_MESSAGE,
        message: str = "Malformed protocol message",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class SessionStateError(NetworkError):
    """Exception raised when an operation is not allowed in the current session state."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E210_INVALID_SESSION_STATE,
        message: str = "Operation not allowed in current session state",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)


class ConfigError(YakChatError):
    """Exception raised for configuration failures.

    This includes loading, parsing, and saving configuration files.
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.E700_CONFIG_ERROR,
        message: str = "Configuration operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(code, message, details)
