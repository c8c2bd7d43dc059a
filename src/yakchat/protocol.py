"""
yakchat - Network protocol definitions.

This module defines the wire protocol between two peers.
All frames are prefixed with a header containing:
- Protocol version (1 byte)
- Message type (2 bytes)
- Payload length (4 bytes)

Total header size: 7 bytes

Handshake payloads carry four big-integers (public value, commitment,
challenge, response), each as a 2-byte big-endian length followed by the
big-endian magnitude. Text payloads are raw RC4 ciphertext, exactly as long
as the UTF-8 plaintext.
"""

import struct
from enum import IntEnum
from typing import List, Optional, Tuple

from .constants import MAX_INTEGER_BYTES, MAX_MESSAGE_SIZE, PROTOCOL_VERSION
from .errors import ErrorCode, ProtocolError
from .schnorr import ProofOfKnowledge
from .yak import HandshakeMessage


class MessageType(IntEnum):
    """Message type definitions."""

    # Connection management
    HANDSHAKE = 1
    DISCONNECT = 5

    # Direct messaging
    TEXT_MESSAGE = 10


class Protocol:
    """Network protocol handler."""

    VERSION = PROTOCOL_VERSION
    HEADER_FORMAT = "!BHI"
    HEADER_SIZE = 7
    INTEGER_LENGTH_FORMAT = "!H"
    INTEGER_LENGTH_SIZE = 2
    HANDSHAKE_FIELDS = 4
    MAX_PAYLOAD_SIZE = MAX_MESSAGE_SIZE

    @staticmethod
    def pack_message(msg_type: MessageType, payload: bytes = b"") -> bytes:
        """
        Pack a frame with protocol header.

        Format:
        - Version: 1 byte (unsigned char)
        - Message Type: 2 bytes (unsigned short, big-endian)
        - Payload Length: 4 bytes (unsigned int, big-endian)
        - Payload: variable length (raw bytes)

        Raises:
            ProtocolError: If payload is too large
        """
        if len(payload) > Protocol.MAX_PAYLOAD_SIZE:
            raise ProtocolError(
                ErrorCode.E207_MESSAGE_TOO_LARGE,
                f"Payload too large: {len(payload)} bytes",
                {"size": len(payload), "max_size": Protocol.MAX_PAYLOAD_SIZE},
            )

        header = struct.pack(Protocol.HEADER_FORMAT, Protocol.VERSION, int(msg_type), len(payload))
        return header + payload

    @staticmethod
    def unpack_message(data: bytes) -> Optional[Tuple[MessageType, bytes, int]]:
        """
        Unpack one frame from received data.

        Returns:
        - Message type
        - Payload bytes
        - Total bytes consumed (header + payload)

        Returns None if insufficient data.

        Raises:
            ProtocolError: If the header is invalid
        """
        if len(data) < Protocol.HEADER_SIZE:
            return None

        version, msg_type_int, length = struct.unpack(
            Protocol.HEADER_FORMAT, data[: Protocol.HEADER_SIZE]
        )

        if version != Protocol.VERSION:
            raise ProtocolError(
                ErrorCode.E206_INVALID_MESSAGE,
                f"Unsupported protocol version: {version}",
                {"version": version, "expected": Protocol.VERSION},
            )

        # Check size before waiting on the payload so a bogus length fails fast
        if length > Protocol.MAX_PAYLOAD_SIZE:
            raise ProtocolError(
                ErrorCode.E207_MESSAGE_TOO_LARGE,
                f"Payload too large: {length} bytes",
                {"size": length, "max_size": Protocol.MAX_PAYLOAD_SIZE},
            )

        try:
            msg_type = MessageType(msg_type_int)
        except ValueError:
            raise ProtocolError(
                ErrorCode.E206_INVALID_MESSAGE,
                f"Invalid message type: {msg_type_int}",
                {"type": msg_type_int},
            )

        if len(data) < Protocol.HEADER_SIZE + length:
            return None

        payload = bytes(data[Protocol.HEADER_SIZE : Protocol.HEADER_SIZE + length])
        return msg_type, payload, Protocol.HEADER_SIZE + length

    @staticmethod
    def encode_integer(value: int) -> bytes:
        """Encode a non-negative integer as length-prefixed big-endian bytes."""
        if value < 0:
            raise ProtocolError(ErrorCode.E002_INVALID_ARGUMENT, "Cannot encode negative integer")
        raw = value.to_bytes((value.bit_length() + 7) // 8, "big")
        if len(raw) > MAX_INTEGER_BYTES:
            raise ProtocolError(
                ErrorCode.E207_MESSAGE_TOO_LARGE,
                f"Integer too large: {len(raw)} bytes",
                {"size": len(raw), "max_size": MAX_INTEGER_BYTES},
            )
        return struct.pack(Protocol.INTEGER_LENGTH_FORMAT, len(raw)) + raw

    @staticmethod
    def decode_integers(payload: bytes, count: int) -> List[int]:
        """
        Decode exactly ``count`` length-prefixed integers.

        Raises:
            ProtocolError: If the payload is truncated, has trailing bytes,
                or holds an oversized integer
        """
        values = []
        offset = 0
        for index in range(count):
            if len(payload) < offset + Protocol.INTEGER_LENGTH_SIZE:
                raise ProtocolError(
                    ErrorCode.E206_INVALID_MESSAGE,
                    f"Truncated integer length at field {index}",
                    {"field": index},
                )
            (length,) = struct.unpack_from(Protocol.INTEGER_LENGTH_FORMAT, payload, offset)
            offset += Protocol.INTEGER_LENGTH_SIZE
            if length > MAX_INTEGER_BYTES:
                raise ProtocolError(
                    ErrorCode.E207_MESSAGE_TOO_LARGE,
                    f"Integer too large: {length} bytes",
                    {"field": index, "size": length},
                )
            if len(payload) < offset + length:
                raise ProtocolError(
                    ErrorCode.E206_INVALID_MESSAGE,
                    f"Truncated integer at field {index}",
                    {"field": index},
                )
            values.append(int.from_bytes(payload[offset : offset + length], "big"))
            offset += length

        if offset != len(payload):
            raise ProtocolError(
                ErrorCode.E206_INVALID_MESSAGE,
                f"Unexpected {len(payload) - offset} trailing bytes",
            )
        return values

    @staticmethod
    def encode_handshake(message: HandshakeMessage) -> bytes:
        """Serialize a handshake message payload."""
        return b"".join(
            Protocol.encode_integer(value)
            for value in (
                message.public,
                message.proof.commitment,
                message.proof.challenge,
                message.proof.response,
            )
        )

    @staticmethod
    def decode_handshake(payload: bytes) -> HandshakeMessage:
        """
        Parse a handshake message payload.

        Raises:
            ProtocolError: If the payload is malformed
        """
        public, commitment, challenge, response = Protocol.decode_integers(
            payload, Protocol.HANDSHAKE_FIELDS
        )
        return HandshakeMessage(
            public=public,
            proof=ProofOfKnowledge(commitment=commitment, challenge=challenge, response=response),
        )

    @staticmethod
    def create_handshake(message: HandshakeMessage) -> bytes:
        """Create handshake frame."""
        return Protocol.pack_message(MessageType.HANDSHAKE, Protocol.encode_handshake(message))

    @staticmethod
    def create_text_message(ciphertext: bytes) -> bytes:
        """Create text message frame carrying raw ciphertext."""
        return Protocol.pack_message(MessageType.TEXT_MESSAGE, ciphertext)

    @staticmethod
    def create_disconnect() -> bytes:
        """Create disconnect frame."""
        return Protocol.pack_message(MessageType.DISCONNECT)
