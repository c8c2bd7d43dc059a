"""
yakchat - Global Constants

This module defines the constants used throughout yakchat. The public domain
parameters and the cipher parameters are part of the wire contract: both peers
must use identical values, so they live here rather than in the user config.
"""

# Version Information
VERSION = "1.0.0"
APP_NAME = "yakchat"

# Network Constants
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000

# Connection Timeouts (seconds)
HANDSHAKE_TIMEOUT = 15
CONNECT_TIMEOUT = 10

# Transport Limits
READ_CHUNK_SIZE = 4096
SEND_QUEUE_MAX_SIZE = 1000
FLUSH_TIMEOUT = 2  # Seconds to flush queued frames on close

# Message Limits
MAX_MESSAGE_SIZE = 1024 * 1024  # 1 MB per frame payload
MAX_TEXT_MESSAGE_SIZE = 100 * 1024  # 100 KB of UTF-8 text
MAX_INTEGER_BYTES = 512  # Largest big-integer accepted in a handshake

# Protocol Version
PROTOCOL_VERSION = 1

# Domain Parameters
# Both peers must agree on these out of band; there is no negotiation.
DEFAULT_PRIME = int(
    "2666059058123518101548143651795902542003950378111894701790280012124011918017464857102059640892783997"
)
DEFAULT_GENERATOR = 2

# Cipher Constants
KEY_MATERIAL_LENGTH = 128  # Shared secret serialized as 1024 little-endian bits
RC4_STATE_SIZE = 256
RC4_DROP_BYTES = 3072  # Initial keystream bytes discarded after key scheduling
FINGERPRINT_LENGTH = 16  # Hex characters shown to the user

# File Paths
DEFAULT_DATA_DIR = "~/.yakchat"
CONFIG_FILENAME = "config.toml"
LOG_FILENAME = "yakchat.log"

# Logging Configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT = 5

# UI Configuration
UI_MAX_LOG_LINES = 500
SECURE_CONNECTION_FAILED = "secure connection could not be established"
