"""
yakchat - RC4 stream cipher.

Key scheduling (KSA) builds a permutation of 0..255 from the key; the
pseudo-random generation step (PRGA) advances two indices, swaps the entries
they reference and emits S[(S[i] + S[j]) mod 256]. Encryption and decryption
are the same XOR against the keystream, so two peers stay readable only while
their states have processed exactly the same number of bytes.
"""

from typing import List, Optional

from .constants import RC4_STATE_SIZE
from .errors import CipherError


class CipherState:
    """
    Mutable RC4 state: a 256-entry permutation plus the indices i and j.

    A session owns two of these (send and receive). They start identical and
    then evolve independently; they must never be swapped or shared.
    """

    def __init__(self, permutation: Optional[List[int]] = None, i: int = 0, j: int = 0):
        self.permutation = list(permutation) if permutation is not None else list(range(RC4_STATE_SIZE))
        self.i = i
        self.j = j

    @classmethod
    def from_key(cls, key: bytes, drop: int = 0) -> "CipherState":
        """
        Run the key-scheduling algorithm.

        Args:
            key: Key bytes, cycled if shorter than 256 bytes
            drop: Number of initial keystream bytes to discard

        Returns:
            Initialized CipherState

        Raises:
            CipherError: If the key is empty or drop is negative
        """
        if not key:
            raise CipherError(message="RC4 key must not be empty")
        if drop < 0:
            raise CipherError(message=f"Drop count must be non-negative, got {drop}")

        state = cls()
        s = state.permutation
        j = 0
        for i in range(RC4_STATE_SIZE):
            j = (j + s[i] + key[i % len(key)]) % RC4_STATE_SIZE
            s[i], s[j] = s[j], s[i]

        for _ in range(drop):
            state.next_byte()

        return state

    def next_byte(self) -> int:
        """Advance the state one step and return the next keystream byte."""
        s = self.permutation
        self.i = (self.i + 1) % RC4_STATE_SIZE
        self.j = (self.j + s[self.i]) % RC4_STATE_SIZE
        s[self.i], s[self.j] = s[self.j], s[self.i]
        return s[(s[self.i] + s[self.j]) % RC4_STATE_SIZE]

    def keystream(self, length: int) -> bytes:
        """Return the next ``length`` keystream bytes."""
        return bytes(self.next_byte() for _ in range(length))

    def process(self, data: bytes) -> bytes:
        """XOR ``data`` against the keystream, advancing the state by len(data)."""
        return bytes(byte ^ self.next_byte() for byte in data)

    def __repr__(self) -> str:
        return f"CipherState(i={self.i}, j={self.j})"


def init_state(key: bytes, drop: int = 0) -> CipherState:
    """Create a CipherState from ``key`` (see CipherState.from_key)."""
    return CipherState.from_key(key, drop)


def next_byte(state: CipherState) -> int:
    """Return the next keystream byte of ``state``."""
    return state.next_byte()


def rc4_process(data: bytes, state: CipherState) -> bytes:
    """Encrypt or decrypt ``data`` with ``state``."""
    return state.process(data)
