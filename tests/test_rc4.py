"""
Tests for yakchat.rc4.

Published test vectors, round trips, desynchronization and keystream
statistics.
"""

import random

import pytest

from yakchat.errors import CipherError
from yakchat.rc4 import CipherState, init_state, next_byte, rc4_process


class TestKnownVectors:
    """Standard RC4 vectors (no keystream drop)."""

    @pytest.mark.parametrize(
        "key,plaintext,ciphertext",
        [
            (b"Key", b"Plaintext", "bbf316e8d940af0ad3"),
            (b"Wiki", b"pedia", "1021bf0420"),
            (b"Secret", b"Attack at dawn", "45a01f645fc35b383552544b9bf5"),
        ],
    )
    def test_vector(self, key, plaintext, ciphertext):
        assert rc4_process(plaintext, init_state(key)).hex() == ciphertext

    def test_keystream_vector(self):
        # First keystream bytes for key "Key"
        assert CipherState.from_key(b"Key").keystream(4).hex() == "eb9f7781"


class TestCipherState:
    """Test state construction and stepping."""

    def test_empty_key_rejected(self):
        with pytest.raises(CipherError):
            CipherState.from_key(b"")

    def test_negative_drop_rejected(self):
        with pytest.raises(CipherError):
            CipherState.from_key(b"key", drop=-1)

    def test_permutation_after_ksa(self):
        state = CipherState.from_key(b"some key")
        assert sorted(state.permutation) == list(range(256))
        assert state.i == 0
        assert state.j == 0

    def test_drop_skips_keystream(self):
        full = CipherState.from_key(b"key").keystream(3072 + 16)
        dropped = CipherState.from_key(b"key", drop=3072).keystream(16)
        assert dropped == full[3072:]

    def test_next_byte_function(self):
        state_a = init_state(b"abc")
        state_b = init_state(b"abc")
        assert [next_byte(state_a) for _ in range(8)] == list(state_b.keystream(8))

    def test_repr_hides_permutation(self):
        state = CipherState.from_key(b"key")
        assert "permutation" not in repr(state)


class TestRoundTrip:
    """Encrypt and decrypt with matching states."""

    def test_round_trip(self):
        key = b"shared key material"
        message = "HELLO über secure".encode("utf-8")
        sender = init_state(key, drop=3072)
        receiver = init_state(key, drop=3072)
        assert rc4_process(rc4_process(message, sender), receiver) == message

    def test_round_trip_random(self):
        rng = random.Random(99)
        for _ in range(20):
            key = bytes(rng.randrange(256) for _ in range(rng.randrange(1, 64)))
            message = bytes(rng.randrange(256) for _ in range(rng.randrange(0, 200)))
            assert rc4_process(rc4_process(message, init_state(key)), init_state(key)) == message

    def test_stream_continues_across_messages(self):
        key = b"stream"
        sender = init_state(key)
        receiver = init_state(key)
        for message in (b"first", b"second", b"third message"):
            assert receiver.process(sender.process(message)) == message

    def test_ciphertext_same_length(self):
        assert len(init_state(b"k").process(b"12345")) == 5

    def test_empty_message(self):
        state = init_state(b"k")
        assert state.process(b"") == b""
        assert (state.i, state.j) == (0, 0)


class TestDesynchronization:
    """States that processed different byte counts produce garbage, not errors."""

    def test_receiver_one_byte_ahead(self):
        key = b"desync"
        message = b"attack at dawn, bring snacks"
        sender = init_state(key)
        receiver = init_state(key)
        receiver.next_byte()

        decrypted = receiver.process(sender.process(message))
        assert decrypted != message
        assert len(decrypted) == len(message)

    def test_receiver_one_byte_behind(self):
        key = b"desync"
        message = b"attack at dawn, bring snacks"
        sender = init_state(key)
        receiver = init_state(key)
        sender.next_byte()

        assert receiver.process(sender.process(message)) != message

    def test_lost_message_breaks_following_ones(self):
        key = b"desync"
        sender = init_state(key)
        receiver = init_state(key)
        sender.process(b"this message never arrives")
        assert receiver.process(sender.process(b"next message")) != b"next message"


class TestKeystreamProperties:
    """Determinism and a statistical spot check."""

    def test_same_key_same_keystream(self):
        assert init_state(b"same").keystream(1024) == init_state(b"same").keystream(1024)

    def test_different_keys_different_keystream(self):
        assert init_state(b"key-a").keystream(64) != init_state(b"key-b").keystream(64)

    def test_byte_distribution_chi_square(self):
        """XOR of two keystreams from different keys looks uniform."""
        samples = 65536
        stream_a = init_state(b"first key", drop=3072).keystream(samples)
        stream_b = init_state(b"second key", drop=3072).keystream(samples)

        counts = [0] * 256
        for a, b in zip(stream_a, stream_b):
            counts[a ^ b] += 1

        expected = samples / 256
        chi_square = sum((count - expected) ** 2 / expected for count in counts)
        # 255 degrees of freedom; 360 is past the 99.99th percentile
        assert chi_square < 360

    def test_matching_positions_rare(self):
        samples = 4096
        stream_a = init_state(b"alpha").keystream(samples)
        stream_b = init_state(b"beta").keystream(samples)
        matches = sum(1 for a, b in zip(stream_a, stream_b) if a == b)
        # Expected about samples / 256 = 16
        assert matches < 64
