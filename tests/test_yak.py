"""
Tests for yakchat.yak.

Key pair generation, the two-party exchange and key derivation.
"""

import dataclasses
import random

import pytest

from yakchat.bigint import powmod
from yakchat.constants import KEY_MATERIAL_LENGTH
from yakchat.errors import HandshakeFailedError, InvalidPublicValueError
from yakchat.yak import (
    EphemeralKeyPair,
    HandshakeMessage,
    YakEngine,
    YakState,
    derive_key_material,
)


class TestEphemeralKeyPair:
    """Test key pair generation."""

    def test_public_matches_private(self, default_domain):
        keypair = EphemeralKeyPair.generate(default_domain)
        assert keypair.public == powmod(default_domain.generator, keypair.private, default_domain.prime)

    def test_public_always_valid_on_toy_domain(self, toy_domain):
        rng = random.Random(0).randrange
        for _ in range(200):
            keypair = EphemeralKeyPair.generate(toy_domain, rng)
            assert toy_domain.is_valid_public(keypair.public)

    def test_private_not_in_repr(self, default_domain):
        keypair = EphemeralKeyPair.generate(default_domain)
        assert str(keypair.private) not in repr(keypair)

    def test_fresh_per_generation(self, default_domain):
        first = EphemeralKeyPair.generate(default_domain)
        second = EphemeralKeyPair.generate(default_domain)
        assert first.private != second.private


class TestYakEngine:
    """Test the key exchange between two engines."""

    def test_both_sides_derive_same_secret(self, default_domain):
        alice = YakEngine(default_domain)
        bob = YakEngine(default_domain)

        secret_a = alice.process_peer_message(bob.create_message())
        secret_b = bob.process_peer_message(alice.create_message())

        assert secret_a == secret_b
        assert alice.state is YakState.SECRET_DERIVED
        assert bob.state is YakState.SECRET_DERIVED

    def test_toy_domain_with_fixed_entropy(self, toy_domain, rng_factory):
        alice = YakEngine(toy_domain, rng_factory(100))
        bob = YakEngine(toy_domain, rng_factory(200))

        secret_a = alice.process_peer_message(bob.create_message())
        secret_b = bob.process_peer_message(alice.create_message())

        assert secret_a == secret_b
        expected = powmod(toy_domain.generator, alice.keypair.private * bob.keypair.private, toy_domain.prime)
        assert secret_a == expected

    def test_fixed_entropy_is_reproducible(self, toy_domain, rng_factory):
        first = YakEngine(toy_domain, rng_factory(9)).create_message()
        second = YakEngine(toy_domain, rng_factory(9)).create_message()
        assert first == second

    def test_message_is_cached(self, default_domain):
        engine = YakEngine(default_domain)
        assert engine.create_message() is engine.create_message()

    def test_no_secret_before_processing(self, default_domain):
        engine = YakEngine(default_domain)
        assert engine.shared_secret is None
        with pytest.raises(HandshakeFailedError):
            engine.key_material()

    def test_corrupted_proof_rejected(self, default_domain):
        alice = YakEngine(default_domain)
        bob = YakEngine(default_domain)
        message = bob.create_message()
        proof = dataclasses.replace(message.proof, response=message.proof.response ^ 1)
        corrupted = HandshakeMessage(public=message.public, proof=proof)

        with pytest.raises(HandshakeFailedError):
            alice.process_peer_message(corrupted)

        assert alice.shared_secret is None
        assert alice.state is YakState.AWAITING_PEER_MESSAGE

    def test_identity_public_value_rejected(self, default_domain):
        alice = YakEngine(default_domain)
        message = YakEngine(default_domain).create_message()
        forged = HandshakeMessage(public=1, proof=message.proof)

        with pytest.raises(InvalidPublicValueError):
            alice.process_peer_message(forged)

    def test_second_peer_message_rejected(self, default_domain):
        alice = YakEngine(default_domain)
        bob = YakEngine(default_domain)
        alice.process_peer_message(bob.create_message())

        with pytest.raises(HandshakeFailedError):
            alice.process_peer_message(bob.create_message())

    def test_key_material_matches(self, default_domain):
        alice = YakEngine(default_domain)
        bob = YakEngine(default_domain)
        alice.process_peer_message(bob.create_message())
        bob.process_peer_message(alice.create_message())

        assert alice.key_material() == bob.key_material()
        assert len(alice.key_material()) == KEY_MATERIAL_LENGTH


class TestKeyDerivation:
    """Pinned little-endian fixed-width derivation."""

    def test_little_endian(self):
        key = derive_key_material(0x0102, 4)
        assert key == b"\x02\x01\x00\x00"

    def test_default_length(self):
        assert len(derive_key_material(5)) == KEY_MATERIAL_LENGTH

    def test_small_secret_zero_padded(self):
        key = derive_key_material(17)
        assert key[0] == 17
        assert key[1:] == bytes(KEY_MATERIAL_LENGTH - 1)

    def test_wide_secret_truncated(self):
        secret = (1 << (8 * KEY_MATERIAL_LENGTH)) + 7
        key = derive_key_material(secret)
        assert key[0] == 7
        assert len(key) == KEY_MATERIAL_LENGTH
