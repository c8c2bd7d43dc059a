"""
Tests for yakchat.schnorr.

Completeness on honest input, rejection of tampered proofs, and range checks.
"""

import dataclasses
import random

import pytest

from yakchat.bigint import powmod
from yakchat.constants import DEFAULT_PRIME
from yakchat.errors import HandshakeFailedError, InvalidProofError, InvalidPublicValueError
from yakchat.schnorr import ProofOfKnowledge, challenge_hash, prove, verify
from yakchat.yak import EphemeralKeyPair

# Setting this bit always lands at or above p
OUT_OF_RANGE_BIT = DEFAULT_PRIME.bit_length()


def flip_bit(value: int, bit: int = 0) -> int:
    return value ^ (1 << bit)


def assert_rejected(public, proof, domain, tampered_value):
    """A tampered value either fails the range check or fails verification."""
    if tampered_value >= domain.order:
        with pytest.raises(InvalidProofError):
            verify(public, proof, domain)
    else:
        assert verify(public, proof, domain) is False


class TestProofCompleteness:
    """Honest proofs always verify."""

    def test_default_domain(self, default_domain):
        rng = random.Random(1).randrange
        for _ in range(10):
            keypair = EphemeralKeyPair.generate(default_domain, rng)
            proof = prove(keypair.private, keypair.public, default_domain, rng)
            assert verify(keypair.public, proof, default_domain) is True

    def test_toy_domain_every_exponent(self, toy_domain):
        rng = random.Random(3).randrange
        for x in range(1, toy_domain.order):
            public = powmod(toy_domain.generator, x, toy_domain.prime)
            if not toy_domain.is_valid_public(public):
                continue
            proof = prove(x, public, toy_domain, rng)
            assert verify(public, proof, toy_domain) is True

    def test_challenge_matches_hash(self, default_domain):
        keypair = EphemeralKeyPair.generate(default_domain)
        proof = prove(keypair.private, keypair.public, default_domain)
        expected = challenge_hash(
            default_domain.generator, keypair.public, proof.commitment, default_domain
        )
        assert proof.challenge == expected

    def test_challenge_hash_deterministic(self, default_domain):
        first = challenge_hash(2, 12345, 67890, default_domain)
        second = challenge_hash(2, 12345, 67890, default_domain)
        assert first == second
        assert 0 <= first < default_domain.order


class TestProofTampering:
    """Single-bit changes to the proof are rejected."""

    @pytest.fixture
    def honest(self, default_domain):
        rng = random.Random(11).randrange
        keypair = EphemeralKeyPair.generate(default_domain, rng)
        proof = prove(keypair.private, keypair.public, default_domain, rng)
        return keypair, proof

    @pytest.mark.parametrize("bit", [0, 1, 7, 64, 200, OUT_OF_RANGE_BIT])
    def test_tampered_response(self, default_domain, honest, bit):
        keypair, proof = honest
        tampered = dataclasses.replace(proof, response=flip_bit(proof.response, bit))
        assert_rejected(keypair.public, tampered, default_domain, tampered.response)

    @pytest.mark.parametrize("bit", [0, 1, 7, 64, 200, OUT_OF_RANGE_BIT])
    def test_tampered_challenge(self, default_domain, honest, bit):
        keypair, proof = honest
        tampered = dataclasses.replace(proof, challenge=flip_bit(proof.challenge, bit))
        assert_rejected(keypair.public, tampered, default_domain, tampered.challenge)

    def test_high_bit_flip_fails_range_check(self, default_domain, honest):
        keypair, proof = honest
        tampered = dataclasses.replace(proof, response=flip_bit(proof.response, OUT_OF_RANGE_BIT))
        with pytest.raises(InvalidProofError):
            verify(keypair.public, tampered, default_domain)

    def test_tampered_commitment(self, default_domain, honest):
        keypair, proof = honest
        tampered = dataclasses.replace(proof, commitment=flip_bit(proof.commitment))
        assert verify(keypair.public, tampered, default_domain) is False

    def test_wrong_public_value(self, default_domain, honest):
        keypair, proof = honest
        assert verify(flip_bit(keypair.public), proof, default_domain) is False

    def test_toy_domain_response_flip(self, toy_domain):
        rng = random.Random(5).randrange
        keypair = EphemeralKeyPair.generate(toy_domain, rng)
        proof = prove(keypair.private, keypair.public, toy_domain, rng)
        tampered = dataclasses.replace(proof, response=flip_bit(proof.response))
        assert verify(keypair.public, tampered, toy_domain) is False


class TestRangeChecks:
    """Out-of-range values raise instead of being verified."""

    @pytest.mark.parametrize("public", [0, 1, 22, 23, 100])
    def test_invalid_public_value(self, toy_domain, public):
        proof = ProofOfKnowledge(commitment=5, challenge=1, response=1)
        with pytest.raises(InvalidPublicValueError):
            verify(public, proof, toy_domain)

    def test_invalid_public_is_handshake_failure(self, toy_domain):
        proof = ProofOfKnowledge(commitment=5, challenge=1, response=1)
        with pytest.raises(HandshakeFailedError):
            verify(1, proof, toy_domain)

    @pytest.mark.parametrize(
        "proof",
        [
            ProofOfKnowledge(commitment=0, challenge=1, response=1),
            ProofOfKnowledge(commitment=23, challenge=1, response=1),
            ProofOfKnowledge(commitment=5, challenge=22, response=1),
            ProofOfKnowledge(commitment=5, challenge=1, response=22),
            ProofOfKnowledge(commitment=5, challenge=-1, response=1),
        ],
    )
    def test_invalid_proof_components(self, toy_domain, proof):
        with pytest.raises(InvalidProofError):
            verify(5, proof, toy_domain)
