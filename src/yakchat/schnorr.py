"""
yakchat - Schnorr zero-knowledge proof of exponent knowledge.

Proves knowledge of x for X = g^x mod p without revealing x. The challenge is
derived non-interactively from a SHA-256 hash of the generator, the public
value and the commitment.
"""

import logging
import secrets
from dataclasses import dataclass

from cryptography.hazmat.primitives import hashes

from .bigint import DomainParameters, EntropySource, mulmod, powmod, random_below, to_fixed_bytes
from .errors import InvalidProofError, InvalidPublicValueError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProofOfKnowledge:
    """Schnorr triple (r, c, s) proving knowledge of a discrete logarithm."""

    commitment: int
    challenge: int
    response: int


def challenge_hash(generator: int, public: int, commitment: int, domain: DomainParameters) -> int:
    """
    Compute c = H(g, X, r) reduced modulo the group order.

    Each integer is serialized big-endian at the width of the prime, so the
    hash input is unambiguous.

    Args:
        generator: Domain generator g
        public: Prover's public value X
        commitment: Commitment r = g^k mod p
        domain: Domain parameters

    Returns:
        Challenge in [0, p-2]
    """
    width = domain.byte_length
    digest = hashes.Hash(hashes.SHA256())
    for value in (generator, public, commitment):
        digest.update(to_fixed_bytes(value, width))
    return int.from_bytes(digest.finalize(), "big") % domain.order


def prove(
    secret: int,
    public: int,
    domain: DomainParameters,
    rng: EntropySource = secrets.randbelow,
) -> ProofOfKnowledge:
    """
    Build a proof of knowledge of ``secret`` for ``public = g^secret mod p``.

    Args:
        secret: Private exponent x
        public: Public value X
        domain: Domain parameters
        rng: Entropy source for the nonce

    Returns:
        ProofOfKnowledge (commitment, challenge, response)
    """
    nonce = random_below(domain.order, rng)
    commitment = powmod(domain.generator, nonce, domain.prime)
    challenge = challenge_hash(domain.generator, public, commitment, domain)
    response = (nonce + challenge * secret) % domain.order
    return ProofOfKnowledge(commitment=commitment, challenge=challenge, response=response)


def check_ranges(public: int, proof: ProofOfKnowledge, domain: DomainParameters) -> None:
    """
    Reject out-of-range values before any verification arithmetic.

    Raises:
        InvalidPublicValueError: If X is 0, 1, p-1 or outside [2, p-2]
        InvalidProofError: If any proof component is out of range
    """
    if not domain.is_valid_public(public):
        raise InvalidPublicValueError(
            message="Public value outside [2, p-2]",
            details={"bits": public.bit_length()},
        )
    if not 1 <= proof.commitment <= domain.prime - 1:
        raise InvalidProofError(message="Commitment outside [1, p-1]")
    if not 0 <= proof.challenge < domain.order:
        raise InvalidProofError(message="Challenge outside [0, p-2]")
    if not 0 <= proof.response < domain.order:
        raise InvalidProofError(message="Response outside [0, p-2]")


def verify(public: int, proof: ProofOfKnowledge, domain: DomainParameters) -> bool:
    """
    Verify a proof of knowledge for ``public``.

    Accepts iff the challenge matches H(g, X, r) and
    g^s == r * X^c (mod p).

    Args:
        public: Claimed public value X
        proof: Proof received from the peer
        domain: Domain parameters

    Returns:
        True if the proof verifies, False on any mismatch

    Raises:
        InvalidPublicValueError: If X is outside [2, p-2]
        InvalidProofError: If a proof component is out of range
    """
    check_ranges(public, proof, domain)

    expected = challenge_hash(domain.generator, public, proof.commitment, domain)
    if expected != proof.challenge:
        logger.debug("Proof rejected: challenge does not match commitment hash")
        return False

    left = powmod(domain.generator, proof.response, domain.prime)
    right = mulmod(
        proof.commitment, powmod(public, proof.challenge, domain.prime), domain.prime
    )
    if left != right:
        logger.debug("Proof rejected: verification equation does not hold")
        return False

    return True
