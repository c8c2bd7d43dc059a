"""
yakchat - Large-integer modular arithmetic.

Fixed public domain parameters and the handful of modular operations the key
exchange needs. Python integers are arbitrary precision, so no fixed-width
type is required; widths only matter when integers are serialized.
"""

import secrets
from dataclasses import dataclass
from typing import Callable

from .constants import DEFAULT_GENERATOR, DEFAULT_PRIME
from .errors import ErrorCode, ModularArithmeticError

# A randbelow-style entropy source: rng(n) returns an int in [0, n).
EntropySource = Callable[[int], int]


@dataclass(frozen=True)
class DomainParameters:
    """Public group parameters shared by both peers.

    Attributes:
        prime: Prime modulus p
        generator: Generator g with large multiplicative order modulo p
    """

    prime: int
    generator: int

    def __post_init__(self):
        if self.prime <= 3:
            raise ModularArithmeticError(
                ErrorCode.E002_INVALID_ARGUMENT,
                f"Prime modulus too small: {self.prime}",
                {"prime": self.prime},
            )
        if not 1 < self.generator < self.prime - 1:
            raise ModularArithmeticError(
                ErrorCode.E002_INVALID_ARGUMENT,
                "Generator must lie in [2, p-2]",
                {"generator": self.generator},
            )

    @classmethod
    def default(cls) -> "DomainParameters":
        """Return the compiled-in parameters used by every yakchat peer."""
        return cls(prime=DEFAULT_PRIME, generator=DEFAULT_GENERATOR)

    @property
    def order(self) -> int:
        """Order of the multiplicative group Z_p*, used to reduce exponents."""
        return self.prime - 1

    @property
    def byte_length(self) -> int:
        """Number of bytes needed to hold any residue modulo the prime."""
        return byte_length(self.prime)

    def is_valid_public(self, value: int) -> bool:
        """Check that a public value lies in [2, p-2]."""
        return 2 <= value <= self.prime - 2


def _check_modulus(modulus: int) -> None:
    if modulus == 0:
        raise ModularArithmeticError(message="Modulus must be nonzero", details={"modulus": 0})
    if modulus < 0:
        raise ModularArithmeticError(
            message="Modulus must be positive", details={"modulus": modulus}
        )


def powmod(base: int, exponent: int, modulus: int) -> int:
    """
    Compute base^exponent mod modulus.

    Three-argument pow performs square-and-multiply (binary exponentiation)
    on arbitrary precision integers.

    Args:
        base: Base value
        exponent: Non-negative exponent
        modulus: Positive modulus

    Returns:
        Result in [0, modulus)

    Raises:
        ModularArithmeticError: If modulus is zero or exponent is negative
    """
    _check_modulus(modulus)
    if exponent < 0:
        raise ModularArithmeticError(
            message="Exponent must be non-negative", details={"exponent": exponent}
        )
    return pow(base, exponent, modulus)


def mulmod(a: int, b: int, modulus: int) -> int:
    """Compute (a * b) mod modulus."""
    _check_modulus(modulus)
    return (a * b) % modulus


def random_below(bound: int, rng: EntropySource = secrets.randbelow) -> int:
    """
    Draw a uniformly random integer in [1, bound-1].

    Args:
        bound: Exclusive upper bound, at least 2
        rng: Entropy source (defaults to the OS CSPRNG via secrets)

    Returns:
        Random integer in [1, bound-1]

    Raises:
        ModularArithmeticError: If bound is smaller than 2
    """
    if bound < 2:
        raise ModularArithmeticError(
            message=f"Sampling bound must be at least 2, got {bound}", details={"bound": bound}
        )
    return rng(bound - 1) + 1


def byte_length(value: int) -> int:
    """Minimal number of bytes needed to represent a non-negative integer."""
    return max(1, (value.bit_length() + 7) // 8)


def to_fixed_bytes(value: int, length: int, byteorder: str = "big") -> bytes:
    """
    Serialize a non-negative integer at a fixed width.

    Values wider than ``length`` keep only their low-order bytes, so the
    result is always exactly ``length`` bytes long.
    """
    if value < 0:
        raise ModularArithmeticError(
            ErrorCode.E002_INVALID_ARGUMENT, "Cannot serialize a negative integer"
        )
    truncated = value % (1 << (8 * length))
    return truncated.to_bytes(length, byteorder)
