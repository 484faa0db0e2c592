"""
Factor base construction.

The factor base contains the first primes p for which n is a quadratic
residue mod p, together with a square root of n mod p (the sieve roots
are r and p - r) and a fixed-point log weight for the log sieve.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
from sympy import jacobi_symbol, sieve, sqrt_mod

logger = logging.getLogger(__name__)

# Primes below this also have their powers sieved.
SMALL_PRIME_LIMIT = 100


def prime_stream():
    """Lazy, unbounded, ordered stream of primes."""
    low, high = 2, 1024
    while True:
        yield from sieve.primerange(low, high)
        low, high = high, 2 * high


def log_scale(value: int) -> int:
    """floor(1000 * ln|value|), the fixed-point weight used by the log sieve."""
    return math.floor(1000 * math.log(abs(value)))


@dataclass(frozen=True)
class FactorBaseEntry:
    prime: int
    root: int
    log_weight: int

    @property
    def roots(self) -> tuple[int, ...]:
        if self.prime == 2:
            return (self.root,)
        return (self.root, self.prime - self.root)


class FactorBase:
    """
    Factor base for a fixed n.

    Besides the entries it holds the arithmetic progressions marked by the
    log sieve: (modulus, roots, log weight) for every prime and, for small
    primes, for the prime powers that have square roots of n.

    `divisor` is set instead when a prime dividing n was met while drawing
    primes; the factor base is then incomplete and must not be sieved with.
    """

    def __init__(self, n: int, entries: list[FactorBaseEntry], large_prime_multiplier: int = 128,
                 max_power_modulus: int = 100000, divisor: int | None = None):
        self.n = n
        self.sqrt_n = math.isqrt(n)
        self.entries = entries
        self.divisor = divisor
        self.primes = [entry.prime for entry in entries]
        self.log_weights = np.array([entry.log_weight for entry in entries], dtype=np.int64)

        largest = self.primes[-1] if entries else 1
        self.large_prime_cutoff = min(large_prime_multiplier * largest, largest * largest)

        # levels[i]: number of moduli p, p^2, ... sieved for entry i
        self.levels = np.zeros(len(entries), dtype=np.int64)
        self.progressions: list[tuple[int, tuple[int, ...], int]] = []
        for i, entry in enumerate(entries):
            self.progressions.append((entry.prime, entry.roots, entry.log_weight))
            self.levels[i] = 1
            if entry.prime >= SMALL_PRIME_LIMIT:
                continue
            modulus = entry.prime**2
            while modulus <= max_power_modulus:
                roots = sqrt_mod(n % modulus, modulus, all_roots=True)
                if not roots:
                    break
                self.progressions.append((modulus, tuple(sorted(roots)), entry.log_weight))
                self.levels[i] += 1
                modulus *= entry.prime

    def __len__(self):
        return len(self.entries)

    def __repr__(self):
        return f"FactorBase(n={self.n}, size={len(self)}, largest={self.primes[-1] if self.primes else None})"

    def expected_weight(self, exponents: np.ndarray) -> int:
        """Log weight the sieve must have accumulated for a value with these exponents (sign slot first)."""
        return int(np.dot(self.log_weights, np.minimum(exponents[1:], self.levels)))


def build_factor_base(n: int, size: int, large_prime_multiplier: int = 128,
                      max_power_modulus: int = 100000) -> FactorBase:
    """
    Build the factor base for the quadratic sieve.

    :param n: The odd integer to be factored.
    :param size: Number of primes to keep.
    :param large_prime_multiplier: Large-prime cutoff as a multiple of the largest prime.
    :param max_power_modulus: Largest prime power modulus to sieve with.
    :return: The factor base, or an incomplete one with `divisor` set if a prime dividing n was found.
    """
    entries = []
    for p in prime_stream():
        if len(entries) == size:
            break
        if p == 2:
            # any odd n is a square mod 2
            if n % 2 == 0:
                return FactorBase(n, entries, large_prime_multiplier, max_power_modulus, divisor=2)
            entries.append(FactorBaseEntry(2, 1, log_scale(2)))
            continue
        symbol = jacobi_symbol(n % p, p)
        if symbol == 0 and p < n:
            logger.info("Prime %d divides n, skipping the sieve", p)
            return FactorBase(n, entries, large_prime_multiplier, max_power_modulus, divisor=p)
        if symbol == 1:
            entries.append(FactorBaseEntry(p, int(sqrt_mod(n % p, p)), log_scale(p)))

    return FactorBase(n, entries, large_prime_multiplier, max_power_modulus)
