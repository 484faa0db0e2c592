"""
Sieving for smooth values of y = x^2 - n.

Two interchangeable strategies produce candidates over a window of offsets
k around x0 = floor(sqrt(n)):

- trial division of every x0 + k (reference implementation),
- the quadratic-residue log sieve, which accumulates fixed-point log
  weights on the arithmetic progressions x = r (mod p) and only trial
  divides offsets whose weight reaches a percentage of log|x^2 - n|.

Every candidate is confirmed by exact trial division and classified as a
full relation or as a partial relation with one or two large primes.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Iterator

import numpy as np
from sympy import factorint, isprime

from qsfactor.errors import ArithmeticInvariantViolation
from qsfactor.factor_base import FactorBase

WINDOW_SIZE = 100000


@dataclass(frozen=True)
class Window:
    """Offsets [min, max) around floor(sqrt(n))."""
    min: int
    max: int

    def __len__(self):
        return self.max - self.min


@dataclass(frozen=True, eq=False)
class Candidate:
    """
    A sieved value y = x^2 - n with its factor base exponents.

    exponents[0] is the sign slot, exponents[i + 1] belongs to the i-th
    factor base prime. large_primes is None for a full relation, otherwise
    the (vertex1, vertex2) key of a partial relation, vertex2 == 1 when a
    single large prime is left.
    """
    x: int
    y: int
    exponents: np.ndarray
    large_primes: tuple[int, int] | None = None

    @property
    def is_full(self) -> bool:
        return self.large_primes is None


def windows(sqrt_n: int, threads: int = 1, window_size: int = WINDOW_SIZE) -> Iterator[Window]:
    """
    Unbounded sequence of paired negative/positive windows moving outward from sqrt(n).

    Negative windows stop before x = sqrt_n + k reaches 0.
    """
    size = max(min(sqrt_n // threads, window_size), 1)
    k = 0
    while True:
        if sqrt_n - k > 1:
            yield Window(max(-k - size, 1 - sqrt_n), -k)
        yield Window(k, k + size)
        k += size


########################################
# Trial division and classification   #
########################################

def trial_divide(factor_base: FactorBase, x: int) -> tuple[int, np.ndarray, int]:
    """
    Divide y = x^2 - n by the factor base.

    :return: (y, exponents with the sign slot first, remaining cofactor)
    """
    y = x * x - factor_base.n
    value = abs(y)
    exponents = [1 if y < 0 else 0]
    for p in factor_base.primes:
        e = 0
        while value % p == 0:
            value //= p
            e += 1
        exponents.append(e)
    return y, np.array(exponents, dtype=np.int64), value


def classify(factor_base: FactorBase, x: int, y: int, exponents: np.ndarray, cofactor: int) -> Candidate | None:
    """
    Decide whether a trial-divided value is a full relation, a partial relation or useless.

    A cofactor below the large-prime cutoff is prime, because every prime up
    to the largest factor base prime either belongs to the factor base or
    cannot divide y.
    """
    if cofactor == 1:
        return Candidate(x, y, exponents)

    cutoff = factor_base.large_prime_cutoff
    if cofactor < cutoff:
        return Candidate(x, y, exponents, (cofactor, 1))

    if cofactor < cutoff * cutoff and not isprime(cofactor):
        factors = factorint(cofactor)
        if list(factors.values()) == [2]:
            # q^2 is already a square
            return Candidate(x, y, exponents)
        if len(factors) == 2 and all(e == 1 for e in factors.values()):
            large, small = sorted(factors, reverse=True)
            if large < cutoff:
                return Candidate(x, y, exponents, (large, small))
    return None


##################
# Sieve variants #
##################

def sieve_trial_division(factor_base: FactorBase, window: Window, lower_bound_percent: int = 85,
                         cancel: threading.Event | None = None) -> Iterator[Candidate]:
    """Test every offset of the window by trial division. O(window * |factor base|)."""
    for k in range(window.min, window.max):
        if cancel is not None and cancel.is_set():
            return
        x = factor_base.sqrt_n + k
        candidate = classify(factor_base, x, *trial_divide(factor_base, x))
        if candidate is not None:
            yield candidate


def sieve_quadratic_residue(factor_base: FactorBase, window: Window, lower_bound_percent: int = 85,
                            cancel: threading.Event | None = None) -> Iterator[Candidate]:
    """
    Log sieve over one window.

    :param factor_base: Factor base (with its sieve progressions) for n.
    :param window: Offsets to sieve.
    :param lower_bound_percent: Offsets whose accumulated weight reaches this percentage
        of floor(1000 * ln|x^2 - n|) are trial divided.
    :param cancel: Checked once per trial-divided offset, after the vectorized marking pass;
        the generator stops when it is set.
    :return: Generator of confirmed candidates, in offset order.
    """
    n = factor_base.n
    length = len(window)
    x0 = factor_base.sqrt_n + window.min

    counts = np.zeros(length, dtype=np.int64)
    for modulus, roots, weight in factor_base.progressions:
        for root in roots:
            counts[(root - x0) % modulus::modulus] += weight

    # y(j) = y0 + j * (2 * x0 + j), in floating point only for the threshold
    offsets = np.arange(length, dtype=np.float64)
    ys = float(x0 * x0 - n) + offsets * (2.0 * x0 + offsets)
    limits = np.floor(1000 * np.log(np.maximum(np.abs(ys), 1.0))).astype(np.int64)
    limits = limits * lower_bound_percent // 100

    for j in np.flatnonzero(counts >= limits):
        if cancel is not None and cancel.is_set():
            return
        x = x0 + int(j)
        y, exponents, cofactor = trial_divide(factor_base, x)
        expected = factor_base.expected_weight(exponents)
        if counts[j] != expected:
            raise ArithmeticInvariantViolation(
                f"sieve weight {int(counts[j])} at x={x} does not match {expected} recomputed by trial division")
        candidate = classify(factor_base, x, y, exponents, cofactor)
        if candidate is not None:
            yield candidate


SieveFunction = Callable[[FactorBase, Window, int, threading.Event | None], Iterator[Candidate]]

SIEVES: dict[str, SieveFunction] = {
    "quadratic_residue": sieve_quadratic_residue,
    "trial_division": sieve_trial_division,
}
