"""
Quadratic Sieve algorithm.

get_divisor finds one nontrivial divisor of a composite n:

1. choose parameters (factor base size, threads),
2. build the factor base of primes p with (n/p) = 1,
3. sieve for relations x^2 = y (mod n) with y smooth, combining partial
   relations through the partial relation graph,
4. find dependency vectors of the exponent matrix over GF(2),
5. turn each dependency into a congruence of squares X^2 = Y^2 (mod n)
   and try gcd(X + Y, n).

factor composes it recursively into a complete factorization.
"""

import dataclasses
import logging
import math
import numbers
import time
from typing import Sequence

import gmpy2
import numpy as np
from sympy import factorint, isprime, perfect_power

from qsfactor.config import QSConfig, calculate_factor_base_size, calculate_threads, decimal_digits
from qsfactor.errors import ArithmeticInvariantViolation, InvalidInput, NoDivisorFound
from qsfactor.factor_base import build_factor_base
from qsfactor.linalg import build_matrix, solve
from qsfactor.relations import Relation, RelationCollector

logger = logging.getLogger(__name__)


######################################
# Congruence of squares -> a divisor #
######################################

def extract_divisor(n: int, relations: Sequence[Relation], dependency: np.ndarray) -> int | None:
    """
    Try one dependency vector.

    X = product of the selected x values (mod n), Y = sqrt of the product of
    the selected y values (mod n), which is exact because every exponent of
    the product is even.

    :return: gcd(X + Y, n) if it is a nontrivial divisor, else None.
    """
    selected = [relations[i] for i in np.flatnonzero(dependency)]
    x = math.prod(relation.x for relation in selected) % n
    y_squared = math.prod(relation.y for relation in selected)
    if y_squared < 0:
        raise ArithmeticInvariantViolation("product of selected y values is negative")
    root, remainder = gmpy2.isqrt_rem(gmpy2.mpz(y_squared))
    if remainder:
        raise ArithmeticInvariantViolation("product of selected y values is not a perfect square")
    y = int(root) % n

    factor = math.gcd(x + y, n)
    if 1 < factor < n:
        return factor
    return None


def _resolve_config(config: QSConfig | None, overrides: dict) -> QSConfig:
    return dataclasses.replace(config or QSConfig(), **overrides)


def _validate(n) -> int:
    if isinstance(n, bool) or not isinstance(n, numbers.Integral):
        raise InvalidInput(f"expected an integer, got {type(n).__name__}")
    n = int(n)
    if n <= 1:
        raise InvalidInput(f"n must be greater than 1, got {n}")
    return n


def get_divisor(n: int, config: QSConfig | None = None, **overrides) -> int | None:
    """
    Find a nontrivial divisor of a composite n with the quadratic sieve.

    :param n: The composite integer to split.
    :param config: Options, see QSConfig. Keyword arguments override its fields.
    :return: A divisor d with 1 < d < n, or None if every dependency vector gave a trivial gcd.
    :raises InvalidInput: n <= 1 or n prime.

    Even n and perfect powers b**e are answered without sieving. If the sieve
    runs dry before the relation quota is met, the relations found so far go
    to the linear algebra step.
    """
    config = _resolve_config(config, overrides)
    n = _validate(n)
    if isprime(n):
        raise InvalidInput(f"{n} is prime")
    if n % 2 == 0:
        return 2
    power = perfect_power(n)
    if power:
        # n = b**e: every congruence of squares gives a trivial gcd
        return int(power[0])

    started = time.perf_counter()

    ### 1 ###
    size = calculate_factor_base_size(n, config.factor_base_size)
    threads = calculate_threads(n, config.threads)

    ### 2 ###
    factor_base = build_factor_base(n, size, config.large_prime_multiplier, config.window_size)
    if factor_base.divisor is not None:
        return factor_base.divisor
    logger.info("Parameters: %d digits, factor base size %d (largest prime %d), %d thread(s), large prime cutoff %d",
                decimal_digits(n), len(factor_base), factor_base.primes[-1], threads, factor_base.large_prime_cutoff)
    built = time.perf_counter()

    ### 3 ###
    desired = len(factor_base) + config.relation_margin
    relations = RelationCollector(factor_base, config, threads).collect(desired)
    sieved = time.perf_counter()
    if len(relations) < desired:
        logger.warning("Sieve ran dry with %d of %d relations", len(relations), desired)

    ### 4 ###
    matrix = build_matrix([relation.exponents for relation in relations], len(factor_base) + 1)
    logger.debug("Shape of exponent matrix: %s", matrix.shape)

    ### 5 ###
    tried = 0
    divisor = None
    for dependency in solve(matrix, config.progress):
        tried += 1
        divisor = extract_divisor(n, relations, dependency)
        if divisor is not None:
            break
    finished = time.perf_counter()

    logger.debug("Timing: factor base %.3f s, sieving %.3f s, linear algebra %.3f s",
                 built - started, sieved - built, finished - sieved)
    if divisor is None:
        logger.info("Tried all %d dependency vectors, but found no nontrivial factor", tried)
    else:
        logger.info("Found divisor %d after %d dependency vector(s)", divisor, tried)
    return divisor


###########################
# Complete factorization #
###########################

def _factor_small(n: int) -> list[int]:
    return [p for p, e in sorted(factorint(n).items()) for _ in range(e)]


def _get_divisor_with_retries(n: int, config: QSConfig, retries: int) -> int:
    divisor = get_divisor(n, config)
    if divisor is not None:
        return divisor
    if retries <= 0:
        raise NoDivisorFound(n)
    logger.warning("No divisor of %d found, retrying with a larger factor base (attempts left: %d)", n, retries)
    return _get_divisor_with_retries(n, config.enlarged(n), retries - 1)


def _factor_core(n: int, config: QSConfig, factors: list[int]):
    if n == 1:
        return
    if n <= config.small_factor_cutoff:
        factors.extend(_factor_small(n))
        return
    if isprime(n):
        factors.append(n)
        return
    divisor = _get_divisor_with_retries(n, config, config.retries)
    _factor_core(divisor, config, factors)
    _factor_core(n // divisor, config, factors)


def factor(n: int, config: QSConfig | None = None, **overrides) -> list[int]:
    """
    Factor n into primes.

    :param n: Integer greater than 1.
    :param config: Options, see QSConfig. Keyword arguments override its fields.
    :return: The prime factors of n with multiplicity, in ascending order.
    :raises InvalidInput: n is not an integer greater than 1.
    :raises NoDivisorFound: a composite could not be split, even after config.retries retries.
    :raises ArithmeticInvariantViolation: internal inconsistency.
    """
    config = _resolve_config(config, overrides)
    n = _validate(n)
    factors: list[int] = []
    _factor_core(n, config, factors)
    return sorted(factors)
