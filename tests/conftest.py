"""Shared fixtures for the qsfactor tests."""
import pytest

from qsfactor.factor_base import build_factor_base

# 1000000007 * 1000000009
SEMIPRIME = 1000000016000000063
MERSENNE_67 = 2**67 - 1


@pytest.fixture(scope="session")
def small_factor_base():
    """Factor base of 8051 = 83 * 97: primes 2, 5, 7, 13."""
    return build_factor_base(8051, 4)


@pytest.fixture(scope="session")
def semiprime_factor_base():
    return build_factor_base(SEMIPRIME, 57)
