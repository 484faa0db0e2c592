"""
End-to-end tests for get_divisor and factor.
"""
import numpy as np
import pytest
from sympy import nextprime

import qsfactor.quadratic_sieve as quadratic_sieve
from qsfactor.config import QSConfig
from qsfactor.errors import ArithmeticInvariantViolation, InvalidInput, NoDivisorFound
from qsfactor.quadratic_sieve import extract_divisor, factor, get_divisor
from qsfactor.relations import Relation

from conftest import MERSENNE_67, SEMIPRIME


class TestFactor:
    """Tests for the complete factorization."""

    def test_small_composite(self):
        assert factor(8051) == [83, 97]

    def test_semiprime(self):
        assert factor(SEMIPRIME) == [1000000007, 1000000009]

    def test_mersenne_67(self):
        assert factor(MERSENNE_67) == [193707721, 761838257287]

    def test_single_and_multi_threaded_agree(self):
        assert factor(SEMIPRIME, threads=1) == factor(SEMIPRIME, threads=3) == [1000000007, 1000000009]

    def test_trial_division_sieve(self):
        assert factor(1000003 * 1000033, sieve="trial_division", window_size=5000) == [1000003, 1000033]

    def test_small_prime_factor(self):
        assert factor(3 * SEMIPRIME) == [3, 1000000007, 1000000009]

    def test_prime_power(self):
        assert 1297**3 > QSConfig().small_factor_cutoff
        assert factor(1297**3) == [1297] * 3
        assert factor(nextprime(1290)**3, retries=0) == [1291] * 3

    def test_square_times_prime(self):
        p, q = nextprime(10**6), nextprime(10**7)
        assert factor(p * p * q) == [p, p, q]

    def test_repeated_factors(self):
        assert factor(1000000007**2) == [1000000007, 1000000007]
        assert factor(2**5 * 3**2 * SEMIPRIME) == [2] * 5 + [3] * 2 + [1000000007, 1000000009]

    @pytest.mark.parametrize("n, expected", [
        (2, [2]),
        (1024, [2] * 10),
        (1000000007, [1000000007]),
        (2**61 - 1, [2**61 - 1]),
    ])
    def test_primes_and_small_values(self, n, expected):
        assert factor(n) == expected

    def test_numpy_integer(self):
        assert factor(np.int64(8051)) == [83, 97]

    def test_config_object(self):
        config = QSConfig(threads=1, relation_margin=20)
        assert factor(SEMIPRIME, config) == [1000000007, 1000000009]

    @pytest.mark.parametrize("n", [1, 0, -15, 2.5, True, "8051"])
    def test_invalid_input(self, n):
        with pytest.raises(InvalidInput):
            factor(n)


class TestGetDivisor:
    """Tests for a single quadratic sieve run."""

    def test_semiprime(self):
        assert get_divisor(SEMIPRIME, threads=1) in (1000000007, 1000000009)

    def test_forced_sieve(self):
        """small_factor_cutoff does not apply to get_divisor itself."""
        assert get_divisor(1000003 * 1000033, threads=2) in (1000003, 1000033)

    def test_shortcuts(self):
        assert get_divisor(2 * SEMIPRIME) == 2
        assert get_divisor(1000000007**2) == 1000000007
        assert get_divisor(1297**3) == 1297
        assert get_divisor(3**40) == 3
        assert get_divisor(3 * SEMIPRIME) == 3

    def test_small_composite(self):
        """Few smooth values exist for tiny n; collection stops once the sieve runs dry."""
        assert get_divisor(8051) in (83, 97)

    def test_prime_rejected(self):
        with pytest.raises(InvalidInput):
            get_divisor(1000000007)

    def test_invalid_override(self):
        with pytest.raises(InvalidInput):
            get_divisor(SEMIPRIME, lower_bound_percent=0)


class TestExtractDivisor:

    def test_divisor(self):
        # 90^2 = 49 (mod 8051): gcd(90 + 7, 8051) = 97
        relation = Relation(90, 49, np.array([0, 0, 0, 2, 0]))
        assert extract_divisor(8051, [relation], np.array([True])) == 97

    def test_trivial(self):
        # 1^2 = 1
        relation = Relation(1, 1, np.zeros(5, dtype=np.int64))
        assert extract_divisor(8051, [relation], np.array([True])) is None

    def test_negative_product(self):
        relation = Relation(89, -130, np.array([1, 1, 1, 0, 1]))
        with pytest.raises(ArithmeticInvariantViolation):
            extract_divisor(8051, [relation], np.array([True]))

    def test_product_not_square(self):
        relation = Relation(91, 230, np.array([0, 1, 1, 0, 0]))
        with pytest.raises(ArithmeticInvariantViolation):
            extract_divisor(8051, [relation], np.array([True]))


class TestRetries:
    """Tests for the retry policy of factor."""

    def test_retry_enlarges_factor_base(self, monkeypatch):
        seen = []
        real = quadratic_sieve.get_divisor

        def flaky(n, config=None, **overrides):
            seen.append(config)
            if len(seen) < 3:
                return None
            return real(n, config)

        monkeypatch.setattr(quadratic_sieve, "get_divisor", flaky)
        assert factor(SEMIPRIME, threads=1) == [1000000007, 1000000009]
        assert len(seen) == 3
        assert seen[0].factor_base_size == 0
        assert seen[1].factor_base_size == 69
        assert seen[2].factor_base_size == 83
        assert seen[2].relation_margin == 15

    def test_gives_up(self, monkeypatch):
        monkeypatch.setattr(quadratic_sieve, "get_divisor", lambda n, config=None, **overrides: None)
        with pytest.raises(NoDivisorFound) as info:
            factor(SEMIPRIME, retries=0)
        assert info.value.n == SEMIPRIME

    def test_gives_up_after_retries(self, monkeypatch):
        calls = []

        def never(n, config=None, **overrides):
            calls.append(config)

        monkeypatch.setattr(quadratic_sieve, "get_divisor", never)
        with pytest.raises(NoDivisorFound):
            factor(SEMIPRIME, retries=2)
        assert len(calls) == 3
