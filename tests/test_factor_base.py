"""
Unit tests for parameter selection and factor base construction.
"""
import itertools

import pytest

from qsfactor.config import QSConfig, calculate_factor_base_size, calculate_threads, decimal_digits
from qsfactor.errors import InvalidInput
from qsfactor.factor_base import build_factor_base, log_scale, prime_stream

from conftest import SEMIPRIME


class TestParameters:
    """Tests for the size and thread selection."""

    def test_decimal_digits(self):
        assert decimal_digits(8051) == 4
        assert decimal_digits(10**5) == 5
        assert decimal_digits(10**5 + 1) == 6
        assert decimal_digits(SEMIPRIME) == 19

    def test_factor_base_size_curve(self):
        assert calculate_factor_base_size(8051) == 4
        assert calculate_factor_base_size(999999) == 5
        assert calculate_factor_base_size(10**10 - 1) == 30
        assert calculate_factor_base_size(SEMIPRIME) == 57
        assert calculate_factor_base_size(10**100 - 1) == 80000

    def test_factor_base_size_beyond_curve(self):
        """Above 100 digits the linear fallback is used."""
        assert calculate_factor_base_size(10**100 + 1) == (101 - 5) * 5 + 101 + 1

    def test_factor_base_size_override(self):
        assert calculate_factor_base_size(SEMIPRIME, override=200) == 200

    def test_threads_small_n_always_single(self):
        assert calculate_threads(10**10, override=8) == 1

    def test_threads_override(self):
        assert calculate_threads(SEMIPRIME, override=3) == 3

    def test_threads_auto(self):
        assert 1 <= calculate_threads(SEMIPRIME) <= 4


class TestConfig:
    """Tests for QSConfig validation."""

    @pytest.mark.parametrize("field, value", [
        ("threads", -1),
        ("lower_bound_percent", 0),
        ("lower_bound_percent", 101),
        ("relation_margin", 0),
        ("window_size", 0),
        ("sieve", "gnfs"),
        ("retry_factor", 0.5),
        ("max_idle_windows", 0),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(InvalidInput):
            QSConfig(**{field: value})

    def test_enlarged(self):
        config = QSConfig(retry_factor=1.5).enlarged(SEMIPRIME)
        assert config.factor_base_size == 86
        assert config.relation_margin == 15


class TestFactorBase:
    """Tests for build_factor_base."""

    def test_prime_stream(self):
        assert list(itertools.islice(prime_stream(), 10)) == [2, 3, 5, 7, 11, 13, 17, 19, 23, 29]

    def test_prime_stream_crosses_chunks(self):
        primes = list(itertools.islice(prime_stream(), 200))
        assert primes[-1] == 1223
        assert primes == sorted(set(primes))

    def test_log_scale(self):
        assert log_scale(2) == 693
        assert log_scale(-1000) == 6907

    def test_small_factor_base(self, small_factor_base):
        assert small_factor_base.primes == [2, 5, 7, 13]
        assert small_factor_base.divisor is None
        assert small_factor_base.large_prime_cutoff == 169

    def test_roots(self, semiprime_factor_base):
        fb = semiprime_factor_base
        assert len(fb) == 57
        for entry in fb.entries:
            for root in entry.roots:
                assert (root * root - fb.n) % entry.prime == 0
            assert entry.log_weight == log_scale(entry.prime)

    def test_two_has_single_root(self, semiprime_factor_base):
        assert semiprime_factor_base.entries[0].prime == 2
        assert semiprime_factor_base.entries[0].roots == (1,)

    def test_prime_power_progressions(self, semiprime_factor_base):
        fb = semiprime_factor_base
        moduli = [modulus for modulus, _, _ in fb.progressions]
        assert len(moduli) == fb.levels.sum()
        assert any(modulus not in fb.primes for modulus in moduli)
        for modulus, roots, _ in fb.progressions:
            assert modulus <= 100000
            for root in roots:
                assert (root * root - fb.n) % modulus == 0

    def test_divisor_found_while_building(self):
        fb = build_factor_base(3 * SEMIPRIME, 57)
        assert fb.divisor == 3

    def test_even_n(self):
        assert build_factor_base(2 * SEMIPRIME, 10).divisor == 2
