"""Parameter selection and configuration for the quadratic sieve."""

import dataclasses
import logging
import math
from dataclasses import dataclass
from os import cpu_count
from typing import Literal

from qsfactor.errors import InvalidInput

SieveName = Literal["quadratic_residue", "trial_division"]

LOG_FORMAT = '[%(asctime)s] %(levelname)s: %(message)s'

# Below this n the sieve always runs on a single thread.
SINGLE_THREAD_LIMIT = 10**10

# (decimal digits, factor base size), interpolated linearly.
# 100 digits: http://www.mersenneforum.org/showthread.php?t=4013
SIZE_PAIRS = [
    (1, 2),
    (6, 5),
    (10, 30),
    (20, 60),
    (30, 500),
    (40, 1200),
    (100, 80000),
]


@dataclass(frozen=True)
class QSConfig:
    """
    Options for a factorization attempt.

    :param threads: Number of sieve workers, 0 to choose from the size of n. Ignored for n <= 10**10,
        which always sieves on a single thread.
    :param factor_base_size: Number of factor base primes, 0 to choose from the digit count of n.
    :param lower_bound_percent: Sieve acceptance threshold, as a percentage of log|x^2 - n|.
    :param relation_margin: Relations collected beyond the factor base size.
    :param window_size: Maximum length of a sieve window.
    :param large_prime_multiplier: Large-prime cutoff as a multiple of the largest factor base prime.
    :param sieve: "quadratic_residue" (log sieve) or "trial_division" (reference).
    :param small_factor_cutoff: n at or below this are factored by trial division.
    :param retries: Number of retries with a larger factor base if no divisor is found.
    :param retry_factor: Factor by which the factor base and margin grow on each retry.
    :param queue_size: Bound of the queue between sieve workers and the collector.
    :param max_idle_windows: Relation collection stops early after this many consecutive windows
        without a single candidate.
    :param progress: Whether to show tqdm progress bars.
    """
    threads: int = 0
    factor_base_size: int = 0
    lower_bound_percent: int = 85
    relation_margin: int = 10
    window_size: int = 100000
    large_prime_multiplier: int = 128
    sieve: SieveName = "quadratic_residue"
    small_factor_cutoff: int = 2**31 - 1
    retries: int = 2
    retry_factor: float = 1.2
    queue_size: int = 1024
    max_idle_windows: int = 100
    progress: bool = False

    def __post_init__(self):
        if self.threads < 0:
            raise InvalidInput("threads must be 0 (auto) or positive")
        if self.factor_base_size < 0:
            raise InvalidInput("factor_base_size must be 0 (auto) or positive")
        if not 0 < self.lower_bound_percent <= 100:
            raise InvalidInput("lower_bound_percent must be in (0, 100]")
        if self.relation_margin < 1:
            raise InvalidInput("relation_margin must be at least 1")
        if self.window_size < 1:
            raise InvalidInput("window_size must be at least 1")
        if self.large_prime_multiplier < 1:
            raise InvalidInput("large_prime_multiplier must be at least 1")
        if self.sieve not in ("quadratic_residue", "trial_division"):
            raise InvalidInput(f"unknown sieve {self.sieve!r}")
        if self.retries < 0:
            raise InvalidInput("retries must not be negative")
        if self.retry_factor < 1:
            raise InvalidInput("retry_factor must be at least 1")
        if self.queue_size < 1:
            raise InvalidInput("queue_size must be at least 1")
        if self.max_idle_windows < 1:
            raise InvalidInput("max_idle_windows must be at least 1")

    def enlarged(self, n: int) -> "QSConfig":
        """Return a copy with a larger factor base and relation margin, for retrying n."""
        size = self.factor_base_size or calculate_factor_base_size(n)
        return dataclasses.replace(
            self,
            factor_base_size=math.ceil(size * self.retry_factor),
            relation_margin=math.ceil(self.relation_margin * self.retry_factor),
        )


def decimal_digits(n: int) -> int:
    """ceil(log10(n)), computed without floating point for large n."""
    digits = len(str(n))
    return digits - 1 if n == 10**(digits - 1) else digits


def calculate_factor_base_size(n: int, override: int = 0) -> int:
    """Factor base size from the empirical digit curve, unless overridden."""
    if override:
        return override
    digits = decimal_digits(n)
    for (x0, y0), (x1, y1) in zip(SIZE_PAIRS, SIZE_PAIRS[1:]):
        if x0 <= digits <= x1:
            return math.ceil(y0 + (digits - x0) * (y1 - y0) / (x1 - x0))
    return (digits - 5) * 5 + digits + 1


def calculate_threads(n: int, override: int = 0) -> int:
    """Single-threaded for small n, otherwise the override or min(4, cpu_count())."""
    if n <= SINGLE_THREAD_LIMIT:
        return 1
    if override:
        return override
    return min(4, cpu_count() or 1)


def configure_logging(verbosity: Literal[0, 1, 2] = 0):
    """Install a root handler. Only used by the command line; the library never configures logging."""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbosity, logging.DEBUG)
    logging.basicConfig(level=level, format=LOG_FORMAT)
