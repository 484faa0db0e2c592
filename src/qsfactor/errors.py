"""Exceptions raised by the quadratic sieve."""


class QuadraticSieveError(Exception):
    """Base class for every error raised by qsfactor."""


class InvalidInput(QuadraticSieveError, ValueError):
    """n <= 1, n prime where a composite is required, or a bad configuration."""


class NoDivisorFound(QuadraticSieveError, ValueError):
    """
    Every dependency vector produced only a trivial gcd.

    Recoverable: retry with a larger factor base or relation margin.
    """

    def __init__(self, n: int, message: str | None = None):
        self.n = n
        super().__init__(message or f"Failed to find a nontrivial factor of {n}; try increasing the factor base.")


class ArithmeticInvariantViolation(QuadraticSieveError, ArithmeticError):
    """Internal inconsistency. Never retried."""
