"""
Linear algebra over GF(2).

The exponent-parity matrix has one row per factor base prime (row 0 is
the sign) and one column per relation. A dependency vector selects
columns whose XOR is zero, i.e. relations whose y values multiply to a
square.
"""

import logging
from typing import Iterator, Sequence

import numpy as np
import tqdm

logger = logging.getLogger(__name__)


def build_matrix(exponent_vectors: Sequence[np.ndarray], rows: int) -> np.ndarray:
    """
    Build the GF(2) exponent matrix.

    :param exponent_vectors: One exponent vector per relation, sign slot first.
    :param rows: Factor base size + 1.
    :return: Boolean matrix of shape (rows, number of relations).
    """
    matrix = np.zeros((rows, len(exponent_vectors)), dtype=bool)
    for j, exponents in enumerate(exponent_vectors):
        matrix[:, j] = np.asarray(exponents) % 2 == 1
    return matrix


def verify_solution(matrix: np.ndarray, solution: np.ndarray) -> bool:
    """True if the selected columns of matrix XOR to zero in every row."""
    return not np.bitwise_xor.reduce(matrix & solution, axis=1).any()


def solve(matrix: np.ndarray, progress: bool = False) -> Iterator[np.ndarray]:
    """
    Gaussian elimination mod 2, yielding dependency vectors lazily.

    Columns are processed left to right. A column with a 1 in a row that is
    not yet a pivot gets that row as its pivot, and the row is XORed into
    every other row with a 1 in the column. A column without such a row is
    the sum of earlier pivot columns; its dependency vector is read off the
    pivot rows.

    :param matrix: Boolean matrix, rows = primes (plus sign), columns = relations. Not modified.
    :param progress: Whether to show a tqdm progress bar.
    :return: Generator of boolean vectors over the columns, each verified against the input matrix.
    """
    original = matrix
    matrix = matrix.copy()
    rows, cols = matrix.shape

    # pivots[i]: column whose pivot is row i, -1 if unused
    pivots = np.full(rows, -1, dtype=np.int64)
    for k in tqdm.tqdm(range(cols), desc="Elimination", disable=not progress):
        ones = np.flatnonzero(matrix[:, k])
        free = ones[pivots[ones] < 0]
        if free.size:
            j = free[0]
            others = ones[ones != j]
            matrix[others] ^= matrix[j]
            pivots[j] = k
            continue

        v = np.zeros(cols, dtype=bool)
        v[k] = True
        used = np.flatnonzero(pivots >= 0)
        v[pivots[used]] = matrix[used, k]
        if verify_solution(original, v):
            yield v
        else:
            logger.warning("Discarding dependency for column %d that fails verification", k)
