"""
Relation collection.

Sieves windows until enough full relations exist, either sequentially or
with a pool of sieve worker threads feeding a single consumer. The
consumer owns the partial relation graph, so the graph needs no locking.

WARNING: sieve workers are threads and are GIL-bound; the marking step
runs in numpy, but trial division of candidates does not scale with
more threads on a standard interpreter.
"""

import concurrent.futures as futures
import logging
import math
import queue
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator

import numpy as np
import tqdm

from qsfactor.config import QSConfig
from qsfactor.factor_base import FactorBase
from qsfactor.partial_graph import PartialRelationGraph
from qsfactor.sieve import SIEVES, Candidate, Window, windows

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class Relation:
    """
    A full relation: x^2 = y (mod n) with y smooth over the factor base up to squares.

    For a relation combined from several sieved values, x is the product of
    their x values mod n, y the exact product of their y values and
    exponents the sum of their exponent vectors.
    """
    x: int
    y: int
    exponents: np.ndarray
    size: int = 1

    @classmethod
    def from_candidate(cls, candidate: Candidate) -> "Relation":
        return cls(candidate.x, candidate.y, candidate.exponents)

    @classmethod
    def combine(cls, n: int, candidates: Iterable[Candidate]) -> "Relation":
        candidates = list(candidates)
        x = math.prod(c.x for c in candidates) % n
        y = math.prod(c.y for c in candidates)
        exponents = np.sum([c.exponents for c in candidates], axis=0)
        return cls(x, y, exponents, len(candidates))


class _SharedWindows:
    """
    Window generator shared by the sieve workers.

    For small n only finitely many x give smooth values, so the stream is
    cut off after max_idle consecutive windows without a candidate.
    """

    def __init__(self, source: Iterator[Window], max_idle: int):
        self._source = source
        self._max_idle = max_idle
        self._idle = 0
        self._lock = threading.Lock()
        self.exhausted = False

    def next(self) -> Window | None:
        with self._lock:
            if self.exhausted:
                return None
            return next(self._source)

    def report(self, produced: bool):
        with self._lock:
            self._idle = 0 if produced else self._idle + 1
            if self._idle >= self._max_idle:
                self.exhausted = True


class RelationCollector:
    """
    Gathers full relations for one factor base.

    Partial relations are stored in a PartialRelationGraph; whenever a new
    partial closes a cycle, the cycle's relations are multiplied into one
    full relation and removed from the graph.
    """

    def __init__(self, factor_base: FactorBase, config: QSConfig, threads: int = 1):
        self.factor_base = factor_base
        self.config = config
        self.threads = threads
        self.sieve = SIEVES[config.sieve]
        self.graph = PartialRelationGraph()
        self.relations: list[Relation] = []
        self.full = 0
        self.combined = 0
        self.duplicates = 0
        self._progress = None

    def collect(self, desired: int) -> list[Relation]:
        """
        Sieve until at least `desired` relations are known.

        :param desired: Number of relations wanted (factor base size + margin).
        :return: The relations, in no particular order. Multi-threaded runs may return a few more than desired,
            and fewer are returned if config.max_idle_windows windows in a row yield no candidate.
        """
        with tqdm.tqdm(total=desired, desc="Relations", disable=not self.config.progress, smoothing=0) as progress:
            self._progress = progress
            if self.threads == 1:
                self._collect_sequential(desired)
            else:
                self._collect_parallel(desired)
        self._progress = None

        logger.info("Collected %d relations: %d full, %d from partials (%d partial, %d partial-partial stored, %d duplicates)",
                    len(self.relations), self.full, self.combined,
                    self.graph.partial_relations, self.graph.partial_partial_relations, self.duplicates)
        return self.relations

    def incorporate(self, candidate: Candidate) -> Relation | None:
        """Add a candidate, returning the new full relation it produced, if any."""
        if candidate.is_full:
            relation = Relation.from_candidate(candidate)
            self.full += 1
        else:
            vertex1, vertex2 = candidate.large_primes
            edge = self.graph.find_edge(vertex1, vertex2)
            if edge is not None and edge.relation.x == candidate.x:
                self.duplicates += 1
                return None
            path = self.graph.find_path(vertex1, vertex2)
            if path is None:
                self.graph.add_edge(vertex1, vertex2, candidate)
                return None
            members = list({id(edge): edge for edge in path}.values())
            for edge in members:
                self.graph.remove_edge(edge)
            relation = Relation.combine(self.factor_base.n, [candidate] + [edge.relation for edge in members])
            self.combined += 1

        self.relations.append(relation)
        if self._progress is not None:
            self._progress.update(1)
        return relation

    def _windows(self) -> _SharedWindows:
        source = windows(self.factor_base.sqrt_n, self.threads, self.config.window_size)
        return _SharedWindows(source, self.config.max_idle_windows)

    def _collect_sequential(self, desired: int):
        fb = self.factor_base
        ranges = self._windows()
        while True:
            window = ranges.next()
            if window is None:
                break
            produced = False
            for candidate in self.sieve(fb, window, self.config.lower_bound_percent, None):
                produced = True
                self.incorporate(candidate)
                if len(self.relations) >= desired:
                    return
            ranges.report(produced)
        logger.info("No candidates in %d consecutive windows, stopping", self.config.max_idle_windows)

    def _collect_parallel(self, desired: int):
        candidates = queue.Queue(maxsize=self.config.queue_size)
        cancel = threading.Event()
        ranges = self._windows()

        with futures.ThreadPoolExecutor(max_workers=self.threads, thread_name_prefix="sieve") as executor:
            workers = [executor.submit(self._sieve_worker, ranges, candidates, cancel) for _ in range(self.threads)]
            try:
                while len(self.relations) < desired:
                    try:
                        candidate = candidates.get(timeout=0.1)
                    except queue.Empty:
                        _raise_failed(workers)
                        if all(worker.done() for worker in workers):
                            logger.info("No candidates in %d consecutive windows, stopping",
                                        self.config.max_idle_windows)
                            break
                        continue
                    self.incorporate(candidate)
            finally:
                cancel.set()

        _raise_failed(workers)
        # keep whatever was enqueued before the workers stopped
        while True:
            try:
                candidate = candidates.get_nowait()
            except queue.Empty:
                break
            self.incorporate(candidate)

    def _sieve_worker(self, ranges: _SharedWindows, candidates: queue.Queue, cancel: threading.Event):
        fb = self.factor_base
        while not cancel.is_set():
            window = ranges.next()
            if window is None:
                return
            produced = False
            for candidate in self.sieve(fb, window, self.config.lower_bound_percent, cancel):
                produced = True
                while True:
                    try:
                        candidates.put(candidate, timeout=0.1)
                        break
                    except queue.Full:
                        if cancel.is_set():
                            return
            ranges.report(produced)


def _raise_failed(workers: list[futures.Future]):
    for worker in workers:
        if worker.done() and worker.exception() is not None:
            raise worker.exception()
