"""
Graph of partial relations.

Vertices are large primes, an edge is a partial relation. An edge
(v, 1) is a relation with a single large prime v; vertex 1 acts as a sink
shared by all of them. An edge (v1, v2) is a relation with two large
primes.

The graph is kept acyclic. Instead of looking for cycles, the caller asks
for a path between the endpoints of an edge it is about to add. If a path
exists, the path plus the new edge is a cycle: every large prime on it
occurs an even number of times, so the product of its relations is a full
relation. The caller then removes the path instead of adding the edge.
"""

from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(eq=False)
class PartialRelationEdge:
    vertex1: int
    vertex2: int
    relation: Any = None

    def other(self, vertex: int) -> int:
        return self.vertex2 if vertex == self.vertex1 else self.vertex1

    def __repr__(self):
        return f"PartialRelationEdge(vertex1={self.vertex1}, vertex2={self.vertex2})"


class _VertexDictionary:
    """
    Dictionary keyed by vertex, spread across a fixed number of smaller
    dictionaries selected by the low bits of the vertex.

    Bit 0 is skipped since large primes are odd.
    """
    count = 16
    shift = 1
    mask = (count - 1) << shift

    def __init__(self):
        self.dictionaries = [{} for _ in range(self.count)]

    def _slot(self, vertex: int) -> dict:
        return self.dictionaries[(vertex & self.mask) >> self.shift]

    def __len__(self):
        return sum(len(d) for d in self.dictionaries)

    def __contains__(self, vertex: int):
        return vertex in self._slot(vertex)

    def __getitem__(self, vertex: int):
        return self._slot(vertex)[vertex]

    def __setitem__(self, vertex: int, value):
        self._slot(vertex)[vertex] = value

    def __delitem__(self, vertex: int):
        del self._slot(vertex)[vertex]

    def get(self, vertex: int, default=None):
        return self._slot(vertex).get(vertex, default)

    def values(self) -> Iterator:
        for d in self.dictionaries:
            yield from d.values()


class _EdgeMap:
    """Vertex to incident edges. A vertex with a single edge stores it without a list."""

    def __init__(self):
        self.map = _VertexDictionary()

    def add(self, vertex: int, edge: PartialRelationEdge):
        value = self.map.get(vertex)
        if value is None:
            self.map[vertex] = edge
        elif isinstance(value, PartialRelationEdge):
            self.map[vertex] = [value, edge]
        else:
            value.append(edge)

    def remove(self, vertex: int, edge: PartialRelationEdge):
        value = self.map[vertex]
        if isinstance(value, PartialRelationEdge):
            del self.map[vertex]
        else:
            value.remove(edge)
            if len(value) == 1:
                self.map[vertex] = value[0]

    def has_edges(self, vertex: int) -> bool:
        return vertex in self.map

    def edges(self, vertex: int) -> list[PartialRelationEdge]:
        value = self.map.get(vertex)
        if value is None:
            return []
        if isinstance(value, PartialRelationEdge):
            return [value]
        return value

    def values(self) -> Iterator:
        return self.map.values()


class PartialRelationGraph:
    """
    Acyclic graph of partial relations (one large prime) and partial-partial
    relations (two large primes).

    Single large prime edges live in a vertex -> edge map, two large prime
    edges in a vertex -> incident edges map.
    """

    def __init__(self):
        self._partials = _VertexDictionary()
        self._pairs = _EdgeMap()
        self._count = 0

    def __len__(self):
        return self._count

    @property
    def partial_relations(self) -> int:
        return len(self._partials)

    @property
    def partial_partial_relations(self) -> int:
        return self._count - len(self._partials)

    def __iter__(self) -> Iterator[PartialRelationEdge]:
        yield from self._partials.values()
        yield from self._pair_edges()

    def _pair_edges(self) -> Iterator[PartialRelationEdge]:
        # each pair edge is listed under both of its endpoints
        seen = set()
        for value in self._pairs.values():
            for edge in ([value] if isinstance(value, PartialRelationEdge) else value):
                if id(edge) not in seen:
                    seen.add(id(edge))
                    yield edge

    def add_edge(self, vertex1: int, vertex2: int, relation: Any = None) -> PartialRelationEdge:
        """Insert a new edge. Use find_path first: the edge must not close a cycle."""
        return self.add(PartialRelationEdge(vertex1, vertex2, relation))

    def add(self, edge: PartialRelationEdge) -> PartialRelationEdge:
        if edge.vertex2 == 1:
            self._partials[edge.vertex1] = edge
        else:
            self._pairs.add(edge.vertex1, edge)
            self._pairs.add(edge.vertex2, edge)
        self._count += 1
        return edge

    def remove_edge(self, edge: PartialRelationEdge):
        if edge.vertex2 == 1:
            del self._partials[edge.vertex1]
        else:
            self._pairs.remove(edge.vertex1, edge)
            self._pairs.remove(edge.vertex2, edge)
        self._count -= 1

    def find_edge(self, vertex1: int, vertex2: int) -> PartialRelationEdge | None:
        """The edge connecting exactly these two vertices, if any."""
        if vertex2 == 1:
            return self._partials.get(vertex1)
        for edge in self._pairs.edges(vertex1):
            if edge.vertex1 == vertex2 or edge.vertex2 == vertex2:
                return edge
        return None

    def find_path(self, start: int, end: int) -> list[PartialRelationEdge] | None:
        """
        Find the path between two vertices, if they are connected.

        :param start: First vertex of the edge about to be added.
        :param end: Second vertex, 1 for a single large prime.
        :return: The edges of the path, or None.
        """
        if end == 1:
            # a matching partial relation
            if start in self._partials:
                return [self._partials[start]]
            # a route that terminates with a partial
            return self._search(start, 1)

        has_start = start in self._partials
        has_end = end in self._partials

        # both reduce to the sink through their partial relations
        if has_start and has_end:
            return [self._partials[end], self._partials[start]]

        # a direct path, only possible if end has pair edges
        result = None
        if self._pairs.has_edges(end):
            result = self._search(start, end)
            if result is not None:
                return result

        # neither endpoint has a partial relation: join a route from
        # each of them to the sink
        if not has_start and not has_end:
            part1 = self._search(start, 1)
            if part1 is not None:
                part2 = self._search(end, 1)
                if part2 is not None:
                    return part1 + part2

        if has_start:
            result = self._search(end, 1)
            if result is not None:
                result.append(self._partials[start])

        if has_end:
            result = self._search(start, 1)
            if result is not None:
                result.append(self._partials[end])
        return result

    def _search(self, start: int, end: int) -> list[PartialRelationEdge] | None:
        """
        Depth-first search from start through pair edges.

        With end == 1 the search stops at the first vertex that has a partial
        relation. The graph is a forest, so the only edge that must not be
        crossed is the one just traversed. The path is returned from the far
        end back to start.
        """
        trail: dict[int, tuple[int, PartialRelationEdge] | None] = {start: None}
        stack: list[tuple[int, PartialRelationEdge | None]] = [(start, None)]
        while stack:
            vertex, arrived_by = stack.pop()
            if end == 1:
                edge = self._partials.get(vertex)
                if edge is not None:
                    return self._unwind(trail, vertex, [edge])
            for edge in self._pairs.edges(vertex):
                if edge is arrived_by:
                    continue
                following = edge.other(vertex)
                trail[following] = (vertex, edge)
                if following == end:
                    return self._unwind(trail, following, [])
                stack.append((following, edge))
        return None

    @staticmethod
    def _unwind(trail, vertex: int, path: list[PartialRelationEdge]) -> list[PartialRelationEdge]:
        while trail[vertex] is not None:
            vertex, edge = trail[vertex]
            path.append(edge)
        return path
