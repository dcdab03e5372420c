"""
Generic undirected graph.

Knows nothing about the game: the Board uses it (with cell ids as vertices) to model which cells are connected,
and to answer the connectivity questions needed for mill detection.
"""

from collections import deque
from typing import Any, Callable, Generic, Hashable, Iterable, TypeVar

from src.core.exceptions import (
    InvalidDestinationError,
    InvalidSourceError,
    InvalidVertexError,
)

T = TypeVar("T", bound=Hashable)
Predicate = Callable[[T], bool]


class Graph(Generic[T]):
    """Vertex set with symmetric adjacency lists. Iteration order is insertion order (dicts keep it for us)."""

    def __init__(self, vertices: Iterable[T] = ()) -> None:
        self._adjacency: dict[T, list[T]] = {}
        for vertex in vertices:
            self.add_vertex(vertex)

    @property
    def size(self) -> int:
        return len(self._adjacency)

    @property
    def vertices(self) -> list[T]:
        return list(self._adjacency.keys())

    def __contains__(self, vertex: object) -> bool:
        return vertex in self._adjacency

    def add_vertex(self, vertex: T) -> None:
        self._adjacency.setdefault(vertex, [])

    def add_edge(self, v: T, w: T) -> None:
        """Edges are undirected: w is added to v's neighbors and vice versa (never twice)."""
        if v not in self._adjacency or w not in self._adjacency:
            raise InvalidVertexError(f"Cannot connect {v!r} and {w!r}: vertex not in graph.")

        if w not in self._adjacency[v]:
            self._adjacency[v].append(w)
        if v not in self._adjacency[w]:
            self._adjacency[w].append(v)

    def neighbors(self, vertex: T) -> list[T]:
        if vertex not in self._adjacency:
            raise InvalidVertexError(f"Vertex {vertex!r} not in graph.")
        return self._adjacency[vertex]

    def is_adjacent(self, v: T, w: T) -> bool:
        return w in self.neighbors(v)

    def is_mutually_adjacent(self, v: T, w: T) -> bool:
        return self.is_adjacent(v, w) and self.is_adjacent(w, v)

    def filter(self, predicate: Predicate) -> list[T]:
        return [vertex for vertex in self._adjacency if predicate(vertex)]

    def sort(self, key: Callable[[T], Any]) -> None:
        """Reorder the vertex iteration order (neighbor lists are left untouched)."""
        self._adjacency = {
            vertex: self._adjacency[vertex] for vertex in sorted(self._adjacency, key=key)
        }

    def add_edges_by_filter(self, src: Predicate, dst: Predicate) -> None:
        """
        Declarative wiring
        ----

        Connect the single vertex matching `src` to every vertex matching `dst`.
        Lets a fixed topology be described by properties of the vertices (ids, coordinates)
        instead of hardcoded pairs of objects.
        """
        sources = self.filter(src)
        if len(sources) != 1:
            raise InvalidSourceError(
                f"Source filter must match exactly one vertex, matched {len(sources)}."
            )
        destinations = self.filter(dst)
        if not destinations:
            raise InvalidDestinationError("Destination filter must match at least one vertex.")

        source = sources[0]
        for destination in destinations:
            self.add_edge(source, destination)

    def breadth_first_search(self, start: T, predicate: Predicate) -> list[T]:
        """Visit everything reachable from `start` once. Return the visited vertices matching `predicate`, in visiting order."""
        if start not in self._adjacency:
            raise InvalidVertexError(f"Vertex {start!r} not in graph.")

        visited: set[T] = set()
        queue: deque[T] = deque([start])
        matches: list[T] = []
        while queue:
            vertex = queue.popleft()
            if vertex in visited:
                continue
            visited.add(vertex)
            if predicate(vertex):
                matches.append(vertex)
            queue.extend(w for w in self._adjacency[vertex] if w not in visited)
        return matches

    def contiguous_breadth_first_search(
        self, start: T, predicate: Predicate, exclude_start: bool = True
    ) -> list[T]:
        """
        Breadth first search that only expands through matching vertices
        ----

        ----
        Returns the cluster of matching vertices connected to `start` without leaving the matching region.

        * `exclude_start=True`: the start vertex is exempt from the test when it comes to expanding,
          so a non-matching start can still discover a matching cluster next to it.
          (The start is only part of the result if it matches.)
        """
        if start not in self._adjacency:
            raise InvalidVertexError(f"Vertex {start!r} not in graph.")

        visited: set[T] = set()
        queue: deque[T] = deque([start])
        matches: list[T] = []
        while queue:
            vertex = queue.popleft()
            if vertex in visited:
                continue
            visited.add(vertex)
            if predicate(vertex):
                matches.append(vertex)
            elif not (exclude_start and vertex == start):
                continue
            queue.extend(w for w in self._adjacency[vertex] if w not in visited)
        return matches

    def dehydrate(self) -> list[dict[str, Any]]:
        """Ordered, JSON-compatible snapshot of the adjacency lists."""
        return [
            {
                "vertex": _dehydrate_vertex(vertex),
                "neighbors": [_dehydrate_vertex(w) for w in neighbors],
            }
            for vertex, neighbors in self._adjacency.items()
        ]


def _dehydrate_vertex(vertex: Any) -> Any:
    """Vertices that know how to serialize themselves get to do so."""
    dehydrate = getattr(vertex, "dehydrate", None)
    return dehydrate() if callable(dehydrate) else vertex
