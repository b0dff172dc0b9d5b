"""The fixed 12-node pitch graph.

Node 1 and node 12 are the goal nodes. P1 defends node 1 and attacks node 12,
P2 defends node 12 and attacks node 1. Adjacency lists are directional and are
reproduced exactly from the published table.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator, Mapping

from .types import PlayerId
from .units import Unit

ADJACENCY: dict[int, tuple[int, ...]] = {
    1: (2, 3),
    2: (1, 3, 4, 5),
    3: (1, 2, 5, 6),
    4: (2, 5, 7, 8),
    5: (2, 3, 4, 6, 7, 8, 9),
    6: (3, 5, 8, 9),
    7: (4, 5, 8, 10),
    8: (4, 5, 6, 7, 9, 10, 11),
    9: (5, 6, 8, 11),
    10: (7, 8, 11, 12),
    11: (8, 9, 10, 12),
    12: (10, 11),
}

GOAL_NODES: frozenset[int] = frozenset({1, 12})

_OWN_GOAL: dict[str, int] = {"P1": 1, "P2": 12}

# Where a shooter who loses at a goal node is pushed back to.
PUSH_BACK: dict[int, int] = {12: 10, 1: 2}


class InvariantViolation(AssertionError):
    pass


def own_goal_node(player: PlayerId) -> int:
    return _OWN_GOAL[player]


def goal_node_for(player: PlayerId) -> int:
    """The goal node `player` shoots at."""
    return 12 if player == "P1" else 1


@dataclass
class Node:
    id: int
    neighbors: tuple[int, ...]
    is_goal: bool
    occupants: set[str] = field(default_factory=set)

    def add_occupant(self, unit_id: str) -> None:
        self.occupants.add(unit_id)

    def remove_occupant(self, unit_id: str) -> None:
        self.occupants.discard(unit_id)

    def is_empty(self) -> bool:
        return not self.occupants

    def has_enemy(self, owner: PlayerId, units: Mapping[str, Unit]) -> bool:
        return any(u in units and units[u].owner != owner for u in self.occupants)


@dataclass
class Board:
    nodes: dict[int, Node]

    @staticmethod
    def standard() -> "Board":
        return Board(
            nodes={
                nid: Node(id=nid, neighbors=nbrs, is_goal=nid in GOAL_NODES)
                for nid, nbrs in ADJACENCY.items()
            }
        )

    def get_node(self, node_id: int) -> Node | None:
        return self.nodes.get(node_id)

    def get_neighbors(self, node_id: int) -> list[Node]:
        node = self.get_node(node_id)
        if node is None:
            return []
        return [self.nodes[n] for n in node.neighbors if n in self.nodes]

    def is_adjacent(self, from_id: int, to_id: int) -> bool:
        node = self.get_node(from_id)
        return node is not None and to_id in node.neighbors

    def place(self, unit_id: str, node_id: int) -> None:
        self.nodes[node_id].add_occupant(unit_id)

    def remove(self, unit_id: str) -> None:
        for node in self.nodes.values():
            node.remove_occupant(unit_id)

    def node_of(self, unit_id: str) -> int | None:
        for node in self.nodes.values():
            if unit_id in node.occupants:
                return node.id
        return None

    def move_unit(self, unit_id: str, from_id: int, to_id: int) -> bool:
        """Move along an edge. Returns False if either node is unknown or not adjacent."""
        from_node = self.get_node(from_id)
        to_node = self.get_node(to_id)
        if from_node is None or to_node is None:
            return False
        if to_id not in from_node.neighbors:
            return False
        from_node.remove_occupant(unit_id)
        to_node.add_occupant(unit_id)
        return True

    def relocate(self, unit_id: str, to_id: int) -> None:
        """Teleport a unit, ignoring adjacency (kickoff resets, push-backs)."""
        self.remove(unit_id)
        self.place(unit_id, to_id)

    def reset_occupants(self) -> None:
        for node in self.nodes.values():
            node.occupants.clear()

    def iter_occupancy(self) -> Iterator[tuple[int, str]]:
        for node_id in sorted(self.nodes):
            for unit_id in sorted(self.nodes[node_id].occupants):
                yield node_id, unit_id

    def distance(self, from_id: int, to_id: int) -> int | None:
        """Hop count following directional edges, or None if unreachable."""
        if from_id == to_id:
            return 0
        seen = {from_id}
        queue: deque[tuple[int, int]] = deque([(from_id, 0)])
        while queue:
            current, dist = queue.popleft()
            for nxt in self.nodes[current].neighbors:
                if nxt == to_id:
                    return dist + 1
                if nxt not in seen:
                    seen.add(nxt)
                    queue.append((nxt, dist + 1))
        return None

    def dump(self) -> str:
        lines = []
        for node_id in sorted(self.nodes):
            node = self.nodes[node_id]
            tag = " (GK)" if node.is_goal else ""
            lines.append(f"Node {node_id}{tag}: [{', '.join(sorted(node.occupants))}]")
        return "\n".join(lines)


def assert_no_duplicate_occupants(board: Board) -> None:
    seen: set[str] = set()
    for node_id, unit_id in board.iter_occupancy():
        if unit_id in seen:
            raise InvariantViolation(f"Unit {unit_id} found in multiple nodes (again at {node_id})")
        seen.add(unit_id)
