"""Per-match world: the board, the live unit table and the card catalog.

One World is built for each match and passed to every rule function; nothing
here is module-global, so any number of matches can live side by side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .board import Board, InvariantViolation, assert_no_duplicate_occupants, own_goal_node
from .types import CardDatabase, PlayerId
from .units import Unit, make_unit_id


@dataclass
class World:
    cards: CardDatabase
    board: Board = field(default_factory=Board.standard)
    units: dict[str, Unit] = field(default_factory=dict)

    def unit(self, unit_id: str) -> Unit | None:
        return self.units.get(unit_id)

    def units_at(self, node_id: int) -> list[Unit]:
        node = self.board.get_node(node_id)
        if node is None:
            return []
        return [self.units[u] for u in sorted(node.occupants) if u in self.units]

    def units_of(self, player: PlayerId) -> list[Unit]:
        return [u for u in self.units.values() if u.owner == player]

    def ball_carrier(self) -> Unit | None:
        for u in self.units.values():
            if u.has_ball:
                return u
        return None


def spawn_unit_from_card(
    world: World,
    owner: PlayerId,
    card_id: str,
    node_id: int,
    *,
    goalkeeper: bool | None = None,
) -> Unit:
    template = world.cards.find(card_id)
    if template is None:
        raise KeyError(f"Card template not found: {card_id}")
    if world.board.get_node(node_id) is None:
        raise KeyError(f"Node not found: {node_id}")

    unit_id = make_unit_id(owner, card_id, node_id)
    if unit_id in world.units:
        world.board.remove(unit_id)
        del world.units[unit_id]

    if goalkeeper is None:
        goalkeeper = template.role == "GK" or node_id == own_goal_node(owner)

    unit = Unit(
        id=unit_id,
        owner=owner,
        card_id=card_id,
        position=node_id,
        stamina=template.stamina,
        base_stamina=template.stamina,
        is_goalkeeper=goalkeeper,
    )
    world.units[unit_id] = unit
    world.board.place(unit_id, node_id)
    return unit


def reset_units(world: World) -> None:
    world.board.reset_occupants()
    world.units.clear()


def relocate_unit(world: World, unit: Unit, node_id: int) -> None:
    world.board.relocate(unit.id, node_id)
    unit.position = node_id


def give_ball(world: World, unit_id: str | None) -> None:
    """Hand the ball to `unit_id` (or to nobody), keeping a single carrier."""
    for u in world.units.values():
        u.has_ball = u.id == unit_id


def clear_locks(units: Iterable[Unit]) -> None:
    for u in units:
        u.lock_turns = 0


def assert_single_ball_carrier(world: World) -> None:
    carriers = [u.id for u in world.units.values() if u.has_ball]
    if len(carriers) > 1:
        raise InvariantViolation(f"More than one ball carrier: {', '.join(sorted(carriers))}")


def check_invariants(world: World) -> None:
    assert_no_duplicate_occupants(world.board)
    assert_single_ball_carrier(world)
    for u in world.units.values():
        where = world.board.node_of(u.id)
        if where != u.position:
            raise InvariantViolation(f"Unit {u.id} thinks it is on {u.position} but board has {where}")
        if u.stamina < 0 or u.lock_turns < 0:
            raise InvariantViolation(f"Unit {u.id} has negative stamina or lock")
