"""Legality checks for player actions.

The evaluator either performs a free action on the world (an uncontested move
or pass) or returns a `battle pending` descriptor for the orchestrator to hold.
Goals are reported, never scored here.
"""

from __future__ import annotations

from .actions import ActionOutcome
from .battle import PendingBattle
from .board import goal_node_for
from .turns import TurnManager
from .types import ActionType
from .units import Unit
from .world import World, give_ball


def _actor(world: World, turns: TurnManager, unit_id: str) -> Unit | ActionOutcome:
    unit = world.unit(unit_id)
    if unit is None:
        return ActionOutcome.illegal("unit not found")
    if unit.owner != turns.current_player:
        return ActionOutcome.illegal("not your turn")
    if unit.locked:
        return ActionOutcome.illegal("unit is locked")
    if unit.exhausted:
        return ActionOutcome.illegal("unit is exhausted")
    return unit


def _step(world: World, unit: Unit, to_node: int) -> bool:
    if not world.board.move_unit(unit.id, unit.position, to_node):
        return False
    unit.position = to_node
    return True


def detect_battle(world: World, mover: Unit, node_id: int, action: ActionType) -> PendingBattle | None:
    """Work out who fights if `mover` walks into `node_id` as a free move.

    Only unlocked units take part and a battle needs the ball: either the mover
    carries it into enemies, or an enemy resident holds it (a tackle, where the
    ball-carrying side attacks). At most two units per side; if both sides would
    field two, the ball carrier faces the two defenders alone.
    """
    residents = [u for u in world.units_at(node_id) if u.id != mover.id]
    mates = [u for u in residents if u.owner == mover.owner and not u.locked]
    enemies = [u for u in residents if u.owner != mover.owner and not u.locked]
    if not enemies:
        return None

    if mover.has_ball:
        attackers = [mover] + mates[:1]
        defenders = enemies[:2]
    else:
        carriers = [e for e in enemies if e.has_ball]
        if not carriers:
            return None
        carrier = carriers[0]
        attackers = [carrier] + [e for e in enemies if e.id != carrier.id][:1]
        defenders = [mover] + mates[:1]

    if len(attackers) == 2 and len(defenders) == 2:
        attackers = attackers[:1]

    return PendingBattle.create(
        [u.id for u in attackers],
        [u.id for u in defenders],
        node_id,
        action,
        initiator=mover.owner,
    )


def _dribble(world: World, unit: Unit, target: int | None) -> ActionOutcome:
    if target is None or world.board.get_node(target) is None:
        return ActionOutcome.illegal("target node not found")
    if not world.board.is_adjacent(unit.position, target):
        return ActionOutcome.illegal("target node not adjacent")

    residents = [u for u in world.units_at(target) if u.id != unit.id]
    if any(u.owner == unit.owner for u in residents):
        return ActionOutcome.illegal("teammate in target node")

    # Any unlocked occupant left is an enemy; the dribbler challenges them with or without the ball.
    enemies = [u for u in residents if not u.locked]
    if enemies:
        battle = PendingBattle.create(
            [unit.id], [e.id for e in enemies[:2]], target, "dribble", initiator=unit.owner
        )
        return ActionOutcome(result="battle pending", unit_id=unit.id, to_node=target, battle=battle)

    _step(world, unit, target)
    return ActionOutcome(result="moved", unit_id=unit.id, to_node=target)


def _pass(world: World, unit: Unit, target: int | None) -> ActionOutcome:
    if target is None or world.board.get_node(target) is None:
        return ActionOutcome.illegal("target node not found")
    if not world.board.is_adjacent(unit.position, target):
        return ActionOutcome.illegal("target node not adjacent")

    residents = [u for u in world.units_at(target) if u.id != unit.id]
    mates = [u for u in residents if u.owner == unit.owner]
    enemies = [u for u in residents if u.owner != unit.owner and not u.locked]

    if enemies:
        # An unlocked receiver joins the passer unless that would make it 2v2.
        attackers = [unit] + [m for m in mates if not m.locked][:1]
        defenders = enemies[:2]
        if len(attackers) == 2 and len(defenders) == 2:
            attackers = attackers[:1]
        battle = PendingBattle.create(
            [u.id for u in attackers],
            [e.id for e in defenders],
            target,
            "pass",
            initiator=unit.owner,
            target=mates[0].id if mates else None,
        )
        return ActionOutcome(result="battle pending", unit_id=unit.id, to_node=target, battle=battle)

    if mates:
        give_ball(world, mates[0].id)
        return ActionOutcome(result="pass", unit_id=unit.id, to_node=target, recipient=mates[0].id)

    return ActionOutcome.illegal("no teammate to pass to")


def _shoot(world: World, unit: Unit) -> ActionOutcome:
    goal = goal_node_for(unit.owner)
    if unit.position != goal:
        return ActionOutcome.illegal("not at opponent's goal")

    keepers = [u for u in world.units_at(goal) if u.owner != unit.owner and not u.locked]
    if keepers:
        battle = PendingBattle.create(
            [unit.id], [k.id for k in keepers[:2]], goal, "shoot", initiator=unit.owner
        )
        return ActionOutcome(result="battle pending", unit_id=unit.id, to_node=goal, battle=battle)

    return ActionOutcome(result="goal", unit_id=unit.id, to_node=goal)


def perform_action(
    world: World, turns: TurnManager, unit_id: str, action: str, target: int | None
) -> ActionOutcome:
    actor = _actor(world, turns, unit_id)
    if isinstance(actor, ActionOutcome):
        return actor
    unit = actor
    if action in ("pass", "shoot") and not unit.has_ball:
        return ActionOutcome.illegal("unit does not have the ball")

    if action == "dribble":
        return _dribble(world, unit, target)
    if action == "pass":
        return _pass(world, unit, target)
    if action == "shoot":
        return _shoot(world, unit)
    return ActionOutcome.illegal("unknown action")


def move_if_allowed(
    world: World, turns: TurnManager, unit_id: str, from_node: int, to_node: int
) -> ActionOutcome:
    """Free movement along an edge. Teammates may share a node."""
    actor = _actor(world, turns, unit_id)
    if isinstance(actor, ActionOutcome):
        return actor
    unit = actor
    if unit.position != from_node:
        return ActionOutcome.illegal("unit is not on the from node")
    if world.board.get_node(to_node) is None:
        return ActionOutcome.illegal("target node not found")
    if not world.board.is_adjacent(from_node, to_node):
        return ActionOutcome.illegal("target node not adjacent")

    battle = detect_battle(world, unit, to_node, "dribble")
    if battle is not None:
        return ActionOutcome(result="battle pending", unit_id=unit.id, to_node=to_node, battle=battle)

    _step(world, unit, to_node)
    return ActionOutcome(result="moved", unit_id=unit.id, to_node=to_node)
