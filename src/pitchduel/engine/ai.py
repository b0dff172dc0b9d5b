from __future__ import annotations

import random
from dataclasses import dataclass

from .actions import (
    Command,
    EndTurn,
    MoveUnit,
    PerformAction,
    PostBattleMove,
    ResolveBattle,
    SetKickoff,
    SkipPostBattleMove,
    Surrender,
)
from .battle import side_values, threshold_for
from .board import goal_node_for
from .match import MatchState, StepResult, acting_player, step
from .types import PlayerId
from .units import Unit


@dataclass(frozen=True)
class AISpec:
    """Simple AI tuning parameters.

    difficulty:
      0 = easy (often wanders instead of pushing forward)
      1 = normal
      2 = hard (also concedes battles it cannot win to save stamina)
    """

    difficulty: int = 1


def _rng(state: MatchState) -> random.Random:
    # Separate stream so the match dice are unaffected by AI choices.
    return random.Random(f"ai:{state.seed}:{len(state.action_log)}")


def _goal_distance(state: MatchState, player: PlayerId, node_id: int) -> int:
    d = state.world.board.distance(node_id, goal_node_for(player))
    return d if d is not None else 99


def _kickoff(state: MatchState, player: PlayerId) -> list[Command]:
    units = sorted(state.world.units_of(player), key=lambda u: (_goal_distance(state, player, u.position), u.id))
    return [SetKickoff(unit_id=u.id) for u in units]


def _battle(state: MatchState, spec: AISpec) -> list[Command]:
    battle = state.pending_battle
    assert battle is not None
    lead = battle.attacker_ids[0]
    resolve = ResolveBattle(unit_id=lead, action=battle.action)
    if spec.difficulty >= 2:
        values = side_values(state.world, battle, state.config)
        if values is not None:
            attack, defense, _, _ = values
            if defense - attack > threshold_for(battle.kind, state.config):
                return [Surrender(unit_id=lead), resolve]
    return [resolve]


def _post_move(state: MatchState, player: PlayerId) -> list[Command]:
    uid = state.post_battle_unit
    assert uid is not None
    unit = state.world.units[uid]
    free = [n for n in state.world.board.get_neighbors(unit.position) if n.is_empty()]
    free.sort(key=lambda n: (_goal_distance(state, player, n.id), n.id))
    out: list[Command] = [PostBattleMove(unit_id=uid, to_node=n.id) for n in free]
    out.append(SkipPostBattleMove(unit_id=uid))
    return out


def _carrier_options(state: MatchState, player: PlayerId, carrier: Unit) -> list[Command]:
    board = state.world.board
    here = _goal_distance(state, player, carrier.position)
    out: list[Command] = []
    if carrier.position == goal_node_for(player):
        out.append(PerformAction(unit_id=carrier.id, action="shoot"))

    forward_passes = []
    for node in board.get_neighbors(carrier.position):
        mates = [u for u in state.world.units_at(node.id) if u.owner == player and u.id != carrier.id]
        if mates and _goal_distance(state, player, node.id) < here:
            forward_passes.append(node.id)
    for node_id in sorted(forward_passes, key=lambda n: _goal_distance(state, player, n)):
        out.append(PerformAction(unit_id=carrier.id, action="pass", target=node_id))

    steps = sorted(board.get_neighbors(carrier.position), key=lambda n: (_goal_distance(state, player, n.id), n.id))
    for node in steps:
        out.append(PerformAction(unit_id=carrier.id, action="dribble", target=node.id))
    return out


def _support_options(state: MatchState, player: PlayerId) -> list[Command]:
    """Move free units toward the ball (tackling an enemy carrier if adjacent)."""
    world = state.world
    ball = world.ball_carrier()
    target = ball.position if ball is not None else goal_node_for(player)
    options: list[tuple[int, str, Command]] = []
    for unit in world.units_of(player):
        if unit.locked or unit.has_ball:
            continue
        for node in world.board.get_neighbors(unit.position):
            d = world.board.distance(node.id, target)
            options.append(
                (d if d is not None else 99, unit.id, MoveUnit(unit_id=unit.id, from_node=unit.position, to_node=node.id))
            )
    options.sort(key=lambda o: (o[0], o[1]))
    return [cmd for _, _, cmd in options]


def candidate_commands(state: MatchState, spec: AISpec | None = None) -> list[Command]:
    """Commands the AI would try for whoever must act now, best first."""
    spec = spec or AISpec()
    player = acting_player(state)
    if player is None:
        return []
    if state.phase == "coinToss":
        return _kickoff(state, player)
    if state.pending_battle is not None:
        return _battle(state, spec)
    if state.phase == "postBattleMove":
        return _post_move(state, player)

    out: list[Command] = []
    carrier = state.world.ball_carrier()
    if carrier is not None and carrier.owner == player:
        out.extend(_carrier_options(state, player, carrier))
    out.extend(_support_options(state, player))

    # Difficulty-based mistakes (easy AI sometimes ignores its best idea)
    rng = _rng(state)
    if spec.difficulty <= 0 and out and rng.random() < 0.35:
        rng.shuffle(out)
    elif spec.difficulty == 1 and out and rng.random() < 0.10:
        out.append(out.pop(0))

    out.append(EndTurn(player=player))
    return out


def ai_step(state: MatchState, spec: AISpec | None = None) -> StepResult | None:
    """Issue one legal command for the acting player.

    Tries candidates in order until the engine accepts one. Rejected attempts
    stay in `state.action_log`, so `replay` reproduces the match exactly.
    """
    for cmd in candidate_commands(state, spec):
        res = step(state, cmd)
        if res.ok:
            return res
    return None


def ai_take_turn(state: MatchState, player: PlayerId, spec: AISpec | None = None) -> None:
    """Advance the match until it is no longer `player`'s move."""
    while state.phase != "finished" and acting_player(state) == player:
        if ai_step(state, spec) is None:
            break
