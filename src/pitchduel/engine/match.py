from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Iterable, Literal, Sequence

from .actions import (
    ActionOutcome,
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
from .battle import BattleResult, BattleRolls, DiceSource, PendingBattle, RandomDice, resolve_battle
from .board import own_goal_node
from .config import MatchConfig
from .evaluator import move_if_allowed, perform_action
from .turns import TurnManager
from .types import PLAYERS, CardDatabase, PlayerId
from .units import lock_unit, spend_stamina
from .world import (
    World,
    check_invariants,
    clear_locks,
    give_ball,
    relocate_unit,
    reset_units,
    spawn_unit_from_card,
)

__all__ = [
    "MatchConfig",
    "MatchState",
    "Phase",
    "StepResult",
    "acting_player",
    "new_match",
    "replay",
    "step",
]

Event = dict[str, object]
Phase = Literal["coinToss", "inProgress", "postBattleMove", "finished"]


@dataclass
class StepResult:
    ok: bool
    events: list[Event]
    error: str | None = None
    result: str | None = None
    pending: PendingBattle | None = None
    battle: BattleResult | None = None


@dataclass
class MatchState:
    cards: CardDatabase
    config: MatchConfig
    seed: int
    rng: random.Random
    world: World
    dice: DiceSource
    squads: dict[PlayerId, tuple[str, ...]]
    turns: TurnManager = field(default_factory=TurnManager)
    phase: Phase = "coinToss"
    score: dict[PlayerId, int] = field(default_factory=lambda: {"P1": 0, "P2": 0})
    pending_battle: PendingBattle | None = None
    post_battle_unit: str | None = None
    coin_toss_winner: PlayerId | None = None
    winner: PlayerId | None = None
    action_log: list[Command] = field(default_factory=list)
    event_log: list[Event] = field(default_factory=list)


def _fail(error: str, result: str | None = "illegal") -> StepResult:
    return StepResult(ok=False, events=[], error=error, result=result)


def _ok(
    state: MatchState,
    mark: int,
    result: str,
    pending: PendingBattle | None = None,
    battle: BattleResult | None = None,
) -> StepResult:
    return StepResult(ok=True, events=state.event_log[mark:], result=result, pending=pending, battle=battle)


def _spawn_formation(state: MatchState) -> None:
    formations = state.config.formations
    for player in PLAYERS:
        for card_id, node_id in zip(state.squads[player], formations[player]):
            spawn_unit_from_card(state.world, player, card_id, node_id)


def _reset_formation(state: MatchState) -> None:
    """Put every unit back on its kickoff node; stamina carries over."""
    stamina = {uid: u.stamina for uid, u in state.world.units.items()}
    reset_units(state.world)
    _spawn_formation(state)
    for uid, unit in state.world.units.items():
        if uid in stamina:
            unit.stamina = stamina[uid]


def _start_turn(state: MatchState) -> None:
    state.turns.next_turn(state.world.units.values())
    state.event_log.append(
        {"type": "TURN_STARTED", "player": state.turns.current_player, "turn": state.turns.turn_number}
    )


def acting_player(state: MatchState) -> PlayerId | None:
    """Who must issue the next command, or None once the match is over."""
    if state.phase == "finished":
        return None
    if state.phase == "coinToss":
        return state.coin_toss_winner
    if state.pending_battle is not None:
        unit = state.world.unit(state.pending_battle.attacker_ids[0])
        return unit.owner if unit is not None else state.turns.current_player
    if state.phase == "postBattleMove" and state.post_battle_unit is not None:
        unit = state.world.unit(state.post_battle_unit)
        return unit.owner if unit is not None else state.turns.current_player
    return state.turns.current_player


def _kickoff(state: MatchState, cmd: SetKickoff) -> StepResult:
    mark = len(state.event_log)
    unit = state.world.unit(cmd.unit_id)
    if unit is None:
        return _fail("unit not found")
    if unit.owner != state.coin_toss_winner:
        return _fail("only the coin toss winner picks the kickoff unit")
    give_ball(state.world, unit.id)
    state.phase = "inProgress"
    state.turns.current_player = unit.owner
    state.event_log.append({"type": "KICKOFF", "player": unit.owner, "unit_id": unit.id})
    return _ok(state, mark, "kickoff")


def _score_goal(state: MatchState, mark: int, scorer_id: str, battle: BattleResult | None = None) -> StepResult:
    world = state.world
    player = world.units[scorer_id].owner
    state.score[player] += 1
    state.event_log.append(
        {"type": "GOAL_SCORED", "player": player, "unit_id": scorer_id, "score": dict(state.score)}
    )

    if state.score[player] >= state.config.goal_target:
        state.phase = "finished"
        state.winner = player
        state.event_log.append({"type": "MATCH_ENDED", "winner": player, "score": dict(state.score)})
        return _ok(state, mark, "goal", battle=battle)

    if state.config.reset_formation_on_goal:
        _reset_formation(state)
    clear_locks(world.units.values())
    give_ball(world, None)

    keeper = next((u for u in world.units_at(own_goal_node(player)) if u.owner == player), None)
    if keeper is None:
        mates = world.units_of(player)
        keeper = mates[0] if mates else None
    if keeper is not None:
        give_ball(world, keeper.id)
        state.event_log.append({"type": "KICKOFF", "player": player, "unit_id": keeper.id})

    _start_turn(state)
    return _ok(state, mark, "goal", battle=battle)


def _apply_outcome(state: MatchState, mark: int, outcome: ActionOutcome, from_node: int | None) -> StepResult:
    if outcome.result == "illegal":
        return _fail(outcome.reason or "illegal action")

    if outcome.result == "battle pending":
        assert outcome.battle is not None
        state.pending_battle = outcome.battle
        state.event_log.append(
            {
                "type": "BATTLE_PENDING",
                "kind": outcome.battle.kind.value,
                "action": outcome.battle.action,
                "node": outcome.battle.node_id,
                "attackers": list(outcome.battle.attacker_ids),
                "defenders": list(outcome.battle.defender_ids),
            }
        )
        return _ok(state, mark, "battle pending", pending=outcome.battle)

    if outcome.result == "goal":
        assert outcome.unit_id is not None
        return _score_goal(state, mark, outcome.unit_id)

    if outcome.result == "pass":
        state.event_log.append(
            {"type": "BALL_PASSED", "from": outcome.unit_id, "to": outcome.recipient, "node": outcome.to_node}
        )
    else:
        state.event_log.append(
            {"type": "UNIT_MOVED", "unit_id": outcome.unit_id, "from": from_node, "to": outcome.to_node}
        )
    _start_turn(state)
    return _ok(state, mark, outcome.result)


def _perform(state: MatchState, cmd: PerformAction) -> StepResult:
    mark = len(state.event_log)
    unit = state.world.unit(cmd.unit_id)
    from_node = unit.position if unit is not None else None
    outcome = perform_action(state.world, state.turns, cmd.unit_id, cmd.action, cmd.target)
    return _apply_outcome(state, mark, outcome, from_node)


def _move(state: MatchState, cmd: MoveUnit) -> StepResult:
    mark = len(state.event_log)
    outcome = move_if_allowed(state.world, state.turns, cmd.unit_id, cmd.from_node, cmd.to_node)
    return _apply_outcome(state, mark, outcome, cmd.from_node)


def _apply_battle(state: MatchState, mark: int, battle: PendingBattle, result: BattleResult) -> StepResult:
    world = state.world
    state.pending_battle = None

    for uid, cost in result.stamina_costs.items():
        spend_stamina(world.units[uid], cost)
    for uid, turns in result.locks.items():
        lock_unit(world.units[uid], turns)
    if result.advance is not None:
        uid, node_id = result.advance
        relocate_unit(world, world.units[uid], node_id)
    if result.push_back is not None:
        uid, node_id = result.push_back
        relocate_unit(world, world.units[uid], node_id)
    give_ball(world, result.ball_holder)

    state.event_log.append(
        {
            "type": "BATTLE_RESOLVED",
            "kind": result.kind.value,
            "action": result.action,
            "winner": result.winner_side,
            "reason": result.reason,
            "attack": result.attack_value,
            "defense": result.defense_value,
            "rolls": None if result.rolls is None else [result.rolls.attacker, result.rolls.defender],
            "ball_holder": result.ball_holder,
        }
    )

    if result.score_goal and result.ball_holder is not None:
        return _score_goal(state, mark, result.ball_holder, battle=result)

    # Only the side that started the dribble earns the bonus step.
    mover = world.unit(result.post_move_unit) if result.post_move_unit else None
    if mover is not None and mover.owner == battle.initiator:
        state.phase = "postBattleMove"
        state.post_battle_unit = mover.id
        return _ok(state, mark, "battle resolved", battle=result)

    _start_turn(state)
    return _ok(state, mark, "battle resolved", battle=result)


def _valid_rolls(rolls: BattleRolls, sides: int) -> bool:
    return 1 <= rolls.attacker <= sides and 1 <= rolls.defender <= sides


def _resolve(state: MatchState, cmd: ResolveBattle) -> StepResult:
    battle = state.pending_battle
    assert battle is not None
    if cmd.unit_id not in battle.attacker_ids:
        return _fail("only the attacker can resolve the battle")
    if cmd.action is not None and cmd.action != battle.action:
        return _fail("action does not match pending battle")
    if cmd.rolls is not None and not _valid_rolls(cmd.rolls, state.config.die_sides):
        return _fail(f"die rolls must be between 1 and {state.config.die_sides}")

    mark = len(state.event_log)
    result = resolve_battle(
        state.world,
        battle,
        state.config,
        state.dice,
        target=cmd.target,
        rolls=cmd.rolls,
        recipient=cmd.recipient,
    )
    if result is None:
        return _fail("battle references a missing unit or card")
    return _apply_battle(state, mark, battle, result)


def _surrender(state: MatchState, cmd: Surrender) -> StepResult:
    battle = state.pending_battle
    assert battle is not None
    side = battle.side_of(cmd.unit_id)
    if side is None:
        return _fail("unit is not part of the pending battle")

    mark = len(state.event_log)
    result = resolve_battle(state.world, battle, state.config, state.dice, surrender=side)
    if result is None:
        return _fail("battle references a missing unit or card")
    return _apply_battle(state, mark, battle, result)


def _post_battle_move(state: MatchState, cmd: PostBattleMove) -> StepResult:
    if cmd.unit_id != state.post_battle_unit:
        return _fail("only the battle winner may reposition")
    world = state.world
    unit = world.unit(cmd.unit_id)
    if unit is None:
        return _fail("unit not found")
    node = world.board.get_node(cmd.to_node)
    if node is None:
        return _fail("target node not found")
    if not world.board.is_adjacent(unit.position, cmd.to_node):
        return _fail("target node not adjacent")
    if not node.is_empty():
        return _fail("target node is not empty")

    mark = len(state.event_log)
    from_node = unit.position
    world.board.move_unit(unit.id, from_node, cmd.to_node)
    unit.position = cmd.to_node
    state.event_log.append(
        {"type": "UNIT_MOVED", "unit_id": unit.id, "from": from_node, "to": cmd.to_node, "post_battle": True}
    )
    state.phase = "inProgress"
    state.post_battle_unit = None
    _start_turn(state)
    return _ok(state, mark, "moved")


def _skip_post_battle_move(state: MatchState, cmd: SkipPostBattleMove) -> StepResult:
    if cmd.unit_id != state.post_battle_unit:
        return _fail("only the battle winner may reposition")
    mark = len(state.event_log)
    state.phase = "inProgress"
    state.post_battle_unit = None
    _start_turn(state)
    return _ok(state, mark, "skipped")


def _end_turn(state: MatchState, cmd: EndTurn) -> StepResult:
    if cmd.player != state.turns.current_player:
        return _fail("not your turn")
    mark = len(state.event_log)
    state.event_log.append({"type": "TURN_ENDED", "player": cmd.player})
    _start_turn(state)
    return _ok(state, mark, "turn ended")


def _dispatch(state: MatchState, command: Command) -> StepResult:
    if state.phase == "coinToss":
        if isinstance(command, SetKickoff):
            return _kickoff(state, command)
        return _fail("waiting for the kickoff unit")

    if state.phase == "postBattleMove":
        if isinstance(command, PostBattleMove):
            return _post_battle_move(state, command)
        if isinstance(command, SkipPostBattleMove):
            return _skip_post_battle_move(state, command)
        return _fail("waiting for the post-battle move")

    if state.pending_battle is not None:
        if isinstance(command, ResolveBattle):
            return _resolve(state, command)
        if isinstance(command, Surrender):
            return _surrender(state, command)
        return _fail("a battle is pending")

    if isinstance(command, PerformAction):
        return _perform(state, command)
    if isinstance(command, MoveUnit):
        return _move(state, command)
    if isinstance(command, EndTurn):
        return _end_turn(state, command)
    if isinstance(command, (ResolveBattle, Surrender)):
        return _fail("no battle is pending")
    if isinstance(command, SetKickoff):
        return _fail("kickoff already taken")
    if isinstance(command, (PostBattleMove, SkipPostBattleMove)):
        return _fail("no post-battle move is pending")
    return _fail("unknown command", result=None)


def step(state: MatchState, command: Command) -> StepResult:
    """Apply a single command to the match state.

    This mutates `state` in place but stays deterministic for a given
    (seed, squads, command sequence).
    """
    if state.phase == "finished":
        return _fail("match already ended", result=None)

    state.action_log.append(command)
    res = _dispatch(state, command)
    if res.ok and state.config.check_invariants:
        check_invariants(state.world)
    return res


def new_match(
    cards: CardDatabase,
    squad1: Sequence[str],
    squad2: Sequence[str],
    seed: int,
    config: MatchConfig | None = None,
    coin_toss_winner: PlayerId | None = None,
    dice: DiceSource | None = None,
) -> MatchState:
    cfg = config or MatchConfig()
    if len(squad1) != cfg.squad_size or len(squad2) != cfg.squad_size:
        raise ValueError(f"Squads must be exactly {cfg.squad_size} cards.")
    for player in PLAYERS:
        if len(cfg.formations[player]) < cfg.squad_size:
            raise ValueError(f"Formation for {player} has fewer than {cfg.squad_size} nodes.")
    for card_id in [*squad1, *squad2]:
        if cards.find(card_id) is None:
            raise ValueError(f"Unknown card in squad: {card_id}")

    rng = random.Random(seed)
    state = MatchState(
        cards=cards,
        config=cfg,
        seed=seed,
        rng=rng,
        world=World(cards=cards),
        dice=dice or RandomDice(rng),
        squads={"P1": tuple(squad1), "P2": tuple(squad2)},
    )
    _spawn_formation(state)

    toss = coin_toss_winner or rng.choice(PLAYERS)
    state.coin_toss_winner = toss
    state.turns.current_player = toss
    state.event_log.append({"type": "COIN_TOSS", "winner": toss})
    return state


def replay(
    cards: CardDatabase,
    squad1: Sequence[str],
    squad2: Sequence[str],
    seed: int,
    commands: Iterable[Command],
    config: MatchConfig | None = None,
    coin_toss_winner: PlayerId | None = None,
) -> MatchState:
    state = new_match(
        cards=cards,
        squad1=squad1,
        squad2=squad2,
        seed=seed,
        config=config,
        coin_toss_winner=coin_toss_winner,
    )
    for c in commands:
        step(state, c)
        if state.phase == "finished":
            break
    return state
