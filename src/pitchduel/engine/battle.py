"""Battle resolution.

A battle is one contested dribble, pass or shot between an attacking side
(the side that moves or plays the ball) and a defending side, each fielding
one or two units. Possession only changes when a participant holds the ball.

Resolution is a pure computation over the world: it reads cards, stamina and
positions but never mutates anything. The returned BattleResult lists every
effect (stamina to spend, locks, possession, goal, push-back, advance) and the
match orchestrator applies them.

Rules:
- Side value per unit is action stat + speed for attackers. Defenders use
  defending + speed, except against a pass where only speed counts (doubled in
  a 1v1).
- A unit that cannot afford its stamina cost fights at -exhaustion_penalty; a
  goalkeeper away from its own goal fights at -3 (adjacent) or -6 (elsewhere).
- When one side is outnumbered 2-to-1, the paired attackers (2v1) or the lone
  attacker (1v2) are scaled by outnumbered_multiplier and the clear-win
  threshold rises from clear_win_threshold to outnumbered_threshold.
- Outside the threshold the higher side wins without dice. Inside it both
  sides roll; the lower side takes -tiebreak_penalty and the attacker must be
  strictly higher to win, so exact ties go to the defender.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Protocol

from .board import PUSH_BACK, own_goal_node
from .config import MatchConfig
from .types import ACTION_STAT, ActionType, CardDefinition, PlayerId
from .units import Unit
from .world import World

Side = Literal["attacker", "defender"]

# Goalkeeper penalty zones: nodes adjacent to each side's own goal.
_GK_NEAR: dict[str, frozenset[int]] = {"P1": frozenset({2, 3}), "P2": frozenset({10, 11})}


class BattleKind(str, Enum):
    ONE_V_ONE = "1v1"
    TWO_ATTACKERS_V_ONE = "2v1"
    ONE_V_TWO_DEFENDERS = "1v2"


@dataclass(frozen=True)
class PendingBattle:
    kind: BattleKind
    attacker_ids: tuple[str, ...]
    defender_ids: tuple[str, ...]
    node_id: int
    action: ActionType
    initiator: PlayerId
    # Pass target recorded when the battle was triggered (teammate id).
    target: str | None = None

    @staticmethod
    def create(
        attacker_ids: list[str] | tuple[str, ...],
        defender_ids: list[str] | tuple[str, ...],
        node_id: int,
        action: ActionType,
        initiator: PlayerId,
        target: str | None = None,
    ) -> "PendingBattle":
        attackers = tuple(attacker_ids)
        defenders = tuple(defender_ids)
        if len(attackers) == 1 and len(defenders) == 1:
            kind = BattleKind.ONE_V_ONE
        elif len(attackers) == 2 and len(defenders) == 1:
            kind = BattleKind.TWO_ATTACKERS_V_ONE
        elif len(attackers) == 1 and len(defenders) == 2:
            kind = BattleKind.ONE_V_TWO_DEFENDERS
        else:
            raise ValueError(f"Unsupported battle shape {len(attackers)}v{len(defenders)}")
        return PendingBattle(
            kind=kind,
            attacker_ids=attackers,
            defender_ids=defenders,
            node_id=node_id,
            action=action,
            initiator=initiator,
            target=target,
        )

    def participants(self) -> tuple[str, ...]:
        return self.attacker_ids + self.defender_ids

    def side_of(self, unit_id: str) -> Side | None:
        if unit_id in self.attacker_ids:
            return "attacker"
        if unit_id in self.defender_ids:
            return "defender"
        return None


@dataclass(frozen=True)
class BattleRolls:
    attacker: int
    defender: int


class DiceSource(Protocol):
    def roll(self, sides: int) -> int: ...


@dataclass
class RandomDice:
    rng: random.Random

    def roll(self, sides: int) -> int:
        return self.rng.randint(1, sides)


@dataclass
class FixedDice:
    """Replays a fixed sequence of rolls; handy for tests and replays."""

    rolls: list[int]

    def roll(self, sides: int) -> int:
        if not self.rolls:
            raise RuntimeError("FixedDice ran out of rolls")
        return self.rolls.pop(0)


@dataclass
class BattleResult:
    kind: BattleKind
    action: ActionType
    winner_side: Side
    winner_ids: tuple[str, ...]
    loser_ids: tuple[str, ...]
    reason: str
    attack_value: float
    defense_value: float
    used_dice: bool = False
    rolls: BattleRolls | None = None
    attack_total: float | None = None
    defense_total: float | None = None
    surrendered: bool = False
    penalties: dict[str, int] = field(default_factory=dict)
    stamina_costs: dict[str, int] = field(default_factory=dict)
    locks: dict[str, int] = field(default_factory=dict)
    ball_holder: str | None = None
    score_goal: bool = False
    push_back: tuple[str, int] | None = None
    advance: tuple[str, int] | None = None
    post_move_unit: str | None = None


@dataclass
class Contestant:
    unit: Unit
    value: int
    cost: int
    penalty: int


def goalkeeper_penalty(unit: Unit, config: MatchConfig) -> int:
    if not unit.is_goalkeeper:
        return 0
    if unit.position == own_goal_node(unit.owner):
        return 0
    if unit.position in _GK_NEAR[unit.owner]:
        return config.goalkeeper_near_penalty
    return config.goalkeeper_far_penalty


def _attacker_line(unit: Unit, card: CardDefinition, action: ActionType, config: MatchConfig) -> Contestant:
    stat = card.stat(ACTION_STAT[action])
    speed = card.stat("speed")
    cost = max(stat.cost, speed.cost)
    penalty = goalkeeper_penalty(unit, config)
    if unit.stamina < cost:
        penalty += config.exhaustion_penalty
    return Contestant(unit=unit, value=stat.value + speed.value - penalty, cost=cost, penalty=penalty)


def _defender_line(unit: Unit, card: CardDefinition, action: ActionType, config: MatchConfig) -> Contestant:
    speed = card.stat("speed")
    if action == "pass":
        base = speed.value
        cost = speed.cost
    else:
        defending = card.stat("defending")
        base = defending.value + speed.value
        cost = max(defending.cost, speed.cost)
    penalty = goalkeeper_penalty(unit, config)
    if unit.stamina < cost:
        penalty += config.exhaustion_penalty
    return Contestant(unit=unit, value=base - penalty, cost=cost, penalty=penalty)


def _lookup(world: World, unit_ids: tuple[str, ...]) -> list[tuple[Unit, CardDefinition]] | None:
    out: list[tuple[Unit, CardDefinition]] = []
    for uid in unit_ids:
        unit = world.unit(uid)
        if unit is None:
            return None
        card = world.cards.find(unit.card_id)
        if card is None:
            return None
        out.append((unit, card))
    return out


def side_values(
    world: World, battle: PendingBattle, config: MatchConfig
) -> tuple[float, float, list[Contestant], list[Contestant]] | None:
    """Return (attack_value, defense_value, attackers, defenders), or None on a missing reference."""
    atk = _lookup(world, battle.attacker_ids)
    dfn = _lookup(world, battle.defender_ids)
    if atk is None or dfn is None:
        return None

    attackers = [_attacker_line(u, c, battle.action, config) for u, c in atk]
    defenders = [_defender_line(u, c, battle.action, config) for u, c in dfn]

    attack = float(sum(c.value for c in attackers))
    defense = float(sum(c.value for c in defenders))

    if battle.kind == BattleKind.ONE_V_ONE:
        if battle.action == "pass":
            defense *= 2
    else:
        # Both outnumbered shapes scale the attacking side.
        attack = round(attack * config.outnumbered_multiplier, 2)
    return attack, defense, attackers, defenders


def threshold_for(kind: BattleKind, config: MatchConfig) -> int:
    if kind == BattleKind.ONE_V_ONE:
        return config.clear_win_threshold
    return config.outnumbered_threshold


def needs_dice(world: World, battle: PendingBattle, config: MatchConfig) -> bool | None:
    """Whether resolving `battle` right now would go to a die roll."""
    values = side_values(world, battle, config)
    if values is None:
        return None
    attack, defense, _, _ = values
    return abs(attack - defense) <= threshold_for(battle.kind, config)


def _ball_carrier(units: list[Unit]) -> Unit:
    for u in units:
        if u.has_ball:
            return u
    return units[0]


def _pass_recipient(world: World, passer: Unit, target: str | int | None) -> Unit | None:
    if target is None:
        return None
    if isinstance(target, str):
        mate = world.unit(target)
        if mate is not None and mate.owner == passer.owner and mate.id != passer.id:
            return mate
        return None
    for u in world.units_at(target):
        if u.owner == passer.owner and u.id != passer.id:
            return u
    return None


def resolve_battle(
    world: World,
    battle: PendingBattle,
    config: MatchConfig,
    dice: DiceSource,
    *,
    target: str | int | None = None,
    rolls: BattleRolls | None = None,
    surrender: Side | None = None,
    recipient: str | None = None,
) -> BattleResult | None:
    """Work out the outcome of `battle`.

    target: pass recipient (teammate unit id, or a node holding one); falls back
        to the target recorded on the battle.
    rolls: externally agreed die rolls, used instead of `dice` when a roll is needed.
    surrender: the side conceding; no dice are rolled.
    recipient: which defender takes the ball when two defenders win.

    Returns None if a unit or card reference is missing.
    """
    values = side_values(world, battle, config)
    if values is None:
        return None
    attack, defense, attackers, defenders = values

    penalties = {c.unit.id: c.penalty for c in attackers + defenders if c.penalty}
    stamina_costs: dict[str, int] = {}
    used_dice = False
    applied_rolls: BattleRolls | None = None
    attack_total: float | None = None
    defense_total: float | None = None

    if surrender is not None:
        winner_side: Side = "defender" if surrender == "attacker" else "attacker"
        reason = f"{surrender} surrendered"
        conceding = attackers if surrender == "attacker" else defenders
        for c in conceding:
            stamina_costs[c.unit.id] = config.surrender_stamina_penalty
    else:
        diff = attack - defense
        if abs(diff) > threshold_for(battle.kind, config):
            winner_side = "attacker" if diff > 0 else "defender"
            reason = "attacker higher stat" if diff > 0 else "defender higher stat"
            for c in attackers:
                stamina_costs[c.unit.id] = c.cost
            if winner_side == "attacker":
                for c in defenders:
                    stamina_costs[c.unit.id] = c.cost
        else:
            used_dice = True
            for c in attackers + defenders:
                stamina_costs[c.unit.id] = c.cost
            if rolls is None:
                rolls = BattleRolls(attacker=dice.roll(config.die_sides), defender=dice.roll(config.die_sides))
            applied_rolls = rolls
            attack_total = attack + rolls.attacker
            defense_total = defense + rolls.defender
            if attack < defense:
                attack_total -= config.tiebreak_penalty
            elif defense < attack:
                defense_total -= config.tiebreak_penalty
            if attack_total > defense_total:
                winner_side = "attacker"
                reason = "attacker won the roll"
            else:
                winner_side = "defender"
                reason = "defender won the roll"

    attacker_units = [c.unit for c in attackers]
    defender_units = [c.unit for c in defenders]
    carrier = _ball_carrier(attacker_units)

    if winner_side == "attacker":
        winner_ids, loser_ids = battle.attacker_ids, battle.defender_ids
    else:
        winner_ids, loser_ids = battle.defender_ids, battle.attacker_ids

    if surrender is not None:
        lock = config.surrender_lock_turns
    else:
        lock = config.lock_turns[battle.action]
    locks = {uid: lock for uid in loser_ids}

    result = BattleResult(
        kind=battle.kind,
        action=battle.action,
        winner_side=winner_side,
        winner_ids=winner_ids,
        loser_ids=loser_ids,
        reason=reason,
        attack_value=attack,
        defense_value=defense,
        used_dice=used_dice,
        rolls=applied_rolls,
        attack_total=attack_total,
        defense_total=defense_total,
        surrendered=surrender is not None,
        penalties=penalties,
        stamina_costs=stamina_costs,
        locks=locks,
    )

    # Possession only changes hands when a participant holds the ball.
    ball_in_play = any(u.has_ball for u in attacker_units + defender_units)
    current = world.ball_carrier()
    result.ball_holder = current.id if current is not None else None

    if winner_side == "attacker":
        if ball_in_play:
            result.ball_holder = carrier.id
        if battle.action == "dribble":
            if carrier.position != battle.node_id:
                result.advance = (carrier.id, battle.node_id)
            result.post_move_unit = carrier.id
        elif battle.action == "pass":
            if battle.kind == BattleKind.TWO_ATTACKERS_V_ONE:
                mate = next(u for u in attacker_units if u.id != carrier.id)
            else:
                mate = _pass_recipient(world, carrier, target if target is not None else battle.target)
            if mate is not None:
                result.ball_holder = mate.id
        else:
            result.score_goal = True
    elif ball_in_play:
        holder = _ball_carrier(defender_units).id
        if recipient is not None and recipient in battle.defender_ids:
            holder = recipient
        result.ball_holder = holder
        if battle.action == "shoot" and carrier.position in PUSH_BACK:
            result.push_back = (carrier.id, PUSH_BACK[carrier.position])

    return result
