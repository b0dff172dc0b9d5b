from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from .battle import BattleRolls, PendingBattle
from .types import ActionType, PlayerId


@dataclass(frozen=True)
class PerformAction:
    """Dribble to a node, pass to a node, or shoot (target ignored)."""

    unit_id: str
    action: ActionType
    target: int | None = None


@dataclass(frozen=True)
class MoveUnit:
    unit_id: str
    from_node: int
    to_node: int


@dataclass(frozen=True)
class ResolveBattle:
    unit_id: str
    action: ActionType | None = None
    target: str | int | None = None
    rolls: BattleRolls | None = None
    recipient: str | None = None


@dataclass(frozen=True)
class Surrender:
    unit_id: str


@dataclass(frozen=True)
class SetKickoff:
    unit_id: str


@dataclass(frozen=True)
class PostBattleMove:
    unit_id: str
    to_node: int


@dataclass(frozen=True)
class SkipPostBattleMove:
    unit_id: str


@dataclass(frozen=True)
class EndTurn:
    player: PlayerId


Command = (
    PerformAction
    | MoveUnit
    | ResolveBattle
    | Surrender
    | SetKickoff
    | PostBattleMove
    | SkipPostBattleMove
    | EndTurn
)

OutcomeKind = Literal["moved", "pass", "goal", "battle pending", "illegal"]


@dataclass(frozen=True)
class ActionOutcome:
    """What the evaluator decided for one requested action."""

    result: OutcomeKind
    reason: str | None = None
    unit_id: str | None = None
    to_node: int | None = None
    recipient: str | None = None
    battle: PendingBattle | None = None

    @staticmethod
    def illegal(reason: str) -> "ActionOutcome":
        return ActionOutcome(result="illegal", reason=reason)

