"""Deterministic, headless rules engine for pitchduel.

IMPORTANT: This package must never import UI or network code.
"""

from .actions import (
    EndTurn,
    MoveUnit,
    PerformAction,
    PostBattleMove,
    ResolveBattle,
    SetKickoff,
    SkipPostBattleMove,
    Surrender,
)
from .battle import BattleKind, BattleRolls, FixedDice, PendingBattle, resolve_battle
from .match import MatchConfig, MatchState, acting_player, new_match, replay, step
from .types import ActionType, PlayerId, Rarity

__all__ = [
    "ActionType",
    "BattleKind",
    "BattleRolls",
    "EndTurn",
    "FixedDice",
    "MatchConfig",
    "MatchState",
    "MoveUnit",
    "PendingBattle",
    "PerformAction",
    "PlayerId",
    "PostBattleMove",
    "Rarity",
    "ResolveBattle",
    "SetKickoff",
    "SkipPostBattleMove",
    "Surrender",
    "acting_player",
    "new_match",
    "replay",
    "resolve_battle",
    "step",
]
