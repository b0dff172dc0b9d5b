from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Literal

PlayerId = Literal["P1", "P2"]
ActionType = Literal["dribble", "pass", "shoot"]
Rarity = Literal["common", "rare", "epic", "legendary"]
Role = Literal["GK", "DEF", "MID", "FWD"]
StatName = Literal["dribbling", "passing", "shooting", "defending", "speed"]

PLAYERS: tuple[PlayerId, PlayerId] = ("P1", "P2")
STAT_NAMES: tuple[StatName, ...] = ("dribbling", "passing", "shooting", "defending", "speed")

# Stat an attacker leans on for each action (speed is always added on top).
ACTION_STAT: dict[ActionType, StatName] = {
    "dribble": "dribbling",
    "pass": "passing",
    "shoot": "shooting",
}


def opponent_of(player: PlayerId) -> PlayerId:
    return "P2" if player == "P1" else "P1"


@dataclass(frozen=True)
class StatLine:
    value: int = 0
    cost: int = 0


_ZERO = StatLine()


@dataclass(frozen=True)
class CardDefinition:
    id: str
    name: str
    rarity: Rarity
    stamina: int
    stats: Mapping[str, StatLine] = field(default_factory=dict)
    role: Role | None = None

    def stat(self, name: str) -> StatLine:
        """Missing attributes count as zero value and zero cost."""
        return self.stats.get(name, _ZERO)


@dataclass(frozen=True)
class CardDatabase:
    """Immutable card catalog used by the engine."""

    cards: dict[str, CardDefinition]

    def find(self, card_id: str) -> CardDefinition | None:
        return self.cards.get(card_id)

    def all_ids(self) -> Sequence[str]:
        return list(self.cards.keys())
