from __future__ import annotations

from dataclasses import dataclass

from .types import PlayerId


@dataclass
class Unit:
    id: str
    owner: PlayerId
    card_id: str
    position: int
    stamina: int
    base_stamina: int
    lock_turns: int = 0
    has_ball: bool = False
    is_goalkeeper: bool = False

    @property
    def locked(self) -> bool:
        return self.lock_turns > 0

    @property
    def exhausted(self) -> bool:
        return self.stamina <= 0


def make_unit_id(owner: PlayerId, card_id: str, node_id: int) -> str:
    return f"{owner}-{card_id}-{node_id}"


def spend_stamina(unit: Unit, cost: int) -> bool:
    """Spend `cost` stamina.

    Returns False (and drains the unit to 0) when the unit could not afford it.
    """
    if unit.stamina >= cost:
        unit.stamina -= cost
        return True
    unit.stamina = 0
    return False


def lock_unit(unit: Unit, turns: int) -> None:
    unit.lock_turns = max(0, turns)
