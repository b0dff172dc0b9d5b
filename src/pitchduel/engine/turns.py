from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .types import PlayerId, opponent_of
from .units import Unit


@dataclass
class TurnManager:
    current_player: PlayerId = "P1"
    turn_number: int = 1

    def next_turn(self, units: Iterable[Unit]) -> None:
        """Tick every lock down by one, then hand the turn to the other player.

        This is the only place lock counters decrease.
        """
        for unit in units:
            if unit.lock_turns > 0:
                unit.lock_turns -= 1
        self.current_player = opponent_of(self.current_player)
        self.turn_number += 1
