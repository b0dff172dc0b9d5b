from __future__ import annotations

from dataclasses import dataclass, field

from .types import ActionType, PlayerId


@dataclass(frozen=True)
class MatchConfig:
    goal_target: int = 3
    squad_size: int = 3
    formations: dict[PlayerId, tuple[int, ...]] = field(
        default_factory=lambda: {"P1": (1, 2, 3), "P2": (12, 11, 10)}
    )

    # Battle tuning
    clear_win_threshold: int = 5
    outnumbered_threshold: int = 10
    outnumbered_multiplier: float = 1.95
    tiebreak_penalty: int = 2
    die_sides: int = 6
    lock_turns: dict[ActionType, int] = field(
        default_factory=lambda: {"dribble": 2, "pass": 1, "shoot": 1}
    )
    surrender_lock_turns: int = 2
    surrender_stamina_penalty: int = 2
    exhaustion_penalty: int = 3
    goalkeeper_near_penalty: int = 3
    goalkeeper_far_penalty: int = 6

    reset_formation_on_goal: bool = True
    # Debug-only occupancy / ball consistency checks after every command.
    check_invariants: bool = False
