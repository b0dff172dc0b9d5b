"""
Match sessions - one live match per session, in memory only.

Commands for a session are serialized through a lock so that concurrent
callers (two clients relaying through one server) see each command applied to
completion before the next starts.

Shared dice: while a battle is pending, each side may submit its die roll.
Once both rolls are in, `resolve` uses them, so both clients resolve the
battle from the same numbers instead of two independent RNGs.
"""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from pitchduel.engine.actions import Command, ResolveBattle
from pitchduel.engine.battle import BattleRolls, Side
from pitchduel.engine.config import MatchConfig
from pitchduel.engine.match import MatchState, StepResult, acting_player, new_match, step
from pitchduel.engine.serialize import command_to_dict, snapshot
from pitchduel.engine.types import CardDatabase, PlayerId
from pitchduel.services.telemetry import TelemetryService


class SessionError(RuntimeError):
    pass


@dataclass
class MatchSession:
    session_id: str
    state: MatchState
    created_at: float
    telemetry: TelemetryService | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _rolls: dict[Side, int] = field(default_factory=dict, repr=False)

    @property
    def finished(self) -> bool:
        return self.state.phase == "finished"

    def _log(self, event_type: str, payload: dict[str, object]) -> None:
        if self.telemetry is not None:
            self.telemetry.log(event_type, payload)

    def _apply(self, command: Command) -> StepResult:
        had_battle = self.state.pending_battle
        res = step(self.state, command)
        if res.ok and self.state.pending_battle is not had_battle:
            self._rolls.clear()
        self._log(
            "COMMAND",
            {
                "command": command_to_dict(command),
                "ok": res.ok,
                "result": res.result,
                "error": res.error,
                "events": res.events,
            },
        )
        if res.ok and self.finished:
            self._log("MATCH_ENDED", {"winner": self.state.winner, "score": dict(self.state.score)})
        return res

    def submit(self, command: Command) -> StepResult:
        with self._lock:
            return self._apply(command)

    def acting_player(self) -> PlayerId | None:
        with self._lock:
            return acting_player(self.state)

    def submit_roll(self, role: Side, roll: int) -> BattleRolls | None:
        """Record one side's die for the pending battle.

        Returns the shared rolls once both sides are in.
        """
        with self._lock:
            if self.state.pending_battle is None:
                raise SessionError("No battle is pending")
            if role not in ("attacker", "defender"):
                raise SessionError(f"Unknown role: {role}")
            sides = self.state.config.die_sides
            if not 1 <= roll <= sides:
                raise SessionError(f"Roll must be between 1 and {sides}")
            if role in self._rolls:
                raise SessionError(f"{role} already rolled")
            self._rolls[role] = roll
            self._log("ROLL_SUBMITTED", {"role": role, "roll": roll})
            return self._ready()

    def _ready(self) -> BattleRolls | None:
        if "attacker" in self._rolls and "defender" in self._rolls:
            return BattleRolls(attacker=self._rolls["attacker"], defender=self._rolls["defender"])
        return None

    def ready_rolls(self) -> BattleRolls | None:
        with self._lock:
            return self._ready()

    def resolve(self, unit_id: str, target: str | int | None = None, recipient: str | None = None) -> StepResult:
        """Resolve the pending battle, using the shared rolls when both are in."""
        with self._lock:
            battle = self.state.pending_battle
            if battle is None:
                raise SessionError("No battle is pending")
            cmd = ResolveBattle(
                unit_id=unit_id,
                action=battle.action,
                target=target,
                rolls=self._ready(),
                recipient=recipient,
            )
            return self._apply(cmd)

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            return snapshot(self.state)


class SessionManager:
    """
    Creates, tracks and ends match sessions.

    No persistence - sessions live in memory; telemetry files are the only
    thing written to disk.
    """

    def __init__(self, cards: CardDatabase, telemetry_dir: Path | None = None) -> None:
        self._cards = cards
        self._telemetry_dir = telemetry_dir
        self._sessions: dict[str, MatchSession] = {}
        self._lock = threading.Lock()

    def create_session(
        self,
        squad1: Sequence[str],
        squad2: Sequence[str],
        seed: int | None = None,
        config: MatchConfig | None = None,
        coin_toss_winner: PlayerId | None = None,
    ) -> MatchSession:
        session_id = str(uuid.uuid4())
        if seed is None:
            seed = uuid.uuid4().int & 0x7FFFFFFF
        state = new_match(
            self._cards,
            squad1,
            squad2,
            seed=seed,
            config=config,
            coin_toss_winner=coin_toss_winner,
        )
        telemetry = None
        if self._telemetry_dir is not None:
            telemetry = TelemetryService(self._telemetry_dir / f"{session_id}.jsonl", session_id=session_id)
        session = MatchSession(session_id=session_id, state=state, created_at=time.time(), telemetry=telemetry)
        session._log(
            "SESSION_CREATED",
            {"seed": seed, "squads": {p: list(s) for p, s in state.squads.items()}, "coin_toss": state.coin_toss_winner},
        )
        with self._lock:
            self._sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> MatchSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def require_session(self, session_id: str) -> MatchSession:
        session = self.get_session(session_id)
        if session is None:
            raise SessionError(f"Unknown session: {session_id}")
        return session

    def end_session(self, session_id: str, reason: str = "completed") -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session._log("SESSION_ENDED", {"reason": reason, "score": dict(session.state.score)})
        return True

    def active_sessions(self) -> list[str]:
        with self._lock:
            return sorted(self._sessions)
