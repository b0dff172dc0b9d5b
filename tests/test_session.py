from __future__ import annotations

from pathlib import Path

import pytest

from pitchduel.engine.actions import PerformAction, SetKickoff
from pitchduel.engine.battle import BattleRolls
from pitchduel.engine.world import relocate_unit
from pitchduel.paths import get_paths
from pitchduel.services.content import ContentService
from pitchduel.services.session import SessionError, SessionManager
from pitchduel.services.telemetry import TelemetryService


def _manager(tmp_path: Path) -> SessionManager:
    paths = get_paths()
    cards = ContentService(paths.data_dir, paths.schema_dir).load_cards_db()
    return SessionManager(cards, telemetry_dir=tmp_path)


def test_shared_rolls_resolve_the_battle(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    session = manager.create_session(["S01", "S35", "S41"], ["S08", "S31", "S43"], seed=8, coin_toss_winner="P1")
    assert session.acting_player() == "P1"
    assert session.submit(SetKickoff(unit_id="P1-S35-2")).ok

    with pytest.raises(SessionError):
        session.submit_roll("attacker", 3)

    world = session.state.world
    relocate_unit(world, world.units["P2-S31-11"], 4)
    res = session.submit(PerformAction(unit_id="P1-S35-2", action="dribble", target=4))
    assert res.pending is not None

    with pytest.raises(SessionError):
        session.submit_roll("attacker", 0)
    assert session.submit_roll("attacker", 6) is None
    with pytest.raises(SessionError):
        session.submit_roll("attacker", 5)
    assert session.ready_rolls() is None
    assert session.submit_roll("defender", 2) == BattleRolls(attacker=6, defender=2)

    res = session.resolve("P1-S35-2")
    assert res.ok
    assert res.battle is not None
    if res.battle.used_dice:
        assert res.battle.rolls == BattleRolls(attacker=6, defender=2)
    assert session.ready_rolls() is None
    assert session.state.pending_battle is None

    with pytest.raises(SessionError):
        session.resolve("P1-S35-2")


def test_telemetry_records_commands(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    session = manager.create_session(["S01", "S35", "S41"], ["S08", "S31", "S43"], seed=2, coin_toss_winner="P2")
    session.submit(SetKickoff(unit_id="P1-S35-2"))
    session.submit(SetKickoff(unit_id="P2-S31-11"))

    assert session.telemetry is not None
    records = list(session.telemetry.records())
    assert [r["type"] for r in records] == ["SESSION_CREATED", "COMMAND", "COMMAND"]
    assert records[1]["payload"]["ok"] is False
    assert records[2]["payload"]["ok"] is True
    assert all(r["session"] == session.session_id for r in records)

    snap = session.snapshot()
    assert snap["phase"] == "inProgress"


def test_manager_lifecycle(tmp_path: Path) -> None:
    manager = _manager(tmp_path)
    session = manager.create_session(["S01", "S35", "S41"], ["S08", "S31", "S43"])
    assert manager.get_session(session.session_id) is session
    assert manager.active_sessions() == [session.session_id]

    assert manager.end_session(session.session_id)
    assert manager.get_session(session.session_id) is None
    assert not manager.end_session(session.session_id)
    with pytest.raises(SessionError):
        manager.require_session(session.session_id)

    last = list(TelemetryService(tmp_path / f"{session.session_id}.jsonl").records())[-1]
    assert last["type"] == "SESSION_ENDED"
