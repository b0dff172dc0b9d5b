from __future__ import annotations

import json

from pitchduel.engine.ai import AISpec, ai_step, ai_take_turn
from pitchduel.engine.match import MatchConfig, acting_player, new_match, replay
from pitchduel.engine.serialize import command_from_dict, command_to_dict, restore, snapshot
from pitchduel.paths import get_paths
from pitchduel.services.content import ContentService


def _load():
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    cards = content.load_cards_db()
    return cards, content.load_squads(cards).squads


def test_engine_determinism_replay() -> None:
    cards, squads = _load()
    cfg = MatchConfig(check_invariants=True)

    seed = 424242
    state1 = new_match(cards, squads["P1"], squads["P2"], seed=seed, config=cfg)
    for _ in range(120):
        if state1.phase == "finished":
            break
        assert ai_step(state1, AISpec(difficulty=1)) is not None

    snap1 = snapshot(state1)
    state2 = replay(cards, squads["P1"], squads["P2"], seed=seed, commands=list(state1.action_log), config=cfg)
    snap2 = snapshot(state2)

    assert snap1 == snap2
    assert state1.event_log == state2.event_log


def test_same_seed_same_match() -> None:
    cards, squads = _load()
    snaps = []
    for _ in range(2):
        state = new_match(cards, squads["P1"], squads["P2"], seed=5)
        for _ in range(40):
            if ai_step(state, AISpec(difficulty=0)) is None:
                break
        snaps.append(snapshot(state))
    assert snaps[0] == snaps[1]


def test_commands_survive_dict_conversion() -> None:
    cards, squads = _load()
    state = new_match(cards, squads["P1"], squads["P2"], seed=11)
    for _ in range(30):
        ai_step(state, AISpec(difficulty=2))
    for cmd in state.action_log:
        assert command_from_dict(command_to_dict(cmd)) == cmd


def test_restore_rebuilds_plain_state() -> None:
    cards, squads = _load()
    state = new_match(cards, squads["P1"], squads["P2"], seed=3)
    for _ in range(25):
        ai_step(state)

    snap = snapshot(state)
    restored = restore(cards, snap)
    assert snapshot(restored) == snap
    for unit_id, unit in restored.world.units.items():
        assert restored.world.board.node_of(unit_id) == unit.position


def test_restore_keeps_the_match_config() -> None:
    cards, squads = _load()
    cfg = MatchConfig(goal_target=1, check_invariants=True)
    state = new_match(cards, squads["P1"], squads["P2"], seed=3, config=cfg)

    snap = json.loads(json.dumps(snapshot(state)))
    assert restore(cards, snap).config == cfg
    assert restore(cards, snap, config=MatchConfig()).config.goal_target == 3


def test_ai_take_turn_hands_over_the_move() -> None:
    cards, squads = _load()
    state = new_match(cards, squads["P1"], squads["P2"], seed=8)
    player = state.coin_toss_winner
    assert player is not None

    ai_take_turn(state, player, AISpec(difficulty=2))
    assert state.action_log
    assert state.phase == "finished" or acting_player(state) != player
