from __future__ import annotations

import pytest

from pitchduel.engine.battle import (
    BattleKind,
    BattleRolls,
    FixedDice,
    PendingBattle,
    goalkeeper_penalty,
    needs_dice,
    resolve_battle,
)
from pitchduel.engine.config import MatchConfig
from pitchduel.engine.types import CardDatabase, CardDefinition, StatLine
from pitchduel.engine.world import World, give_ball, relocate_unit, spawn_unit_from_card


def _card(card_id: str, stamina: int = 20, **stats: tuple[int, int]) -> CardDefinition:
    return CardDefinition(
        id=card_id,
        name=card_id,
        rarity="common",
        stamina=stamina,
        stats={k: StatLine(value=v, cost=c) for k, (v, c) in stats.items()},
    )


def _world(*cards: CardDefinition) -> World:
    return World(cards=CardDatabase(cards={c.id: c for c in cards}))


def _no_dice() -> FixedDice:
    # raises if the resolver tries to roll
    return FixedDice(rolls=[])


def test_scenario_a_clear_dribble_win() -> None:
    world = _world(
        _card("ATK", dribbling=(8, 1), speed=(2, 1)),
        _card("DEF", defending=(2, 1), speed=(1, 1)),
    )
    a = spawn_unit_from_card(world, "P1", "ATK", 5)
    d = spawn_unit_from_card(world, "P2", "DEF", 8)
    give_ball(world, a.id)

    battle = PendingBattle.create([a.id], [d.id], 8, "dribble", initiator="P1")
    assert battle.kind == BattleKind.ONE_V_ONE
    res = resolve_battle(world, battle, MatchConfig(), _no_dice())

    assert res is not None
    assert res.attack_value == 10
    assert res.defense_value == 3
    assert res.winner_side == "attacker"
    assert not res.used_dice
    assert res.rolls is None
    assert res.locks == {d.id: 2}
    assert res.ball_holder == a.id
    assert res.advance == (a.id, 8)
    assert res.post_move_unit == a.id
    assert res.stamina_costs == {a.id: 1, d.id: 1}

    # resolution is pure
    assert a.position == 5
    assert a.stamina == 20
    assert d.lock_turns == 0


def test_clear_loss_charges_only_the_attacker() -> None:
    world = _world(
        _card("ATK", dribbling=(1, 2), speed=(1, 1)),
        _card("DEF", defending=(9, 3), speed=(5, 1)),
    )
    a = spawn_unit_from_card(world, "P1", "ATK", 5)
    d = spawn_unit_from_card(world, "P2", "DEF", 8)
    give_ball(world, a.id)

    res = resolve_battle(world, PendingBattle.create([a.id], [d.id], 8, "dribble", "P1"), MatchConfig(), _no_dice())
    assert res is not None
    assert res.winner_side == "defender"
    assert res.stamina_costs == {a.id: 2}
    assert res.locks == {a.id: 2}
    assert res.ball_holder == d.id
    assert res.advance is None


def _shootout() -> tuple[World, str, str]:
    world = _world(
        _card("SHOOTER", shooting=(3, 2), speed=(2, 1)),
        _card("KEEPER", defending=(3, 1), speed=(2, 1)),
    )
    a = spawn_unit_from_card(world, "P1", "SHOOTER", 10)
    relocate_unit(world, a, 12)
    k = spawn_unit_from_card(world, "P2", "KEEPER", 12)
    give_ball(world, a.id)
    return world, a.id, k.id


def test_scenario_b_equal_values_roll_without_penalty() -> None:
    world, a, k = _shootout()
    battle = PendingBattle.create([a], [k], 12, "shoot", "P1")

    res = resolve_battle(world, battle, MatchConfig(), FixedDice(rolls=[5, 4]))
    assert res is not None
    assert res.used_dice
    assert res.rolls == BattleRolls(attacker=5, defender=4)
    assert res.attack_total == 10
    assert res.defense_total == 9
    assert res.penalties == {}
    assert res.winner_side == "attacker"
    assert res.score_goal
    assert res.locks == {k: 1}


def test_exact_tie_goes_to_the_defender() -> None:
    world, a, k = _shootout()
    battle = PendingBattle.create([a], [k], 12, "shoot", "P1")

    res = resolve_battle(world, battle, MatchConfig(), _no_dice(), rolls=BattleRolls(attacker=3, defender=3))
    assert res is not None
    assert res.attack_total == res.defense_total
    assert res.winner_side == "defender"
    assert not res.score_goal
    assert res.ball_holder == k
    # pushed off the shot
    assert res.push_back == (a, 10)
    assert res.locks == {a: 1}


def test_lower_side_takes_tiebreak_penalty() -> None:
    world = _world(
        _card("ATK", dribbling=(4, 1), speed=(2, 1)),
        _card("DEF", defending=(5, 1), speed=(3, 1)),
    )
    a = spawn_unit_from_card(world, "P1", "ATK", 5)
    d = spawn_unit_from_card(world, "P2", "DEF", 8)
    give_ball(world, a.id)

    battle = PendingBattle.create([a.id], [d.id], 8, "dribble", "P1")
    res = resolve_battle(world, battle, MatchConfig(), _no_dice(), rolls=BattleRolls(attacker=5, defender=2))
    assert res is not None
    # 6 + 5 - 2 = 9 vs 8 + 2 = 10
    assert res.attack_total == 9
    assert res.defense_total == 10
    assert res.winner_side == "defender"
    # close contest: both sides pay
    assert res.stamina_costs == {a.id: 1, d.id: 1}


def test_scenario_e_two_attackers_still_roll() -> None:
    world = _world(
        _card("WING", dribbling=(7, 1), speed=(3, 1)),
        _card("WALL", defending=(20, 2), speed=(10, 1)),
    )
    a1 = spawn_unit_from_card(world, "P1", "WING", 5)
    a2 = spawn_unit_from_card(world, "P1", "WING", 8)
    d = spawn_unit_from_card(world, "P2", "WALL", 8)
    give_ball(world, a1.id)

    battle = PendingBattle.create([a1.id, a2.id], [d.id], 8, "dribble", "P1")
    assert battle.kind == BattleKind.TWO_ATTACKERS_V_ONE
    cfg = MatchConfig()
    assert needs_dice(world, battle, cfg) is True

    res = resolve_battle(world, battle, cfg, FixedDice(rolls=[1, 6]))
    assert res is not None
    assert res.attack_value == pytest.approx(39.0)
    assert res.defense_value == 30
    assert res.used_dice
    assert res.winner_side == "attacker"
    assert res.ball_holder == a1.id


def test_outnumbered_clear_win_skips_dice() -> None:
    world = _world(
        _card("RUNNER", dribbling=(9, 1), speed=(9, 1)),
        _card("DEF", defending=(6, 1), speed=(6, 1)),
    )
    a = spawn_unit_from_card(world, "P1", "RUNNER", 5)
    d1 = spawn_unit_from_card(world, "P2", "DEF", 8)
    d2 = spawn_unit_from_card(world, "P2", "DEF", 9)
    relocate_unit(world, d2, 8)
    give_ball(world, a.id)

    battle = PendingBattle.create([a.id], [d1.id, d2.id], 8, "dribble", "P1")
    assert battle.kind == BattleKind.ONE_V_TWO_DEFENDERS
    # 18 * 1.95 = 35.1 vs 24
    res = resolve_battle(world, battle, MatchConfig(), _no_dice())
    assert res is not None
    assert res.attack_value == pytest.approx(35.1)
    assert not res.used_dice
    assert res.winner_side == "attacker"
    assert res.locks == {d1.id: 2, d2.id: 2}


def test_two_defender_win_lets_caller_pick_the_ball_recipient() -> None:
    world = _world(
        _card("SLOW", dribbling=(1, 1), speed=(1, 1)),
        _card("DEF", defending=(6, 1), speed=(6, 1)),
    )
    a = spawn_unit_from_card(world, "P1", "SLOW", 5)
    d1 = spawn_unit_from_card(world, "P2", "DEF", 8)
    d2 = spawn_unit_from_card(world, "P2", "DEF", 9)
    relocate_unit(world, d2, 8)
    give_ball(world, a.id)

    battle = PendingBattle.create([a.id], [d1.id, d2.id], 8, "dribble", "P1")
    res = resolve_battle(world, battle, MatchConfig(), _no_dice(), recipient=d2.id)
    assert res is not None
    assert res.winner_side == "defender"
    assert res.ball_holder == d2.id

    res_default = resolve_battle(world, battle, MatchConfig(), _no_dice())
    assert res_default is not None
    assert res_default.ball_holder == d1.id


def test_pass_defence_uses_doubled_speed_only() -> None:
    world = _world(
        _card("PASSER", passing=(5, 1), speed=(3, 1)),
        _card("MARKER", defending=(9, 3), speed=(4, 2)),
        _card("TARGET", speed=(1, 1)),
    )
    a = spawn_unit_from_card(world, "P1", "PASSER", 5)
    mate = spawn_unit_from_card(world, "P1", "TARGET", 8)
    d = spawn_unit_from_card(world, "P2", "MARKER", 9)
    relocate_unit(world, d, 8)
    give_ball(world, a.id)

    battle = PendingBattle.create([a.id], [d.id], 8, "pass", "P1", target=mate.id)
    res = resolve_battle(world, battle, MatchConfig(), _no_dice(), rolls=BattleRolls(attacker=4, defender=1))
    assert res is not None
    assert res.attack_value == 8
    assert res.defense_value == 8
    assert res.stamina_costs[d.id] == 2
    assert res.winner_side == "attacker"
    assert res.ball_holder == mate.id
    assert res.locks == {d.id: 1}


def test_exhausted_unit_fights_at_a_penalty() -> None:
    world = _world(
        _card("TIRED", dribbling=(8, 3), speed=(2, 1)),
        _card("DEF", defending=(1, 1)),
    )
    a = spawn_unit_from_card(world, "P1", "TIRED", 5)
    d = spawn_unit_from_card(world, "P2", "DEF", 8)
    a.stamina = 1
    give_ball(world, a.id)

    res = resolve_battle(world, PendingBattle.create([a.id], [d.id], 8, "dribble", "P1"), MatchConfig(), _no_dice())
    assert res is not None
    assert res.attack_value == 7
    assert res.penalties == {a.id: 3}
    assert res.winner_side == "attacker"


def test_goalkeeper_penalty_by_position() -> None:
    world = _world(_card("GK", defending=(5, 1)))
    keeper = spawn_unit_from_card(world, "P1", "GK", 1)
    cfg = MatchConfig()
    assert keeper.is_goalkeeper
    assert goalkeeper_penalty(keeper, cfg) == 0
    relocate_unit(world, keeper, 2)
    assert goalkeeper_penalty(keeper, cfg) == 3
    relocate_unit(world, keeper, 8)
    assert goalkeeper_penalty(keeper, cfg) == 6


def test_surrender_concedes_without_dice() -> None:
    world, a, k = _shootout()
    battle = PendingBattle.create([a], [k], 12, "shoot", "P1")

    res = resolve_battle(world, battle, MatchConfig(), _no_dice(), surrender="defender")
    assert res is not None
    assert res.surrendered
    assert not res.used_dice
    assert res.winner_side == "attacker"
    assert res.score_goal
    assert res.stamina_costs == {k: 2}
    assert res.locks == {k: 2}


def test_missing_references_return_none() -> None:
    world, a, _ = _shootout()
    battle = PendingBattle.create([a], ["P2-GHOST-12"], 12, "shoot", "P1")
    assert resolve_battle(world, battle, MatchConfig(), _no_dice()) is None
    assert needs_dice(world, battle, MatchConfig()) is None


def test_unsupported_battle_shape() -> None:
    with pytest.raises(ValueError):
        PendingBattle.create(["a", "b"], ["c", "d"], 5, "dribble", "P1")
