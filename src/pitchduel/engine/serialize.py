from __future__ import annotations

import random
from dataclasses import asdict
from typing import Mapping

from .actions import (
    Command,
    EndTurn,
    MoveUnit,
    PerformAction,
    PostBattleMove,
    ResolveBattle,
    SetKickoff,
    SkipPostBattleMove,
    Surrender,
)
from .battle import BattleKind, BattleRolls, PendingBattle, RandomDice
from .config import MatchConfig
from .match import MatchState
from .turns import TurnManager
from .types import CardDatabase
from .units import Unit
from .world import World


def _rolls_to_dict(r: BattleRolls | None) -> dict[str, int] | None:
    if r is None:
        return None
    return {"attacker": r.attacker, "defender": r.defender}


def command_to_dict(c: Command) -> dict[str, object]:
    if isinstance(c, PerformAction):
        return {"type": "action", "unit_id": c.unit_id, "action": c.action, "target": c.target}
    if isinstance(c, MoveUnit):
        return {"type": "move", "unit_id": c.unit_id, "from": c.from_node, "to": c.to_node}
    if isinstance(c, ResolveBattle):
        return {
            "type": "resolve",
            "unit_id": c.unit_id,
            "action": c.action,
            "target": c.target,
            "rolls": _rolls_to_dict(c.rolls),
            "recipient": c.recipient,
        }
    if isinstance(c, Surrender):
        return {"type": "surrender", "unit_id": c.unit_id}
    if isinstance(c, SetKickoff):
        return {"type": "kickoff", "unit_id": c.unit_id}
    if isinstance(c, PostBattleMove):
        return {"type": "post_move", "unit_id": c.unit_id, "to": c.to_node}
    if isinstance(c, SkipPostBattleMove):
        return {"type": "skip_post_move", "unit_id": c.unit_id}
    if isinstance(c, EndTurn):
        return {"type": "end_turn", "player": c.player}
    # should be unreachable
    return {"type": "unknown"}


def command_from_dict(d: Mapping[str, object]) -> Command:
    """Inverse of `command_to_dict`. Raises ValueError on an unknown type."""
    kind = d.get("type")
    if kind == "end_turn":
        return EndTurn(player=d["player"])
    unit_id = str(d["unit_id"])
    if kind == "action":
        target = d.get("target")
        return PerformAction(unit_id=unit_id, action=d["action"], target=None if target is None else int(target))
    if kind == "move":
        return MoveUnit(unit_id=unit_id, from_node=int(d["from"]), to_node=int(d["to"]))
    if kind == "resolve":
        raw = d.get("rolls")
        rolls = None
        if isinstance(raw, Mapping):
            rolls = BattleRolls(attacker=int(raw["attacker"]), defender=int(raw["defender"]))
        return ResolveBattle(
            unit_id=unit_id,
            action=d.get("action"),
            target=d.get("target"),
            rolls=rolls,
            recipient=d.get("recipient"),
        )
    if kind == "surrender":
        return Surrender(unit_id=unit_id)
    if kind == "kickoff":
        return SetKickoff(unit_id=unit_id)
    if kind == "post_move":
        return PostBattleMove(unit_id=unit_id, to_node=int(d["to"]))
    if kind == "skip_post_move":
        return SkipPostBattleMove(unit_id=unit_id)
    raise ValueError(f"Unknown command type: {kind!r}")


def _unit_to_dict(u: Unit) -> dict[str, object]:
    return {
        "id": u.id,
        "owner": u.owner,
        "card_id": u.card_id,
        "position": u.position,
        "stamina": u.stamina,
        "base_stamina": u.base_stamina,
        "lock_turns": u.lock_turns,
        "has_ball": u.has_ball,
        "is_goalkeeper": u.is_goalkeeper,
    }


def _battle_to_dict(b: PendingBattle | None) -> dict[str, object] | None:
    if b is None:
        return None
    return {
        "kind": b.kind.value,
        "attackers": list(b.attacker_ids),
        "defenders": list(b.defender_ids),
        "node": b.node_id,
        "action": b.action,
        "initiator": b.initiator,
        "target": b.target,
    }


def _config_to_dict(cfg: MatchConfig) -> dict[str, object]:
    raw = asdict(cfg)
    raw["formations"] = {p: list(nodes) for p, nodes in cfg.formations.items()}
    return raw


def _config_from_dict(raw: Mapping[str, object]) -> MatchConfig:
    fields = dict(raw)
    fields["formations"] = {p: tuple(nodes) for p, nodes in raw["formations"].items()}
    return MatchConfig(**fields)


def snapshot(state: MatchState) -> dict[str, object]:
    """Return a JSON-serializable canonical snapshot of the current match state."""
    return {
        "seed": state.seed,
        "phase": state.phase,
        "current_player": state.turns.current_player,
        "turn": state.turns.turn_number,
        "score": dict(state.score),
        "coin_toss_winner": state.coin_toss_winner,
        "winner": state.winner,
        "squads": {p: list(s) for p, s in state.squads.items()},
        "units": [_unit_to_dict(state.world.units[uid]) for uid in sorted(state.world.units)],
        "pending_battle": _battle_to_dict(state.pending_battle),
        "post_battle_unit": state.post_battle_unit,
        "config": _config_to_dict(state.config),
        "action_log": [command_to_dict(c) for c in state.action_log],
    }


def restore(cards: CardDatabase, snap: Mapping[str, object], config: MatchConfig | None = None) -> MatchState:
    """Rebuild a live match from `snapshot` output.

    Units come back as plain records placed straight onto a fresh board. The RNG
    is re-seeded from (seed, turn), so dice after a restore differ from an
    uninterrupted match; pass manual rolls where that matters. The config stored in
    the snapshot is used unless `config` overrides it.
    """
    if config is None:
        raw_cfg = snap.get("config")
        config = _config_from_dict(raw_cfg) if isinstance(raw_cfg, Mapping) else MatchConfig()
    seed = int(snap["seed"])
    turn = int(snap["turn"])
    rng = random.Random(f"{seed}:{turn}")
    world = World(cards=cards)
    for raw in snap["units"]:
        unit = Unit(**raw)
        world.units[unit.id] = unit
        world.board.place(unit.id, unit.position)

    pending = None
    pb = snap.get("pending_battle")
    if isinstance(pb, Mapping):
        pending = PendingBattle(
            kind=BattleKind(pb["kind"]),
            attacker_ids=tuple(pb["attackers"]),
            defender_ids=tuple(pb["defenders"]),
            node_id=int(pb["node"]),
            action=pb["action"],
            initiator=pb["initiator"],
            target=pb.get("target"),
        )

    squads = snap["squads"]
    return MatchState(
        cards=cards,
        config=config,
        seed=seed,
        rng=rng,
        world=world,
        dice=RandomDice(rng),
        squads={p: tuple(s) for p, s in squads.items()},
        turns=TurnManager(current_player=snap["current_player"], turn_number=turn),
        phase=snap["phase"],
        score=dict(snap["score"]),
        pending_battle=pending,
        post_battle_unit=snap.get("post_battle_unit"),
        coin_toss_winner=snap.get("coin_toss_winner"),
        winner=snap.get("winner"),
        action_log=[command_from_dict(c) for c in snap.get("action_log", [])],
    )
