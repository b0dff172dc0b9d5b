from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from jsonschema import Draft202012Validator

from pitchduel.engine.types import STAT_NAMES, CardDatabase, CardDefinition, PlayerId, StatLine


class ContentError(RuntimeError):
    pass


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ContentError(f"Missing content file: {path}") from e
    except json.JSONDecodeError as e:
        raise ContentError(f"Invalid JSON in {path}: {e}") from e


def validate_json(instance: object, schema: object, *, context: str) -> None:
    validator = Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(instance), key=lambda e: list(e.path))
    if errors:
        lines = [f"Schema validation failed for {context}:"]
        for err in errors[:10]:
            loc = "/".join(str(p) for p in err.absolute_path)
            lines.append(f"- {loc}: {err.message}")
        raise ContentError("\n".join(lines))


def _require_str(obj: Mapping[str, object], key: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str):
        raise ContentError(f"Expected string for {key}")
    return v


def _require_int(obj: Mapping[str, object], key: str) -> int:
    v = obj.get(key)
    if not isinstance(v, int) or isinstance(v, bool):
        raise ContentError(f"Expected int for {key}")
    return v


def _parse_stats(raw: object) -> dict[str, StatLine]:
    if not isinstance(raw, dict):
        raise ContentError("stats must be an object")
    stats: dict[str, StatLine] = {}
    for name in STAT_NAMES:
        line = raw.get(name)
        if not isinstance(line, dict):
            # absent attributes count as zero
            continue
        stats[name] = StatLine(value=_require_int(line, "value"), cost=_require_int(line, "cost"))
    return stats


@dataclass(frozen=True)
class SquadCatalog:
    """Default kickoff squads, card ids in formation order."""

    squads: dict[PlayerId, tuple[str, ...]]


class ContentService:
    def __init__(self, data_dir: Path, schema_dir: Path) -> None:
        self._data_dir = data_dir
        self._schema_dir = schema_dir

    def _load_validated(self, name: str) -> dict[str, object]:
        path = self._data_dir / f"{name}.json"
        raw = _load_json(path)
        schema = _load_json(self._schema_dir / f"{name}.schema.json")
        validate_json(raw, schema, context=str(path))
        if not isinstance(raw, dict):
            raise ContentError(f"{name}.json must be an object")
        return raw

    def load_cards_db(self) -> CardDatabase:
        raw = self._load_validated("cards")
        raw_cards = raw.get("cards")
        if not isinstance(raw_cards, list):
            raise ContentError("cards.json.cards must be a list")

        cards: dict[str, CardDefinition] = {}
        for item in raw_cards:
            if not isinstance(item, dict):
                continue
            card_id = _require_str(item, "id")
            if card_id in cards:
                raise ContentError(f"Duplicate card id: {card_id}")
            role = item.get("role")
            card = CardDefinition(
                id=card_id,
                name=_require_str(item, "name"),
                rarity=_require_str(item, "rarity"),
                stamina=_require_int(item, "stamina"),
                stats=_parse_stats(item.get("stats", {})),
                role=role if isinstance(role, str) else None,
            )
            cards[card.id] = card
        return CardDatabase(cards=cards)

    def load_squads(self, cards: CardDatabase | None = None) -> SquadCatalog:
        raw = self._load_validated("squads")
        raw_squads = raw.get("squads")
        if not isinstance(raw_squads, dict):
            raise ContentError("squads.json.squads must be an object")
        squads: dict[PlayerId, tuple[str, ...]] = {}
        for player in ("P1", "P2"):
            lst = raw_squads.get(player)
            if not isinstance(lst, list):
                raise ContentError(f"Missing squad for {player}")
            squads[player] = tuple(str(c) for c in lst)
        if cards is not None:
            for player, squad in squads.items():
                for card_id in squad:
                    if cards.find(card_id) is None:
                        raise ContentError(f"Squad {player} references unknown card {card_id}")
        return SquadCatalog(squads=squads)

    def validate_all(self) -> None:
        # Load is validation (schema + parse + cross references)
        cards = self.load_cards_db()
        _ = self.load_squads(cards)
