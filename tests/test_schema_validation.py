from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from pitchduel.paths import get_paths
from pitchduel.services.content import ContentError, ContentService


def test_content_schemas_validate() -> None:
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    content.validate_all()


def test_bundled_cards_parse() -> None:
    paths = get_paths()
    content = ContentService(paths.data_dir, paths.schema_dir)
    cards = content.load_cards_db()
    squads = content.load_squads(cards).squads
    assert set(squads["P1"]) <= set(cards.all_ids())
    assert set(squads["P2"]) <= set(cards.all_ids())

    keeper = cards.get("S01")
    assert keeper.role == "GK"
    assert keeper.stat("defending").value > 0
    # attributes left out of the file count as zero
    assert cards.get("S08").stat("shooting").value == 0
    assert cards.get("S08").stat("shooting").cost == 0


def _copy_content(tmp_path: Path) -> tuple[Path, Path]:
    paths = get_paths()
    data_dir = tmp_path / "data"
    shutil.copytree(paths.data_dir, data_dir)
    return data_dir, data_dir / "schemas"


def test_schema_violations_are_reported(tmp_path: Path) -> None:
    data_dir, schema_dir = _copy_content(tmp_path)
    raw = json.loads((data_dir / "cards.json").read_text(encoding="utf-8"))
    raw["cards"][0]["rarity"] = "mythic"
    del raw["cards"][1]["stamina"]
    (data_dir / "cards.json").write_text(json.dumps(raw), encoding="utf-8")

    with pytest.raises(ContentError) as exc:
        ContentService(data_dir, schema_dir).load_cards_db()
    msg = str(exc.value)
    assert "Schema validation failed" in msg
    assert "mythic" in msg
    assert "stamina" in msg


def test_missing_and_broken_files(tmp_path: Path) -> None:
    data_dir, schema_dir = _copy_content(tmp_path)
    (data_dir / "squads.json").unlink()
    with pytest.raises(ContentError, match="Missing content file"):
        ContentService(data_dir, schema_dir).load_squads()

    (data_dir / "cards.json").write_text("{not json", encoding="utf-8")
    with pytest.raises(ContentError, match="Invalid JSON"):
        ContentService(data_dir, schema_dir).load_cards_db()


def test_squad_with_unknown_card(tmp_path: Path) -> None:
    data_dir, schema_dir = _copy_content(tmp_path)
    (data_dir / "squads.json").write_text(
        json.dumps({"squads": {"P1": ["S01", "S99", "S41"], "P2": ["S08", "S31", "S43"]}}), encoding="utf-8"
    )
    with pytest.raises(ContentError, match="unknown card S99"):
        ContentService(data_dir, schema_dir).validate_all()
