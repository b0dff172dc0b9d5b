from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Sequence

from pitchduel.engine.ai import AISpec, candidate_commands
from pitchduel.engine.match import new_match
from pitchduel.paths import get_paths
from pitchduel.services.content import ContentError, ContentService
from pitchduel.services.session import MatchSession
from pitchduel.services.telemetry import TelemetryService


def _content() -> ContentService:
    paths = get_paths()
    return ContentService(data_dir=paths.data_dir, schema_dir=paths.schema_dir)


def _cmd_validate(args: argparse.Namespace) -> int:
    try:
        _content().validate_all()
    except ContentError as e:
        print(e, file=sys.stderr)
        return 1
    print("content ok")
    return 0


def _cmd_simulate(args: argparse.Namespace) -> int:
    content = _content()
    try:
        cards = content.load_cards_db()
        squads = content.load_squads(cards).squads
    except ContentError as e:
        print(e, file=sys.stderr)
        return 1

    state = new_match(cards, squads["P1"], squads["P2"], seed=args.seed)
    telemetry = TelemetryService(Path(args.telemetry)) if args.telemetry else None
    session = MatchSession(session_id=f"sim-{args.seed}", state=state, created_at=time.time(), telemetry=telemetry)
    spec = AISpec(difficulty=args.difficulty)

    steps = 0
    while not session.finished and steps < args.max_steps:
        for cmd in candidate_commands(session.state, spec):
            if session.submit(cmd).ok:
                break
        else:
            print("no legal command; stopping", file=sys.stderr)
            break
        steps += 1

    if args.json:
        print(json.dumps(session.snapshot(), indent=2))
    else:
        score = state.score
        print(f"seed {args.seed}: P1 {score['P1']} - {score['P2']} P2 after {state.turns.turn_number} turns")
        if state.winner is not None:
            print(f"winner: {state.winner}")
        else:
            print(f"stopped after {steps} commands ({state.phase})")
        print(state.world.board.dump())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pitchduel")
    sub = parser.add_subparsers(dest="command", required=True)

    p_val = sub.add_parser("validate", help="check bundled content against its schemas")
    p_val.set_defaults(func=_cmd_validate)

    p_sim = sub.add_parser("simulate", help="play an AI vs AI match")
    p_sim.add_argument("--seed", type=int, default=1)
    p_sim.add_argument("--max-steps", type=int, default=500)
    p_sim.add_argument("--difficulty", type=int, default=1, choices=(0, 1, 2))
    p_sim.add_argument("--telemetry", default=None, help="append JSON-lines telemetry to this file")
    p_sim.add_argument("--json", action="store_true", help="print the final snapshot as JSON")
    p_sim.set_defaults(func=_cmd_simulate)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
