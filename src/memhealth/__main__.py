"""Entry point: python -m memhealth <command>

- scan:      list memory sources
- health:    aggregate health snapshot
- analyze:   critique CLAUDE.md
- remove:    drop lines from CLAUDE.md
- move:      relocate a line range into another file
- learnings: list learnings
- status:    set a learning's status
- promote:   fold a learning into a durable file
- session:   AI recommendations from the latest session transcript
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys

from memhealth.config import load_config
from memhealth.errors import MemhealthError


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memhealth", description="Memory health & curation.")
    parser.add_argument("--project", default=".", help="Project directory (default: cwd).")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("scan", help="List memory sources.")
    sub.add_parser("health", help="Show the aggregate health snapshot.")
    sub.add_parser("analyze", help="Analyze CLAUDE.md.")

    p_remove = sub.add_parser("remove", help="Remove 1-based lines from CLAUDE.md.")
    p_remove.add_argument("lines", nargs="+", type=int)

    p_move = sub.add_parser("move", help="Move lines START..END into TARGET.")
    p_move.add_argument("start", type=int)
    p_move.add_argument("end", type=int)
    p_move.add_argument("target")

    sub.add_parser("learnings", help="List learnings.")

    p_status = sub.add_parser("status", help="Set a learning's status.")
    p_status.add_argument("id")
    p_status.add_argument("status", choices=["pending", "verified", "rejected"])

    p_promote = sub.add_parser("promote", help="Promote a learning into TARGET.")
    p_promote.add_argument("id")
    p_promote.add_argument("target")

    p_session = sub.add_parser("session", help="Analyze the latest session transcript.")
    p_session.add_argument("--language")
    p_session.add_argument("--framework")
    return parser


def _to_jsonable(value: object) -> object:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, list):
        return [_to_jsonable(v) for v in value]
    return value


async def _run(args: argparse.Namespace) -> object:
    from memhealth.core import Curator, project_context

    config = load_config()
    project = project_context(
        args.project,
        language=getattr(args, "language", None),
        framework=getattr(args, "framework", None),
    )
    curator = Curator.from_config(config, project)

    if args.cmd == "scan":
        return await curator.scan_catalog()
    if args.cmd == "health":
        health = await curator.load_health()
        data = health.to_dict()
        data["context_percentage"] = round(curator.context_percentage(health), 2)
        return data
    if args.cmd == "analyze":
        return await curator.run_document_analysis()
    if args.cmd == "remove":
        result = await curator.apply_removal(args.lines)
        return {"lines_removed": result.lines_affected, "stale": result.stale}
    if args.cmd == "move":
        result = await curator.apply_move((args.start, args.end), args.target)
        return {"lines_moved": result.lines_affected, "target": args.target, "stale": result.stale}
    if args.cmd == "learnings":
        return await curator.load_learnings()
    if args.cmd == "status":
        return await curator.update_learning_status(args.id, args.status)
    if args.cmd == "promote":
        return await curator.promote_learning(args.id, args.target)
    if args.cmd == "session":
        return await curator.get_session_analysis()
    raise AssertionError(f"unhandled command {args.cmd}")


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(load_config().log_level)

    try:
        result = asyncio.run(_run(args))
    except MemhealthError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(_to_jsonable(result), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
