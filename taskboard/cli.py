"""
taskboard - command line entry point

Usage:
    taskboard serve                                  # run the board API
    taskboard projects                               # list boards
    taskboard show <project> [--priority high] [--executor Alice] [--all] [--sort priority-normal-first]
    taskboard add-card <project> <section> "Title" [--priority high] [--executor Bob]
    taskboard move <project> <card-id> <section>     # same rules as a drag-and-drop

<section> may be a section id or its title.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .client import BoardAPIError, BoardClient, NotFoundError
from .config import Config, ConfigError
from .drag import DragEndEvent, DragTracker
from .schema import Board, CardDraft, Priority
from .store import BoardContext
from .view import FilterState, SortBy, filtered_board

logger = logging.getLogger("taskboard")

PRIORITY_MARK = {Priority.LOW: "·", Priority.NORMAL: "•", Priority.HIGH: "▲"}


def _section_ref(board: Board, ref: str) -> str:
    """Resolve a section id or (case-insensitive) title to an id."""
    if board.get_section(ref):
        return ref
    for section in board.sections:
        if section.title.lower() == ref.lower():
            return section.id
    raise NotFoundError(f"No section '{ref}' on board {board.title or board.id}")


def render_board(board: Board) -> str:
    lines = [f"📋 {board.title or board.id}"]
    for section in board.sections:
        lock = "" if section.can_delete else " 🔒"
        lines.append(f"\n{section.title}{lock} ({len(section.cards)})  [{section.id}]")
        for card in section.cards:
            parts = [f"  {PRIORITY_MARK[card.priority]} {card.title}"]
            if card.executor:
                parts.append(f"@{card.executor}")
            if card.assignees:
                parts.append("→ " + ", ".join(u.name or u.email for u in card.assignees))
            if card.comments:
                parts.append(f"💬{len(card.comments)}")
            parts.append(f"[{card.id}]")
            lines.append(" ".join(parts))
    return "\n".join(lines)


# ── Commands ───────────────────────────────────────────────────────────────


def cmd_serve(cfg: Config, args) -> int:
    from .server import create_app

    app = create_app(cfg.db_path, api_secret=cfg.api_key)
    logger.info(f"Serving board API on http://{cfg.host}:{cfg.port}/api (db: {cfg.db_path})")
    app.run(host=cfg.host, port=cfg.port)
    return 0


def cmd_projects(cfg: Config, args) -> int:
    client = BoardClient.from_config(cfg)
    projects = client.list_projects()
    if not projects:
        print("No boards found.")
    for project in projects:
        print(f"{project['id']}  {project['title']}")
    return 0


def cmd_show(cfg: Config, args) -> int:
    with BoardContext(BoardClient.from_config(cfg)) as ctx:
        store = ctx.select(args.project)
        filters = FilterState(
            priorities=[Priority.from_str(p) for p in args.priority],
            executors=list(args.executor),
            multi_filter=args.all,
            sort_by=SortBy.from_str(args.sort),
        )
        print(render_board(filtered_board(store.board, filters)))
    return 0


def cmd_add_card(cfg: Config, args) -> int:
    with BoardContext(BoardClient.from_config(cfg)) as ctx:
        store = ctx.select(args.project)
        section_id = _section_ref(store.board, args.section)
        card = store.add_card(
            section_id,
            CardDraft(
                title=args.title,
                description=args.description,
                priority=Priority.from_str(args.priority),
                executor=args.executor,
            ),
        )
        print(f"✅ Created {card.id}: {card.title}")
    return 0


def cmd_move(cfg: Config, args) -> int:
    with BoardContext(BoardClient.from_config(cfg)) as ctx:
        store = ctx.select(args.project)
        try:
            over_id = _section_ref(store.board, args.section)
        except NotFoundError:
            over_id = args.section  # let reconciliation reject it
        moved = DragTracker(store).handle(DragEndEvent(args.card, over_id))
        if moved is None:
            print("Nothing to move.")
        else:
            section = store.board.get_section(moved.section_id)
            print(f"✅ Moved {moved.id} to {section.title if section else moved.section_id}")
    return 0


# ── Entry point ────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskboard", description="Multi-board task tracker")
    parser.add_argument("--config", help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the board API server").set_defaults(func=cmd_serve)
    sub.add_parser("projects", help="List boards").set_defaults(func=cmd_projects)

    show = sub.add_parser("show", help="Print a board")
    show.add_argument("project")
    show.add_argument("--priority", action="append", default=[], choices=[p.value for p in Priority])
    show.add_argument("--executor", action="append", default=[])
    show.add_argument("--all", action="store_true", help="Cards must match every filter (AND)")
    show.add_argument("--sort", default=SortBy.DATE.value, choices=[s.value for s in SortBy])
    show.set_defaults(func=cmd_show)

    add = sub.add_parser("add-card", help="Create a card")
    add.add_argument("project")
    add.add_argument("section")
    add.add_argument("title")
    add.add_argument("--description", default="")
    add.add_argument("--priority", default=Priority.NORMAL.value, choices=[p.value for p in Priority])
    add.add_argument("--executor", default="")
    add.set_defaults(func=cmd_add_card)

    move = sub.add_parser("move", help="Move a card to another section")
    move.add_argument("project")
    move.add_argument("card")
    move.add_argument("section")
    move.set_defaults(func=cmd_move)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        cfg = Config.load(args.config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s [taskboard] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        return args.func(cfg, args)
    except BoardAPIError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
