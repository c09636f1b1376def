"""NoteSage CLI: main entry point.

Commands:
  init      Initialize a new NoteSage project
  index     Index the notes directory
  ask       Ask a question about your notes
  search    Show the notes context assembled for a query
  config    View and update project settings
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="notesage",
        description="NoteSage: ask questions about your markdown notes",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize a new NoteSage project")
    init_parser.add_argument("path", nargs="?", default=".", help="Project directory")

    # index
    index_parser = subparsers.add_parser("index", help="Index the notes directory")
    index_parser.add_argument(
        "--policy", choices=["path", "checksum"], help="Override the reindex policy"
    )
    index_parser.add_argument(
        "--prune", action="store_true", help="Remove notes whose file no longer exists"
    )

    # ask
    ask_parser = subparsers.add_parser("ask", help="Ask a question about your notes")
    ask_parser.add_argument("query", help="Question to ask")
    ask_parser.add_argument("--conversation", type=int, help="Conversation ID (default: most recent)")
    ask_parser.add_argument("--new", action="store_true", help="Start a new conversation")
    ask_parser.add_argument("--tag", action="append", default=[], help="Only use notes with this tag")

    # search
    search_parser = subparsers.add_parser("search", help="Show the notes context for a query")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--tag", action="append", default=[], help="Only use notes with this tag")

    # config
    config_parser = subparsers.add_parser("config", help="View and update project settings")
    config_parser.add_argument(
        "action", choices=["show", "get", "set"], help="Action to perform"
    )
    config_parser.add_argument("key", nargs="?", help="Setting key (for get/set)")
    config_parser.add_argument("value", nargs="?", help="Setting value (for set)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "init":
            return cmd_init(args)
        elif args.command == "index":
            return cmd_index(args)
        elif args.command == "ask":
            return cmd_ask(args)
        elif args.command == "search":
            return cmd_search(args)
        elif args.command == "config":
            return cmd_config(args)
        else:
            parser.print_help()
            return 1
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def _load_services():
    from notesage.core.services import build_services
    from notesage.utils.paths import find_project_root

    project_root = find_project_root()
    if project_root is None:
        print("No NoteSage project found. Run 'notesage init' first.", file=sys.stderr)
        return None
    return build_services(project_root)


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new NoteSage project."""
    project_dir = Path(args.path).resolve()
    project_dir.mkdir(parents=True, exist_ok=True)

    notesage_dir = project_dir / ".notesage"
    notesage_dir.mkdir(exist_ok=True)
    (project_dir / "notes").mkdir(exist_ok=True)

    # NOTESAGE.md
    notesage_md = project_dir / "NOTESAGE.md"
    if not notesage_md.exists():
        notesage_md.write_text(
            "# NoteSage Project\n\n"
            "Put markdown notes under `notes/`. Optional front matter:\n\n"
            "```\n---\ntitle: My note\ntags: [work, ideas]\n---\n```\n"
        )

    # settings.json
    settings_path = notesage_dir / "settings.json"
    if not settings_path.exists():
        from notesage.config import NoteSageSettings, save_settings
        save_settings(NoteSageSettings(), settings_path)

    # .gitignore
    gitignore = project_dir / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text(".notesage/notesage.db\n.env\nvenv/\n__pycache__/\n")

    print(f"Initialized NoteSage project at {project_dir}")
    return 0


def cmd_index(args: argparse.Namespace) -> int:
    """Index the notes directory."""
    from notesage.notes.indexer import ReindexPolicy

    services = _load_services()
    if services is None:
        return 1

    policy = ReindexPolicy(args.policy) if args.policy else None
    if not services.notes_dir.is_dir():
        print(f"Notes directory not found: {services.notes_dir}", file=sys.stderr)
        return 1

    print(f"Indexing {services.notes_dir}...")
    result = services.index(policy=policy, prune=args.prune)

    print(
        f"{result.changed_count} changed, {result.unchanged_count} unchanged, "
        f"{len(result.removed)} removed"
    )
    for path in result.failed:
        print(f"Failed: {path}", file=sys.stderr)
    return 1 if result.failed else 0


def cmd_ask(args: argparse.Namespace) -> int:
    """Ask a question about your notes."""
    services = _load_services()
    if services is None:
        return 1

    chat = services.chat()
    if args.new:
        conversation = services.store.create_conversation().unwrap()
    else:
        conversation = chat.resolve_conversation(args.conversation)

    reply = chat.send(conversation.id, args.query, tags=args.tag or None)
    print(reply.content)
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    """Show the notes context assembled for a query."""
    services = _load_services()
    if services is None:
        return 1

    context = services.chat().search(args.query, tags=args.tag or None)
    if not context:
        print("No matching notes.")
        return 0
    print(context)
    return 0


INT_KEYS = {"max_tokens", "match_count", "recent_count", "index_workers"}
FLOAT_KEYS = {"temperature", "similarity_threshold"}
ALLOWED_CONFIG_KEYS = {
    "provider", "model", "base_url", "embedding_model", "reindex_policy", "database_url",
} | INT_KEYS | FLOAT_KEYS


def cmd_config(args: argparse.Namespace) -> int:
    """View and update project settings."""
    from notesage.utils.paths import find_project_root, get_project_settings_path
    from notesage.config import (
        load_json_file,
        load_settings,
        validate_settings,
    )

    project_root = find_project_root()
    if project_root is None:
        print("No NoteSage project found.", file=sys.stderr)
        return 1

    action = args.action

    if action == "show":
        settings = load_settings(project_root)
        print(json.dumps(settings.to_dict(), indent=2))
        return 0

    if args.key is not None and args.key not in ALLOWED_CONFIG_KEYS:
        print(
            f"Unknown key: {args.key}. "
            f"Allowed keys: {', '.join(sorted(ALLOWED_CONFIG_KEYS))}",
            file=sys.stderr,
        )
        return 1

    if action == "get":
        if not args.key:
            print("Usage: notesage config get <key>", file=sys.stderr)
            return 1
        settings = load_settings(project_root)
        value = getattr(settings, args.key)
        print(value if value is not None else "")
        return 0

    if action == "set":
        if not args.key or args.value is None:
            print("Usage: notesage config set <key> <value>", file=sys.stderr)
            return 1

        # Parse typed values
        value: str | int | float | None = args.value
        try:
            if args.key in INT_KEYS:
                value = int(args.value)
            elif args.key in FLOAT_KEYS:
                value = float(args.value)
        except ValueError:
            print(f"{args.key} must be a number", file=sys.stderr)
            return 1

        # Validate by building a settings object from merged data
        test_settings = load_settings(project_root)
        setattr(test_settings, args.key, value)
        errors = validate_settings(test_settings)
        if errors:
            for err in errors:
                print(f"Validation error: {err}", file=sys.stderr)
            return 1

        settings_path = get_project_settings_path(project_root)
        data = load_json_file(settings_path)
        data[args.key] = value
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        settings_path.write_text(
            json.dumps(data, indent=2) + "\n", encoding="utf-8"
        )
        print(f"{args.key} = {value}")
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
