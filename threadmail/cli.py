"""Command-line interface for threadmail."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from threadmail import __version__
from threadmail.config import (
    DEFAULT_CONFIG_FILENAME,
    get_db_path,
    get_user_email,
    get_web_config,
    load_config,
    validate_config,
    write_starter_config,
)
from threadmail.database import MailDatabase
from threadmail.errors import ServiceError
from threadmail.filters import VIEW_NAMES
from threadmail.models import ListOptions
from threadmail.service import MailService

SCRIPT_DIR = Path(__file__).parent.absolute()


def cmd_init(config_path: Optional[Path], force: bool = False) -> None:
    """Write a starter config.yaml."""
    path = config_path or Path.cwd() / DEFAULT_CONFIG_FILENAME
    if path.exists() and not force:
        print(f"❌ Config already exists: {path} (use --force to overwrite)")
        sys.exit(1)
    write_starter_config(path)
    print(f"✓ Wrote {path}")


def cmd_seed(service: MailService) -> None:
    """Populate the database with sample conversations."""
    from threadmail.seed import seed_database

    inserted = seed_database(service.db, user_email=service.user_email)
    if inserted:
        print(f"✓ Created {inserted} emails")
    else:
        print("Database already contains data. Skipping seed.")


def cmd_list(
    service: MailService,
    view: Optional[str] = None,
    search: Optional[str] = None,
    thread_id: Optional[str] = None,
    flat: bool = False,
    page: int = 0,
    page_size: int = 20,
) -> None:
    """Print one page of threads (or messages with --flat)."""
    result = service.list_messages(ListOptions(
        search=search,
        filter=view,
        thread_id=thread_id,
        thread_only=not flat,
        page=page,
        page_size=page_size,
    ))
    pagination = result.pagination

    if not result.data:
        print("No results found.")
    for message in result.data:
        flags = ("•" if not message.is_read else " ") + ("!" if message.is_important else " ")
        date = message.created_at.strftime("%Y-%m-%d %H:%M")
        print(f"{flags} {message.id:>6}  {date}  {message.sender[:30]:<30}  {message.subject[:60]}")
        if flat and thread_id:
            print(f"          {(message.content or '')[:100]}")

    unit = "messages" if flat else "threads"
    print(
        f"\nPage {pagination.page + 1} of {max(pagination.total_pages, 1)} "
        f"({pagination.total} {unit})"
    )


def cmd_stats(service: MailService) -> None:
    """Print thread counts per mailbox view."""
    counts = service.get_thread_counts()
    print("\n" + "=" * 50)
    print("threadmail - Statistics")
    print("=" * 50)
    print(f"Inbox:      {counts.inbox:,} threads ({counts.unread:,} unread)")
    print(f"Sent:       {counts.sent:,} threads")
    print(f"Important:  {counts.important:,} threads")
    print(f"Trash:      {counts.trash:,} threads")
    print(f"Messages:   {service.db.get_message_count():,}")
    print(f"Search:     {'full-text index' if service.db.fts_available() else 'substring fallback'}")
    print("=" * 50 + "\n")


def cmd_reindex(service: MailService) -> None:
    """Drop and rebuild the full-text index from the emails table."""
    print("Rebuilding search index...", end="", flush=True)
    if service.rebuild_search_index():
        print(f" indexed {service.db.get_fts_count():,} emails")
    else:
        print(" failed; SQLite has no FTS5 support, search uses substring matching")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="threadmail",
        description="threadmail - A local single-user mail client backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Version: {__version__}

Examples:
  %(prog)s init                           Write a starter config.yaml
  %(prog)s seed                           Load sample conversations
  %(prog)s list --filter inbox            List inbox threads
  %(prog)s list --search "isabella.young" Search threads
  %(prog)s list --thread <id> --flat      Read one conversation
  %(prog)s serve                          Start the JSON API
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: ./config.yaml)",
    )

    parser.add_argument(
        "--database",
        type=str,
        help="SQLite database path (overrides config)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show detailed progress output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser(
        "init",
        help="Write a starter config file",
    )
    init_parser.add_argument("--force", "-f", action="store_true", help="Overwrite an existing config")

    subparsers.add_parser(
        "seed",
        help="Load sample conversations into an empty database",
    )

    list_parser = subparsers.add_parser(
        "list",
        help="List threads or messages",
        description="List conversations (or individual messages with --flat).",
    )
    list_parser.add_argument("--filter", choices=VIEW_NAMES, help="Mailbox view")
    list_parser.add_argument("--search", "-s", type=str, help="Search text (3+ characters)")
    list_parser.add_argument("--thread", type=str, help="Only messages of this thread")
    list_parser.add_argument("--flat", action="store_true", help="Do not group by thread")
    list_parser.add_argument("--page", type=int, default=0, help="Zero-based page number")
    list_parser.add_argument(
        "--page-size", type=int, dest="page_size",
        help="Results per page (default: web.page_size from config, or 20)",
    )

    subparsers.add_parser(
        "stats",
        help="Show thread counts per view",
    )

    subparsers.add_parser(
        "reindex",
        help="Rebuild the full-text search index",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the JSON API",
        description="Start a local web server exposing the mail API.",
    )
    serve_parser.add_argument("--host", type=str, help="Host to bind to (default: from config or 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, help="Port to listen on (default: from config or 8080)")
    serve_parser.add_argument("--debug", action="store_true", help="Enable debug mode")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init":
        cmd_init(args.config, args.force)
        return

    config = load_config(args.config, SCRIPT_DIR)
    problems = validate_config(config)
    if problems:
        for problem in problems:
            print(f"❌ Config error: {problem}")
        sys.exit(1)

    db_path = args.database or get_db_path(config)

    try:
        service = MailService(MailDatabase(db_path), user_email=get_user_email(config))

        if args.command == "seed":
            cmd_seed(service)
        elif args.command == "list":
            page_size = args.page_size
            if page_size is None:
                page_size = get_web_config(config)["page_size"]
            cmd_list(service, args.filter, args.search, args.thread, args.flat, args.page, page_size)
        elif args.command == "stats":
            cmd_stats(service)
        elif args.command == "reindex":
            cmd_reindex(service)
        elif args.command == "serve":
            from threadmail.web import run_server

            web = get_web_config(config)
            run_server(
                service,
                host=args.host or web["host"],
                port=args.port or web["port"],
                debug=args.debug,
                verbose=args.verbose,
                page_size=web["page_size"],
            )

    except KeyboardInterrupt:
        print("\n\nOperation interrupted by user.")
        sys.exit(1)
    except ServiceError as e:
        print(f"\n❌ Error: {e.message} ({e.code})")
        sys.exit(1)


if __name__ == "__main__":
    main()
