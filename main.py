#!/usr/bin/env python3
"""
Knowledge Hub - workspace sync tool

Command-line entry point. Loads the saved workspace state, projects it onto a
file tree and pushes it to the configured GitHub repository, or mirrors it
into a local Git repository.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from knowledge_hub.config import config
from knowledge_hub.database import StateDatabase
from knowledge_hub.store import WorkspaceStore, create_initial_state
from knowledge_hub.sync import GitHubClient, SyncScheduler, project_store


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(config.log_filename)
        ]
    )


def load_store(db: StateDatabase) -> WorkspaceStore:
    """Load the saved state, seeding the sample workspace on first use."""
    if db.has_state():
        return db.load_state()
    logging.info("No saved state, starting from the sample workspace")
    store = create_initial_state()
    db.save_state(store)
    return store


def run_init(args):
    """Seed the database with the sample workspace."""
    with StateDatabase(config.database_path) as db:
        db.initialize_database()
        if db.has_state() and not args.force:
            print("State already exists; use --force to replace it.")
            return 1
        store = create_initial_state()
        db.save_state(store)
    print(f"Seeded {len(store.workspaces)} workspace(s) into {config.database_path}")
    return 0


def run_project(args):
    """List the projected paths, or write the projected tree to a directory."""
    with StateDatabase(config.database_path) as db:
        db.initialize_database()
        store = load_store(db)

    files = project_store(store)
    if not args.output:
        for file in files:
            print(f"{file.path}\t{len(file.content.encode('utf-8'))} bytes")
        return 0

    output = Path(args.output)
    for file in files:
        target = output / file.path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(file.content, encoding="utf-8")
    print(f"Wrote {len(files)} files to {output}")
    return 0


async def _sync_once(store: WorkspaceStore, db: StateDatabase) -> bool:
    sync_config = config.sync_config
    scheduler = SyncScheduler(
        store,
        sync_config,
        client_factory=lambda c: GitHubClient.from_config(
            c, max_concurrency=config.max_concurrent_requests
        ),
        database=db,
        on_synced=config.record_sync,
    )
    try:
        return await scheduler.sync_now()
    finally:
        await scheduler.aclose()
        if scheduler.state.last_error:
            print(f"Sync failed: {scheduler.state.last_error}")


def run_sync(args):
    """Push the full projected tree to the remote in one commit."""
    sync_config = config.sync_config
    if not sync_config.is_configured:
        print("Sync is not configured: set sync.token and sync.repository in config.yaml")
        return 1

    with StateDatabase(config.database_path) as db:
        db.initialize_database()
        store = load_store(db)
        ok = asyncio.run(_sync_once(store, db))

    if ok:
        print(f"Synced to {sync_config.repository}@{sync_config.branch}")
        return 0
    return 1


def run_mirror(args):
    """Write the projected tree into the local Git mirror and commit it."""
    from knowledge_hub.versioning import LocalMirror

    with StateDatabase(config.database_path) as db:
        db.initialize_database()
        store = load_store(db)

    files = project_store(store)
    mirror = LocalMirror(args.path or config.mirror_directory)
    if not mirror.initialize_repository():
        return 1
    mirror.write_files(files)
    sha = mirror.commit_snapshot(args.message or f"Update {len(files)} files")
    if sha:
        print(f"Committed {sha[:8]} to {mirror.repo_path}")
    else:
        print("Mirror already up to date")
    return 0


def run_status(args):
    """Show the sync settings and the most recent sync runs."""
    sync_config = config.sync_config
    print(f"Repository:  {sync_config.repository or '(not set)'}")
    print(f"Branch:      {sync_config.branch}")
    print(f"Auto-sync:   {'on' if sync_config.auto_sync else 'off'} "
          f"({sync_config.debounce_ms} ms debounce)")
    print(f"Token:       {'set' if sync_config.token else 'missing'}")
    print(f"Last synced: {sync_config.last_synced_at or 'never'}")

    with StateDatabase(config.database_path) as db:
        db.initialize_database()
        runs = db.get_sync_runs(limit=args.limit)

    if runs:
        print("\nRecent sync runs:")
    for run in runs:
        outcome = run["commit_sha"][:8] if run["success"] else f"failed: {run['error_message']}"
        print(f"  #{run['run_id']} {run['started_at']} {run['file_count']} files - {outcome}")
    return 0


async def _get_file(path: str):
    async with GitHubClient.from_config(config.sync_config) as client:
        return await client.get_file(path)


def run_get_file(args):
    """Print one file from the remote branch."""
    if not config.sync_config.is_configured:
        print("Sync is not configured: set sync.token and sync.repository in config.yaml")
        return 1
    remote = asyncio.run(_get_file(args.path))
    if remote is None:
        print(f"{args.path} not found")
        return 1
    print(remote.content)
    return 0


def parse_arguments(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Knowledge Hub - sync workspaces to a GitHub repository",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init                      # Seed the sample workspace
  python main.py project --output out/     # Write the projected tree locally
  python main.py sync                      # Commit the tree to the remote
  python main.py mirror                    # Commit the tree to a local Git mirror
        """
    )
    parser.add_argument(
        "--version",
        action="version",
        version="Knowledge Hub 0.1.0"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    init = commands.add_parser("init", help="Seed the database with the sample workspace")
    init.add_argument("--force", action="store_true", help="Replace existing state")
    init.set_defaults(handler=run_init)

    project = commands.add_parser("project", help="Show or write the projected file tree")
    project.add_argument("--output", type=str, help="Directory to write the files into")
    project.set_defaults(handler=run_project)

    sync = commands.add_parser("sync", help="Push the projected tree to the remote")
    sync.set_defaults(handler=run_sync)

    mirror = commands.add_parser("mirror", help="Commit the projected tree to a local Git repo")
    mirror.add_argument("--path", type=str, help="Mirror directory (default from config)")
    mirror.add_argument("--message", type=str, help="Commit message")
    mirror.set_defaults(handler=run_mirror)

    status = commands.add_parser("status", help="Show sync settings and recent runs")
    status.add_argument("--limit", type=int, default=5, help="Number of runs to show")
    status.set_defaults(handler=run_status)

    get_file = commands.add_parser("get-file", help="Print a file from the remote branch")
    get_file.add_argument("path", help="Path inside the repository")
    get_file.set_defaults(handler=run_get_file)

    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging()

    try:
        sys.exit(args.handler(args))
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        print("\nInterrupted.")
        sys.exit(130)
    except Exception as e:
        logging.error(f"Command {args.command} failed: {e}")
        print(f"\n{args.command} failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
