"""
CLI for Cliptrail.

Minimal CLI using stdlib for fast startup.
Subcommands are imported lazily to avoid startup overhead.

Usage:
    cliptrail watch                 # Run the clipboard capture loop
    cliptrail list                  # Show clipboard history
    cliptrail --help                # Show help
"""

import sys


def print_help() -> None:
    """Print help message."""
    print("""cliptrail - local-first clipboard history

Usage:
    cliptrail watch               Capture clipboard changes (runs until stopped)

Commands:
    cliptrail list [options]      Show history (--type, --pinned, -n N)
    cliptrail pin <id>            Pin an entry (never evicted)
    cliptrail unpin <id>          Unpin an entry
    cliptrail delete <id>         Delete an entry
    cliptrail clear [--keep-pinned]
                                  Clear history
    cliptrail restore <id>        Copy an entry back to the clipboard
    cliptrail limit [N]           Show or set the history limit
    cliptrail config              Show settings and rules
    cliptrail health              Check clipboard, window and notification backends

Options:
    cliptrail --help, -h          Show this help
    cliptrail --version, -v       Show version

Examples:
    cliptrail watch
    cliptrail list --type link
    cliptrail pin 1768-427-187-928
    cliptrail clear --keep-pinned""")


def print_version() -> None:
    """Print version."""
    from cliptrail import __version__
    print(f"cliptrail {__version__}")


def _entry_id(arg: str) -> str:
    """Accept IDs as displayed (with hyphens) or raw."""
    return arg.replace("-", "")


def _open_pipeline():
    from cliptrail.pipeline import build_pipeline
    from cliptrail.events import LogSink

    return build_pipeline(sink=LogSink())


def cmd_watch() -> int:
    """Run the capture loop in the foreground."""
    import logging
    import os

    from cliptrail.config import ensure_dirs
    from cliptrail.pipeline import build_pipeline

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=os.environ.get("CLIPTRAIL_LOG_LEVEL", "INFO").upper(),
    )

    try:
        ensure_dirs()
        pipeline = build_pipeline()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Watching clipboard ({len(pipeline.list())} entries in history). Ctrl+C to stop.")
    try:
        pipeline.run()
    except KeyboardInterrupt:
        print("\nStopped.")
    return 0


def cmd_list(args: list[str]) -> int:
    """List history entries with optional filters."""
    from cliptrail.surfacing import format_history

    capture_type = None
    pinned_only = False
    limit = None

    # Parse arguments
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--type", "-t") and i + 1 < len(args):
            capture_type = args[i + 1]
            i += 2
        elif arg in ("-n", "--limit") and i + 1 < len(args):
            try:
                limit = int(args[i + 1])
            except ValueError:
                print(f"Error: Not a number: {args[i + 1]}", file=sys.stderr)
                return 1
            i += 2
        elif arg in ("--pinned", "-p"):
            pinned_only = True
            i += 1
        else:
            i += 1

    try:
        pipeline = _open_pipeline()
        print(format_history(
            pipeline.list(),
            capture_type=capture_type,
            pinned_only=pinned_only,
            limit=limit,
        ))
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_pin(args: list[str], pinned: bool) -> int:
    """Pin or unpin an entry."""
    verb = "pin" if pinned else "unpin"
    if not args:
        print(f"Usage: cliptrail {verb} <id>", file=sys.stderr)
        return 1

    entry_id = _entry_id(args[0])

    try:
        pipeline = _open_pipeline()
        success = pipeline.pin(entry_id) if pinned else pipeline.unpin(entry_id)
        if success:
            print(f"{'Pinned' if pinned else 'Unpinned'}: {args[0]}")
            return 0
        else:
            print(f"Not found: {args[0]}", file=sys.stderr)
            return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_delete(args: list[str]) -> int:
    """Delete an entry."""
    if not args:
        print("Usage: cliptrail delete <id>", file=sys.stderr)
        return 1

    try:
        pipeline = _open_pipeline()
        if pipeline.delete(_entry_id(args[0])):
            print(f"Deleted: {args[0]}")
            return 0
        else:
            print(f"Not found: {args[0]}", file=sys.stderr)
            return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_clear(args: list[str]) -> int:
    """Clear history, optionally keeping pinned entries."""
    keep_pinned = "--keep-pinned" in args or "-k" in args

    try:
        pipeline = _open_pipeline()
        removed = pipeline.clear(keep_pinned=keep_pinned)
        kept = len(pipeline.list())
        print(f"Cleared {removed} entries ({kept} pinned kept).")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_restore(args: list[str]) -> int:
    """Copy an entry back to the clipboard."""
    from cliptrail.clipboard import ClipboardUnavailable

    if not args:
        print("Usage: cliptrail restore <id>", file=sys.stderr)
        return 1

    try:
        pipeline = _open_pipeline()
        if pipeline.restore_entry(_entry_id(args[0])):
            print(f"Restored: {args[0]}")
            return 0
        else:
            print(f"Not found: {args[0]}", file=sys.stderr)
            return 1
    except ClipboardUnavailable as e:
        print(f"Error: Clipboard unavailable: {e}", file=sys.stderr)
        return 1


def cmd_limit(args: list[str]) -> int:
    """Show or set the history limit."""
    try:
        pipeline = _open_pipeline()
        if not args:
            print(pipeline.limit)
            return 0

        pipeline.set_limit(int(args[0]))
        print(f"Limit set to {pipeline.limit}")
        return 0
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_config() -> int:
    """Show settings and rules."""
    from cliptrail.surfacing import format_config

    try:
        pipeline = _open_pipeline()
        print(format_config(pipeline.get_config(), pipeline.rules))
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_health() -> int:
    """Show health report."""
    from cliptrail.health import format_health_report, run_health_check

    print(format_health_report(run_health_check()))
    return 0


def main() -> int:
    """
    Main entry point.
    """
    args = sys.argv[1:]

    if not args:
        print_help()
        return 0

    # Handle flags and commands
    first_arg = args[0]

    if first_arg in ("--help", "-h", "help"):
        print_help()
        return 0

    if first_arg in ("--version", "-v", "version"):
        print_version()
        return 0

    # Subcommands (lazy import to keep startup fast)
    if first_arg == "watch":
        return cmd_watch()

    if first_arg == "list":
        return cmd_list(args[1:])

    if first_arg == "pin":
        return cmd_pin(args[1:], pinned=True)

    if first_arg == "unpin":
        return cmd_pin(args[1:], pinned=False)

    if first_arg == "delete":
        return cmd_delete(args[1:])

    if first_arg == "clear":
        return cmd_clear(args[1:])

    if first_arg == "restore":
        return cmd_restore(args[1:])

    if first_arg == "limit":
        return cmd_limit(args[1:])

    if first_arg == "config":
        return cmd_config()

    if first_arg == "health":
        return cmd_health()

    print(f"Unknown command: {first_arg}", file=sys.stderr)
    print("Run 'cliptrail --help' for usage.", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
