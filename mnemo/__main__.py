"""
mnemo.__main__ -- CLI entry point.

Usage:
    mnemo init [--data-dir DIR]
    mnemo serve [--data-dir DIR] [--config PATH] [--transport stdio|sse|streamable-http]
    mnemo show SESSION [--data-dir DIR]
    mnemo sweep [SESSION] [--data-dir DIR]
    mnemo forget SESSION [--data-dir DIR]
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="mnemo",
        description="mnemo -- pressure-aware working memory for long-running agents",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )

    sub = parser.add_subparsers(dest="command")

    # -- init --------------------------------------------------------------
    init_p = sub.add_parser("init", help="Initialize a new mnemo data directory")
    init_p.add_argument(
        "--data-dir",
        default="./mnemo_data",
        help="Data directory to create (default: ./mnemo_data)",
    )

    # -- serve -------------------------------------------------------------
    serve_p = sub.add_parser("serve", help="Start the MCP server")
    serve_p.add_argument("--data-dir", default=None, help="Path to data directory")
    serve_p.add_argument("--config", default=None, help="Path to mnemo.yaml config")
    serve_p.add_argument(
        "--transport",
        default="stdio",
        choices=["stdio", "sse", "streamable-http"],
        help="MCP transport (default: stdio)",
    )

    # -- show --------------------------------------------------------------
    show_p = sub.add_parser("show", help="Print a session's stored memory")
    show_p.add_argument("session", help="Session id")
    show_p.add_argument("--data-dir", default="./mnemo_data", help="Data directory")
    show_p.add_argument("--config", default=None, help="Path to mnemo.yaml config")

    # -- sweep -------------------------------------------------------------
    sweep_p = sub.add_parser("sweep", help="Apply the tool-output cache TTL and cap")
    sweep_p.add_argument("session", nargs="?", default=None, help="Session id (default: all)")
    sweep_p.add_argument("--data-dir", default="./mnemo_data", help="Data directory")
    sweep_p.add_argument("--config", default=None, help="Path to mnemo.yaml config")

    # -- forget ------------------------------------------------------------
    forget_p = sub.add_parser("forget", help="Delete everything stored for a session")
    forget_p.add_argument("session", help="Session id")
    forget_p.add_argument("--data-dir", default="./mnemo_data", help="Data directory")
    forget_p.add_argument("--config", default=None, help="Path to mnemo.yaml config")

    args = parser.parse_args(argv)

    # -- Logging -----------------------------------------------------------
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    if args.command is None:
        parser.print_help()
        return

    # -- Dispatch ----------------------------------------------------------
    if args.command == "init":
        _cmd_init(args)
    elif args.command == "serve":
        _cmd_serve(args)
    elif args.command == "show":
        _cmd_show(args)
    elif args.command == "sweep":
        _cmd_sweep(args)
    elif args.command == "forget":
        _cmd_forget(args)
    else:
        parser.print_help()


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def _open(args: argparse.Namespace):
    from mnemo.core.config import Config
    from mnemo.system import MemorySystem

    if getattr(args, "config", None):
        return MemorySystem(config=Config.from_yaml(args.config))
    return MemorySystem(data_dir=args.data_dir)


def _cmd_init(args: argparse.Namespace) -> None:
    """Create a fresh mnemo data directory with a template config."""
    from mnemo.core.config import Config

    data_dir = Path(args.data_dir).resolve()
    config = Config.from_data_dir(data_dir)
    config.ensure_directories()

    config_path = data_dir / "mnemo.yaml"
    if not config_path.exists():
        config_path.write_text(
            "# mnemo configuration\n"
            "mnemo:\n"
            f"  data_dir: {data_dir}\n"
            "  storage_backend: file      # file | sqlite\n"
            "  pool_max_items: 50\n"
            "  pool_gamma: 0.85           # decay per event\n"
            "  pressure_moderate: 0.75\n"
            "  pressure_high: 0.90\n"
            "  prompt_budget_chars: 1600\n"
            "  tool_output_max_files: 300\n"
            "  tool_output_max_age_days: 7\n"
            "  # pruning_rules:\n"
            "  #   read: {strategy: keep-ends, first_chars: 800, last_chars: 200}\n",
            encoding="utf-8",
        )

    print(f"Initialized mnemo at: {data_dir}")
    print(f"  mnemo.yaml: {config_path}")
    print()
    print("Next steps:")
    print("  Run: mnemo serve --config", str(config_path))


def _cmd_serve(args: argparse.Namespace) -> None:
    """Start the MCP server."""
    from mnemo.server import run_server

    run_server(
        data_dir=args.data_dir,
        config_path=args.config,
        transport=args.transport,
    )


def _cmd_show(args: argparse.Namespace) -> None:
    """Print working memory, pressure and core blocks for one session."""
    with _open(args) as mem:
        sample = mem.pressure.current(args.session)
        out = {
            "working": mem.snapshot(args.session).to_dict(),
            "pressure": sample.to_dict() if sample else None,
            "core": mem.read_blocks(args.session).to_dict(),
        }
        print(json.dumps(out, indent=2))


def _cmd_sweep(args: argparse.Namespace) -> None:
    """Sweep the tool-output cache for one session, or every known one."""
    with _open(args) as mem:
        if args.session:
            sessions = [args.session]
        else:
            sessions = mem.tool_cache.sessions()
        total = 0
        for sid in sessions:
            total += mem.sweep(sid)
        print(f"Swept {total} cached tool outputs across {len(sessions)} session(s)")


def _cmd_forget(args: argparse.Namespace) -> None:
    """Delete every artifact for a session."""
    with _open(args) as mem:
        mem.session_deleted(args.session)
        print(f"Forgot session {args.session}")


if __name__ == "__main__":
    main()
