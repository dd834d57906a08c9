"""CLI for flashmark - sync Markdown flashcards with Anki."""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from . import __version__
from .format.cloze import apply_cloze, remove_clozes, render_clozes
from .runtime import build_runtime
from .sync import SyncSummary


def _vault_path(rt: Any, raw: str) -> str:
    """Turn a command-line path into a vault-relative POSIX path."""
    root = rt.storage.root.resolve()
    p = Path(raw)
    candidate = p if p.is_absolute() else Path.cwd() / p
    if candidate.exists():
        try:
            return candidate.resolve().relative_to(root).as_posix()
        except ValueError:
            pass
    return p.as_posix()


def _paths(args: argparse.Namespace, rt: Any) -> list[str] | None:
    if not args.paths:
        return None
    return [_vault_path(rt, p) for p in args.paths]


def _print_summary(summary: SyncSummary, args: argparse.Namespace) -> None:
    if args.json:
        out = {
            "totals": summary.totals(),
            "documents": [
                {
                    "path": d.path,
                    "added": d.added,
                    "updated": d.updated,
                    "deleted": d.deleted,
                    "written": d.written,
                    "error": d.error,
                    "reports": [
                        {"kind": r.kind, "message": r.message, "identifier": r.identifier}
                        for r in d.reports
                    ],
                }
                for d in summary.documents
            ],
        }
        print(json.dumps(out, indent=2))
        return

    if not args.quiet:
        for d in summary.documents:
            if d.error:
                print(f"{d.path}: FAILED ({d.error})")
            elif d.added or d.updated or d.deleted:
                print(f"{d.path}: +{d.added} ~{d.updated} -{d.deleted}")
    totals = summary.totals()
    print(
        f"Scanned: {totals['scanned']} (unchanged {totals['unchanged']}), "
        f"added: {totals['added']}, updated: {totals['updated']}, "
        f"deleted: {totals['deleted']}, files written: {totals['written']}"
    )


def cmd_sync(args: argparse.Namespace, rt: Any) -> int:
    """Sync documents with the store and write identifiers back."""
    summary = rt.sync.sync(paths=_paths(args, rt), dry_run=args.dry_run, force=args.force)
    _print_summary(summary, args)
    return 1 if summary.totals()["failed"] else 0


def cmd_scan(args: argparse.Namespace, rt: Any) -> int:
    """Plan every document without touching the store or the files."""
    summary = rt.sync.sync(paths=_paths(args, rt), dry_run=True)
    if args.json:
        _print_summary(summary, args)
        return 0

    for d in summary.documents:
        for r in d.reports:
            print(f"{d.path}: {r.kind}: {r.message}")
    if not args.quiet:
        _print_summary(summary, args)
    return 0


def cmd_delete_ids(args: argparse.Namespace, rt: Any) -> int:
    """Delete every note a document references and strip its identifiers."""
    path = _vault_path(rt, args.path)
    ids = rt.sync.bulk_delete(path, dry_run=True)
    if not ids:
        if not args.quiet:
            print(f"No identifiers in {path}")
        return 0

    if args.dry_run:
        print(f"Would delete {len(ids)} notes: {', '.join(map(str, ids))}")
        return 0

    if not args.yes:
        response = input(f"Delete {len(ids)} notes referenced by {path}? [y/N] ")
        if response.lower() not in ("y", "yes"):
            print("Cancelled")
            return 1

    ids = rt.sync.bulk_delete(path)
    if args.json:
        print(json.dumps({"path": path, "deleted": ids}))
    elif not args.quiet:
        print(f"Deleted {len(ids)} notes from {path}")
    return 0


def _read_text(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    with open(source, encoding="utf-8", newline="") as f:
        return f.read()


def cmd_cloze_render(args: argparse.Namespace, rt: Any) -> int:
    """Print text with its clozes shown as plain answers."""
    sys.stdout.write(render_clozes(_read_text(args.file), highlight=args.highlight))
    return 0


def cmd_cloze_apply(args: argparse.Namespace, rt: Any) -> int:
    """Wrap a character range of the text in a new cloze."""
    sys.stdout.write(apply_cloze(_read_text(args.file), args.start, args.end))
    return 0


def cmd_cloze_remove(args: argparse.Namespace, rt: Any) -> int:
    """Unwrap the clozes touched by a character range."""
    sys.stdout.write(remove_clozes(_read_text(args.file), args.start, args.end))
    return 0


def cmd_watch(args: argparse.Namespace, rt: Any) -> int:
    """Sync documents as they change."""
    try:
        from .watch import watch_vault
    except ImportError as e:
        print(
            "Error: watchdog library not installed. "
            "Install with: pip install flashmark[watch]",
            file=sys.stderr,
        )
        print(f"Details: {e}", file=sys.stderr)
        return 1

    return watch_vault(
        rt,
        debounce_ms=args.debounce_ms,
        quiet=args.quiet,
        json_output=args.json,
    )


def cmd_serve(args: argparse.Namespace, rt: Any) -> int:
    """Start local JSON API server."""
    try:
        import uvicorn

        from .api.app import create_app, generate_token
    except ImportError as e:
        print(
            "Error: API dependencies not installed. "
            "Install with: pip install flashmark[api]",
            file=sys.stderr,
        )
        print(f"Details: {e}", file=sys.stderr)
        return 1

    if args.token == "auto":
        token = generate_token()
        print(f"Generated bearer token: {token}")
        print(f"Use in requests: Authorization: Bearer {token}")
    elif args.token == "none":
        print("Warning: Running without authentication. Only use in trusted environments.")
        token = None
    else:
        token = args.token

    app = create_app(rt, token=token, enable_cors=args.cors)
    print(f"Starting server on http://{args.host}:{args.port}")
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    return 0


def _configure_logging(args: argparse.Namespace) -> None:
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flashmark", description="Sync Markdown flashcards with Anki"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/flashmark.toml, vault/flashmark.toml)",
    )
    parser.add_argument(
        "--vault",
        type=Path,
        default=None,
        help="Path to vault directory (overrides config)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Minimize output"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    # sync command
    parser_sync = subparsers.add_parser("sync", help="Sync documents with Anki")
    parser_sync.add_argument("paths", nargs="*", help="Documents to sync (default: whole vault)")
    parser_sync.add_argument(
        "--dry-run", action="store_true", help="Plan only; touch neither Anki nor files"
    )
    parser_sync.add_argument(
        "--force", action="store_true", help="Ignore the hash cache and rescan everything"
    )

    # scan command
    parser_scan = subparsers.add_parser("scan", help="Report what a sync would do")
    parser_scan.add_argument("paths", nargs="*", help="Documents to scan (default: whole vault)")
    parser_scan.add_argument(
        "--offline", action="store_true",
        help="Do not contact Anki; every identifier counts as unknown",
    )

    # delete-ids command
    parser_delete = subparsers.add_parser(
        "delete-ids", help="Delete all notes a document references"
    )
    parser_delete.add_argument("path", help="Document path")
    parser_delete.add_argument("--yes", action="store_true", help="Skip confirmation")
    parser_delete.add_argument(
        "--dry-run", action="store_true", help="List identifiers without deleting"
    )

    # cloze command
    parser_cloze = subparsers.add_parser("cloze", help="Cloze editing helpers")
    cloze_sub = parser_cloze.add_subparsers(dest="cloze_cmd", required=True)

    parser_render = cloze_sub.add_parser("render", help="Print text with clozes revealed")
    parser_render.add_argument("file", help="Input file (- for stdin)")
    parser_render.add_argument(
        "--highlight", action="store_true", help="Wrap answers in <mark>"
    )

    parser_apply = cloze_sub.add_parser("apply", help="Cloze a character range")
    parser_apply.add_argument("file", help="Input file (- for stdin)")
    parser_apply.add_argument("start", type=int, help="Start offset")
    parser_apply.add_argument("end", type=int, help="End offset (exclusive)")

    parser_remove = cloze_sub.add_parser("remove", help="Unwrap clozes in a range")
    parser_remove.add_argument("file", help="Input file (- for stdin)")
    parser_remove.add_argument("start", type=int, help="Start offset")
    parser_remove.add_argument("end", type=int, help="End offset (exclusive)")

    # watch command
    parser_watch = subparsers.add_parser("watch", help="Watch vault and sync on change")
    parser_watch.add_argument(
        "--debounce-ms", type=int, default=500,
        help="Debounce window in milliseconds (default: 500)"
    )

    # serve command
    parser_serve = subparsers.add_parser("serve", help="Start local JSON API server")
    parser_serve.add_argument(
        "--host", default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser_serve.add_argument(
        "--port", type=int, default=8766,
        help="Port to bind to (default: 8766; 8765 belongs to AnkiConnect)"
    )
    parser_serve.add_argument(
        "--token", default="auto",
        help="Bearer token (auto|<string>|none, default: auto)"
    )
    parser_serve.add_argument(
        "--cors", action="store_true",
        help="Enable CORS (default: false)"
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args)

    handlers = {
        "sync": cmd_sync,
        "scan": cmd_scan,
        "delete-ids": cmd_delete_ids,
        "watch": cmd_watch,
        "serve": cmd_serve,
    }
    if args.cmd == "cloze":
        cloze_handlers = {
            "render": cmd_cloze_render,
            "apply": cmd_cloze_apply,
            "remove": cmd_cloze_remove,
        }
        handler = cloze_handlers.get(args.cloze_cmd)
    else:
        handler = handlers.get(args.cmd)

    if handler is None:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)

    try:
        rt = build_runtime(
            vault_path=args.vault,
            config_path=args.config,
            offline=getattr(args, "offline", False),
        )
        exit_code = handler(args, rt)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
