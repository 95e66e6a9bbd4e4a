#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Memoria command line entry point.

Examples:
  # run the API (watcher on, config discovered from ./memoria.toml or MEMORIA_CONFIG)
  memoria serve
  memoria serve --config ~/memoria.toml --port 3300 -v

  # one-shot: index the media root and print what would be served
  memoria scan
  memoria scan --thumbs --limit 20
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from memoria.core.config import Settings, load_settings
from memoria.core.logging import setup_logging
from memoria.services.index import MediaIndex
from memoria.services.thumbnails import ThumbnailCache

logger = logging.getLogger("memoria.cli")


def _settings_from_args(args: argparse.Namespace) -> Settings:
    if args.config and not Path(args.config).expanduser().exists():
        raise SystemExit(f"config file not found: {args.config}")
    return load_settings(Path(args.config).expanduser() if args.config else None)


def _add_logging_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("-v", "--verbose", action="count", default=0, help="-v: debug on the console; -vv: debug in the log file too")
    p.add_argument("-q", "--quiet", action="store_true", help="warnings and errors only")
    p.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="force one level")
    p.add_argument("--json-logs", action="store_true", help="JSON lines instead of text")


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn
    from memoria.main import create_app

    settings = _settings_from_args(args)
    setup_logging(settings.logs_dir, args.verbose, args.quiet,
                  args.log_level or settings.log_level or None, args.json_logs or settings.json_logs)
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    logger.info("Config: %s", settings.source or "(defaults)")

    app = create_app(settings, watch=False if args.no_watch else None)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0


def _walk_media(root: Path):
    """Visible files under root, hidden dirs pruned."""
    for p in sorted(root.rglob("*")):
        rel = p.relative_to(root)
        if any(part.startswith(".") for part in rel.parts):
            continue
        if p.is_file():
            yield p


def cmd_scan(args: argparse.Namespace) -> int:
    settings = _settings_from_args(args)
    setup_logging(None, args.verbose, args.quiet or not args.verbose, args.log_level, args.json_logs)

    root = settings.media_root
    if not root.is_dir():
        print(f"media root not found: {root}", file=sys.stderr)
        return 1

    index = MediaIndex(root, ext_table=settings.ext_table)
    for p in _walk_media(root):
        index.upsert(p)

    thumbs: Optional[ThumbnailCache] = None
    if args.thumbs:
        thumbs = ThumbnailCache(settings.thumb_dir, size=settings.thumb_size, quality=settings.thumb_quality,
                                video_offset=settings.video_offset, ffmpeg=settings.ffmpeg,
                                ffprobe=settings.ffprobe, timeout=settings.ffmpeg_timeout)
        thumbs.prepare()

    items = index.list()
    shown = items[: args.limit] if args.limit else items
    print(f"{'kind':<6} {'id':<8} {'size':>12}  {'modified':<10}  {'thumb':<5}  path")
    for it in shown:
        if thumbs is not None:
            ok = thumbs.ensure_thumbnail(root / it.relative_path, it.id, it.kind)
            mark = "yes" if ok else "-"
        else:
            mark = ""
        print(f"{it.kind.value:<6} {it.id:<8} {it.size_bytes:>12,}  {it.created_at_date:<10}  {mark:<5}  {it.relative_path}")

    counts = {}
    for it in items:
        counts[it.kind.value] = counts.get(it.kind.value, 0) + 1
    summary = ", ".join(f"{k}={v}" for k, v in sorted(counts.items())) or "nothing indexed"
    print(f"\n{len(items)} item(s) under {root}: {summary}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="memoria", description="Media index + thumbnail + streaming server")
    sub = ap.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("serve", help="run the HTTP API")
    sp.add_argument("--config", help="path to memoria.toml")
    sp.add_argument("--host", help="bind address (overrides [server].host)")
    sp.add_argument("--port", type=int, help="listen port (overrides [server].port)")
    sp.add_argument("--no-watch", action="store_true", help="do not watch the media root")
    _add_logging_args(sp)
    sp.set_defaults(func=cmd_serve)

    sc = sub.add_parser("scan", help="index the media root once and print it")
    sc.add_argument("--config", help="path to memoria.toml")
    sc.add_argument("--thumbs", action="store_true", help="also generate missing thumbnails")
    sc.add_argument("--limit", type=int, default=0, help="rows to print (0 = all)")
    _add_logging_args(sc)
    sc.set_defaults(func=cmd_scan)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
