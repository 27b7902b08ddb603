from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Sequence

from .api_client import E621Client
from .api_retry import OnRetryFn, RetryEvent
from .blacklist import Blacklist
from .blacklist_schema import render_line
from .config import Credentials, config_sha256, load_config, resolve_credentials
from .config_schema import AppConfig
from .downloader import DownloadReport, download_collections
from .errors import (
    ApiError,
    ConfigError,
    LexError,
    PreconditionError,
    ResolverError,
)
from .grabber import Grabber
from .invalid import remove_invalid_posts
from .normalize import post_to_record, posts_from_api_payload
from .resolver import StaticUserLookup
from .run_log import RunLogger
from .search import collect_posts, load_session_blacklist


def _user_pair(value: str) -> tuple[str, int]:
    name, sep, raw_id = (value or "").partition("=")
    name = name.strip().lower()
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=ID, got {value!r}")
    try:
        return name, int(raw_id.strip())
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"user id must be an integer: {value!r}") from e


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="e6dl")

    subparsers = parser.add_subparsers(dest="command", required=True)

    lex = subparsers.add_parser(
        "lex",
        help="Check a blacklist file and print its canonical form.",
    )
    lex.add_argument("--blacklist", required=True, help="Path to a blacklist text file.")
    lex.set_defaults(_handler=_cmd_lex)

    flt = subparsers.add_parser(
        "filter",
        help="Filter a saved posts.json payload through a blacklist, offline.",
    )
    flt.add_argument("--blacklist", required=True, help="Path to a blacklist text file.")
    flt.add_argument("--posts", required=True, help="Path to a posts.json payload.")
    flt.add_argument(
        "--user",
        action="append",
        default=[],
        type=_user_pair,
        metavar="NAME=ID",
        help="Resolve user:NAME to ID (repeatable).",
    )
    flt.add_argument(
        "--keep-invalid",
        action="store_true",
        help="Do not drop deleted posts or posts without a file URL.",
    )
    flt.add_argument("--out", help="Write surviving posts to this JSON file.")
    flt.set_defaults(_handler=_cmd_filter)

    search = subparsers.add_parser(
        "search",
        help="Search the board and keep posts that pass the session blacklist.",
    )
    search.add_argument("--config", required=True, help="Path to YAML config file.")
    search.add_argument("--tags", required=True, help="Tag search, as typed on the site.")
    search.add_argument(
        "--out",
        required=True,
        help="Output directory for posts.json and run.log.",
    )
    search.set_defaults(_handler=_cmd_search)

    download = subparsers.add_parser(
        "download",
        help="Grab the declared artists, pools, sets and posts and save their files.",
    )
    download.add_argument("--config", required=True, help="Path to YAML config file.")
    download.add_argument(
        "--out",
        help="Download directory (defaults to download.directory from the config).",
    )
    download.add_argument("--log", help="Path of the run log (default: e6dl-run.log).")
    download.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve and filter everything, but do not download files.",
    )
    download.set_defaults(_handler=_cmd_download)

    return parser


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def _read_text(path: str, *, what: str) -> str:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"{what} file not found: {p}")
    try:
        return p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read {what} file: {p}") from e


def _read_json(path: str, *, what: str) -> Any:
    text = _read_text(path, what=what)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to parse JSON in {path}: {e}") from e


def _write_posts(path: Path, records: list[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps({"posts": records}, indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )


def _cmd_lex(args: argparse.Namespace) -> int:
    blacklist = Blacklist.parse(_read_text(args.blacklist, what="Blacklist"))

    for line in blacklist.lines:
        print(render_line(line))
    print(f"lines={len(blacklist.lines)}")
    print(f"tokens={sum(len(line) for line in blacklist.lines)}")
    return 0


def _cmd_filter(args: argparse.Namespace) -> int:
    blacklist = Blacklist.parse(_read_text(args.blacklist, what="Blacklist"))
    blacklist.resolve_users(StaticUserLookup(dict(args.user)))

    posts, skipped = posts_from_api_payload(_read_json(args.posts, what="Posts"))
    total = len(posts)

    blacklisted = blacklist.filter_posts(posts)
    invalid = 0 if args.keep_invalid else remove_invalid_posts(posts)

    if args.out:
        _write_posts(Path(args.out), [post_to_record(p) for p in posts])

    print(f"total={total}")
    print(f"skipped={skipped}")
    print(f"blacklisted={blacklisted}")
    print(f"invalid={invalid}")
    print(f"kept={len(posts)}")
    print("kept_ids=" + ",".join(str(p.id) for p in posts))
    return 0


def _retry_logger(log: RunLogger) -> OnRetryFn:
    def _on_retry(event: RetryEvent) -> None:
        log.warning(
            "api_retry",
            operation=event.operation,
            attempt=event.attempt,
            max_attempts=event.max_attempts,
            delay_seconds=round(event.delay_seconds, 3),
            reason=event.reason,
            status_code=event.status_code,
            message=event.error,
            url=event.url,
        )

    return _on_retry


def _open_client(config_path: str, log: RunLogger) -> tuple[AppConfig, Credentials, E621Client]:
    cfg = load_config(config_path)
    credentials = resolve_credentials(cfg)

    log.info(
        "config_loaded",
        config_sha256=config_sha256(cfg),
        base_url=cfg.site.active_base_url,
        authenticated=not credentials.is_anonymous,
    )
    return cfg, credentials, E621Client(cfg.site, credentials, on_retry=_retry_logger(log))


def _cmd_search(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    log_path = out_dir / "run.log"
    posts_path = out_dir / "posts.json"

    with RunLogger.open(log_path) as log:
        log.info(
            "search_command_started",
            tags=args.tags,
            config_path=str(args.config),
            out_dir=str(out_dir),
        )

        try:
            cfg, _, client = _open_client(args.config, log)
            with client:
                blacklist = load_session_blacklist(cfg, client, logger=log)
                result = collect_posts(
                    client,
                    args.tags,
                    blacklist=blacklist,
                    max_pages=cfg.site.max_pages,
                    posts_per_page=cfg.site.posts_per_page,
                    logger=log,
                )

            _write_posts(posts_path, [post_to_record(p) for p in result.posts])
            log.info("posts_written", path=str(posts_path), count=len(result.posts))

            print(f"pages={result.pages}")
            print(f"blacklisted={result.blacklisted}")
            print(f"invalid={result.invalid}")
            print(f"kept={len(result.posts)}")
            print(f"posts_json={posts_path}")
            print(f"run_log={log_path}")
            return 0
        except Exception as e:
            log.exception("search_command_failed", e, tags=args.tags)
            raise


def _cmd_download(args: argparse.Namespace) -> int:
    log_path = Path(args.log) if args.log else Path("e6dl-run.log")

    with RunLogger.open(log_path) as log:
        log.info("download_command_started", config_path=str(args.config))

        try:
            cfg, credentials, client = _open_client(args.config, log)
            root = Path(args.out) if args.out else Path(cfg.download.directory)

            with client:
                if cfg.download.is_empty and not (cfg.download.favorites and credentials.username):
                    raise ConfigError(
                        "Nothing to download: declare artists, general, pools, sets or posts "
                        "under the download section"
                    )

                blacklist = load_session_blacklist(cfg, client, logger=log)
                grabber = Grabber(
                    client,
                    blacklist=blacklist,
                    safe_mode=cfg.site.safe_mode,
                    naming=cfg.download.naming_convention,
                    max_pages=cfg.site.max_pages,
                    posts_per_page=cfg.site.posts_per_page,
                    logger=log,
                )
                collections = grabber.grab_all(cfg.download, username=credentials.username)

                report: DownloadReport | None = None
                if args.dry_run:
                    for collection in collections:
                        if collection.posts:
                            print(f"collection={collection.label} posts={len(collection)}")
                else:
                    report = download_collections(collections, root, client, logger=log)

            print(f"collections={sum(1 for c in collections if c.posts)}")
            print(f"posts={sum(len(c) for c in collections)}")
            print(f"blacklisted={grabber.blacklisted}")
            print(f"invalid={grabber.invalid}")
            if report is not None:
                print(f"downloaded={report.downloaded}")
                print(f"existing={report.existing}")
                print(f"failed={report.failed}")
                print(f"directory={root}")
            print(f"run_log={log_path}")
            return 0
        except Exception as e:
            log.exception("download_command_failed", e)
            raise


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        handler = getattr(args, "_handler")
        return int(handler(args))
    except ConfigError as e:
        _eprint(str(e))
        return 2
    except (LexError, ResolverError, PreconditionError, ApiError) as e:
        _eprint(str(e))
        return 3
    except KeyboardInterrupt:
        _eprint("Interrupted")
        return 130
    except Exception as e:
        _eprint(f"Unexpected error: {e}")
        return 1
