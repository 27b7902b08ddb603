from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Protocol

from .collection import PostCollection, clean_path_component
from .errors import ApiError
from .run_log import RunLogger


class FileFetcher(Protocol):
    def download_file(self, url: str, dest: str | Path) -> int: ...


@dataclass
class DownloadReport:
    collections: int = 0
    downloaded: int = 0
    existing: int = 0
    failed: int = 0
    bytes_written: int = 0
    failures: list[tuple[int, str]] = field(default_factory=list)


def download_collections(
    collections: Iterable[PostCollection],
    root: str | Path,
    fetcher: FileFetcher,
    *,
    logger: RunLogger | None = None,
) -> DownloadReport:
    """
    Save every grabbed post to `<root>/<category>/<collection>/<file>`.

    Files that already exist are left alone. A failed download is logged
    and counted, and the remaining posts are still attempted.
    """
    report = DownloadReport()
    root_path = Path(root)

    for collection in collections:
        if not collection.posts:
            continue

        report.collections += 1
        directory = collection.directory(root_path)
        log = logger.bind(collection=collection.label) if logger is not None else None
        if log is not None:
            log.info(
                "collection_download_started",
                directory=str(directory),
                posts=len(collection),
                total_bytes=collection.total_bytes,
            )

        for post in collection.posts:
            target = directory / clean_path_component(post.name)
            if target.exists():
                report.existing += 1
                if log is not None:
                    log.debug("file_exists", post_id=post.post_id, path=str(target))
                continue

            try:
                written = fetcher.download_file(post.url, target)
            except ApiError as e:
                report.failed += 1
                report.failures.append((post.post_id, str(e)))
                if log is not None:
                    log.exception("download_failed", e, post_id=post.post_id, url=post.url)
                continue

            report.downloaded += 1
            report.bytes_written += written
            if log is not None:
                log.debug("file_saved", post_id=post.post_id, path=str(target), bytes=written)

    if logger is not None:
        logger.info(
            "download_completed",
            collections=report.collections,
            downloaded=report.downloaded,
            existing=report.existing,
            failed=report.failed,
            bytes_written=report.bytes_written,
        )
    return report
