from __future__ import annotations

import json
import traceback
import uuid
from datetime import datetime, timezone
from functools import partialmethod
from pathlib import Path
from threading import Lock
from typing import Any, TextIO

# Fields promoted to the top level of a record; everything else goes under "data".
CONTEXT_FIELDS = ("collection", "tags", "page", "post_id")

_MESSAGE_LIMIT = 2000
_TRACEBACK_LIMIT = 12000


def _clip(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


class RunLogger:
    """
    JSON-lines event log for one e6dl session.

    Every record carries `ts`, `level`, `event` and `session_id`. The
    download context (`collection`, `tags`, `page`, `post_id`) is written at
    the top level so a log can be grepped per collection or post; other
    keyword fields land under `data`.

    `bind()` returns a logger that writes to the same file with extra
    context attached. Only the logger returned by `open()` closes the file.
    """

    def __init__(
        self,
        stream: TextIO,
        *,
        session_id: str | None = None,
        context: dict[str, Any] | None = None,
        path: Path | None = None,
        _lock: Lock | None = None,
        _owner: bool = True,
    ) -> None:
        self._stream = stream
        self._session_id = (session_id or "").strip() or uuid.uuid4().hex
        self._context = dict(context or {})
        self._path = path
        self._lock = _lock or Lock()
        self._owner = _owner
        self._closed = False

    @classmethod
    def open(cls, path: str | Path, *, append: bool = False, session_id: str | None = None) -> "RunLogger":
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        stream = p.open("a" if append else "w", encoding="utf-8", newline="\n")
        return cls(stream, session_id=session_id, path=p)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def bind(self, **context: Any) -> "RunLogger":
        merged = {**self._context, **{k: v for k, v in context.items() if v is not None}}
        return RunLogger(
            self._stream,
            session_id=self._session_id,
            context=merged,
            path=self._path,
            _lock=self._lock,
            _owner=False,
        )

    def close(self) -> None:
        if not self._owner:
            return
        with self._lock:
            if not self._closed:
                self._stream.close()
                self._closed = True

    def __enter__(self) -> "RunLogger":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    def event(self, level: str, event: str, **fields: Any) -> None:
        record: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "session_id": self._session_id,
        }

        merged = {**self._context, **fields}
        data: dict[str, Any] = {}
        for key, value in merged.items():
            if key in CONTEXT_FIELDS:
                if value is not None:
                    record[key] = value
            elif key == "error":
                record["error"] = value
            else:
                data[key] = value
        if data:
            record["data"] = data

        line = json.dumps(record, ensure_ascii=False, sort_keys=True, default=str)
        with self._lock:
            if self._closed:
                raise ValueError("RunLogger is closed")
            self._stream.write(line + "\n")
            self._stream.flush()

    debug = partialmethod(event, "DEBUG")
    info = partialmethod(event, "INFO")
    warning = partialmethod(event, "WARN")
    error = partialmethod(event, "ERROR")

    def exception(self, event: str, exc: BaseException, **fields: Any) -> None:
        tb = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        fields["error"] = {
            "type": type(exc).__name__,
            "message": _clip(str(exc), _MESSAGE_LIMIT),
            "traceback": _clip(tb, _TRACEBACK_LIMIT),
        }
        self.event("ERROR", event, **fields)
