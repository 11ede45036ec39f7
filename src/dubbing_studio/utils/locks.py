from __future__ import annotations

import os
import time
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from pathlib import Path

if os.name == "nt":
    import msvcrt  # type: ignore

    def _try_lock(fd: int) -> None:
        msvcrt.locking(fd, msvcrt.LK_NBLCK, 1)

    def _unlock(fd: int) -> None:
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)

    _BUSY: tuple[type[BaseException], ...] = (OSError,)
else:
    import fcntl

    def _try_lock(fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(fd: int) -> None:
        fcntl.flock(fd, fcntl.LOCK_UN)

    _BUSY = (BlockingIOError,)


class FileLockTimeout(RuntimeError):
    def __init__(self, path: Path, timeout_s: float) -> None:
        super().__init__(f"timed out after {timeout_s:.1f}s waiting for lock {path}")
        self.path = path


@contextmanager
def file_lock(path: Path, *, timeout_s: float = 30.0, poll_interval_s: float = 0.05) -> Iterator[None]:
    """
    Exclusive cross-process lock on `path` (created if missing).

    Guards the read-modify-write cycles of the job and user stores when a
    worker process and the web server share one state directory.
    """
    lock_path = Path(path).resolve()
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + float(timeout_s)
    with lock_path.open("a+", encoding="utf-8") as fp:
        fd = fp.fileno()
        while True:
            try:
                _try_lock(fd)
                break
            except _BUSY:
                if time.monotonic() >= deadline:
                    raise FileLockTimeout(lock_path, float(timeout_s)) from None
                time.sleep(float(poll_interval_s))
        try:
            yield
        finally:
            with suppress(OSError):
                _unlock(fd)
