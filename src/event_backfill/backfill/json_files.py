"""JsonFilesEventSource — reads newline-delimited JSON events from local files."""

from __future__ import annotations

import asyncio
import glob
import io
import json
import os
import re
from pathlib import Path

import structlog

from event_backfill.backfill.event import BackfillEvent

logger = structlog.get_logger()

DEFAULT_BATCH_SIZE = 10_000
DEFAULT_READ_CHUNK_BYTES = 65_536

_SOURCE_PATTERN = re.compile(r"^json://(?P<glob>.+)$")


class JsonFilesEventSource:
    """A ``BackfillEventsSource`` over newline-delimited JSON files.

    Each line is an object ``{"data": ..., "attributes": {...}, "key": ...}``.
    Files are read one at a time, in lexicographic order.  For the open file,
    a reader task reads chunks of lines and appends parsed events to the
    current batch.  Once the batch holds ``batch_size`` events the reader
    pauses until ``get_batch()`` resumes it, which bounds memory to about one
    batch regardless of file sizes.
    """

    def __init__(
        self,
        files: list[str],
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        read_chunk_bytes: int = DEFAULT_READ_CHUNK_BYTES,
    ) -> None:
        self.files = files
        self._batch_size = batch_size
        self._read_chunk_bytes = read_chunk_bytes
        self._next_file_index = 0
        self._current_batch: list[BackfillEvent] = []
        self._current_file: io.BufferedReader | None = None
        # Completes once the current file has been fully read and closed.
        self._reader: asyncio.Task[None] | None = None
        self._resumed = asyncio.Event()
        self._paused = asyncio.Event()

    @classmethod
    async def from_source_and_filter(
        cls,
        source: str,
        filter: str | None = None,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        read_chunk_bytes: int = DEFAULT_READ_CHUNK_BYTES,
    ) -> JsonFilesEventSource | None:
        """Create a source from a ``json://<glob>`` string.

        Returns ``None`` when *source* is not a JSON files source, so callers
        can try other source kinds.  Filters are not supported.
        """
        match = _SOURCE_PATTERN.match(source)
        if match is None:
            return None

        if filter:
            msg = "Filtering JSON events from files is not supported."
            raise ValueError(msg)

        loop = asyncio.get_running_loop()
        files = await loop.run_in_executor(None, _list_files, match.group("glob"))
        logger.info(
            "json_source.files_found", pattern=match.group("glob"), count=len(files)
        )
        return cls(files, batch_size=batch_size, read_chunk_bytes=read_chunk_bytes)

    def _parse_event(self, line: bytes) -> BackfillEvent | None:
        try:
            return BackfillEvent.from_json_object(json.loads(line))
        except (ValueError, TypeError) as exc:
            logger.error(
                "json_source.event_parse_failed",
                line=line.decode("utf-8", errors="replace").rstrip("\r\n"),
                error=str(exc),
            )
            return None

    def _pause(self) -> None:
        self._resumed.clear()
        self._paused.set()

    async def _read_file(self, handle: io.BufferedReader) -> None:
        """Parse the lines of *handle* into the current batch, pausing when full."""
        loop = asyncio.get_running_loop()
        try:
            while True:
                await self._resumed.wait()
                lines = await loop.run_in_executor(
                    None, handle.readlines, self._read_chunk_bytes
                )
                if not lines:
                    break

                for line in lines:
                    event = self._parse_event(line)
                    if event is not None:
                        self._current_batch.append(event)

                if len(self._current_batch) >= self._batch_size:
                    # Only pause if there is more to read, so a file ending on a
                    # batch boundary does not produce an extra empty batch.
                    remaining = await loop.run_in_executor(None, handle.peek, 1)
                    if not remaining:
                        break
                    self._pause()
        finally:
            handle.close()
            self._current_file = None

    async def _set_up_next_file(self) -> asyncio.Task[None] | None:
        if self._next_file_index >= len(self.files):
            return None

        path = self.files[self._next_file_index]
        loop = asyncio.get_running_loop()
        handle = await loop.run_in_executor(None, open, path, "rb")
        logger.debug("json_source.file_opened", path=path)

        self._resumed.clear()
        self._paused.clear()
        self._current_file = handle
        self._reader = asyncio.create_task(self._read_file(handle))
        self._next_file_index += 1
        return self._reader

    async def get_batch(self) -> list[BackfillEvent] | None:
        reader = self._reader or await self._set_up_next_file()
        if reader is None:
            return None

        self._paused.clear()
        self._resumed.set()
        paused = asyncio.ensure_future(self._paused.wait())
        try:
            await asyncio.wait({paused, reader}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            paused.cancel()

        if reader.done():
            self._reader = None
            # Read errors are fatal for the source.
            reader.result()

        batch = self._current_batch
        self._current_batch = []
        return batch

    async def dispose(self) -> None:
        if self._reader is not None:
            self._reader.cancel()
            await asyncio.wait({self._reader})
            self._reader = None
        if self._current_file is not None:
            self._current_file.close()
            self._current_file = None
        self._current_batch = []
        self._next_file_index = len(self.files)


def _glob_root(pattern: str) -> str:
    """The leading directories of *pattern* that contain no wildcard."""
    parts: list[str] = []
    for part in Path(pattern).parts:
        if glob.has_magic(part):
            break
        parts.append(part)
    return os.path.join(*parts) if parts else os.curdir


def _is_linked(path: str, root: str) -> bool:
    """Whether *path* or any directory between *root* and it is a symlink."""
    current = root
    for part in Path(os.path.relpath(path, root)).parts:
        current = os.path.join(current, part)
        if os.path.islink(current):
            return True
    return False


def _list_files(pattern: str) -> list[str]:
    """Regular files matching *pattern*, sorted.

    Symbolic links are not followed: linked files and files reached through
    a linked directory are excluded.  Links in the literal leading part of
    the pattern are allowed.
    """
    root = _glob_root(pattern)
    return sorted(
        path
        for path in glob.glob(pattern, recursive=True)
        if os.path.isfile(path)
        and not os.path.islink(path)
        and not _is_linked(path, root)
    )
