"""
Checkpoint Store
================

Single-slot store for the task checkpoint that carries a long task across
phases.

Responsibilities:
- ``save`` stamps a fresh ``savedAt`` and overwrites whatever was stored
- ``load`` returns None when nothing (or nothing parseable) is stored
- ``clear`` removes the record; no-op when empty

The store holds at most one record. Callers decide when a task is verified
complete and only then call ``clear``.

Backends:
    FileCheckpointBackend - JSON file at a fixed path, atomic replace
    InMemoryCheckpointBackend - process-local, for tests and ephemeral runs
"""

import os
import tempfile
from pathlib import Path

import aiofiles
import structlog
from pydantic import ValidationError

from upcore_agent.core.domain.checkpoint import CheckpointRecord, utc_now
from upcore_agent.core.interfaces.checkpoint import CheckpointBackendProtocol

logger = structlog.get_logger()


class FileCheckpointBackend:
    """
    JSON file backend.

    Thread Safety:
        Not locked. Concurrent phases writing the same file is unsupported
        (single active task assumption).
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.logger = logger.bind(component="file_checkpoint_backend")

    def describe(self) -> str:
        return str(self.path)

    async def read(self) -> str | None:
        if not self.path.exists():
            return None
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            return await f.read()

    async def write(self, text: str) -> None:
        """
        Write atomically using temp file + replace.

        Parent directories are created as needed. The temp file lives in the
        target directory so the replace stays on one filesystem.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent, suffix=".tmp", prefix=".checkpoint_"
        )
        os.close(temp_fd)
        try:
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(text)
            os.replace(temp_path, self.path)
            self.logger.debug("checkpoint.file.written", path=str(self.path))
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise

    async def delete(self) -> bool:
        if not self.path.exists():
            return False
        self.path.unlink()
        return True


class InMemoryCheckpointBackend:
    """Backend that keeps the serialized record in memory."""

    def __init__(self, text: str | None = None):
        self.text = text

    def describe(self) -> str:
        return "memory"

    async def read(self) -> str | None:
        return self.text

    async def write(self, text: str) -> None:
        self.text = text

    async def delete(self) -> bool:
        existed = self.text is not None
        self.text = None
        return existed


class CheckpointStore:
    """
    Single-slot checkpoint store on top of a storage backend.

    Example:
        >>> store = CheckpointStore(InMemoryCheckpointBackend())
        >>> saved = await store.save(CheckpointRecord(goal="Add audit log"))
        >>> (await store.load()).goal
        'Add audit log'
    """

    def __init__(self, backend: CheckpointBackendProtocol):
        self.backend = backend
        self.logger = logger.bind(component="checkpoint_store")

    @property
    def location(self) -> str:
        return self.backend.describe()

    async def save(self, record: CheckpointRecord) -> CheckpointRecord:
        """Stamp ``saved_at`` and overwrite the stored record."""
        stamped = record.model_copy(update={"saved_at": utc_now()})
        await self.backend.write(stamped.to_json())
        self.logger.info(
            "checkpoint.saved",
            location=self.location,
            next_step=stamped.next_step[:100],
            completed=len(stamped.completed_steps),
        )
        return stamped

    async def load(self) -> CheckpointRecord | None:
        """Return the stored record, or None if absent or unreadable."""
        try:
            raw = await self.backend.read()
        except (OSError, ValueError) as e:
            self.logger.error("checkpoint.read_failed", location=self.location, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return CheckpointRecord.model_validate_json(raw)
        except ValidationError as e:
            self.logger.warning(
                "checkpoint.parse_failed",
                location=self.location,
                error=str(e)[:200],
            )
            return None

    async def clear(self) -> bool:
        """Delete the stored record. Returns True if one existed."""
        removed = await self.backend.delete()
        if removed:
            self.logger.info("checkpoint.cleared", location=self.location)
        return removed
