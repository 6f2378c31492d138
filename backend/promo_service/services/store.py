from __future__ import annotations

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterable, Iterator, Sequence

import structlog
from filelock import FileLock, Timeout

from promo_service.services.codes import PromoCode
from promo_service.services.errors import DuplicateCode, NotFound, StorageUnavailable

logger = structlog.get_logger(__name__)


class CodeStore(ABC):
    """
    Durable home of the active and redeemed promo code collections.

    Every read-modify-write goes through ``_locked`` so that two writers can
    never interleave and silently drop each other's update. Plain loads used
    for reporting are not locked.
    """

    def __init__(self, *, lock_timeout_s: float = 10.0) -> None:
        self._lock = threading.Lock()
        self._lock_timeout_s = lock_timeout_s

    @abstractmethod
    def load_active(self) -> list[PromoCode]:
        ...

    @abstractmethod
    def load_redeemed(self) -> list[PromoCode]:
        ...

    @abstractmethod
    def append_active(self, codes: Sequence[PromoCode]) -> None:
        """Add ``codes`` to the active collection, rejecting any already issued code."""
        ...

    @abstractmethod
    def move_to_redeemed(self, code: str, *, valid_on: date | None = None) -> PromoCode:
        """
        Move ``code`` from active to redeemed and return the moved record.

        With ``valid_on`` set, a record that has expired by that date counts
        as absent and stays in the active collection.
        """
        ...

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self._lock_timeout_s):
            logger.error("promo_store_lock_timeout", timeout_s=self._lock_timeout_s)
            raise StorageUnavailable("Timed out waiting for the promo code store.")
        try:
            yield
        finally:
            self._lock.release()


def find_duplicates(incoming: Iterable[str], *existing: Iterable[str]) -> list[str]:
    taken: set[str] = set()
    for codes in existing:
        taken.update(codes)
    duplicates: list[str] = []
    for code in incoming:
        if code in taken:
            duplicates.append(code)
        taken.add(code)
    return duplicates


class JsonFileCodeStore(CodeStore):
    """
    Keeps each collection as a JSON array in its own file.

    JSON shape (one file per collection):
    [
        {"code": "PROMO-8K2LQ0ZD1", "generatedAt": "2026-10-19", "expiresAt": "2026-11-03"},
        ...
    ]

    Each write replaces the whole file through a temp file and ``os.replace``,
    so a reader only ever sees a complete snapshot. Writers also hold a lock
    file next to the collections, so separate processes (the API and the
    CLI) sharing one data directory never interleave.
    """

    def __init__(
        self,
        active_path: Path,
        redeemed_path: Path,
        *,
        lock_timeout_s: float = 10.0,
    ) -> None:
        super().__init__(lock_timeout_s=lock_timeout_s)
        self.active_path = Path(active_path)
        self.redeemed_path = Path(redeemed_path)
        self.lock_path = self.active_path.parent / ".promo-codes.lock"
        self._file_lock = FileLock(self.lock_path)

    # ------------------------------------------------------------------
    # CodeStore interface
    # ------------------------------------------------------------------

    def load_active(self) -> list[PromoCode]:
        return self._read(self.active_path)

    def load_redeemed(self) -> list[PromoCode]:
        return self._read(self.redeemed_path)

    def append_active(self, codes: Sequence[PromoCode]) -> None:
        with self._locked():
            active = self._read(self.active_path)
            redeemed = self._read(self.redeemed_path)
            duplicates = find_duplicates(
                (promo.code for promo in codes),
                (promo.code for promo in active),
                (promo.code for promo in redeemed),
            )
            if duplicates:
                logger.error("promo_duplicate_code", codes=duplicates)
                raise DuplicateCode(duplicates)
            self._write(self.active_path, active + list(codes))

    def move_to_redeemed(self, code: str, *, valid_on: date | None = None) -> PromoCode:
        with self._locked():
            active = self._read(self.active_path)
            index = _find_index(active, code, valid_on)
            if index is None:
                raise NotFound(code)

            redeemed = self._read(self.redeemed_path)
            remaining = list(active)
            moved = remaining.pop(index)

            self._write(self.active_path, remaining)
            try:
                self._write(self.redeemed_path, redeemed + [moved])
            except StorageUnavailable as exc:
                try:
                    self._write(self.active_path, active)
                except StorageUnavailable as restore_exc:
                    logger.critical(
                        "promo_store_rollback_failed",
                        code=moved.code,
                        record=moved.to_dict(),
                        error=str(exc),
                        restore_error=str(restore_exc),
                    )
                raise
            return moved

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with super()._locked():
            try:
                self.lock_path.parent.mkdir(parents=True, exist_ok=True)
                self._file_lock.acquire(timeout=self._lock_timeout_s)
            except Timeout as exc:
                logger.error("promo_store_lock_timeout", path=str(self.lock_path), timeout_s=self._lock_timeout_s)
                raise StorageUnavailable("Timed out waiting for the promo code store.") from exc
            except OSError as exc:
                logger.error("promo_store_lock_failed", path=str(self.lock_path), error=str(exc))
                raise StorageUnavailable("Cannot lock the promo code store.") from exc
            try:
                yield
            finally:
                self._file_lock.release()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read(self, path: Path) -> list[PromoCode]:
        if not path.exists():
            return []
        try:
            with open(path, encoding="utf-8") as f:
                payload = json.load(f)
            return [PromoCode.from_dict(item) for item in payload]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            logger.error("promo_store_read_failed", path=str(path), error=str(exc))
            raise StorageUnavailable(f"Cannot read {path.name}.") from exc

    def _write(self, path: Path, codes: Sequence[PromoCode]) -> None:
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump([promo.to_dict() for promo in codes], f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            logger.error("promo_store_write_failed", path=str(path), error=str(exc))
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageUnavailable(f"Cannot write {path.name}.") from exc


def _find_index(codes: Sequence[PromoCode], code: str, valid_on: date | None) -> int | None:
    for index, promo in enumerate(codes):
        if promo.code != code:
            continue
        if valid_on is not None and not promo.is_valid_on(valid_on):
            return None
        return index
    return None
