"""
Bounded parallel deletion of the archives listed in an inventory file.

Each archive is deleted by its own task on a thread pool. A semaphore shared
by every batch of one ArchiveDeleter caps the number of delete_archive calls
in flight, so concurrent vault batches split the same budget. A failed delete
is logged and counted; the batch always runs to the end of the inventory.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Sequence

from glacier_purge.client import GlacierClient
from glacier_purge.config import CHUNK_SIZE, MAX_IN_FLIGHT
from glacier_purge.exceptions import ExternalCallError, ParseError
from glacier_purge.inventory import load_archive_ids

logger = logging.getLogger(__name__)


@dataclass
class ProgressSnapshot:
    """Counters of a batch right after one delete finished."""
    total: int
    completed: int
    succeeded: int
    failed: int
    elapsed: float
    rate: float
    eta_seconds: float

    @property
    def percent(self) -> float:
        return 100.0 * self.completed / self.total if self.total else 100.0


@dataclass
class BatchResult:
    """Outcome of deleting one inventory file."""
    vault: str
    inventory_file: str
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    error: Optional[str] = None

    @property
    def completed(self) -> int:
        return self.succeeded + self.failed


class DeletionProgress:
    """Thread-safe counters for one batch."""

    def __init__(self, total: int, clock: Callable[[], float] = time.monotonic):
        self.total = total
        self.completed = 0
        self.succeeded = 0
        self.failed = 0
        self._clock = clock
        self.started_at = clock()
        self._lock = threading.Lock()

    def record(self, succeeded: bool) -> ProgressSnapshot:
        """Count one finished delete and return the counters as of that moment."""
        with self._lock:
            self.completed += 1
            if succeeded:
                self.succeeded += 1
            else:
                self.failed += 1
            return self._snapshot()

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return self._snapshot()

    def _snapshot(self) -> ProgressSnapshot:
        elapsed = max(0.0, self._clock() - self.started_at)
        rate, eta = estimate_eta(elapsed, self.succeeded, self.total - self.completed)
        return ProgressSnapshot(
            total=self.total,
            completed=self.completed,
            succeeded=self.succeeded,
            failed=self.failed,
            elapsed=elapsed,
            rate=rate,
            eta_seconds=eta,
        )


def estimate_eta(elapsed: float, succeeded: int, remaining: int):
    """Return (seconds per successful delete, seconds left).

    Both are 0 until the first success.
    """
    if succeeded <= 0:
        return 0.0, 0.0
    rate = elapsed / succeeded
    return rate, max(0.0, rate * max(0, remaining))


def format_eta(seconds: float) -> str:
    """Render seconds as ``XhYmZs``."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}h{minutes}m{secs}s"


def chunked(items: Sequence[str], size: int) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class ArchiveDeleter:
    """Deletes every archive of an inventory file with bounded concurrency.

    One instance per process: its semaphore is the global admission cap for
    delete_archive calls.
    """

    def __init__(
        self,
        client: GlacierClient,
        max_in_flight: int = MAX_IN_FLIGHT,
        chunk_size: int = CHUNK_SIZE,
        on_progress: Optional[Callable[[str, ProgressSnapshot], None]] = None,
    ):
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")
        self.client = client
        self.max_in_flight = max_in_flight
        self.chunk_size = chunk_size
        self.on_progress = on_progress
        self._slots = threading.BoundedSemaphore(max_in_flight)

    def delete_all(self, inventory_file, vault: str) -> BatchResult:
        """Delete every archive listed in ``inventory_file`` from ``vault``.

        A malformed inventory aborts this batch only; the error is logged and
        returned in the result.
        """
        result = BatchResult(vault=vault, inventory_file=str(inventory_file))
        try:
            archive_ids = load_archive_ids(inventory_file)
        except ParseError as e:
            logger.error(f"Cannot delete archives of vault '{vault}': {e}")
            result.error = str(e)
            return result

        result.total = len(archive_ids)
        logger.info(f"Deleting {result.total} archive(s) from vault '{vault}' ({inventory_file})")
        progress = DeletionProgress(result.total)

        with ThreadPoolExecutor(max_workers=self.max_in_flight,
                                thread_name_prefix=f"delete-{vault}") as executor:
            for chunk in chunked(archive_ids, self.chunk_size):
                futures = []
                for archive_id in chunk:
                    # Blocks while the cap is reached; released by the task
                    self._slots.acquire()
                    try:
                        futures.append(executor.submit(self._delete_one, vault, archive_id, progress))
                    except BaseException:
                        self._slots.release()
                        raise

                for future in as_completed(futures):
                    future.result()

        final = progress.snapshot()
        result.succeeded = final.succeeded
        result.failed = final.failed
        logger.info(
            f"Vault '{vault}' done: {result.succeeded} archive(s) deleted, {result.failed} failure(s)"
        )
        return result

    def _delete_one(self, vault: str, archive_id: str, progress: DeletionProgress) -> bool:
        try:
            self.client.delete_archive(vault, archive_id)
            succeeded = True
        except ExternalCallError as e:
            logger.error(str(e))
            succeeded = False
        finally:
            self._slots.release()

        snapshot = progress.record(succeeded)
        self._report(vault, snapshot)
        return succeeded

    def _report(self, vault: str, snapshot: ProgressSnapshot) -> None:
        logger.info(
            f"[{vault}] {snapshot.completed}/{snapshot.total} ({snapshot.percent:.1f}%) "
            f"ok={snapshot.succeeded} failed={snapshot.failed} "
            f"rate={snapshot.rate:.2f}s/archive ETA {format_eta(snapshot.eta_seconds)}"
        )
        if self.on_progress is not None:
            self.on_progress(vault, snapshot)

