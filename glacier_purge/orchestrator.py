"""
Orchestration of a whole purge.

The online run requests an inventory for every vault, polls all jobs on one
shared interval and hands each downloaded inventory to the deleter as an
independent batch, so one vault's deletion never holds up polling of the
others. The resume path skips retrieval and replays inventory files already
on disk.
"""
import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict

from glacier_purge.config import POLL_INTERVAL_SECONDS
from glacier_purge.deleter import ArchiveDeleter, BatchResult
from glacier_purge.exceptions import ExternalCallError, ParseError, ProcessManagementError
from glacier_purge.inventory import InventoryTracker, RetrievalJob
from glacier_purge.vaults import match_vault, read_vault_list

logger = logging.getLogger(__name__)

MANUAL_FOLLOW_UP = (
    "The vaults themselves are not deleted. Glacier only lets a vault be "
    "deleted once its next inventory shows it empty; delete them manually later."
)


@dataclass
class RunReport:
    """What one online run did, per vault."""
    inventory_files: Dict[str, str] = field(default_factory=dict)
    batches: Dict[str, BatchResult] = field(default_factory=dict)
    failed_initiations: Dict[str, str] = field(default_factory=dict)
    failed_jobs: Dict[str, str] = field(default_factory=dict)
    failed_downloads: Dict[str, str] = field(default_factory=dict)


class Orchestrator:
    """Drives inventory retrieval and archive deletion for a list of vaults."""

    def __init__(
        self,
        tracker: InventoryTracker,
        deleter: ArchiveDeleter,
        vault_file,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.tracker = tracker
        self.deleter = deleter
        self.vault_file = vault_file
        self.poll_interval = poll_interval
        self._sleep = sleep

    def run(self) -> RunReport:
        """Purge every vault of the vault list.

        Returns once every job reached a terminal state and every deletion
        batch it started has finished.
        """
        report = RunReport()
        vaults = read_vault_list(self.vault_file)

        active_jobs: Dict[str, RetrievalJob] = {}
        for vault in vaults:
            try:
                active_jobs[vault] = self.tracker.initiate(vault)
            except (ExternalCallError, ParseError) as e:
                logger.error(f"Vault '{vault}' skipped, inventory request failed: {e}")
                report.failed_initiations[vault] = str(e)

        active_batches: Dict[str, Future] = {}
        with ThreadPoolExecutor(thread_name_prefix="batch") as batches:
            while active_jobs or active_batches:
                self._reap(active_batches, report)

                for vault in list(active_jobs):
                    self._advance(vault, active_jobs, active_batches, batches, report)

                self._log_status(active_jobs, active_batches)
                if not active_jobs and not active_batches:
                    break
                self._wait(active_jobs, active_batches)

        logger.info(
            f"Run finished: {len(report.batches)} vault(s) processed, "
            f"{len(report.failed_initiations) + len(report.failed_jobs) + len(report.failed_downloads)} "
            f"vault(s) failed"
        )
        logger.info(MANUAL_FOLLOW_UP)
        return report

    def resume_from_disk(self, directory) -> Dict[str, BatchResult]:
        """Delete the archives of inventory files already downloaded.

        Files are matched to vaults by name and processed one at a time.

        Raises:
            ConfigError: if the vault list cannot be read
        """
        vaults = read_vault_list(self.vault_file)
        results: Dict[str, BatchResult] = {}

        for path in sorted(Path(directory).glob("*.json")):
            vault = match_vault(path.name, vaults)
            if vault is None:
                logger.warning(f"Skipping {path.name}: it does not belong to any listed vault")
                continue
            results[path.name] = self.deleter.delete_all(path, vault)

        logger.info(f"Resume finished: {len(results)} inventory file(s) processed")
        logger.info(MANUAL_FOLLOW_UP)
        return results

    def _advance(
        self,
        vault: str,
        active_jobs: Dict[str, RetrievalJob],
        active_batches: Dict[str, Future],
        batches: ThreadPoolExecutor,
        report: RunReport,
    ) -> None:
        job = active_jobs[vault]
        try:
            status = self.tracker.poll_status(job)
        except (ExternalCallError, ParseError) as e:
            logger.error(f"Status check for vault '{vault}' job {job.job_id} failed, retrying next sweep: {e}")
            return

        if status is None or not status.completed:
            return

        del active_jobs[vault]
        if not status.succeeded:
            logger.error(
                f"Inventory job {job.job_id} for vault '{vault}' failed "
                f"({status.status_code}): {status.status_message}"
            )
            report.failed_jobs[vault] = status.status_message
            return

        try:
            path, vault = self.tracker.download(job)
        except (ExternalCallError, OSError) as e:
            logger.error(f"Download of inventory job {job.job_id} for vault '{vault}' failed: {e}")
            report.failed_downloads[vault] = str(e)
            return

        report.inventory_files[vault] = str(path)
        active_batches[vault] = self.submit_batch(batches, path, vault)

    def submit_batch(self, batches: ThreadPoolExecutor, path, vault: str) -> Future:
        """Start deleting ``vault``'s archives without waiting for it."""
        logger.info(f"Starting deletion batch for vault '{vault}'")
        return batches.submit(self.deleter.delete_all, path, vault)

    def _reap(self, active_batches: Dict[str, Future], report: RunReport) -> None:
        for vault, future in list(active_batches.items()):
            if not future.done():
                continue
            del active_batches[vault]
            try:
                report.batches[vault] = self._collect(vault, future)
            except ProcessManagementError as e:
                logger.error(str(e))

    @staticmethod
    def _collect(vault: str, future: Future) -> BatchResult:
        try:
            return future.result(timeout=0)
        except Exception as e:
            raise ProcessManagementError(f"Deletion batch for vault '{vault}' ended abnormally: {e!r}") from e

    def _log_status(self, active_jobs: Dict[str, RetrievalJob], active_batches: Dict[str, Future]) -> None:
        if not active_jobs and not active_batches:
            return
        pending = ", ".join(active_jobs) or "none"
        deleting = ", ".join(active_batches) or "none"
        logger.info(f"Waiting on inventories: {pending} | deleting: {deleting}")

    def _wait(self, active_jobs: Dict[str, RetrievalJob], active_batches: Dict[str, Future]) -> None:
        if active_jobs:
            logger.info(f"Checking again in {self.poll_interval:g}s")
            self._sleep(self.poll_interval)
        else:
            # Only deletions left: wake up as soon as one of them ends
            wait(list(active_batches.values()), timeout=self.poll_interval, return_when=FIRST_COMPLETED)
