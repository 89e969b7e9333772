"""
Inventory retrieval tracking.

Starts inventory-retrieval jobs, polls their status and downloads the
finished inventory to disk as an immutable record named after vault, job id
and download time.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from glacier_purge.client import GlacierClient, find_job
from glacier_purge.exceptions import ParseError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


@dataclass
class RetrievalJob:
    """An inventory-retrieval job for one vault."""
    vault: str
    job_id: str
    completed: bool = False
    succeeded: bool = False
    status_message: str = ""


@dataclass
class JobStatus:
    """One observation of a job in the vault's job list."""
    completed: bool
    succeeded: bool
    status_code: str
    status_message: str = ""


def inventory_filename(vault: str, job_id: str, when: Optional[datetime] = None) -> str:
    """Name of the inventory file for a job downloaded at ``when``."""
    when = when or datetime.now()
    return f"{vault}_{job_id}_{when.strftime(TIMESTAMP_FORMAT)}.json"


def load_archive_ids(path) -> List[str]:
    """Read the archive ids of an inventory file, in inventory order.

    Raises:
        ParseError: if the file is not a Glacier JSON inventory
    """
    try:
        with open(path) as f:
            inventory = json.load(f)
    except (OSError, ValueError) as e:
        raise ParseError(str(path), f"unreadable inventory: {e}")

    archives = inventory.get("ArchiveList") if isinstance(inventory, dict) else None
    if not isinstance(archives, list):
        raise ParseError(str(path), "no ArchiveList in inventory")

    archive_ids = []
    for position, archive in enumerate(archives):
        archive_id = archive.get("ArchiveId") if isinstance(archive, dict) else None
        if not archive_id:
            raise ParseError(str(path), f"ArchiveList entry {position} has no ArchiveId")
        archive_ids.append(archive_id)
    return archive_ids


class InventoryTracker:
    """Starts, polls and downloads inventory-retrieval jobs."""

    def __init__(self, client: GlacierClient, inventory_dir="."):
        self.client = client
        self.inventory_dir = Path(inventory_dir)

    def initiate(self, vault: str) -> RetrievalJob:
        """Start an inventory retrieval for the vault.

        Raises:
            ExternalCallError: if Glacier refuses the job
        """
        job_id = self.client.initiate_inventory_job(vault)
        logger.info(f"Inventory requested for vault '{vault}', job ID: {job_id}")
        return RetrievalJob(vault=vault, job_id=job_id)

    def poll_status(self, job: RetrievalJob) -> Optional[JobStatus]:
        """Look the job up in the vault's job list.

        Returns None when the job is not listed (yet), which callers must
        treat as still running. Updates ``job`` in place on a terminal status.

        Raises:
            ExternalCallError: if the job list cannot be fetched
            ParseError: if the job's entry is malformed
        """
        entry = find_job(self.client.list_jobs(job.vault), job.job_id)
        if entry is None:
            logger.debug(f"Job {job.job_id} not listed for vault '{job.vault}'")
            return None

        if "Completed" not in entry:
            raise ParseError(f"list_jobs({job.vault})", f"job {job.job_id} has no Completed field")

        status = JobStatus(
            completed=bool(entry["Completed"]),
            succeeded=entry.get("StatusCode") == "Succeeded",
            status_code=entry.get("StatusCode", ""),
            status_message=entry.get("StatusMessage") or "",
        )
        if status.completed:
            job.completed = True
            job.succeeded = status.succeeded
            job.status_message = status.status_message
        return status

    def download(self, job: RetrievalJob) -> Tuple[Path, str]:
        """Write the job's inventory into the inventory directory.

        Returns:
            (path of the inventory file, vault name)

        Raises:
            ExternalCallError: if the output cannot be fetched
            OSError: if the file cannot be written
        """
        self.inventory_dir.mkdir(parents=True, exist_ok=True)
        path = self.inventory_dir / inventory_filename(job.vault, job.job_id)
        try:
            self.client.fetch_job_output(job.vault, job.job_id, str(path))
        except Exception:
            # A partial file would be picked up by --delete-only
            path.unlink(missing_ok=True)
            raise
        logger.info(f"Inventory for vault '{job.vault}' saved to {path}")
        return path, job.vault
