"""Shared fixtures: an in-memory stand-in for the Glacier client."""
import json
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from glacier_purge.exceptions import ExternalCallError


class FakeGlacier:
    """Implements the GlacierClient calls against in-memory state.

    ``job_script`` maps a vault to the sequence of list_jobs observations for
    its job: "missing", "running", "succeeded" or "failed". The last entry
    repeats once the sequence is exhausted.
    """

    def __init__(self, inventories: Optional[Dict[str, List[str]]] = None, delete_delay: float = 0.0):
        self.inventories = inventories or {}
        self.job_script: Dict[str, List[str]] = {}
        self.failing_initiations: Set[str] = set()
        self.failing_downloads: Set[str] = set()
        self.failing_deletes: Set[str] = set()
        self.status_messages: Dict[str, str] = {}
        self.delete_delay = delete_delay

        self.initiated: List[str] = []
        self.polls: Dict[str, int] = {}
        self.downloads: List[str] = []
        self.deleted: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def initiate_inventory_job(self, vault: str) -> str:
        if vault in self.failing_initiations:
            raise ExternalCallError("initiate_job", vault, "AccessDeniedException")
        self.initiated.append(vault)
        return f"job-{vault}"

    def list_jobs(self, vault: str) -> List[Dict]:
        count = self.polls.get(vault, 0)
        self.polls[vault] = count + 1
        script = self.job_script.get(vault, ["succeeded"])
        state = script[min(count, len(script) - 1)]
        if state == "missing":
            return []
        if state == "error":
            raise ExternalCallError("list_jobs", vault, "RequestTimeout")
        job = {
            "JobId": f"job-{vault}",
            "Completed": state in ("succeeded", "failed"),
            "StatusCode": {"running": "InProgress", "succeeded": "Succeeded", "failed": "Failed"}[state],
            "StatusMessage": self.status_messages.get(vault, ""),
        }
        return [{"JobId": "someone-elses-job", "Completed": True, "StatusCode": "Succeeded"}, job]

    def fetch_job_output(self, vault: str, job_id: str, dest_path: str) -> None:
        if vault in self.failing_downloads:
            raise ExternalCallError("get_job_output", vault, "ResourceNotFoundException", job_id=job_id)
        self.downloads.append(vault)
        write_inventory(Path(dest_path), self.inventories.get(vault, []))

    def delete_archive(self, vault: str, archive_id: str) -> None:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delete_delay:
                time.sleep(self.delete_delay)
            if archive_id in self.failing_deletes:
                raise ExternalCallError("delete_archive", vault, "ServiceUnavailableException", archive_id=archive_id)
            with self._lock:
                self.deleted.append((vault, archive_id))
        finally:
            with self._lock:
                self.in_flight -= 1


def write_inventory(path: Path, archive_ids: List[str]) -> Path:
    inventory = {
        "VaultARN": "arn:aws:glacier:eu-west-1:123456789012:vaults/test",
        "InventoryDate": "2024-01-01T00:00:00Z",
        "ArchiveList": [
            {"ArchiveId": archive_id, "ArchiveDescription": "", "Size": 1024}
            for archive_id in archive_ids
        ],
    }
    path.write_text(json.dumps(inventory))
    return path


@pytest.fixture
def fake_glacier():
    return FakeGlacier()


@pytest.fixture
def vault_file(tmp_path):
    def _write(*vaults):
        path = tmp_path / "vaults.txt"
        path.write_text("\n".join(vaults) + "\n")
        return path
    return _write
