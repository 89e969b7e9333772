"""Glacier client adapter.

Wraps boto3's glacier client behind the four calls the purge needs and turns
botocore failures into ExternalCallError.
"""
import logging
import shutil
from typing import Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from glacier_purge.exceptions import ExternalCallError, ParseError

logger = logging.getLogger(__name__)


class GlacierClient:
    """Thin boto3 glacier wrapper.

    Every call and its raw response is logged at DEBUG, which the CLI turns on
    with --verbose.
    """

    def __init__(self, account_id: str, region: str, client=None):
        self.account_id = account_id
        if client is None:
            session = boto3.Session()
            # Glacier throttles aggressively under bulk deletes
            boto_config = Config(retries={"max_attempts": 10, "mode": "adaptive"})
            client = session.client("glacier", region_name=region, config=boto_config)
        self._client = client

    def initiate_inventory_job(self, vault: str) -> str:
        """Request an inventory of the vault and return the job id."""
        logger.debug(f"initiate_job vault={vault} type=inventory-retrieval")
        try:
            response = self._client.initiate_job(
                accountId=self.account_id,
                vaultName=vault,
                jobParameters={"Type": "inventory-retrieval", "Format": "JSON"},
            )
        except (ClientError, BotoCoreError) as e:
            raise ExternalCallError("initiate_job", vault, str(e))
        logger.debug(f"initiate_job response: {response}")

        job_id = response.get("jobId") if isinstance(response, dict) else None
        if not job_id:
            raise ParseError(f"initiate_job({vault})", f"no jobId in response {response!r}")
        return job_id

    def list_jobs(self, vault: str) -> List[Dict]:
        """Return every job Glacier currently lists for the vault."""
        logger.debug(f"list_jobs vault={vault}")
        jobs: List[Dict] = []
        try:
            paginator = self._client.get_paginator("list_jobs")
            for page in paginator.paginate(accountId=self.account_id, vaultName=vault):
                logger.debug(f"list_jobs page: {page}")
                jobs.extend(page.get("JobList", []))
        except (ClientError, BotoCoreError) as e:
            raise ExternalCallError("list_jobs", vault, str(e))
        return jobs

    def fetch_job_output(self, vault: str, job_id: str, dest_path: str) -> None:
        """Stream the job output to dest_path."""
        logger.debug(f"get_job_output vault={vault} job={job_id} dest={dest_path}")
        try:
            response = self._client.get_job_output(
                accountId=self.account_id,
                vaultName=vault,
                jobId=job_id,
            )
            logger.debug(
                f"get_job_output status={response.get('status')} "
                f"contentType={response.get('contentType')}"
            )
            with open(dest_path, "wb") as f:
                shutil.copyfileobj(response["body"], f)
        except (ClientError, BotoCoreError) as e:
            raise ExternalCallError("get_job_output", vault, str(e), job_id=job_id)

    def delete_archive(self, vault: str, archive_id: str) -> None:
        """Delete one archive."""
        logger.debug(f"delete_archive vault={vault} archive={archive_id}")
        try:
            response = self._client.delete_archive(
                accountId=self.account_id,
                vaultName=vault,
                archiveId=archive_id,
            )
        except (ClientError, BotoCoreError) as e:
            raise ExternalCallError("delete_archive", vault, str(e), archive_id=archive_id)
        logger.debug(f"delete_archive response: {response}")


def find_job(jobs: List[Dict], job_id: str) -> Optional[Dict]:
    """Pick a job out of a list_jobs result by id."""
    for job in jobs:
        if job.get("JobId") == job_id:
            return job
    return None
