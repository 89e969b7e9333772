"""Domain exceptions.

All errors raised by glacier_purge inherit from GlacierPurgeError.
The Glacier client adapter catches botocore errors and re-raises them as these.
"""
from typing import Optional


class GlacierPurgeError(Exception):
    """Base for all glacier_purge errors."""
    pass


class ConfigError(GlacierPurgeError):
    """Required configuration is missing. Fatal."""
    pass


class ExternalCallError(GlacierPurgeError):
    """A Glacier API call failed.

    Carries enough context (operation, vault, job or archive id) to retry the
    call by hand.
    """

    def __init__(
        self,
        operation: str,
        vault: str,
        message: str,
        job_id: Optional[str] = None,
        archive_id: Optional[str] = None,
    ):
        self.operation = operation
        self.vault = vault
        self.job_id = job_id
        self.archive_id = archive_id
        context = f"vault={vault}"
        if job_id:
            context += f" job={job_id}"
        if archive_id:
            context += f" archive={archive_id}"
        super().__init__(f"{operation} failed ({context}): {message}")


class ParseError(GlacierPurgeError):
    """An inventory file or Glacier response could not be parsed."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class ProcessManagementError(GlacierPurgeError):
    """A deletion batch could not be reaped cleanly."""
    pass
