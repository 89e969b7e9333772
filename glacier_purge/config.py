"""
Runtime configuration.

Tunables are module constants; account and region come from the environment.
"""
import os
from dataclasses import dataclass

from glacier_purge.exceptions import ConfigError

POLL_INTERVAL_SECONDS = 1200
"""Wait between two sweeps over the active inventory jobs (inventories take hours)"""

CHUNK_SIZE = 100
"""Archive ids handed to the worker pool at a time (bookkeeping only)"""

MAX_IN_FLIGHT = 32
"""Process-wide cap on concurrent delete_archive calls"""

DEFAULT_VAULT_FILE = "vaults.txt"

ACCOUNT_ID_ENV = "AWS_ACCOUNT_ID"
REGION_ENV = "AWS_REGION"


@dataclass
class Settings:
    """Settings for one run of the tool."""
    account_id: str
    region: str
    vault_file: str = DEFAULT_VAULT_FILE
    inventory_dir: str = "."
    poll_interval: float = POLL_INTERVAL_SECONDS
    max_in_flight: int = MAX_IN_FLIGHT
    verbose: bool = False

    @classmethod
    def from_env(cls, environ=None, **overrides) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ConfigError: if the account id or the region is not set
        """
        environ = os.environ if environ is None else environ
        account_id = environ.get(ACCOUNT_ID_ENV, "").strip()
        region = environ.get(REGION_ENV, "").strip()

        missing = [name for name, value in ((ACCOUNT_ID_ENV, account_id), (REGION_ENV, region)) if not value]
        if missing:
            raise ConfigError(f"Missing required environment variable(s): {', '.join(missing)}")

        return cls(account_id=account_id, region=region, **overrides)
