"""Vault list input and inventory-file ownership."""
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from glacier_purge.exceptions import ConfigError

logger = logging.getLogger(__name__)


def read_vault_list(path) -> List[str]:
    """Read vault names, one per line.

    Surrounding whitespace is stripped and blank lines are skipped.

    Raises:
        ConfigError: if the file does not exist or cannot be read
    """
    try:
        with open(path) as f:
            lines = f.readlines()
    except OSError as e:
        raise ConfigError(f"Cannot read vault list {path}: {e}")

    vaults = [line.strip() for line in lines if line.strip()]
    logger.info(f"Read {len(vaults)} vault(s) from {path}")
    return vaults


def match_vault(filename: str, vaults: Iterable[str]) -> Optional[str]:
    """Return the vault owning an inventory file, or None.

    Inventory files are named ``{vault}_{job_id}_{timestamp}.json``. When one
    vault name is a prefix of another, the longest match wins.
    """
    name = Path(filename).name
    best = None
    for vault in vaults:
        if name.startswith(vault + "_") and (best is None or len(vault) > len(best)):
            best = vault
    return best
