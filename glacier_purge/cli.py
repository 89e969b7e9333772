"""Command-line entry point."""
import argparse
import logging
import sys
from typing import List, Optional

from glacier_purge.client import GlacierClient
from glacier_purge.config import ACCOUNT_ID_ENV, REGION_ENV, Settings
from glacier_purge.deleter import ArchiveDeleter
from glacier_purge.exceptions import ConfigError
from glacier_purge.inventory import InventoryTracker
from glacier_purge.orchestrator import Orchestrator

logger = logging.getLogger("glacier_purge")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

USAGE = f"""\
Set the account and region before running:

    export {ACCOUNT_ID_ENV}=123456789012
    export {REGION_ENV}=eu-west-1

and list the vaults to empty, one per line, in the vault file."""


class _BelowWarning(logging.Filter):
    def filter(self, record):
        return record.levelno < logging.WARNING


def configure_logging(verbose: bool = False) -> None:
    """Progress goes to stdout, warnings and errors to stderr."""
    formatter = logging.Formatter(LOG_FORMAT)

    out = logging.StreamHandler(sys.stdout)
    out.setFormatter(formatter)
    out.addFilter(_BelowWarning())

    err = logging.StreamHandler(sys.stderr)
    err.setFormatter(formatter)
    err.setLevel(logging.WARNING)

    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, handlers=[out, err], force=True)
    if verbose:
        # Keep --verbose about our own Glacier calls
        for noisy in ("boto3", "botocore", "urllib3", "s3transfer"):
            logging.getLogger(noisy).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="glacier-purge",
        description="Delete every archive of the Glacier vaults listed in a vault file",
    )
    parser.add_argument("--delete-only", action="store_true",
                        help="Skip inventory retrieval and delete from inventory files already on disk")
    parser.add_argument("--verbose", action="store_true", help="Log every Glacier call and its raw response")
    parser.add_argument("--vault-file", help="File listing vault names, one per line (default: vaults.txt)")
    parser.add_argument("--inventory-dir", help="Where inventory files are written and read (default: .)")
    parser.add_argument("--poll-interval", type=float, help="Seconds between job status sweeps (default: 1200)")
    parser.add_argument("--max-in-flight", type=int, help="Concurrent delete calls (default: 32)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    overrides = {
        "vault_file": args.vault_file,
        "inventory_dir": args.inventory_dir,
        "poll_interval": args.poll_interval,
        "max_in_flight": args.max_in_flight,
    }
    try:
        settings = Settings.from_env(
            verbose=args.verbose,
            **{key: value for key, value in overrides.items() if value is not None},
        )
    except ConfigError as e:
        logger.error(str(e))
        print(USAGE, file=sys.stderr)
        return 1

    client = GlacierClient(settings.account_id, settings.region)
    deleter = ArchiveDeleter(client, max_in_flight=settings.max_in_flight)
    orchestrator = Orchestrator(
        InventoryTracker(client, settings.inventory_dir),
        deleter,
        settings.vault_file,
        poll_interval=settings.poll_interval,
    )

    try:
        if args.delete_only:
            orchestrator.resume_from_disk(settings.inventory_dir)
        else:
            orchestrator.run()
    except ConfigError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
