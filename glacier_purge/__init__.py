"""Empty Amazon S3 Glacier vaults: inventory, then bounded parallel deletion."""

__version__ = "0.1.0"
