"""nanocd command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``nanocd`` script).
"""

from nanocd.cli.main import cli

__all__ = ["cli"]
