"""kubewatchman command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``kubewatchman`` script).
"""

from kubewatchman.cli.main import cli

__all__ = ["cli"]
