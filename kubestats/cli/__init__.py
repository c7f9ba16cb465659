"""kubestats command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``kubestats`` script).
"""

from kubestats.cli.main import cli

__all__ = ["cli"]
