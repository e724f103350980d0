# File: apiwizard/__main__.py
"""
APIWizard - Module entry point.

Allows running the wizard directly via::

    python -m apiwizard --schema schema.json --service db -o openapi.json

This module simply delegates to the CLI entry point defined in ``apiwizard.cli``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from apiwizard.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
