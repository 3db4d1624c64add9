# File: restgen/__main__.py
"""
RestGen - Module entry point.

Allows running the CLI directly via::

    python -m restgen serve --models ./models
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from restgen.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
