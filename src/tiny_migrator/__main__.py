"""Allow running as ``python -m tiny_migrator``."""

from .cli import cli

if __name__ == "__main__":
    cli()
