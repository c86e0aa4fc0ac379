"""Allows running: python -m marquee"""

from marquee.cli.main import cli

if __name__ == "__main__":
    cli()
