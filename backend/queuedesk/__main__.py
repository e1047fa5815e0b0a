"""Entry point: python -m queuedesk"""

from queuedesk.cli import cli

if __name__ == "__main__":
    cli()
