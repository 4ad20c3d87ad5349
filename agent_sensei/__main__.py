"""Entry point for ``python -m agent_sensei``."""

from agent_sensei.cli.commands import app

if __name__ == "__main__":
    app()
