"""agent-sensei - watches CLI coding agents in tmux and answers them."""

__version__ = "0.1.0"
