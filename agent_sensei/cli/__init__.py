"""CLI module for agent-sensei."""
