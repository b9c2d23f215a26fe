"""Command-line interface for agentdag."""
