"""Command line interface for safe-modify."""
