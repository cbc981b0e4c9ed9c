"""Command line interface for EMA."""
