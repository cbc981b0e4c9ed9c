"""HTTP API for EMA."""
