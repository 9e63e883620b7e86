"""Finance Tracker HTTP API."""
