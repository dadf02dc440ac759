"""Infrastructure adapters for the Squadron Tracker service."""
