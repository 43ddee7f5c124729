"""Mock providers for offline runs and tests."""
