"""Core package: configuration, errors and authentication."""
