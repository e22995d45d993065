"""Application services managed by ServiceContainer."""
