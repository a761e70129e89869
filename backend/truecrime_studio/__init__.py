"""Project persistence and storage-budget management for the true-crime studio."""

__version__ = "2.0.0"
