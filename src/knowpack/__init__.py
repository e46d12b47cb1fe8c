"""knowpack - build pipeline for structured knowledge chunks."""

__version__ = "0.1.0"
