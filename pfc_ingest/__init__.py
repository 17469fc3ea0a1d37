"""Plan for Change government data ingestion."""

__version__ = "0.1.0"
