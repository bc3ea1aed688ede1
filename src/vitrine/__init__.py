"""Video product catalog with a durable local cache synchronized to a remote authority."""

__version__ = "0.1.0"
