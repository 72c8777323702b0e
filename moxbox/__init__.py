"""moxbox: self-hosted file storage backend."""

__version__ = "1.0.0"
