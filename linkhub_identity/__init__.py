"""Account registration and bearer-token identity service."""

__version__ = "0.1.0"
