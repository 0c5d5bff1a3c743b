"""BrgyKonek resident services API."""

__version__ = "0.1.0"
