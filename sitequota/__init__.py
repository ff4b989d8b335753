"""sitequota - rate-limited access to designated websites."""

__version__ = "0.1.0"
