"""Static HTML index page for a set of git repositories."""

__version__ = "0.1.0"
