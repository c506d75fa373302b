"""HipChat add-on: installation lifecycle, OAuth credentials and signed requests."""

__version__ = "0.1.0"
