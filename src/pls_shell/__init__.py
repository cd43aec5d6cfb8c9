"""Natural-language command-line assistant."""

__version__ = "0.4.0"
