"""Local business lead discovery and qualification."""

__version__ = "0.3.0"
