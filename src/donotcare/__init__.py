"""Local reminder engine for the caring / do-not-care / focus toggle."""

__version__ = "0.3.0"
