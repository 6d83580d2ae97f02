"""finiate: personal agenda tracker with an append-only action log."""

__version__ = "0.1.0"
