"""Lexmora: word capture and SM-2 spaced repetition review."""

__version__ = "0.3.0"
