"""Referral closure and affiliate commission core."""

__version__ = "1.0.0"
