"""Referral program backend: accounts, sessions, email verification and password reset."""

__version__ = "1.0.0"
