"""Smashcut: background replacement and caption burn-in for narrated takes."""

__version__ = "0.1.0"
