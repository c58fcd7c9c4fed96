"""Relay: a simulated chat channel for any website."""

__version__ = "0.1.0"
