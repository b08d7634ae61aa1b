"""Sora Studio — prompt-to-video orchestration service."""

__version__ = "0.1.0"
