"""Conversation and stream engine for a multi-model chat playground."""

__version__ = "0.1.0"
