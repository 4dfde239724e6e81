"""Anthropic Messages API → OpenAI-compatible backend relay."""

from .backend_client import BackendClient

__all__ = ["BackendClient"]
