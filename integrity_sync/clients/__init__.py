"""Outbound capability clients for Microsoft Graph and GitHub."""

from .base_client import CapabilityClient
from .github_client import GitHubClient
from .graph_client import TodoClient

__all__ = ["CapabilityClient", "GitHubClient", "TodoClient"]
