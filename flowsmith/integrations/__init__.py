"""External integration adapters."""

from .n8n import N8NClient, n8n_client

__all__ = [
    "N8NClient",
    "n8n_client",
]
