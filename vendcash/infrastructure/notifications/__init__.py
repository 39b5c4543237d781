"""
Entrega de avisos a managers (webhook HTTP con retry).
"""

from .webhook import ManagerWebhookClient, build_new_collection_payload

__all__ = ["ManagerWebhookClient", "build_new_collection_payload"]
