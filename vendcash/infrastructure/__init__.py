"""
Infrastructure adapters: PostgreSQL, in-memory, Redis cache, RQ queue, webhook.
"""
