"""
Sent-message cache — non-authoritative record of delivered messages.
Redis hashes in production, a dict in development and tests.
"""
