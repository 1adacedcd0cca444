"""
Pull/push synchronization against SPARQL endpoints.

Decision: D-013
"""

from squirt.sync.service import SyncService

__all__ = ["SyncService"]
