# Services package
from mysql2mongo.services.sync_service import SyncReport, SyncService

__all__ = [
    "SyncReport",
    "SyncService",
]
