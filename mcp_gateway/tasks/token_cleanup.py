"""
Celery tasks for credential garbage collection
"""
from typing import Optional

from mcp_gateway.celery_app import celery_app
from mcp_gateway.config import settings
from mcp_gateway.database import Database
from mcp_gateway.services.token_service import TokenRegistry, TokenService
from mcp_gateway.utils.timezone_helpers import utcnow

_database: Optional[Database] = None


def get_celery_database() -> Database:
    """One Database per worker process, created on first use"""
    global _database
    if _database is None:
        _database = Database(settings.DATABASE_URL)
    return _database


@celery_app.task
def sweep_credentials():
    """
    Periodic task to delete revoked and expired credentials
    Scheduled via Celery Beat every TOKEN_SWEEP_INTERVAL_HOURS
    """
    service = TokenService(TokenRegistry(get_celery_database()), settings)
    removed = service.sweep()

    return {
        "status": "success",
        "removed": removed,
        "timestamp": utcnow().isoformat()
    }
