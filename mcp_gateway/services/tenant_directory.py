"""
Tenant Directory: installation records and execution-credential lookup.

Org-wide (enterprise grid) installs are keyed "enterprise:<id>", single
workspace installs "workspace:<id>". Bot tokens are encrypted at rest.
"""
import logging
from typing import Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.orm import Session

from mcp_gateway.config import Settings
from mcp_gateway.database import Database, upsert
from mcp_gateway.errors import InvalidInstallationError, StorageCorruptionError
from mcp_gateway.models.installation import Installation
from mcp_gateway.schemas.installation import ExecutionCredential, InstallationQuery, InstallationRecord
from mcp_gateway.utils.encryption import InvalidToken, decrypt_token, encrypt_token, get_fernet
from mcp_gateway.utils.timezone_helpers import utcnow

logger = logging.getLogger(__name__)


def installation_id(record: InstallationRecord) -> str:
    """Derive the canonical key for an installation."""
    if record.is_enterprise_install and record.enterprise_id:
        return f"enterprise:{record.enterprise_id}"
    if record.workspace_id:
        return f"workspace:{record.workspace_id}"
    raise InvalidInstallationError()


def query_id(query: InstallationQuery) -> str:
    if query.is_enterprise_install and query.enterprise_id:
        return f"enterprise:{query.enterprise_id}"
    if query.workspace_id:
        return f"workspace:{query.workspace_id}"
    raise InvalidInstallationError("Query has neither enterprise nor workspace ID")


class TenantDirectory:
    """Persistence and lookup of tenant installations"""

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self._fernet = get_fernet(settings.ENCRYPTION_KEY)

    def upsert_installation(self, record: InstallationRecord, session: Optional[Session] = None) -> str:
        """
        Store an installation. Re-installs overwrite the execution credential
        and payload; the canonical id never changes.

        Returns:
            Canonical installation id
        """
        canonical_id = installation_id(record)
        encrypted = encrypt_token(self._fernet, record.bot_token)
        now = utcnow()
        with self.db.scope(session) as s:
            upsert(
                s,
                Installation,
                values={
                    "canonical_id": canonical_id,
                    "workspace_id": record.workspace_id,
                    "enterprise_id": record.enterprise_id,
                    "is_enterprise_install": record.is_enterprise_install,
                    "execution_credential_encrypted": encrypted,
                    "bot_id": record.bot_id,
                    "bot_user_id": record.bot_user_id,
                    "payload": record.payload,
                    "installed_at": now,
                    "updated_at": now,
                },
                index_elements=["canonical_id"],
                update={
                    "execution_credential_encrypted": encrypted,
                    "bot_id": record.bot_id,
                    "bot_user_id": record.bot_user_id,
                    "payload": record.payload,
                    "updated_at": now,
                },
            )
        logger.info("Stored installation %s", canonical_id)
        return canonical_id

    def fetch_installation(self, query: InstallationQuery) -> Optional[InstallationRecord]:
        canonical_id = query_id(query)
        with self.db.session() as s:
            row = s.get(Installation, canonical_id)
            if row is None:
                return None
            return InstallationRecord(
                workspace_id=row.workspace_id,
                enterprise_id=row.enterprise_id,
                is_enterprise_install=bool(row.is_enterprise_install),
                bot_token=self._decrypt(row),
                bot_id=row.bot_id,
                bot_user_id=row.bot_user_id,
                payload=self._payload(row),
            )

    def delete_installation(self, query: InstallationQuery) -> bool:
        canonical_id = query_id(query)
        with self.db.session() as s:
            removed = s.execute(delete(Installation).where(Installation.canonical_id == canonical_id)).rowcount
        if removed:
            logger.info("Deleted installation %s", canonical_id)
        return removed > 0

    def delete_tenant(self, tenant_id: str, session: Optional[Session] = None) -> int:
        """Delete every installation whose enterprise or workspace id matches."""
        with self.db.scope(session) as s:
            return s.execute(
                delete(Installation).where(
                    or_(Installation.enterprise_id == tenant_id, Installation.workspace_id == tenant_id)
                )
            ).rowcount

    def resolve_execution_credential(self, tenant_id: str) -> Optional[ExecutionCredential]:
        """
        Bot token for a tenant id. Enterprise-keyed installs are tried first,
        then workspace-keyed ones; None if neither matches.
        """
        with self.db.session() as s:
            row = s.execute(
                select(Installation)
                .where(Installation.enterprise_id == tenant_id)
                .order_by(Installation.is_enterprise_install.desc(), Installation.canonical_id)
                .limit(1)
            ).scalar_one_or_none()

            if row is None:
                row = s.execute(
                    select(Installation)
                    .where(Installation.workspace_id == tenant_id)
                    .order_by(Installation.canonical_id)
                    .limit(1)
                ).scalar_one_or_none()

            if row is None:
                return None

            return ExecutionCredential(
                bot_token=self._decrypt(row),
                workspace_id=row.workspace_id,
                enterprise_id=row.enterprise_id,
            )

    def _decrypt(self, row: Installation) -> str:
        try:
            return decrypt_token(self._fernet, row.execution_credential_encrypted)
        except InvalidToken as e:
            raise StorageCorruptionError("installations", row.canonical_id, "execution credential cannot be decrypted") from e

    @staticmethod
    def _payload(row: Installation) -> dict:
        if not isinstance(row.payload, dict):
            raise StorageCorruptionError("installations", row.canonical_id, "payload is not an object")
        return row.payload
