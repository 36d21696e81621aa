"""
Token Service: issuance, verification, revocation and garbage collection of
bearer credentials.

Lifecycle per credential: Active -> Revoked -> deleted by sweep. A credential
is only trusted while its registry row exists and is not revoked.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mcp_gateway.config import Settings, validate_signing_secret
from mcp_gateway.database import Database
from mcp_gateway.errors import (
    CredentialExpiredError,
    CredentialIssueError,
    CredentialRevokedError,
    MissingCredentialError,
    UnknownCredentialError,
)
from mcp_gateway.models.credential import Credential
from mcp_gateway.schemas.credential import Identity, TokenClaims
from mcp_gateway.utils.security import create_credential_token, decode_credential_token
from mcp_gateway.utils.timezone_helpers import to_epoch_seconds, utcnow

logger = logging.getLogger(__name__)

# Concurrent issue() calls for one identity can collide on the active-credential
# unique index; the loser retries against the winner's committed row.
ISSUE_ATTEMPTS = 3


class TokenRegistry:
    """Persistence for issued-credential metadata"""

    def __init__(self, db: Database):
        self.db = db

    def add(self, jti: str, user_id: str, tenant_id: str, issued_at: datetime, expires_at: datetime,
            session: Optional[Session] = None) -> None:
        with self.db.scope(session) as s:
            s.add(Credential(
                jti=jti,
                user_id=user_id,
                tenant_id=tenant_id,
                revoked=False,
                issued_at=issued_at,
                expires_at=expires_at,
            ))
            s.flush()

    def get(self, jti: str, session: Optional[Session] = None) -> Optional[Credential]:
        with self.db.scope(session) as s:
            return s.get(Credential, jti)

    def revoke(self, jti: str, session: Optional[Session] = None) -> int:
        with self.db.scope(session) as s:
            return s.execute(
                update(Credential)
                .where(Credential.jti == jti, Credential.revoked.is_(False))
                .values(revoked=True)
            ).rowcount

    def revoke_all(self, user_id: str, tenant_id: str, session: Optional[Session] = None) -> int:
        with self.db.scope(session) as s:
            return s.execute(
                update(Credential)
                .where(
                    Credential.user_id == user_id,
                    Credential.tenant_id == tenant_id,
                    Credential.revoked.is_(False),
                )
                .values(revoked=True)
            ).rowcount

    def revoke_all_for_tenant(self, tenant_id: str, session: Optional[Session] = None) -> int:
        with self.db.scope(session) as s:
            return s.execute(
                update(Credential)
                .where(Credential.tenant_id == tenant_id, Credential.revoked.is_(False))
                .values(revoked=True)
            ).rowcount

    def delete_stale(self, now: datetime, session: Optional[Session] = None) -> int:
        """Delete every row that is revoked or past expiry."""
        with self.db.scope(session) as s:
            return s.execute(
                delete(Credential).where(or_(Credential.revoked.is_(True), Credential.expires_at < now))
            ).rowcount


class TokenService:
    """Mints, verifies and revokes signed bearer credentials"""

    def __init__(
        self,
        registry: TokenRegistry,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        # Fails fast: no service without a strong signing secret
        self._secret = validate_signing_secret(settings)
        self._algorithm = settings.ALGORITHM
        self.validity = timedelta(days=settings.TOKEN_EXPIRE_DAYS)
        self.registry = registry
        self._clock = clock

    def issue(self, user_id: str, tenant_id: str) -> str:
        """
        Issue a fresh credential for (user, tenant), revoking every earlier one.

        Revoke and insert run in a single transaction; the partial unique index
        on active credentials rejects a concurrent duplicate, which is retried.

        Returns:
            Signed credential string
        """
        last_error = None
        for attempt in range(1, ISSUE_ATTEMPTS + 1):
            issued_at = self._clock().replace(microsecond=0)
            expires_at = issued_at + self.validity
            jti = str(uuid.uuid4())
            try:
                with self.registry.db.session() as session:
                    revoked = self.registry.revoke_all(user_id, tenant_id, session=session)
                    self.registry.add(jti, user_id, tenant_id, issued_at, expires_at, session=session)
            except IntegrityError as e:
                last_error = e
                logger.warning(
                    "Concurrent credential issue for user %s in tenant %s (attempt %d/%d)",
                    user_id, tenant_id, attempt, ISSUE_ATTEMPTS,
                )
                continue

            claims = TokenClaims(
                sub=user_id,
                tenant=tenant_id,
                jti=jti,
                iat=to_epoch_seconds(issued_at),
                exp=to_epoch_seconds(expires_at),
            )
            token = create_credential_token(claims.model_dump(), self._secret, self._algorithm)
            logger.info(
                "Issued credential %s for user %s in tenant %s (revoked %d previous)",
                jti, user_id, tenant_id, revoked,
            )
            return token

        logger.error(
            "Gave up issuing a credential for user %s in tenant %s after %d attempts",
            user_id, tenant_id, ISSUE_ATTEMPTS,
        )
        raise CredentialIssueError() from last_error

    def verify(self, token: Optional[str]) -> Identity:
        """
        Verify a credential string.

        Signature and time validity are checked before any storage lookup.
        A well-signed credential without a registry row is not trusted.

        Raises:
            MissingCredentialError, MalformedCredentialError, InvalidSignatureError,
            CredentialExpiredError, UnknownCredentialError, CredentialRevokedError
        """
        if not token:
            raise MissingCredentialError()

        payload = decode_credential_token(token, self._secret, self._algorithm)
        jti = str(payload["jti"])

        with self.registry.db.session() as session:
            row = self.registry.get(jti, session=session)
            if row is None:
                raise UnknownCredentialError()
            if row.user_id != str(payload["sub"]) or row.tenant_id != str(payload["tenant"]):
                logger.warning("Credential %s claims do not match its registry row", jti)
                raise UnknownCredentialError()
            if row.revoked:
                raise CredentialRevokedError()
            if row.expires_at <= self._clock():
                raise CredentialExpiredError()

            return Identity(user_id=row.user_id, tenant_id=row.tenant_id, jti=row.jti)

    def revoke(self, jti: str) -> bool:
        """Revoke one credential; idempotent."""
        changed = self.registry.revoke(jti)
        if changed:
            logger.info("Revoked credential %s", jti)
        return changed > 0

    def revoke_all(self, user_id: str, tenant_id: str, session: Optional[Session] = None) -> int:
        """Revoke every active credential for (user, tenant); idempotent."""
        changed = self.registry.revoke_all(user_id, tenant_id, session=session)
        if changed:
            logger.info("Revoked %d credential(s) for user %s in tenant %s", changed, user_id, tenant_id)
        return changed

    def sweep(self) -> int:
        """Delete revoked and expired registry rows. Safe to run concurrently."""
        removed = self.registry.delete_stale(self._clock())
        if removed:
            logger.info("Token cleanup: removed %d expired/revoked credentials", removed)
        return removed