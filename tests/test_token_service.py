from __future__ import annotations

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from mcp_gateway.config import Settings
from mcp_gateway.errors import (
    CredentialExpiredError,
    CredentialIssueError,
    CredentialRevokedError,
    GatewayError,
    InvalidSignatureError,
    MalformedCredentialError,
    MissingCredentialError,
    UnknownCredentialError,
    WeakSigningSecretError,
)
from mcp_gateway.models.credential import Credential
from mcp_gateway.services.token_service import TokenService
from mcp_gateway.utils.security import create_credential_token
from mcp_gateway.utils.timezone_helpers import to_epoch_seconds, utcnow


def _claims(**overrides):
    now = utcnow()
    claims = {
        "sub": "U1",
        "tenant": "T1",
        "jti": str(uuid.uuid4()),
        "iat": to_epoch_seconds(now),
        "exp": to_epoch_seconds(now + timedelta(days=1)),
    }
    claims.update(overrides)
    return claims


def test_issue_then_verify(token_service) -> None:
    token = token_service.issue("U1", "T1")
    identity = token_service.verify(token)

    assert identity.user_id == "U1"
    assert identity.tenant_id == "T1"
    row = token_service.registry.get(identity.jti)
    assert row.expires_at - row.issued_at == timedelta(days=90)


def test_reissue_revokes_previous_credential(token_service) -> None:
    first = token_service.issue("U1", "T1")
    second = token_service.issue("U1", "T1")

    assert first != second
    with pytest.raises(CredentialRevokedError):
        token_service.verify(first)
    assert token_service.verify(second).user_id == "U1"


def test_credentials_for_other_identities_are_untouched(token_service) -> None:
    other_user = token_service.issue("U2", "T1")
    other_tenant = token_service.issue("U1", "T2")
    token_service.issue("U1", "T1")
    token_service.issue("U1", "T1")

    assert token_service.verify(other_user).user_id == "U2"
    assert token_service.verify(other_tenant).tenant_id == "T2"


def test_second_active_row_violates_unique_index(db, registry) -> None:
    now = utcnow()
    registry.add(str(uuid.uuid4()), "U1", "T1", now, now + timedelta(days=1))
    with pytest.raises(IntegrityError):
        registry.add(str(uuid.uuid4()), "U1", "T1", now, now + timedelta(days=1))


def test_expired_credential_is_rejected(registry, settings) -> None:
    past = TokenService(registry, settings, clock=lambda: utcnow() - timedelta(days=91))
    token = past.issue("U1", "T1")

    with pytest.raises(CredentialExpiredError):
        past.verify(token)


def test_missing_credential(token_service) -> None:
    with pytest.raises(MissingCredentialError):
        token_service.verify(None)
    with pytest.raises(MissingCredentialError):
        token_service.verify("")


def test_malformed_credential(token_service) -> None:
    with pytest.raises(MalformedCredentialError):
        token_service.verify("not-a-credential")


def test_missing_claim_is_malformed(token_service, settings) -> None:
    claims = _claims()
    del claims["tenant"]
    token = create_credential_token(claims, settings.MCP_SIGNING_SECRET, "HS256")

    with pytest.raises(MalformedCredentialError):
        token_service.verify(token)


def test_foreign_signature_is_rejected(token_service) -> None:
    token = create_credential_token(_claims(), "another-secret-that-is-also-long-enough-0000", "HS256")

    with pytest.raises(InvalidSignatureError):
        token_service.verify(token)


def test_well_signed_credential_without_registry_row(token_service, settings) -> None:
    token = create_credential_token(_claims(), settings.MCP_SIGNING_SECRET, "HS256")

    with pytest.raises(UnknownCredentialError):
        token_service.verify(token)


def test_deleted_registry_row_is_unknown(db, token_service) -> None:
    token = token_service.issue("U1", "T1")
    jti = token_service.verify(token).jti
    with db.session() as session:
        session.delete(session.get(Credential, jti))

    with pytest.raises(UnknownCredentialError):
        token_service.verify(token)


def test_claims_must_match_registry_row(token_service, settings) -> None:
    token = token_service.issue("U1", "T1")
    jti = token_service.verify(token).jti
    now = utcnow()
    forged = create_credential_token(
        _claims(sub="U2", jti=jti, iat=to_epoch_seconds(now)), settings.MCP_SIGNING_SECRET, "HS256"
    )

    with pytest.raises(UnknownCredentialError):
        token_service.verify(forged)


def test_revoke_is_idempotent(token_service) -> None:
    token = token_service.issue("U1", "T1")
    jti = token_service.verify(token).jti

    assert token_service.revoke(jti) is True
    assert token_service.revoke(jti) is False
    assert token_service.revoke("no-such-jti") is False
    with pytest.raises(CredentialRevokedError):
        token_service.verify(token)


def test_revoke_all(token_service) -> None:
    token = token_service.issue("U1", "T1")

    assert token_service.revoke_all("U1", "T1") == 1
    assert token_service.revoke_all("U1", "T1") == 0
    with pytest.raises(CredentialRevokedError):
        token_service.verify(token)


def test_sweep_removes_revoked_and_expired_rows(registry, settings, token_service) -> None:
    past = TokenService(registry, settings, clock=lambda: utcnow() - timedelta(days=91))
    past.issue("U9", "T1")                      # expired, still marked active
    token_service.issue("U1", "T1")             # revoked by the next issue
    active = token_service.issue("U1", "T1")

    assert token_service.sweep() == 2
    assert token_service.sweep() == 0
    assert token_service.verify(active).user_id == "U1"


@pytest.mark.parametrize("secret", ["", "short", "x" * 31])
def test_weak_signing_secret_refused(registry, secret) -> None:
    with pytest.raises(WeakSigningSecretError):
        TokenService(registry, Settings(MCP_SIGNING_SECRET=secret))


def _active_rows(db, user_id, tenant_id):
    with db.session() as session:
        return session.execute(
            select(Credential).where(
                Credential.user_id == user_id,
                Credential.tenant_id == tenant_id,
                Credential.revoked.is_(False),
            )
        ).scalars().all()


def test_issue_retries_after_concurrent_collision(db, registry, token_service, monkeypatch) -> None:
    previous = token_service.issue("U1", "T1")
    original_add = registry.add
    calls = []

    def colliding_add(jti, user_id, tenant_id, issued_at, expires_at, session=None):
        calls.append(jti)
        if len(calls) == 1:
            # Another issuer slips its active row in first
            original_add(str(uuid.uuid4()), user_id, tenant_id, issued_at, expires_at, session=session)
        original_add(jti, user_id, tenant_id, issued_at, expires_at, session=session)

    monkeypatch.setattr(registry, "add", colliding_add)
    token = token_service.issue("U1", "T1")

    assert len(calls) == 2
    active = _active_rows(db, "U1", "T1")
    assert [row.jti for row in active] == [calls[-1]]
    assert token_service.verify(token).jti == calls[-1]
    with pytest.raises(CredentialRevokedError):
        token_service.verify(previous)


def test_issue_gives_up_after_repeated_collisions(db, registry, token_service, monkeypatch) -> None:
    previous = token_service.issue("U1", "T1")
    original_add = registry.add

    def always_colliding_add(jti, user_id, tenant_id, issued_at, expires_at, session=None):
        original_add(str(uuid.uuid4()), user_id, tenant_id, issued_at, expires_at, session=session)
        original_add(jti, user_id, tenant_id, issued_at, expires_at, session=session)

    monkeypatch.setattr(registry, "add", always_colliding_add)

    with pytest.raises(CredentialIssueError) as excinfo:
        token_service.issue("U1", "T1")
    assert isinstance(excinfo.value, GatewayError)
    assert excinfo.value.message == "Internal server error"

    # Every failed attempt rolled back; the earlier credential is still the active one
    assert len(_active_rows(db, "U1", "T1")) == 1
    assert token_service.verify(previous).user_id == "U1"


def test_injected_clock_drives_expiry_and_sweep(registry, settings, token_service) -> None:
    token = token_service.issue("U1", "T1")
    later = TokenService(registry, settings, clock=lambda: utcnow() + timedelta(days=91))

    with pytest.raises(CredentialExpiredError):
        later.verify(token)
    assert later.sweep() == 1
    with pytest.raises(UnknownCredentialError):
        token_service.verify(token)
