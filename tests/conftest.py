"""
Pytest config.

Every test gets its own in-memory SQLite database with the full schema, and a
Settings instance with a strong signing secret and a fresh Fernet key.
"""

from __future__ import annotations

import pytest
from cryptography.fernet import Fernet

from mcp_gateway.config import Settings
from mcp_gateway.database import Database
from mcp_gateway.services.authorization import AuthorizationFacade
from mcp_gateway.services.channel_access_service import ChannelAccessGuard, ChannelAccessStore
from mcp_gateway.services.permission_service import PermissionResolver, PermissionStore
from mcp_gateway.services.tenant_directory import TenantDirectory
from mcp_gateway.services.token_service import TokenRegistry, TokenService

SIGNING_SECRET = "test-signing-secret-for-unit-tests-0123456789"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        MCP_SIGNING_SECRET=SIGNING_SECRET,
        ENCRYPTION_KEY=Fernet.generate_key().decode(),
        TOKEN_SWEEP_IN_PROCESS=False,
    )


@pytest.fixture
def db():
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def permission_store(db) -> PermissionStore:
    return PermissionStore(db)


@pytest.fixture
def resolver(permission_store) -> PermissionResolver:
    return PermissionResolver(permission_store)


@pytest.fixture
def guard(db) -> ChannelAccessGuard:
    return ChannelAccessGuard(ChannelAccessStore(db))


@pytest.fixture
def registry(db) -> TokenRegistry:
    return TokenRegistry(db)


@pytest.fixture
def token_service(registry, settings) -> TokenService:
    return TokenService(registry, settings)


@pytest.fixture
def tenants(db, settings) -> TenantDirectory:
    return TenantDirectory(db, settings)


@pytest.fixture
def facade(db, settings) -> AuthorizationFacade:
    return AuthorizationFacade.build(db, settings)
