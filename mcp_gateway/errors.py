"""
Error taxonomy for the authorization and credential core.

Every error carries a stable ``reason`` code and a message that is safe to
show to the caller. Storage details never appear in the message.
"""


class GatewayError(Exception):
    """Base class for all gateway errors"""

    reason = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class AuthenticationError(GatewayError):
    reason = "authentication_failed"

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class MissingCredentialError(AuthenticationError):
    reason = "missing_credential"

    def __init__(self):
        super().__init__("Missing bearer credential")


class MalformedCredentialError(AuthenticationError):
    reason = "malformed_credential"

    def __init__(self):
        super().__init__("Malformed bearer credential")


class InvalidSignatureError(AuthenticationError):
    reason = "invalid_signature"

    def __init__(self):
        super().__init__("Credential signature is invalid")


class CredentialExpiredError(AuthenticationError):
    reason = "expired"

    def __init__(self):
        super().__init__("Credential has expired")


class UnknownCredentialError(AuthenticationError):
    reason = "unknown_credential"

    def __init__(self):
        super().__init__("Credential is not recognised")


class CredentialRevokedError(AuthenticationError):
    reason = "revoked"

    def __init__(self):
        super().__init__("Credential has been revoked")


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class AuthorizationError(GatewayError):
    reason = "forbidden"

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class PermissionDeniedError(AuthorizationError):
    reason = "permission_denied"

    def __init__(self, capability_key: str, operation: str):
        self.capability_key = capability_key
        self.operation = operation
        super().__init__(f"permission denied for {capability_key}:{operation}")


class ResourceBlockedError(AuthorizationError):
    reason = "resource_blocked"

    def __init__(self, resource_id: str, operation: str):
        self.resource_id = resource_id
        self.operation = operation
        super().__init__(f"{operation} access to channel {resource_id} is blocked by an administrator")


class UnknownToolError(AuthorizationError):
    reason = "unknown_tool"

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"unknown tool: {tool_name}")


# ---------------------------------------------------------------------------
# Tenants
# ---------------------------------------------------------------------------

class TenantError(GatewayError):
    reason = "tenant_error"


class TenantNotInstalledError(TenantError):
    reason = "not_installed"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"No installation found for tenant {tenant_id}. Has the app been installed?")


class InvalidInstallationError(TenantError):
    reason = "invalid_installation"

    def __init__(self, message: str = "Installation has neither enterprise nor workspace ID"):
        super().__init__(message)


# ---------------------------------------------------------------------------
# Configuration / storage
# ---------------------------------------------------------------------------

class ConfigurationError(GatewayError):
    reason = "configuration_error"


class WeakSigningSecretError(ConfigurationError):
    reason = "missing_or_weak_signing_secret"

    def __init__(self, min_bytes: int):
        super().__init__(
            f"MCP_SIGNING_SECRET must be set and at least {min_bytes} bytes. "
            "Generate one with: openssl rand -hex 32"
        )


class StorageCorruptionError(GatewayError):
    """A persisted row could not be read back into its expected shape"""

    reason = "storage_corruption"

    def __init__(self, table: str, key: str, detail: str = ""):
        self.table = table
        self.key = key
        self.detail = detail
        super().__init__("Internal server error")

    def __str__(self):
        return f"corrupt row in {self.table} ({self.key}): {self.detail}"


class CredentialIssueError(GatewayError):
    """Issuance kept colliding with concurrent issuers for the same identity"""

    reason = "credential_issue_failed"


class UnknownCapabilityError(GatewayError, ValueError):
    reason = "unknown_capability"

    def __init__(self, capability_key: str):
        self.capability_key = capability_key
        super().__init__(f"unknown capability: {capability_key}")
