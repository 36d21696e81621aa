"""Schemas for capability permission maps."""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from mcp_gateway.config.capabilities import CAPABILITY_KEYS, is_capability
from mcp_gateway.errors import StorageCorruptionError, UnknownCapabilityError


class PermissionFlags(BaseModel):
    """Resolved read/write flags for one capability"""
    model_config = ConfigDict(extra="forbid")

    read: bool = False
    write: bool = False


class PermissionOverride(BaseModel):
    """Per-user override; a field left as None inherits the tenant default"""
    model_config = ConfigDict(extra="forbid")

    read: Optional[bool] = None
    write: Optional[bool] = None


PermissionMap = Dict[str, PermissionFlags]
OverrideMap = Dict[str, PermissionOverride]

_permission_map_adapter = TypeAdapter(Dict[str, PermissionFlags])
_override_map_adapter = TypeAdapter(Dict[str, PermissionOverride])


def empty_permissions() -> PermissionMap:
    """Build an all-denied permission map covering every capability key."""
    return {key: PermissionFlags() for key in CAPABILITY_KEYS}


def _reject_unknown_keys(keys) -> None:
    for key in keys:
        if not is_capability(key):
            raise UnknownCapabilityError(key)


def normalize_permissions(raw: Any) -> PermissionMap:
    """
    Validate a full permission map for writing. Missing capability keys are
    filled in as denied; unknown keys raise UnknownCapabilityError.
    """
    parsed = _permission_map_adapter.validate_python(raw or {})
    _reject_unknown_keys(parsed)
    full = empty_permissions()
    full.update(parsed)
    return full


def normalize_overrides(raw: Any) -> OverrideMap:
    """Validate a partial override map for writing."""
    parsed = _override_map_adapter.validate_python(raw or {})
    _reject_unknown_keys(parsed)
    return parsed


def dump_permissions(permissions: PermissionMap) -> Dict[str, Dict[str, bool]]:
    return {key: flags.model_dump() for key, flags in permissions.items()}


def dump_overrides(overrides: OverrideMap) -> Dict[str, Dict[str, bool]]:
    # Only explicitly set fields are persisted
    return {key: flags.model_dump(exclude_none=True) for key, flags in overrides.items()}


def load_permissions(raw: Any, table: str, key: str) -> PermissionMap:
    """Read a stored permission map back; keys outside the closed set are dropped."""
    try:
        parsed = _permission_map_adapter.validate_python(raw)
    except ValidationError as e:
        raise StorageCorruptionError(table, key, str(e)) from e
    full = empty_permissions()
    full.update({k: v for k, v in parsed.items() if is_capability(k)})
    return full


def load_overrides(raw: Any, table: str, key: str) -> OverrideMap:
    try:
        parsed = _override_map_adapter.validate_python(raw)
    except ValidationError as e:
        raise StorageCorruptionError(table, key, str(e)) from e
    return {k: v for k, v in parsed.items() if is_capability(k)}


class UserPermissionRecord(BaseModel):
    """Stored per-user record as read from the store"""
    user_id: str
    tenant_id: str
    overrides: OverrideMap
    active: bool


class UserPermissionSummary(BaseModel):
    user_id: str
    active: bool
    overrides: OverrideMap
    effective: PermissionMap


class EffectivePermissionsResponse(BaseModel):
    user_id: str
    tenant_id: str
    permissions: PermissionMap


class PermittedToolsResponse(BaseModel):
    tools: List[str]
