"""
Capability registry — single source of truth for capability keys, operations,
and the downstream tools each capability gates.
"""
import enum


class Operation(str, enum.Enum):
    """Direction of access a capability flag controls"""
    READ = "read"
    WRITE = "write"


# Closed set: every permission map carries exactly these keys
CAPABILITIES = {
    "channels": {"label": "Channels", "description": "List channels and read channel history"},
    "chat":     {"label": "Chat",     "description": "Post messages and thread replies"},
    "users":    {"label": "Users",    "description": "Read the workspace user directory"},
}

CAPABILITY_KEYS = tuple(CAPABILITIES.keys())

# Tool name -> capability gate. "resource_arg" names the argument that targets
# a specific channel, so the blocklist can be consulted.
TOOLS = {
    "slack_list_channels": {
        "description": "List public channels the bot is a member of.",
        "capability": "channels",
        "operation": Operation.READ,
        "resource_arg": None,
    },
    "slack_read_channel": {
        "description": "Read recent messages from a channel.",
        "capability": "channels",
        "operation": Operation.READ,
        "resource_arg": "channel",
    },
    "slack_post_message": {
        "description": "Post a new message to a channel.",
        "capability": "chat",
        "operation": Operation.WRITE,
        "resource_arg": "channel",
    },
    "slack_reply_thread": {
        "description": "Reply to an existing message thread.",
        "capability": "chat",
        "operation": Operation.WRITE,
        "resource_arg": "channel",
    },
    "slack_list_users": {
        "description": "List users in the workspace.",
        "capability": "users",
        "operation": Operation.READ,
        "resource_arg": None,
    },
}


def is_capability(key: str) -> bool:
    return key in CAPABILITIES


def parse_operation(value) -> Operation:
    """Coerce "read"/"write" (or an Operation) into an Operation; ValueError otherwise."""
    if isinstance(value, Operation):
        return value
    return Operation(str(value).lower())
