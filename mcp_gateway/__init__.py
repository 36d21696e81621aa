"""Authorization and credential lifecycle core for the MCP gateway."""

__version__ = "1.0.0"
