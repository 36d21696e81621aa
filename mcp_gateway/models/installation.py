"""
Installation Model
"""
from sqlalchemy import Column, String, Boolean, DateTime, Text
from mcp_gateway.utils.timezone_helpers import utcnow

from mcp_gateway.database import Base
from mcp_gateway.models.permission import JSONType


class Installation(Base):
    __tablename__ = "installations"

    # "enterprise:<id>" for org-wide installs, else "workspace:<id>"
    canonical_id = Column(String, primary_key=True)
    workspace_id = Column(String, nullable=True, index=True)
    enterprise_id = Column(String, nullable=True, index=True)
    is_enterprise_install = Column(Boolean, default=False, nullable=False)
    execution_credential_encrypted = Column(Text, nullable=False)
    bot_id = Column(String, nullable=True)
    bot_user_id = Column(String, nullable=True)
    payload = Column(JSONType, nullable=False)
    installed_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Installation {self.canonical_id}>"
