# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""AuditLog ORM model – security-relevant events and admin actions."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # Who did it (NULL for anonymous events such as a failed login)
    actor_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    # Whose account was affected (NULL for settings changes)
    target_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = Column(String(64), nullable=False, index=True)   # e.g. "account_locked"
    detail = Column(Text, nullable=True)                      # human-readable note
    request_ip = Column(String(45), nullable=True)            # supports IPv6
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
