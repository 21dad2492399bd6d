# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""SystemSetting ORM model – one typed, admin-tunable configuration value."""

from sqlalchemy import Column, Integer, String, Text, Boolean, Enum, DateTime, JSON
from sqlalchemy.sql import func

from database import Base

DATA_TYPES = ("string", "number", "boolean", "json", "array")


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), unique=True, nullable=False, index=True)
    # Always the serialised string form; decoded according to data_type on read.
    value = Column(Text, nullable=True)
    data_type = Column(Enum(*DATA_TYPES, name="setting_data_type"), nullable=False, default="string")
    category = Column(String(50), nullable=False, default="general", index=True)
    description = Column(Text, nullable=True)
    # Readable by anonymous / non-admin callers
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    # Cannot be changed or deleted through the admin API
    is_readonly = Column(Boolean, nullable=False, default=False)
    validation_rules = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<SystemSetting(key={self.key!r}, data_type={self.data_type!r})>"
