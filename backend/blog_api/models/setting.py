from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.sql import func
from blog_api.core.database import Base


class Setting(Base):
    """
    Site setting stored as a raw string plus a type discriminator.

    See services/setting_values.py for the decode/encode rules per type.
    """
    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=True)
    # "json", "boolean", "number" or "string"
    type = Column(String(20), nullable=False, default="string")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
