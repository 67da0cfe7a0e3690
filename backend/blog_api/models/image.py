from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, BigInteger
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from blog_api.core.database import Base


class Image(Base):
    """
    Uploaded image metadata.

    File content lives on disk; only the row is part of a snapshot.
    """
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    # filename is the generated unique filename on disk
    filename = Column(String, nullable=False)
    # original_name is what the user uploaded (for display purposes)
    original_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String, nullable=False)
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    article = relationship("Article", backref="images")
