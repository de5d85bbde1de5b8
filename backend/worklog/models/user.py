"""User ORM model."""
import uuid
from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from worklog.database import Base, UTCDateTime, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(120), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    entries = relationship("WorkEntry", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    adjustments = relationship("DayAdjustment", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
