"""WorkEntry ORM model: one timed interval of work for a user."""
import uuid
from sqlalchemy import Column, String, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from worklog.database import Base, UTCDateTime, utcnow
from worklog.services import accounting


class WorkEntry(Base):
    __tablename__ = "work_entries"
    __table_args__ = (
        Index("idx_work_entries_user_start", "user_id", "start_at"),
        Index("idx_work_entries_user_end", "user_id", "end_at"),
        # at most one running timer per user
        Index(
            "uq_work_entries_user_active",
            "user_id",
            unique=True,
            sqlite_where=text("end_at IS NULL"),
            postgresql_where=text("end_at IS NULL"),
        ),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=True)  # NULL while the timer runs
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="entries")

    @property
    def duration_minutes(self):
        return accounting.duration_minutes(self.start_at, self.end_at)

    @property
    def is_active(self) -> bool:
        return self.end_at is None
