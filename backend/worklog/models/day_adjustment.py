"""DayAdjustment ORM model: per-day leave type and permission minutes."""
import enum
from sqlalchemy import Column, String, Integer, ForeignKey, Index, Enum as SAEnum
from sqlalchemy.orm import relationship
from worklog.database import Base, UTCDateTime, utcnow


class DayType(str, enum.Enum):
    none = "none"
    smart = "smart"
    ferie = "ferie"
    festa = "festa"


class DayAdjustment(Base):
    __tablename__ = "day_adjustments"
    __table_args__ = (Index("idx_day_adjustments_user_day", "user_id", "day_date"),)

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    day_date = Column(String(10), primary_key=True)  # YYYY-MM-DD, local calendar day
    day_type = Column(
        SAEnum(DayType, native_enum=False, values_callable=lambda e: [m.value for m in e], length=10),
        nullable=False,
        default=DayType.none,
    )
    permission_minutes = Column(Integer, nullable=False, default=0)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="adjustments")
