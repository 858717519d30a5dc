from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, ForeignKey, ForeignKeyConstraint,
    Text, Boolean, Index,
)

Base = declarative_base()

# Tag embedded in Activity.description by the school-plan import. Used for
# idempotent re-import deletes and for agenda suppression.
SCHOOL_SCHEDULE = "school_schedule"
SCHOOL_ACTIVITY = "school_activity"


def type_tag(kind: str) -> str:
    return f"[TYPE:{kind}]"


# --- Member -------------------------------------------------
class FamilyMember(Base):
    __tablename__ = "family_members"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    color: Mapped[str] = mapped_column(String(20), default="#888888")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Deleting a member deletes all of its rows, whatever the FK pragma says.
    activities = relationship("Activity", back_populates="member", cascade="all, delete-orphan")
    homework = relationship("Homework", back_populates="member", cascade="all, delete-orphan")
    spond_groups = relationship("SpondGroup", back_populates="member", cascade="all, delete-orphan")
    spond_activities = relationship("SpondActivity", back_populates="member", cascade="all, delete-orphan")
    exchange_calendars = relationship("ExchangeCalendar", back_populates="member", cascade="all, delete-orphan")
    exchange_events = relationship("ExchangeEvent", back_populates="member", cascade="all, delete-orphan")


# --- Locally owned records ----------------------------------
class Activity(Base):
    __tablename__ = "activities"
    id = Column(Integer, primary_key=True)
    member_id = Column(Integer, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False)
    source_id = Column(Integer, nullable=True)                 # calendar source, if imported
    title = Column(String(300), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(String(32), nullable=False)            # "HH:MM", or the text as given
    end_time = Column(String(32), nullable=False)              # "HH:MM", or the text as given
    description = Column(Text, nullable=True)
    activity_type = Column(String(40), default="manual", nullable=False)
    source = Column(String(40), default="manual", nullable=False)  # manual | calendar_import | municipal_calendar
    recurrence_type = Column(String(20), default="none", nullable=False)  # none | weekly
    recurrence_end_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    member = relationship("FamilyMember", back_populates="activities")

    __table_args__ = (
        Index("idx_activities_member_date", "member_id", "date"),
        Index("idx_activities_date", "date"),
    )


class Homework(Base):
    __tablename__ = "homework"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    member_id: Mapped[int] = mapped_column(ForeignKey("family_members.id", ondelete="CASCADE"), index=True)
    subject: Mapped[str] = mapped_column(String(200))
    assignment: Mapped[str] = mapped_column(Text)
    week_start_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    extracted_from_image: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)  # set for generated rows
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    member = relationship("FamilyMember", back_populates="homework")


# --- Spond (third-party group activities), written by the sync job ---
class SpondGroup(Base):
    __tablename__ = "spond_groups"
    id = Column(String(64), primary_key=True)
    member_id = Column(Integer, ForeignKey("family_members.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=False, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    member = relationship("FamilyMember", back_populates="spond_groups")

    __table_args__ = (Index("idx_spond_groups_active", "member_id", "is_active"),)


class SpondActivity(Base):
    __tablename__ = "spond_activities"
    id = Column(String(64), primary_key=True)
    group_id = Column(String(64), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    start_timestamp = Column(DateTime, nullable=False)   # naive UTC
    end_timestamp = Column(DateTime, nullable=False)     # naive UTC
    location_name = Column(String(300), nullable=True)
    location_address = Column(String(300), nullable=True)
    activity_type = Column(String(40), nullable=True)
    is_cancelled = Column(Boolean, default=False, nullable=False)
    response_status = Column(String(40), nullable=True)
    organizer_name = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    member = relationship("FamilyMember", back_populates="spond_activities")

    __table_args__ = (
        ForeignKeyConstraint(["group_id", "member_id"], ["spond_groups.id", "spond_groups.member_id"],
                             ondelete="CASCADE"),
        Index("idx_spond_activities_member_time", "member_id", "start_timestamp"),
    )


# --- Exchange / Outlook mailbox calendars, written by the sync job ---
class ExchangeCalendar(Base):
    __tablename__ = "exchange_calendars"
    id = Column(String(200), primary_key=True)
    member_id = Column(Integer, ForeignKey("family_members.id", ondelete="CASCADE"), primary_key=True)
    name = Column(String(200), nullable=False)
    color = Column(String(20), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)

    member = relationship("FamilyMember", back_populates="exchange_calendars")


class ExchangeEvent(Base):
    __tablename__ = "exchange_events"
    id = Column(String(200), primary_key=True)
    calendar_id = Column(String(200), nullable=False)
    member_id = Column(Integer, ForeignKey("family_members.id", ondelete="CASCADE"), nullable=False)
    subject = Column(String(500), nullable=False, default="Untitled")
    body_preview = Column(Text, nullable=True)
    start_timestamp = Column(DateTime, nullable=False)   # naive UTC
    end_timestamp = Column(DateTime, nullable=False)     # naive UTC
    is_all_day = Column(Boolean, default=False, nullable=False)
    is_cancelled = Column(Boolean, default=False, nullable=False)
    location_name = Column(String(300), nullable=True)
    response_status = Column(String(40), nullable=True)  # accepted | tentativelyAccepted | organizer ...
    show_as = Column(String(40), nullable=True)          # busy | free | tentative | oof
    organizer_name = Column(String(200), nullable=True)
    organizer_email = Column(String(320), nullable=True)
    web_link = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    member = relationship("FamilyMember", back_populates="exchange_events")

    __table_args__ = (
        ForeignKeyConstraint(["calendar_id", "member_id"], ["exchange_calendars.id", "exchange_calendars.member_id"],
                             ondelete="CASCADE"),
        Index("idx_exchange_events_member_time", "member_id", "start_timestamp"),
    )
