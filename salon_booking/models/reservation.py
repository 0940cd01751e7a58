from sqlalchemy import Column, Integer, String, Boolean, Text, Enum, CheckConstraint, Index, DDL, event
from sqlalchemy.sql import func
import enum
from salon_booking.database import Base, UTCDateTime

class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

# Statuses that hold a staff member's time
ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

NO_OVERLAP_CONSTRAINT = "reservations_no_overlap_per_staff"

class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True)
    salon_id = Column(Integer, nullable=False, index=True)
    customer_id = Column(Integer, nullable=False, index=True)
    staff_id = Column(Integer, nullable=False)
    service_id = Column(Integer, nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    status = Column(
        Enum(ReservationStatus, name="reservation_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    notes = Column(Text)
    total_amount = Column(Integer, nullable=False, default=0)
    deposit_amount = Column(Integer)
    is_paid = Column(Boolean, nullable=False, default=False)

    confirmed_at = Column(UTCDateTime)
    confirmed_by = Column(String(255))
    cancelled_at = Column(UTCDateTime)
    cancelled_by = Column(String(255))
    cancellation_reason = Column(Text)
    completed_at = Column(UTCDateTime)
    completed_by = Column(String(255))
    no_show_at = Column(UTCDateTime)
    no_show_by = Column(String(255))

    created_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    created_by = Column(String(255))
    updated_at = Column(UTCDateTime, nullable=False, server_default=func.now())
    updated_by = Column(String(255))

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_reservations_time_range"),
        CheckConstraint("total_amount >= 0", name="ck_reservations_total_amount"),
        Index("ix_reservations_staff_start", "staff_id", "start_time"),
    )

    def __repr__(self):
        return f"<Reservation {self.id} staff={self.staff_id} {self.start_time}-{self.end_time} ({self.status})>"


# PostgreSQL enforces non-overlap for active bookings structurally as well
event.listen(
    Reservation.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Reservation.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE reservations ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (staff_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
        "WHERE (status IN ('pending', 'confirmed'))"
    ).execute_if(dialect="postgresql"),
)
