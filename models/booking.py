"""
Booking model - a tentative or confirmed claim on a property window.
Never deleted: CANCELLED and EXPIRED rows stay for audit.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from models.base import Base, AuditMixin
from models.enums import BookingStatus


class Booking(Base, AuditMixin):
    __tablename__ = 'bookings'

    # Primary key
    bookingID = Column(Integer, primary_key=True, autoincrement=True)

    # Relations
    propertyID = Column(Integer, ForeignKey('properties.propertyID'), nullable=False)
    userID = Column(Integer, ForeignKey('users.userID'), nullable=False, index=True)

    # Window [startDate, endDate]
    startDate = Column(DateTime, nullable=False)
    endDate = Column(DateTime, nullable=False)

    status = Column(String(16), nullable=False, default=BookingStatus.PENDING.value)  # PENDING, CONFIRMED, CANCELLED, EXPIRED

    # Manual payment evidence
    paymentMethod = Column(String(16), nullable=False, default="UPI")
    paymentRef = Column(String, nullable=False)
    paymentProof = Column(String, nullable=True)  # URI of uploaded proof

    # Attribution at booking time (informational)
    dealerCode = Column(String(16), nullable=True)

    bookingCharges = Column(DECIMAL(12, 2), nullable=False)
    totalAmount = Column(DECIMAL(12, 2), nullable=False)

    # Relationships
    property = relationship('Property', back_populates='bookings', lazy='joined')
    user = relationship('User', lazy='joined')

    __table_args__ = (
        Index('ix_bookings_property_status', 'propertyID', 'status'),
        CheckConstraint('"startDate" <= "endDate"', name='ck_bookings_window'),
    )

    def __repr__(self):
        return f"<Booking(bookingID={self.bookingID}, property={self.propertyID}, status={self.status})>"
