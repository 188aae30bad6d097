"""
User model - minimal identity record owned by the outer application.
"""
from sqlalchemy import Column, Integer, String, BigInteger
from models.base import Base, AuditMixin
from models.enums import UserRole


class User(Base, AuditMixin):
    __tablename__ = 'users'

    userID = Column(Integer, primary_key=True, autoincrement=True)

    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=True)
    role = Column(String(16), nullable=False, default=UserRole.USER.value)  # USER, DEALER, ADMIN

    # Optional Telegram chat for notifications
    telegramID = Column(BigInteger, nullable=True)

    def __repr__(self):
        return f"<User(userID={self.userID}, email={self.email}, role={self.role})>"
