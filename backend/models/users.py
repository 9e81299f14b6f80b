# backend/models/users.py
import enum
from sqlalchemy import Column, Integer, String, Enum
from database import Base

# System roles; credentials live in the external auth service
class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    TECHNICIAN = "TECHNICIAN"

# Represents a user account (identity and role only)
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.TECHNICIAN)
