# backend/app/models/user.py

from sqlalchemy import Boolean, Column, Integer, String, Text, Enum
from .base import BaseModel
import enum


class UserType(str, enum.Enum):
    """Enumeration of all supported user roles."""

    CLEANER = "cleaner"
    HOMEOWNER = "homeowner"
    OWNER = "owner"
    HR = "hr"

    @classmethod
    def _missing_(cls, value: object):
        """Map legacy enum values to current ones."""
        if isinstance(value, str):
            legacy = value.strip().lower()
            if legacy in ("humanresources", "human_resources"):
                return cls.HR
            if legacy == "employee":
                return cls.CLEANER
            for member in cls:
                if member.value == legacy:
                    return member
        return None

    @property
    def is_resolver(self) -> bool:
        return self in (UserType.OWNER, UserType.HR)


class User(BaseModel):
    __tablename__ = "users"

    id           = Column(Integer, primary_key=True, index=True)
    # email/first_name/last_name hold PII codec ciphertext (legacy rows may be plaintext)
    email        = Column(String, unique=True, index=True, nullable=False)
    first_name   = Column(String, nullable=True)
    last_name    = Column(String, nullable=True)
    user_type    = Column(Enum(UserType), nullable=False)
    is_active    = Column(Boolean, default=True)

    # Trust counters; mutated only by the home size dispute resolver outcomes
    false_claim_count     = Column(Integer, nullable=False, default=0, server_default="0")
    false_home_size_count = Column(Integer, nullable=False, default=0, server_default="0")
    # Resolver-only audit trail, one timestamped line per recorded outcome
    owner_private_notes   = Column(Text, nullable=True)
