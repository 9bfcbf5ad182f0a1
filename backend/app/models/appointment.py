from sqlalchemy import Boolean, Column, Date, Integer, Numeric, ForeignKey, JSON
from sqlalchemy.orm import relationship

from .base import BaseModel


class Appointment(BaseModel):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    home_id = Column(Integer, ForeignKey("homes.id"), nullable=False, index=True)
    homeowner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    # User ids of the cleaners working this job
    assigned_cleaner_ids = Column(JSON, nullable=False, default=list)

    home = relationship("Home", back_populates="appointments")

    def has_cleaner(self, user_id: int) -> bool:
        return int(user_id) in {int(cid) for cid in (self.assigned_cleaner_ids or [])}
