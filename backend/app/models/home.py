from sqlalchemy import Column, Integer, String, Numeric, ForeignKey
from sqlalchemy.orm import relationship

from .base import BaseModel


class Home(BaseModel):
    __tablename__ = "homes"

    id = Column(Integer, primary_key=True, index=True)
    homeowner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    num_beds = Column(Integer, nullable=False)
    # Half baths are allowed (e.g. 2.5)
    num_baths = Column(Numeric(3, 1), nullable=False)
    # PII codec ciphertext
    address = Column(String, nullable=True)
    nickname = Column(String, nullable=True)

    homeowner = relationship("User", foreign_keys=[homeowner_id])
    appointments = relationship("Appointment", back_populates="home")
