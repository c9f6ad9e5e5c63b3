from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from fleet_usage.models.base import BaseModel


class Audit(BaseModel):
    __tablename__ = "audits"

    user_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    user = relationship("User", backref="audit_logs")

    action = Column(String(64), nullable=False, index=True)
    # Id of the trip, vehicle, user, ... the action was applied to.
    target_id = Column(Integer, nullable=True, index=True)
    payload_hash = Column(String(64), nullable=False)
