import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Text, Uuid, event
from sqlalchemy.orm import relationship, validates

from inventory_agent.database import Base

ONBOARDING_STEPS = ("new", "name_entered", "complete")
SELLER_STATUSES = ("pending", "active", "deactivated")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Seller(Base):
    __tablename__ = "sellers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text)
    phone = Column(Text, nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    store_name = Column(Text, nullable=False)
    onboarding_step = Column(Text, nullable=False, default="complete")  # new, name_entered, complete
    status = Column(Text, nullable=False, default="pending")  # pending, active, deactivated
    is_active = Column(Boolean, nullable=False, default=False)
    featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    products = relationship("Product", back_populates="seller")

    @validates("onboarding_step")
    def _validate_onboarding_step(self, key, value):
        if value not in ONBOARDING_STEPS:
            raise ValueError(f"Invalid onboarding step: {value}")
        return value

    @validates("status")
    def _validate_status(self, key, value):
        if value not in SELLER_STATUSES:
            raise ValueError(f"Invalid seller status: {value}")
        return value

    @property
    def needs_onboarding(self) -> bool:
        return self.onboarding_step != "complete"


@event.listens_for(Seller, "before_insert")
@event.listens_for(Seller, "before_update")
def _sync_is_active(mapper, connection, target: Seller) -> None:
    target.is_active = target.status == "active"
