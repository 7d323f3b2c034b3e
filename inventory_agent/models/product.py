import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship, validates

from inventory_agent.database import Base

CATEGORIES = ("rackets", "shoes", "accessories", "apparel", "bags", "shuttles")
CONDITIONS = ("new", "used")
MAX_IMAGES = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id = Column(Uuid, ForeignKey("sellers.id"), nullable=True, index=True)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Integer, nullable=False, default=0)
    category = Column(Text, nullable=False, default="accessories")
    brand = Column(Text, nullable=False, default="Generic")
    stock = Column(Integer, nullable=False, default=1)
    condition = Column(Text, nullable=False, default="new")
    images = Column(JSON, nullable=False, default=list)  # [{"url": ..., "external_id": ...}]
    video = Column(JSON)  # {"url": ..., "external_id": ...}
    specifications = Column(JSON, nullable=False, default=dict)  # weight, material, color, size
    category_specs = Column(JSON, nullable=False, default=dict)  # racket/shoe specific
    featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    seller = relationship("Seller", back_populates="products")

    @validates("name")
    def _validate_name(self, key, value):
        if not value or not str(value).strip():
            raise ValueError("Product name is required")
        return str(value).strip()

    @validates("price", "stock")
    def _validate_non_negative(self, key, value):
        if value is None or int(value) < 0:
            raise ValueError(f"Product {key} must be >= 0")
        return int(value)

    @validates("category")
    def _validate_category(self, key, value):
        normalized = (value or "").strip().lower()
        if normalized not in CATEGORIES:
            raise ValueError(f"Invalid category: {value}")
        return normalized

    @validates("condition")
    def _validate_condition(self, key, value):
        if value not in CONDITIONS:
            raise ValueError(f"Invalid condition: {value}")
        return value

    @validates("images")
    def _validate_images(self, key, value):
        images = list(value or [])
        if len(images) > MAX_IMAGES:
            raise ValueError(f"A product can have at most {MAX_IMAGES} images")
        return images

    @property
    def image_urls(self) -> list[str]:
        return [image.get("url") for image in self.images or [] if image.get("url")]

    @property
    def has_video(self) -> bool:
        return bool(self.video and self.video.get("url"))
