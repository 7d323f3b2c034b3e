import secrets
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from inventory_agent.database import SessionLocal
from inventory_agent.logging_config import get_logger
from inventory_agent.models import Product, Seller

logger = get_logger("catalog_store")

PLACEHOLDER_NAME = "Pending"
SELLER_PRODUCT_ACTIONS = ("delete", "orphan")


class CatalogError(Exception):
    """A catalog write was rejected (validation or integrity)."""


def _as_uuid(value) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def unusable_password_hash() -> str:
    # Chat-created sellers never log in with a password until an admin sets one.
    return "!" + secrets.token_hex(16)


class CatalogStore:
    """Seller and product persistence, always scoped to a seller for products."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    # === Sellers ===

    def find_seller_by_phone(self, phone: str) -> Optional[Seller]:
        with self.session_factory() as db:
            return db.query(Seller).filter(Seller.phone == phone).first()

    def get_seller(self, seller_id) -> Optional[Seller]:
        seller_uuid = _as_uuid(seller_id)
        if seller_uuid is None:
            return None
        with self.session_factory() as db:
            return db.get(Seller, seller_uuid)

    def create_seller(
        self,
        phone: str,
        name: str = PLACEHOLDER_NAME,
        store_name: str = PLACEHOLDER_NAME,
        onboarding_step: str = "new",
        status: str = "pending",
    ) -> Seller:
        with self.session_factory() as db:
            try:
                seller = Seller(
                    phone=phone,
                    name=name,
                    store_name=store_name,
                    password_hash=unusable_password_hash(),
                    onboarding_step=onboarding_step,
                    status=status,
                )
                db.add(seller)
                db.commit()
            except (IntegrityError, ValueError) as e:
                db.rollback()
                raise CatalogError(f"Could not create seller for {phone}: {e}") from e
            logger.info(
                "Seller created",
                extra={"context": {"seller_id": str(seller.id), "phone": phone, "onboarding_step": onboarding_step}},
            )
            return seller

    def save_seller(self, seller: Seller) -> Seller:
        with self.session_factory() as db:
            try:
                merged = db.merge(seller)
                db.commit()
            except (IntegrityError, ValueError) as e:
                db.rollback()
                raise CatalogError(f"Could not save seller {seller.id}: {e}") from e
            return merged

    def set_seller_status(self, seller_id, status: str) -> Optional[Seller]:
        seller_uuid = _as_uuid(seller_id)
        if seller_uuid is None:
            return None
        with self.session_factory() as db:
            seller = db.get(Seller, seller_uuid)
            if seller is None:
                return None
            try:
                seller.status = status
                db.commit()
            except ValueError as e:
                db.rollback()
                raise CatalogError(str(e)) from e
            logger.info(
                "Seller status changed",
                extra={"context": {"seller_id": str(seller.id), "status": status}},
            )
            return seller

    def delete_seller(self, seller_id, products: str = "orphan") -> Optional[tuple[Seller, list[Product]]]:
        """Delete a seller. Products are deleted or orphaned (seller_id=NULL).

        Returns the seller and the affected products so the caller can release
        media of deleted ones.
        """
        if products not in SELLER_PRODUCT_ACTIONS:
            raise CatalogError(f"Invalid products action: {products}")
        seller_uuid = _as_uuid(seller_id)
        if seller_uuid is None:
            return None
        with self.session_factory() as db:
            seller = db.get(Seller, seller_uuid)
            if seller is None:
                return None
            affected = db.query(Product).filter(Product.seller_id == seller.id).all()
            try:
                for product in affected:
                    if products == "delete":
                        db.delete(product)
                    else:
                        product.seller_id = None
                db.delete(seller)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                raise CatalogError(f"Could not delete seller {seller_id}: {e}") from e
            logger.info(
                "Seller deleted",
                extra={"context": {"seller_id": str(seller_uuid), "products": products, "count": len(affected)}},
            )
            return seller, affected

    # === Products ===

    def create_product(self, seller: Seller, **fields) -> Product:
        with self.session_factory() as db:
            try:
                product = Product(seller_id=seller.id, **fields)
                db.add(product)
                db.commit()
            except (IntegrityError, ValueError) as e:
                db.rollback()
                raise CatalogError(f"Could not create product: {e}") from e
            logger.info(
                "Product created",
                extra={"context": {"product_id": str(product.id), "seller_id": str(seller.id)}},
            )
            return product

    def find_products_by_seller(self, seller: Seller, category: Optional[str] = None, limit: int = 10) -> list[Product]:
        with self.session_factory() as db:
            query = db.query(Product).filter(Product.seller_id == seller.id)
            if category:
                query = query.filter(Product.category == category)
            return query.order_by(Product.created_at.desc()).limit(limit).all()

    def count_products(self, seller: Seller) -> int:
        with self.session_factory() as db:
            return db.query(Product).filter(Product.seller_id == seller.id).count()

    def find_product_by_fuzzy_name(self, seller: Seller, pattern: str) -> Optional[Product]:
        pattern = (pattern or "").strip()
        if not pattern:
            return None
        with self.session_factory() as db:
            return (
                db.query(Product)
                .filter(Product.seller_id == seller.id, Product.name.ilike(f"%{pattern}%"))
                .order_by(Product.created_at.desc())
                .first()
            )

    def get_product(self, seller: Seller, product_id) -> Optional[Product]:
        product_uuid = _as_uuid(product_id)
        if product_uuid is None:
            return None
        with self.session_factory() as db:
            return db.query(Product).filter(Product.id == product_uuid, Product.seller_id == seller.id).first()

    def update_product(self, product: Product, **changes) -> Product:
        """Apply changes to the stored row. JSON fields must be passed as new values."""
        with self.session_factory() as db:
            stored = db.get(Product, product.id)
            if stored is None:
                raise CatalogError(f"Product {product.id} no longer exists")
            try:
                for key, value in changes.items():
                    setattr(stored, key, value)
                db.commit()
            except (IntegrityError, ValueError) as e:
                db.rollback()
                raise CatalogError(f"Could not update product {product.id}: {e}") from e
            return stored

    def delete_product(self, product: Product) -> bool:
        with self.session_factory() as db:
            stored = db.get(Product, product.id)
            if stored is None:
                return False
            db.delete(stored)
            db.commit()
            logger.info("Product deleted", extra={"context": {"product_id": str(product.id)}})
            return True
