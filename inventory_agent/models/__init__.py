from inventory_agent.models.product import Product
from inventory_agent.models.seller import Seller

__all__ = [
    "Seller",
    "Product",
]
