# storefront/models/__init__.py
from .user import User, Permission
from .category import Category
from .product import Product, ProductImage
from .variation import VariationSize, VariationType, VariationBeans, ProductVariation
from .order import Order
from .order_item import OrderItem
from .payment import Payment
from .contact import Contact
from .newsletter import NewsletterSubscriber
from .slider import Slider
from .offer_banner import OfferBanner
from .page_content import PageContent
from .promotion import Promotion
from .shipping_rule import ShippingRule

__all__ = [
    "User",
    "Permission",
    "Category",
    "Product",
    "ProductImage",
    "VariationSize",
    "VariationType",
    "VariationBeans",
    "ProductVariation",
    "Order",
    "OrderItem",
    "Payment",
    "Contact",
    "NewsletterSubscriber",
    "Slider",
    "OfferBanner",
    "PageContent",
    "Promotion",
    "ShippingRule",
]
