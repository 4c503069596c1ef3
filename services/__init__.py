"""
HTTP clients for the backend services (catalog, orders/cart, customer).
"""

from services.base import ServiceClient
from services.clients import (
    CustomerServiceClient,
    OrderServiceClient,
    ProductServiceClient,
    Services,
    create_services,
)

__all__ = [
    "ServiceClient",
    "ProductServiceClient",
    "OrderServiceClient",
    "CustomerServiceClient",
    "Services",
    "create_services",
]
