"""Driver matching and delivery lifecycle core for Vango deliveries."""

from vango_dispatch.service import DeliveryService, build_service

__version__ = "0.1.0"

__all__ = ["DeliveryService", "build_service", "__version__"]
