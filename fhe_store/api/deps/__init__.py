from .services import get_services

__all__ = ["get_services"]
