"""
Service dependencies
"""
from fastapi import Request

from ...core.exceptions import ContextNotReady
from ...services import StoreServices


def get_services(request: Request) -> StoreServices:
    """
    Return the services built at startup

    Raises ContextNotReady until the crypto context has been acquired.
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise ContextNotReady("Crypto context is not initialized yet")
    return services
