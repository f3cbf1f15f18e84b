############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# registry.py: Adaptor lookup by API type
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Registry resolving an API type to a fresh adaptor instance."""

from typing import Callable, Dict, List, Optional

from backend.app.core.adaptors.base import VideoAdaptor
from backend.app.logging_config import get_logger

logger = get_logger(__name__)

AdaptorFactory = Callable[[], VideoAdaptor]

_factories: Dict[str, AdaptorFactory] = {}


def register_adaptor(api_type: str, factory: AdaptorFactory) -> None:
    """Register (or replace) the factory for an API type."""
    if api_type in _factories:
        logger.info("adaptor_replaced", api_type=api_type)
    _factories[api_type] = factory


def unregister_adaptor(api_type: str) -> None:
    """Remove an API type; unknown types are ignored."""
    _factories.pop(api_type, None)


def get_adaptor(api_type: str) -> Optional[VideoAdaptor]:
    """Return a new adaptor for ``api_type``, or None if unregistered."""
    factory = _factories.get(api_type)
    if factory is None:
        return None
    return factory()


def registered_api_types() -> List[str]:
    return sorted(_factories)
