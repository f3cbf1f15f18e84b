############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# __init__.py: Upstream adaptor package exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Upstream adaptors for VideoRelay.

Importing the package registers the built-in adaptors.
"""

from backend.app.core.adaptors.base import (
    VideoAdaptor,
    is_event_stream,
    relay_error_handler,
)
from backend.app.core.adaptors.generic import GenericTaskAdaptor
from backend.app.core.adaptors.registry import (
    get_adaptor,
    register_adaptor,
    registered_api_types,
    unregister_adaptor,
)

register_adaptor(GenericTaskAdaptor.api_type, GenericTaskAdaptor)

__all__ = [
    "VideoAdaptor",
    "GenericTaskAdaptor",
    "get_adaptor",
    "register_adaptor",
    "registered_api_types",
    "unregister_adaptor",
    "is_event_stream",
    "relay_error_handler",
]
