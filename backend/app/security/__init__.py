############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# __init__.py: Security package initialization and exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Security utilities for VideoRelay."""

from backend.app.security.api_keys import (
    generate_api_key,
    hash_api_key,
    key_prefix_for,
    verify_api_key,
)

__all__ = [
    "generate_api_key",
    "hash_api_key",
    "key_prefix_for",
    "verify_api_key",
]
