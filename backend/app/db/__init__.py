############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# __init__.py: Database package initialization and exports
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Database package for VideoRelay."""

from backend.app.db.base import Base
from backend.app.db.session import get_async_db, get_async_db_context, get_engine

__all__ = ["Base", "get_async_db", "get_async_db_context", "get_engine"]
