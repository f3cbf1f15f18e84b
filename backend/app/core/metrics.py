############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# metrics.py: Prometheus counters for relay outcomes and billing
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Prometheus metrics for VideoRelay."""

from prometheus_client import Counter

RELAY_REQUESTS = Counter(
    "videorelay_relay_requests_total",
    "Video relay requests by outcome and error kind",
    ["outcome", "kind"],  # outcome: done, error
)
QUOTA_CONSUMED = Counter(
    "videorelay_quota_consumed_total",
    "Quota units debited from accounts",
    ["model"],
)
TASK_INSERT_RETRIES = Counter(
    "videorelay_task_insert_retries_total",
    "Failed task insert attempts",
)
ORPHANED_TASKS = Counter(
    "videorelay_orphaned_tasks_total",
    "Upstream jobs accepted but never recorded locally",
)
UNBILLED_TASKS = Counter(
    "videorelay_unbilled_tasks_total",
    "Recorded tasks whose quota debit failed",
)
