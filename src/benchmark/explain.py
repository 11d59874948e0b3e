"""
Explain-plan capture.

Fetches the planner output for a query once per run and derives a
best-effort index-usage label from it with substring heuristics.
"""

import re
from dataclasses import dataclass

import structlog
from bson import json_util

from src.query.context import ExecutionContext
from src.query.executor import QueryExecutor

logger = structlog.get_logger(__name__)

INDEX_NAME_PATTERN = re.compile(r'"indexName"\s*:\s*"([^"]+)"')

FULL_SCAN_LABEL = "COLLSCAN (no index)"
INDEX_SCAN_LABEL = "Index Scan"
UNKNOWN_LABEL = "Unknown"


@dataclass(frozen=True)
class PlanCapture:
    """Raw plan text plus the derived index label."""

    plan_text: str
    index_used: str


def extract_index_used(plan_text: str | None) -> str:
    """
    Label index usage from explain output.

    Returns the first index name mentioned, else "COLLSCAN (no index)" for
    full scans, "Index Scan" for unnamed index scans, or "Unknown".
    """
    if not plan_text:
        return "N/A"

    match = INDEX_NAME_PATTERN.search(plan_text)
    if match:
        return match.group(1)

    if "COLLSCAN" in plan_text:
        return FULL_SCAN_LABEL

    if "IXSCAN" in plan_text:
        return INDEX_SCAN_LABEL

    return UNKNOWN_LABEL


async def capture_plan(executor: QueryExecutor, context: ExecutionContext) -> PlanCapture:
    """Issue one explain request for the context's query."""
    plan = await executor.explain(context)
    plan_text = json_util.dumps(plan)
    index_used = extract_index_used(plan_text)
    logger.info("Captured explain plan", query=context.query.name, index_used=index_used)
    return PlanCapture(plan_text=plan_text, index_used=index_used)
