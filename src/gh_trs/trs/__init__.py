"""TRS module: registry documents, published-state reads and the merge engine."""

from gh_trs.trs.api import PriorState, TrsEndpoint
from gh_trs.trs.response import RunEndpoint, TrsResponse
from gh_trs.trs.types import ServiceInfo, Tool, ToolClass, ToolVersion

__all__ = [
    "PriorState",
    "TrsEndpoint",
    "RunEndpoint",
    "TrsResponse",
    "ServiceInfo",
    "Tool",
    "ToolClass",
    "ToolVersion",
]
