"""Static pattern checks: detectors, source views, and the checker that drives them."""

from ruleguard.checks.checker import PatternChecker, check
from ruleguard.checks.detectors import DETECTORS, Finding
from ruleguard.checks.source import SourceView, parse_unified_diff, split_unified_diff

__all__ = [
    "DETECTORS",
    "Finding",
    "PatternChecker",
    "SourceView",
    "check",
    "parse_unified_diff",
    "split_unified_diff",
]
