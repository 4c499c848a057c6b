"""Result analysis."""

from .metrics import ResultsAnalyzer, cloudlets_to_frame, summarize_results

__all__ = [
    "ResultsAnalyzer",
    "cloudlets_to_frame",
    "summarize_results",
]
