"""Alert analyzers: per-kind summaries and the composite risk score."""

from .risk import risk_level, risk_score
from .summarizer import disabled_bundle, disabled_summary, failed_summary, summarize

__all__ = [
    "disabled_bundle",
    "disabled_summary",
    "failed_summary",
    "risk_level",
    "risk_score",
    "summarize",
]
