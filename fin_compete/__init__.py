# fin_compete/__init__.py

from fin_compete.models import AnalysisResult, LoadingState, MetricRecord, SourceCitation
from fin_compete.query_engine import QueryEngine
from fin_compete.result_store import ResultStore

__all__ = [
    "AnalysisResult",
    "LoadingState",
    "MetricRecord",
    "QueryEngine",
    "ResultStore",
    "SourceCitation",
]
