"""Session layer - Accumulate a performance and orchestrate the analyzers."""

from .accumulator import AnalysisAccumulator, RollingAccumulator
from .pipeline import AnalysisConfig, AnalysisPipeline, ChordUpdate, PipelineUpdate, SessionReport

__all__ = [
    "AnalysisAccumulator",
    "RollingAccumulator",
    "AnalysisConfig",
    "AnalysisPipeline",
    "ChordUpdate",
    "PipelineUpdate",
    "SessionReport",
]
