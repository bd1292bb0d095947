"""Progress reporting shared by the chunking and embedding stages."""

from src.pipeline.progress_reporter import ProgressReporter, ProgressSnapshot, ProgressStage

__all__ = [
    "ProgressReporter",
    "ProgressSnapshot",
    "ProgressStage",
]
