# timetable_engine/analysis/__init__.py

"""Conflict detection, quality scoring, statistics and pre-solve analysis."""

from .conflict_detector import ConflictDetector, detect_conflicts, sweep_overlaps
from .quality_scorer import QualityScorer
from .statistics import compute_statistics
from .conflict_resolver import ConflictResolver, ResolutionReport, SessionMove
from .pre_solve_analyzer import AnalysisReport, FeasibilityPrediction, PreSolveAnalyzer

__all__ = [
    "ConflictDetector",
    "detect_conflicts",
    "sweep_overlaps",
    "QualityScorer",
    "compute_statistics",
    "ConflictResolver",
    "ResolutionReport",
    "SessionMove",
    "AnalysisReport",
    "FeasibilityPrediction",
    "PreSolveAnalyzer",
]
