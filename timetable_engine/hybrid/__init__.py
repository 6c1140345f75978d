# timetable_engine/hybrid/__init__.py

"""
Hybrid module combining constraint search with genetic optimization.

Components:
- HybridSolver: CSP feasibility phase, greedy fallback, GA refinement
"""

from .coordinator import HybridSolver, OptimizationPhase

__all__ = ["HybridSolver", "OptimizationPhase"]
