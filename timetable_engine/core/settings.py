# timetable_engine/core/settings.py
"""Pydantic v2 models for per-run generation settings."""

from __future__ import annotations

import re
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..config import AlgorithmType, OptimizationGoal
from .constraint_types import ConstraintModel
from .problem_model import (
    DEFAULT_WORKING_DAYS,
    Day,
    is_valid_time,
    parse_time_range,
    to_minutes,
)

MODEL_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    extra="forbid",
    validate_assignment=True,
)


class GeneticParameters(BaseModel):
    model_config = MODEL_CONFIG

    population_size: int = Field(50, ge=2)
    max_generations: int = Field(200, ge=0)
    crossover_rate: float = Field(0.8, ge=0.0, le=1.0)
    mutation_rate: float = Field(0.15, ge=0.0, le=1.0)
    elite_size: int = Field(5, ge=0)
    tournament_size: int = Field(3, ge=1)
    stagnation_window: int = Field(30, ge=1)
    crossover_type: Literal["uniform", "one_point"] = "uniform"
    target_fitness: Optional[float] = Field(None, gt=0.0)

    @model_validator(mode="after")
    def _check_population(self) -> "GeneticParameters":
        if self.elite_size >= self.population_size:
            raise ValueError("eliteSize must be smaller than populationSize")
        if self.tournament_size > self.population_size:
            raise ValueError("tournamentSize cannot exceed populationSize")
        return self


class CSPParameters(BaseModel):
    model_config = MODEL_CONFIG

    max_backtrack_steps: int = Field(100_000, ge=0)
    use_mrv: bool = True
    use_lcv: bool = True
    forward_checking: bool = True
    use_ac3: bool = False
    time_limit_seconds: Optional[float] = Field(None, gt=0)


class AnnealingParameters(BaseModel):
    model_config = MODEL_CONFIG

    initial_temperature: float = Field(1000.0, gt=0)
    cooling_rate: float = Field(0.995, gt=0.0, lt=1.0)
    min_temperature: float = Field(0.1, gt=0)
    max_iterations: int = Field(10_000, ge=0)
    iterations_per_temperature: int = Field(1, ge=1)
    # Fitness lives in [0, 1]; deltas are scaled into temperature units
    energy_scale: float = Field(1000.0, gt=0)

    @model_validator(mode="after")
    def _check_temperatures(self) -> "AnnealingParameters":
        if self.min_temperature >= self.initial_temperature:
            raise ValueError("minTemperature must be below initialTemperature")
        return self


class HybridParameters(BaseModel):
    model_config = MODEL_CONFIG

    csp_max_backtrack_steps: int = Field(3000, ge=0)
    csp_time_limit: Optional[float] = Field(None, gt=0)
    hybrid_ratio: float = Field(0.3, gt=0.0, lt=1.0)
    ga_generations: Optional[int] = Field(None, ge=0)
    max_population: int = Field(50, ge=2)
    max_ga_generations: int = Field(100, ge=0)


class FitnessWeights(BaseModel):
    model_config = MODEL_CONFIG

    conflicts: float = Field(0.6, ge=0.0)
    quality: float = Field(0.2, ge=0.0)
    goals: float = Field(0.2, ge=0.0)


class GenerationSettings(BaseModel):
    """Algorithm selector, per-algorithm parameters and calendar policy."""

    model_config = MODEL_CONFIG

    algorithm: AlgorithmType = AlgorithmType.HYBRID

    working_days: List[Day] = Field(
        default_factory=lambda: list(DEFAULT_WORKING_DAYS), min_length=1
    )
    start_time: str = "09:00"
    end_time: str = "17:00"
    slot_duration: int = Field(60, gt=0, le=24 * 60)
    break_slots: List[str] = Field(default_factory=lambda: ["12:00-13:00"])
    enforce_breaks: bool = True
    balance_workload: bool = True

    optimization_goals: List[OptimizationGoal] = Field(
        default_factory=lambda: [OptimizationGoal.MINIMIZE_CONFLICTS]
    )
    goal_weights: Dict[OptimizationGoal, float] = Field(default_factory=dict)
    fitness_weights: FitnessWeights = Field(default_factory=FitnessWeights)
    disabled_constraints: List[str] = Field(default_factory=list)

    genetic: GeneticParameters = Field(default_factory=GeneticParameters)
    csp: CSPParameters = Field(default_factory=CSPParameters)
    annealing: AnnealingParameters = Field(default_factory=AnnealingParameters)
    hybrid: HybridParameters = Field(default_factory=HybridParameters)

    time_limit_seconds: Optional[float] = Field(None, gt=0)
    random_seed: Optional[int] = None
    max_workers: int = Field(1, ge=1)
    auto_tune: bool = False
    resolve_conflicts: bool = True

    @field_validator("working_days", mode="before")
    @classmethod
    def _parse_days(cls, value):
        if isinstance(value, (list, tuple)):
            return [Day.from_value(v) for v in value]
        return value

    @field_validator("working_days")
    @classmethod
    def _unique_days(cls, value: List[Day]) -> List[Day]:
        return sorted(set(value), key=lambda d: d.index)

    @field_validator("algorithm", mode="before")
    @classmethod
    def _parse_algorithm(cls, value):
        if isinstance(value, str):
            normalized = re.sub(r"[^a-z]", "", value.lower())
            for algorithm in AlgorithmType:
                if algorithm.value.replace("_", "") == normalized:
                    return algorithm
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        if not is_valid_time(value):
            raise ValueError(f"'{value}' is not a zero-padded 24h HH:MM time")
        return value

    @field_validator("break_slots")
    @classmethod
    def _check_breaks(cls, value: List[str]) -> List[str]:
        for item in value:
            parse_time_range(item)
        return value

    @field_validator("goal_weights")
    @classmethod
    def _check_goal_weights(cls, value: Dict[OptimizationGoal, float]):
        if any(weight < 0 for weight in value.values()):
            raise ValueError("goal weights must be non-negative")
        return value

    @field_validator("disabled_constraints")
    @classmethod
    def _check_disabled(cls, value: List[str]) -> List[str]:
        ConstraintModel.with_disabled(value)
        return value

    @model_validator(mode="after")
    def _check_window(self) -> "GenerationSettings":
        start, end = self.day_window
        if start >= end:
            raise ValueError("startTime must be before endTime")
        if self.slot_duration > end - start:
            raise ValueError("slotDuration does not fit in the working day")
        return self

    # --- Derived values ---

    @property
    def day_window(self) -> Tuple[int, int]:
        return to_minutes(self.start_time), to_minutes(self.end_time)

    @property
    def break_windows(self) -> List[Tuple[int, int]]:
        disabled = "break-periods" in self.disabled_constraints
        if not self.enforce_breaks or disabled:
            return []
        return [parse_time_range(b) for b in self.break_slots]

    def constraint_model(self) -> ConstraintModel:
        return ConstraintModel.with_disabled(self.disabled_constraints)

    def weekly_minutes(self) -> int:
        """Schedulable minutes per room per week (working window minus breaks)."""
        start, end = self.day_window
        per_day = end - start
        for b_start, b_end in self.break_windows:
            per_day -= max(0, min(end, b_end) - max(start, b_start))
        return max(0, per_day) * len(self.working_days)
