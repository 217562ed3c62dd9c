"""Replanning decisions and per-tick navigation orchestration."""
from .dispatcher import (
    NavStatus,
    NavigationError,
    PlanRequest,
    PlanResult,
    ReplanReason,
    ReplanningDispatcher,
    UnitNavState,
    UnknownUnitError,
)
from .system import NavigationSystem, TickReport, plan_route

__all__ = [
    "NavStatus",
    "NavigationError",
    "NavigationSystem",
    "PlanRequest",
    "PlanResult",
    "ReplanReason",
    "ReplanningDispatcher",
    "TickReport",
    "UnitNavState",
    "UnknownUnitError",
    "plan_route",
]
