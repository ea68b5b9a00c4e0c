"""
Panel Protect Orchestrator Module.

Provides the staged installation state machine and its step plan.
"""

__all__ = [
    "InstallationOrchestrator",
    "InstallationStep",
    "InstallPlan",
    "InstallResult",
    "InstallState",
    "RunContext",
]

from panel_protect.orchestrator.core import (
    InstallationOrchestrator,
    InstallationStep,
    InstallPlan,
    InstallResult,
    InstallState,
    RunContext,
)
