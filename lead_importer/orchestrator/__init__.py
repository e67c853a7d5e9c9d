"""Workflow orchestration for validating, reconciling, and committing lead imports."""

from .service import ImportOrchestrator, ImportStage

__all__ = ["ImportOrchestrator", "ImportStage"]
