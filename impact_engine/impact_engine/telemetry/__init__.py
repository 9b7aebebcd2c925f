"""Profiling hooks for the analysis pipeline."""

from impact_engine.telemetry.profiling import profile_operation

__all__ = ["profile_operation"]
