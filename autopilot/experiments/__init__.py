"""
Experiment Coordinator - controlled comparisons between decision strategies.
"""
from .service import ExperimentCoordinator
from .models import (
    VARIANT_ROLES,
    Experiment,
    ExperimentAnalysis,
    ExperimentSpec,
    Variant,
    VariantExecution,
    VariantRole,
    VariantStats,
)
from .stats import two_proportion_z_test, confidence_from_p_value

__all__ = [
    "ExperimentCoordinator",
    "VARIANT_ROLES",
    "Experiment",
    "ExperimentAnalysis",
    "ExperimentSpec",
    "Variant",
    "VariantExecution",
    "VariantRole",
    "VariantStats",
    "two_proportion_z_test",
    "confidence_from_p_value",
]
