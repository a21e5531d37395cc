"""
Concrete compressive strength: exploratory analysis and regression report.

Loads the concrete mix-design data (Yeh, 1998), cleans and transforms it,
compares OLS, stepwise, polynomial, random forest and support vector
regression, checks the linear-model assumptions and explains which
composition maximises strength.
"""

from .data import (
    load_dataset, clean_dataset, engineer_features, simulate_concrete,
    apply_transform,
)
from .models import OLSRegressor, StepwiseRegressor, build_models
from .metrics import regression_metrics, evaluate_models
from .diagnostics import check_assumptions
from .report import StrengthReport, run_report

__version__ = "0.1.0"

__all__ = [
    "StrengthReport", "run_report",
    "OLSRegressor", "StepwiseRegressor", "build_models",
    "regression_metrics", "evaluate_models", "check_assumptions",
    "load_dataset", "clean_dataset", "engineer_features",
    "simulate_concrete", "apply_transform",
]
