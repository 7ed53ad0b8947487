"""Scikit-learn style estimators that run a search inside ``fit``."""

from .base import AutoSearchEstimator
from .estimators import AutoFeatureSelector, AutoTuner

__all__ = ["AutoFeatureSelector", "AutoSearchEstimator", "AutoTuner"]
