"""Dataframe verbs over masked expressions.

Module Organization:
    backend_base.py - evaluation context and abstract backend
    backend_pandas.py - vectorised pandas backend
    backend_python.py - row-wise fallback backend
    normalizers.py - aggregation and ordering specs
    pipeline.py - MaskedFrame and backend fallback
"""

from .backend_base import FrameEvaluationContext
from .normalizers import AGGREGATION_FUNCTIONS
from .pipeline import MaskedFrame

__all__ = ["MaskedFrame", "FrameEvaluationContext", "AGGREGATION_FUNCTIONS"]
