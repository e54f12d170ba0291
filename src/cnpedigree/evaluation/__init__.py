"""Truth-set evaluation of copy number calls."""

from cnpedigree.evaluation.checker import (
    CNInterval,
    CnvCall,
    CNVChecker,
    EvaluationSummary,
    calls_from_segments,
)

__all__ = ["CNInterval", "CnvCall", "CNVChecker", "EvaluationSummary", "calls_from_segments"]
