"""
cnpedigree: pedigree-aware copy number genotyping

Joint copy number calls, quality scores and de novo quality scores for
families and unrelated samples.
"""

__version__ = "0.1.0"

from cnpedigree.core.config import CallerParameters
from cnpedigree.core.genotypes import Genotype, PhasedGenotype
from cnpedigree.core.segments import Balleles, Segment, SegmentSet, SegmentsSet
from cnpedigree.core.ploidy import PloidyInfo, PloidyInterval, PloidyBoundaryError
from cnpedigree.core.samples import SampleMetrics, SampleType
from cnpedigree.core.models import (
    CopyNumberModel,
    HaplotypeCopyNumberModel,
    create_copy_number_model,
)
from cnpedigree.core.pedigree import PedigreeInfo
from cnpedigree.calling.genotyper import SearchExhaustedError, create_variant_caller
from cnpedigree.calling.pipeline import CallingPipeline

__all__ = [
    "CallerParameters",
    "Genotype",
    "PhasedGenotype",
    "Balleles",
    "Segment",
    "SegmentSet",
    "SegmentsSet",
    "PloidyInfo",
    "PloidyInterval",
    "PloidyBoundaryError",
    "SampleMetrics",
    "SampleType",
    "CopyNumberModel",
    "HaplotypeCopyNumberModel",
    "create_copy_number_model",
    "PedigreeInfo",
    "SearchExhaustedError",
    "create_variant_caller",
    "CallingPipeline",
    "__version__",
]
