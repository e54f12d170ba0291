"""Core value types, observation models and pedigree structure."""

from cnpedigree.core.config import CallerParameters
from cnpedigree.core.genotypes import (
    Genotype,
    PhasedGenotype,
    LikelihoodTable,
    SampleLikelihoods,
    generate_phased_genotypes,
)
from cnpedigree.core.segments import Balleles, Segment, SegmentRow, SegmentSet, SegmentsSet
from cnpedigree.core.ploidy import PloidyInfo, PloidyInterval, PloidyBoundaryError
from cnpedigree.core.samples import SampleMetrics, SampleType
from cnpedigree.core.models import (
    CopyNumberModel,
    HaplotypeCopyNumberModel,
    create_copy_number_model,
)
from cnpedigree.core.pedigree import PedigreeInfo, get_transition_matrix
from cnpedigree.core.joint import JointLikelihoods

__all__ = [
    "CallerParameters",
    "Genotype",
    "PhasedGenotype",
    "LikelihoodTable",
    "SampleLikelihoods",
    "generate_phased_genotypes",
    "Balleles",
    "Segment",
    "SegmentRow",
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
    "get_transition_matrix",
    "JointLikelihoods",
]
