"""Likelihoods, genotyping, scoring and orchestration of a calling run."""

from cnpedigree.calling.likelihoods import CopyNumberLikelihoodCalculator
from cnpedigree.calling.genotyper import (
    VariantCaller,
    PedigreeVariantCaller,
    IndependentVariantCaller,
    PedigreeCall,
    SearchExhausted,
    SearchExhaustedError,
    create_variant_caller,
    get_pedigree_copy_numbers,
)
from cnpedigree.calling.selection import SegmentSetSelector, build_segment_sets
from cnpedigree.calling.postprocess import merge_segments, filter_excessively_short_segments
from cnpedigree.calling.pipeline import CallingPipeline

__all__ = [
    "CopyNumberLikelihoodCalculator",
    "VariantCaller",
    "PedigreeVariantCaller",
    "IndependentVariantCaller",
    "PedigreeCall",
    "SearchExhausted",
    "SearchExhaustedError",
    "create_variant_caller",
    "get_pedigree_copy_numbers",
    "SegmentSetSelector",
    "build_segment_sets",
    "merge_segments",
    "filter_excessively_short_segments",
    "CallingPipeline",
]
