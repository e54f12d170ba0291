"""
Calling run orchestration.

A run goes through four stages:
1. Group segments into regions and select a segmentation per region
2. Genotype and score every selected segment row
3. Merge adjacent rows
4. Tag excessively short segments

Stages 1 and 2 fan out over a process pool. Each unit of work returns its
own annotated copy; results are collected in input order.
"""

import logging
import os
from concurrent.futures import ProcessPoolExecutor
from functools import partial
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, TypeVar

from cnpedigree.calling.genotyper import VariantCaller, create_variant_caller
from cnpedigree.calling.likelihoods import CopyNumberLikelihoodCalculator
from cnpedigree.calling.postprocess import filter_excessively_short_segments, merge_segments
from cnpedigree.calling.selection import SegmentSetSelector, build_segment_sets, flatten_selected
from cnpedigree.core.config import CallerParameters
from cnpedigree.core.models import CopyNumberModel
from cnpedigree.core.pedigree import PedigreeInfo
from cnpedigree.core.samples import SampleMetrics
from cnpedigree.core.segments import Segment, SegmentRow, SegmentSet

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

CHUNKS_PER_WORKER = 4


def get_chunksize(n_items: int, max_workers: int) -> int:
    """Items per task so that each worker receives about CHUNKS_PER_WORKER tasks."""
    return max(1, -(-n_items // (max_workers * CHUNKS_PER_WORKER)))


def _select_segment_set(
    segment_set: SegmentSet,
    selector: SegmentSetSelector,
    models: Mapping[str, CopyNumberModel],
) -> SegmentSet:
    return selector.select(segment_set, models)


def _call_segment_row(
    row: SegmentRow,
    caller: VariantCaller,
    samples: Mapping[str, SampleMetrics],
    models: Mapping[str, CopyNumberModel],
) -> SegmentRow:
    return caller.call_variant(row, samples, models)


class CallingPipeline:
    """
    Pedigree-aware copy number calling of a cohort.

    Attributes:
        parameters: Caller parameters
        calculator: Likelihood calculator shared by all stages
        max_workers: Worker processes, min(cpu count, max_core_number)

    Example:
        >>> pipeline = CallingPipeline(CallerParameters(max_core_number=4))
        >>> calls = pipeline.run(sample_segments, samples, models, pedigree)
        >>> calls["child"][0].copy_number
    """

    def __init__(
        self,
        parameters: Optional[CallerParameters] = None,
        calculator: Optional[CopyNumberLikelihoodCalculator] = None,
    ):
        self.parameters = parameters or CallerParameters()
        self.calculator = calculator or CopyNumberLikelihoodCalculator.from_parameters(
            self.parameters
        )
        self.max_workers = min(os.cpu_count() or 1, self.parameters.max_core_number)

    def _map(self, function: Callable[[T], R], items: Iterable[T]) -> List[R]:
        items = list(items)
        if self.max_workers <= 1 or len(items) <= 1:
            return [function(item) for item in items]
        with ProcessPoolExecutor(max_workers=self.max_workers) as executor:
            return list(
                executor.map(function, items, chunksize=get_chunksize(len(items), self.max_workers))
            )

    def select_segments(
        self,
        sample_segments: Mapping[str, Sequence[Segment]],
        models: Mapping[str, CopyNumberModel],
        common_segments: Optional[Mapping[str, Sequence[Segment]]] = None,
    ) -> List[SegmentRow]:
        """Segment rows of the most likely segmentation of every region."""
        segment_sets = build_segment_sets(sample_segments, common_segments)
        selector = SegmentSetSelector(self.calculator)
        selected = self._map(
            partial(_select_segment_set, selector=selector, models=models), segment_sets
        )
        return flatten_selected(selected)

    def call_segments(
        self,
        rows: Sequence[SegmentRow],
        samples: Mapping[str, SampleMetrics],
        models: Mapping[str, CopyNumberModel],
        pedigree: Optional[PedigreeInfo] = None,
    ) -> List[SegmentRow]:
        """Genotype and score every row; raises SearchExhaustedError on failure."""
        caller = create_variant_caller(pedigree, self.parameters, self.calculator)
        logger.info(
            "Calling %d segment rows with %s on %d worker(s)",
            len(rows),
            type(caller).__name__,
            self.max_workers,
        )
        return self._map(
            partial(_call_segment_row, caller=caller, samples=samples, models=models), rows
        )

    def run(
        self,
        sample_segments: Mapping[str, Sequence[Segment]],
        samples: Mapping[str, SampleMetrics],
        models: Mapping[str, CopyNumberModel],
        pedigree: Optional[PedigreeInfo] = None,
        common_segments: Optional[Mapping[str, Sequence[Segment]]] = None,
    ) -> Dict[str, List[Segment]]:
        """
        Run the full calling pipeline.

        Args:
            sample_segments: Sample id -> ordered segments (index-aligned
                across samples)
            samples: Sample id -> sample metrics
            models: Sample id -> copy number model
            pedigree: Declared pedigree; without a full pedigree every sample
                is called independently
            common_segments: Sample id -> segments of common CNV intervals

        Returns:
            Sample id -> annotated segments

        Raises:
            ValueError: If inputs do not cover the same samples
            SearchExhaustedError: If the pedigree search fails on any row
        """
        sample_ids = list(sample_segments)
        missing = [sid for sid in sample_ids if sid not in samples or sid not in models]
        if missing:
            raise ValueError(f"No sample metrics or model for samples: {', '.join(missing)}")

        rows = self.select_segments(sample_segments, models, common_segments)
        rows = self.call_segments(rows, samples, models, pedigree)
        rows = merge_segments(
            rows,
            minimum_call_size=self.parameters.minimum_call_size,
            max_merge_distance=self.parameters.max_merge_distance,
            quality_filter_threshold=self.parameters.quality_filter_threshold,
        )
        n_short = filter_excessively_short_segments(rows, self.parameters.segment_size_cutoff)
        logger.info(
            "Called %d segments per sample (%d shorter than %d bp)",
            len(rows),
            n_short,
            self.parameters.segment_size_cutoff,
        )
        return {sid: [row[sid] for row in rows] for sid in sample_ids}
