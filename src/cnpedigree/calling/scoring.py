"""
Call quality and de novo quality scores.

QScore measures confidence in a sample's total copy number call from its own
likelihood table. DQScore measures confidence that an offspring's non-reference
call arose de novo, from the joint likelihood masses recorded during the
pedigree search.
"""

import math
from typing import Dict, List, Mapping, Optional

import numpy as np

from cnpedigree.core.genotypes import Genotype, LikelihoodTable, SampleLikelihoods
from cnpedigree.core.joint import JointLikelihoods
from cnpedigree.core.pedigree import PedigreeInfo
from cnpedigree.core.samples import SampleMetrics
from cnpedigree.core.segments import SegmentRow, get_quality_filter


Q60 = 1e-6
DE_NOVO_SCORE_CALIBRATION = 2.0


def _cap_score(score: float, max_qscore: float) -> float:
    if math.isinf(score) or score > max_qscore:
        return max_qscore
    return score


def get_single_sample_quality_score(
    log_likelihoods: LikelihoodTable,
    selected_genotype: Genotype,
    max_qscore: float,
) -> float:
    """
    Phred-scaled probability that the called total copy number is wrong.

        Q = -10 · log10((Z - Z_called) / Z)

    where Z is the total likelihood mass and Z_called the mass of all
    genotypes sharing the called total copy number. Masses are computed
    after subtracting the maximal log-likelihood.

    Args:
        log_likelihoods: Log-likelihood table of the sample
        selected_genotype: Called genotype
        max_qscore: Cap (also used in place of +inf)

    Returns:
        QScore in [0, max_qscore]
    """
    values = np.array(list(log_likelihoods.values()), dtype=float)
    finite = values[np.isfinite(values)]
    if len(finite) == 0:
        return 0.0
    masses = np.exp(np.where(np.isfinite(values), values, -np.inf) - finite.max())
    called = np.array(
        [gt.total_copy_number == selected_genotype.total_copy_number for gt in log_likelihoods]
    )
    normalization = masses.sum()
    remainder = normalization - masses[called].sum()
    if remainder <= 0:
        return max_qscore
    qscore = -10.0 * math.log10(remainder / normalization)
    return _cap_score(qscore, max_qscore)


def get_cn_state(segment_copy_number: int, maximum_copy_number: int) -> int:
    return min(segment_copy_number, maximum_copy_number - 1)


def is_reference_variant(
    segments: SegmentRow,
    samples: Mapping[str, SampleMetrics],
    sample_id: str,
    maximum_copy_number: int,
) -> bool:
    """True if the call equals the sample's expected ploidy."""
    segment = segments[sample_id]
    return get_cn_state(segment.copy_number, maximum_copy_number) == samples[sample_id].get_ploidy(segment)


def is_pass_variant(segments: SegmentRow, sample_id: str, quality_filter_threshold: float) -> bool:
    return segments[sample_id].qscore > quality_filter_threshold


def is_shared_cnv_by_ploidy(
    segments: SegmentRow,
    samples: Mapping[str, SampleMetrics],
    parent_ids: List[str],
    proband_id: str,
    maximum_copy_number: int,
) -> bool:
    """
    Ploidy-relative common-CNV test on total copy numbers.

    A proband gain with both parents at or below their ploidy, or a proband
    loss with both parents at or above their ploidy, may be de novo; every
    other configuration is treated as shared.
    """
    parent1_id, parent2_id = parent_ids[0], parent_ids[-1]
    parent1_cn = get_cn_state(segments[parent1_id].copy_number, maximum_copy_number)
    parent2_cn = get_cn_state(segments[parent2_id].copy_number, maximum_copy_number)
    proband_cn = get_cn_state(segments[proband_id].copy_number, maximum_copy_number)
    parent1_ploidy = samples[parent1_id].get_ploidy(segments[parent1_id])
    parent2_ploidy = samples[parent2_id].get_ploidy(segments[parent2_id])
    proband_ploidy = samples[proband_id].get_ploidy(segments[proband_id])
    possible_gain = (
        parent1_cn <= parent1_ploidy and parent2_cn <= parent2_ploidy and proband_cn > proband_ploidy
    )
    possible_loss = (
        parent1_cn >= parent1_ploidy and parent2_cn >= parent2_ploidy and proband_cn < proband_ploidy
    )
    return not (possible_gain or possible_loss)


def is_shared_cnv(
    copy_numbers: Mapping[str, Genotype],
    segments: SegmentRow,
    samples: Mapping[str, SampleMetrics],
    parent_ids: List[str],
    proband_id: str,
    maximum_copy_number: int,
) -> bool:
    """
    Decide whether a proband variant is shared with the parents.

    Phased calls: shared if the proband carries one allele of each parent,
    in either pairing. Unphased calls fall back to the ploidy-relative test.
    """
    proband = copy_numbers[proband_id]
    parent1 = copy_numbers[parent_ids[0]]
    parent2 = copy_numbers[parent_ids[-1]]
    if (
        proband.phased_genotype is None
        or parent1.phased_genotype is None
        or parent2.phased_genotype is None
    ):
        return is_shared_cnv_by_ploidy(
            segments, samples, parent_ids, proband_id, maximum_copy_number
        )
    return proband.phased_genotype.inherits_from(parent1.phased_genotype, parent2.phased_genotype)


def get_conditional_de_novo_quality_score(
    segments: SegmentRow,
    joint_likelihoods: JointLikelihoods,
    samples: Mapping[str, SampleMetrics],
    parent_ids: List[str],
    proband_id: str,
) -> float:
    """
    Phred-scaled probability that a proband variant is not de novo.

    For a gain (loss), with G and L the marginal masses of proband gain and
    proband loss over reference parents and Z the total mass:

        p = 1 - G / (Z - L)     (gain)
        p = 1 - L / (Z - G)     (loss)
        DQ = -10 · log10(max(p, 1e-6))
    """
    parent1_id, parent2_id = parent_ids[0], parent_ids[-1]
    parent1 = (parent1_id, Genotype.create(samples[parent1_id].get_ploidy(segments[parent1_id])))
    parent2 = (parent2_id, Genotype.create(samples[parent2_id].get_ploidy(segments[parent2_id])))
    proband_ploidy = samples[proband_id].get_ploidy(segments[proband_id])
    proband = (proband_id, Genotype.create(proband_ploidy))

    gain = joint_likelihoods.get_marginal_gain_de_novo_likelihood(proband, parent1, parent2)
    loss = joint_likelihoods.get_marginal_loss_de_novo_likelihood(proband, parent1, parent2)
    total = joint_likelihoods.total_marginal_likelihood
    if segments[proband_id].copy_number > proband_ploidy:
        numerator, denominator = gain, total - loss
    else:
        numerator, denominator = loss, total - gain
    if denominator <= 0:
        de_novo_probability = 1.0
    else:
        de_novo_probability = 1.0 - numerator / denominator
    return -10.0 * math.log10(max(de_novo_probability, Q60))


def set_de_novo_quality_scores(
    segments: SegmentRow,
    samples: Mapping[str, SampleMetrics],
    pedigree: PedigreeInfo,
    joint_likelihoods: JointLikelihoods,
    copy_numbers: Mapping[str, Genotype],
    maximum_copy_number: int,
    quality_filter_threshold: float,
    max_qscore: float,
) -> None:
    """
    Assign DQScore to offspring with a candidate de novo call.

    A proband qualifies when its call is non-reference, not shared with the
    parents, every other offspring is reference, and the parents and proband
    all pass the quality threshold. Non-qualifying offspring keep ``None``.
    """
    parent_ids = pedigree.parent_ids
    offspring_ids = pedigree.offspring_ids
    for proband_id in offspring_ids:
        if is_reference_variant(segments, samples, proband_id, maximum_copy_number):
            continue
        if is_shared_cnv(
            copy_numbers, segments, samples, parent_ids, proband_id, maximum_copy_number
        ):
            continue
        siblings = [sid for sid in offspring_ids if sid != proband_id]
        if not all(
            is_reference_variant(segments, samples, sid, maximum_copy_number) for sid in siblings
        ):
            continue
        if not all(
            is_pass_variant(segments, sid, quality_filter_threshold)
            for sid in parent_ids + [proband_id]
        ):
            continue

        score = get_conditional_de_novo_quality_score(
            segments, joint_likelihoods, samples, parent_ids, proband_id
        )
        score *= DE_NOVO_SCORE_CALIBRATION
        segments[proband_id].dq_score = _cap_score(score, max_qscore)


def assign_cn_and_scores(
    segments: SegmentRow,
    samples: Mapping[str, SampleMetrics],
    single_sample_likelihoods: SampleLikelihoods,
    copy_numbers: Mapping[str, Genotype],
    quality_filter_threshold: float,
    max_qscore: float,
    maximum_copy_number: int,
    pedigree: Optional[PedigreeInfo] = None,
    joint_likelihoods: Optional[JointLikelihoods] = None,
) -> Dict[str, float]:
    """
    Annotate a segment row with calls and scores.

    Sets total copy number, major chromosome count (phased calls), QScore,
    the ``q{threshold}`` filter, and, for full pedigrees, DQScore.

    Returns:
        QScore per sample
    """
    quality_filter = get_quality_filter(int(quality_filter_threshold))
    qscores = {}
    for sample_id, segment in segments.items():
        genotype = copy_numbers[sample_id]
        segment.qscore = get_single_sample_quality_score(
            single_sample_likelihoods[sample_id], genotype, max_qscore
        )
        segment.copy_number = genotype.total_copy_number
        segment.dq_score = None
        segment.filters.discard(quality_filter)
        if segment.qscore < quality_filter_threshold:
            segment.add_filter(quality_filter)
        if genotype.phased_genotype is not None:
            segment.major_chromosome_count = genotype.phased_genotype.major_chromosome_count
        qscores[sample_id] = segment.qscore

    if pedigree is not None and pedigree.has_full_pedigree() and joint_likelihoods is not None:
        pedigree_copy_numbers = {
            sid: gt for sid, gt in copy_numbers.items() if sid in pedigree.pedigree_member_ids
        }
        set_de_novo_quality_scores(
            segments,
            samples,
            pedigree,
            joint_likelihoods,
            pedigree_copy_numbers,
            maximum_copy_number,
            quality_filter_threshold,
            max_qscore,
        )
    return qscores
