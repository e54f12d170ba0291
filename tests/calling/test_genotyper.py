"""Tests for pedigree and independent genotyping."""

import itertools
import math

import numpy as np
import pytest

from cnpedigree.calling.genotyper import (
    IndependentVariantCaller,
    PedigreeCall,
    PedigreeVariantCaller,
    SearchExhausted,
    SearchExhaustedError,
    create_variant_caller,
    estimate_transmission_probability,
    get_copy_numbers_no_pedigree_info,
    get_pedigree_copy_numbers,
)
from cnpedigree.calling.likelihoods import CopyNumberLikelihoodCalculator
from cnpedigree.core.genotypes import Genotype, PhasedGenotype
from cnpedigree.core.pedigree import PedigreeInfo, get_transition_matrix
from cnpedigree.core.samples import SampleMetrics, SampleType


DE_NOVO_RATE = 1e-5


def _phased(a, b):
    return Genotype.create(PhasedGenotype(a, b))


def _brute_force(pedigree, tables):
    """Exhaustive search over full tables with the same scoring as the pruned search."""
    parent1_id, parent2_id = pedigree.parent_ids
    best_ll, best = -math.inf, None
    for parent1, parent2 in itertools.product(tables[parent1_id], tables[parent2_id]):
        for combination in itertools.product(*(tables[oid] for oid in pedigree.offspring_ids)):
            ll = tables[parent1_id][parent1] + tables[parent2_id][parent2]
            for oid, offspring in zip(pedigree.offspring_ids, combination):
                transmission = estimate_transmission_probability(
                    parent1, parent2, offspring, pedigree.transition_matrix, DE_NOVO_RATE
                )
                ll += tables[oid][offspring] + (
                    math.log(transmission) if transmission > 0 else -math.inf
                )
            if ll > best_ll:
                best_ll = ll
                best = {parent1_id: parent1, parent2_id: parent2}
                best.update(zip(pedigree.offspring_ids, combination))
    return best, best_ll


def test_independent_arg_max_invariant_to_rescaling():
    """Shifting a sample's log-likelihoods does not change its called genotype."""
    rng = np.random.default_rng(7)
    for _ in range(20):
        raw = {"s1": {Genotype(cn): float(value) for cn, value in enumerate(rng.random(5))}}
        scaled = {"s1": {gt: value * 37.5 for gt, value in raw["s1"].items()}}

        calls, _ = get_copy_numbers_no_pedigree_info(
            ["s1"], CopyNumberLikelihoodCalculator.convert_to_log_likelihood(raw)
        )
        scaled_calls, _ = get_copy_numbers_no_pedigree_info(
            ["s1"], CopyNumberLikelihoodCalculator.convert_to_log_likelihood(scaled)
        )

        assert calls == scaled_calls


def test_independent_joint_is_sum_of_sample_maxima():
    """Test independent joint log-likelihood as the sum of per-sample maxima."""
    tables = {
        "s1": {Genotype(1): -3.0, Genotype(2): -1.0},
        "s2": {Genotype(1): -0.5, Genotype(2): -4.0},
    }

    calls, joint = get_copy_numbers_no_pedigree_info(["s1", "s2"], tables)

    assert calls == {"s1": Genotype(2), "s2": Genotype(1)}
    assert joint.maximal_log_likelihood == pytest.approx(-1.5)

    with pytest.raises(ValueError, match="Empty likelihood table"):
        get_copy_numbers_no_pedigree_info(["s3"], {"s3": {}})


def test_transmission_of_phased_genotypes():
    """Test phased transmission for inherited and de novo offspring."""
    matrix = get_transition_matrix(5)

    inherited = estimate_transmission_probability(
        _phased(1, 1), _phased(2, 0), _phased(1, 2), matrix, DE_NOVO_RATE
    )
    de_novo = estimate_transmission_probability(
        _phased(1, 1), _phased(1, 1), _phased(2, 1), matrix, DE_NOVO_RATE
    )

    assert inherited == 1.0
    assert de_novo == DE_NOVO_RATE


def test_phased_offspring_needs_an_allele_from_each_parent():
    """An offspring whose alleles all match one parent is treated as de novo."""
    probability = estimate_transmission_probability(
        _phased(1, 1), _phased(0, 0), _phased(1, 1), get_transition_matrix(5), DE_NOVO_RATE
    )

    assert probability == DE_NOVO_RATE


def test_transmission_of_total_copy_numbers():
    """Unphased transmission is the product of both parents' matrix entries."""
    matrix = get_transition_matrix(5)

    probability = estimate_transmission_probability(
        Genotype(2), Genotype(3), Genotype(1), matrix, DE_NOVO_RATE
    )

    assert probability == pytest.approx(matrix[2, 1] * matrix[3, 1])


@pytest.mark.parametrize("n_offspring", [1, 2])
@pytest.mark.parametrize("seed", range(6))
def test_pruned_search_agrees_with_brute_force(n_offspring, seed):
    """Branch and bound finds the exhaustive optimum."""
    kinships = {"p1": SampleType.MOTHER, "p2": SampleType.FATHER}
    kinships.update({f"o{i}": SampleType.PROBAND for i in range(n_offspring)})
    pedigree = PedigreeInfo.from_sample_types(kinships, maximum_copy_number=3)
    rng = np.random.default_rng(seed)
    tables = {
        sample_id: {Genotype(cn): float(value) for cn, value in enumerate(rng.normal(-5.0, 3.0, 3))}
        for sample_id in kinships
    }

    result = get_pedigree_copy_numbers(pedigree, tables, 3, DE_NOVO_RATE)
    expected, expected_ll = _brute_force(pedigree, tables)

    assert isinstance(result, PedigreeCall)
    assert result.genotypes == expected
    assert result.joint_likelihoods.maximal_log_likelihood == pytest.approx(expected_ll)


def test_pruned_search_agrees_with_brute_force_on_phased_tables():
    """Branch and bound finds the exhaustive optimum on phased tables."""
    pedigree = PedigreeInfo.from_sample_types(
        {"p1": SampleType.MOTHER, "p2": SampleType.FATHER, "o1": SampleType.PROBAND},
        maximum_copy_number=3,
    )
    rng = np.random.default_rng(11)
    genotypes = [_phased(0, 1), _phased(1, 1), _phased(0, 2)]
    tables = {
        sample_id: dict(zip(genotypes, rng.normal(-5.0, 3.0, 3).tolist()))
        for sample_id in ("p1", "p2", "o1")
    }

    result = get_pedigree_copy_numbers(pedigree, tables, 3, DE_NOVO_RATE)
    expected, expected_ll = _brute_force(pedigree, tables)

    assert result.genotypes == expected
    assert result.joint_likelihoods.maximal_log_likelihood == pytest.approx(expected_ll)


def test_search_keeps_top_three_genotypes_with_two_offspring():
    """With two offspring only the three best genotypes per sample are searched."""
    pedigree = PedigreeInfo.from_sample_types(
        {
            "p1": SampleType.MOTHER,
            "p2": SampleType.FATHER,
            "o1": SampleType.PROBAND,
            "o2": SampleType.SIBLING,
        },
        maximum_copy_number=5,
    )
    tables = {sid: {Genotype(cn): -float(cn) for cn in range(5)} for sid in pedigree.pedigree_member_ids}

    result = get_pedigree_copy_numbers(pedigree, tables, 5, DE_NOVO_RATE)

    evaluated = set()
    for assignment in result.joint_likelihoods._log_masses:
        evaluated.update(genotype.total_copy_number for _, genotype in assignment)
    assert evaluated <= {0, 1, 2}


def test_search_exhausted_on_empty_tables(trio_pedigree):
    """Test failure result when no assignment can be recorded."""
    tables = {"mother": {}, "father": {Genotype(2): 0.0}, "child": {Genotype(2): 0.0}}

    result = get_pedigree_copy_numbers(trio_pedigree, tables, 5, DE_NOVO_RATE)

    assert isinstance(result, SearchExhausted)


def test_non_finite_likelihoods_still_produce_a_call(trio_pedigree):
    """Non-finite log-likelihoods are sanitised rather than aborting the search."""
    tables = {
        sample_id: {Genotype(cn): -math.inf for cn in range(5)}
        for sample_id in trio_pedigree.pedigree_member_ids
    }

    result = get_pedigree_copy_numbers(trio_pedigree, tables, 5, DE_NOVO_RATE)

    assert isinstance(result, PedigreeCall)
    assert math.isfinite(result.joint_likelihoods.maximal_log_likelihood)


def test_trio_search_calls_de_novo_gain(trio_pedigree, peaked_table):
    """Test trio search with a gain in the proband only."""
    tables = {"mother": peaked_table(2), "father": peaked_table(2), "child": peaked_table(3)}

    result = get_pedigree_copy_numbers(trio_pedigree, tables, 5, DE_NOVO_RATE)

    assert result.genotypes == {"mother": Genotype(2), "father": Genotype(2), "child": Genotype(3)}


def test_create_variant_caller_selects_capability(parameters, trio_pedigree):
    """Test caller factory for full and missing pedigrees."""
    partial_pedigree = PedigreeInfo.from_sample_types(
        {"mother": SampleType.MOTHER, "child": SampleType.PROBAND}, 5
    )

    assert isinstance(create_variant_caller(trio_pedigree, parameters), PedigreeVariantCaller)
    assert isinstance(create_variant_caller(partial_pedigree, parameters), IndependentVariantCaller)
    assert isinstance(create_variant_caller(None, parameters), IndependentVariantCaller)

    with pytest.raises(ValueError, match="full pedigree"):
        PedigreeVariantCaller(partial_pedigree, parameters)


def test_pedigree_caller_annotates_row(parameters, trio_pedigree, trio_samples, make_segment, peaked_model):
    """Test copy number, QScore and DQScore annotation of a trio row."""
    row = {
        "mother": make_segment(copy_number=2),
        "father": make_segment(copy_number=2),
        "child": make_segment(copy_number=3),
    }
    models = {sample_id: peaked_model() for sample_id in row}

    caller = PedigreeVariantCaller(trio_pedigree, parameters)
    annotated = caller.call_variant(row, trio_samples, models)

    assert annotated is row
    assert [row[sid].copy_number for sid in ("mother", "father", "child")] == [2, 2, 3]
    assert row["child"].dq_score is not None
    assert row["mother"].dq_score is None
    assert row["child"].qscore == pytest.approx(20.0)
    assert row["child"].major_chromosome_count is None


def test_pedigree_caller_calls_other_samples_independently(parameters, make_segment, peaked_model):
    """Samples outside the pedigree get independent calls."""
    kinships = {
        "mother": SampleType.MOTHER,
        "father": SampleType.FATHER,
        "child": SampleType.PROBAND,
        "unrelated": SampleType.OTHER,
    }
    pedigree = PedigreeInfo.from_sample_types(kinships, 5)
    samples = {sid: SampleMetrics(sid, 20.0, 20.0, 100, sample_type=kind) for sid, kind in kinships.items()}
    row = {sid: make_segment(copy_number=1 if sid == "unrelated" else 2) for sid in kinships}
    models = {sid: peaked_model() for sid in kinships}

    PedigreeVariantCaller(pedigree, parameters).call_variant(row, samples, models)

    assert row["unrelated"].copy_number == 1
    assert row["unrelated"].dq_score is None
    assert row["child"].copy_number == 2


def test_pedigree_caller_raises_when_search_is_exhausted(parameters, trio_pedigree, trio_samples, make_segment):
    """An exhausted search is reported with the segment location."""
    class EmptyCalculator(CopyNumberLikelihoodCalculator):
        def get_single_sample_likelihoods(self, segments, models):
            return {sample_id: {} for sample_id in segments}

    calculator = EmptyCalculator(5, 10, 10)
    row = {sid: make_segment() for sid in trio_samples}

    caller = PedigreeVariantCaller(trio_pedigree, parameters, calculator)

    with pytest.raises(SearchExhaustedError, match="chr1:0-20000"):
        caller.call_variant(row, trio_samples, {})
