"""Tests for genotype value types."""

import pytest

from cnpedigree.core.genotypes import (
    Genotype,
    PhasedGenotype,
    generate_phased_genotypes,
    offspring_genotype_combinations,
)


def test_phased_alleles_always_sum_to_total():
    """Test total copy number of phased genotypes."""
    for genotype in generate_phased_genotypes(6):
        wrapped = Genotype.create(genotype)
        assert (
            wrapped.phased_genotype.copy_number_a + wrapped.phased_genotype.copy_number_b
            == wrapped.total_copy_number
        )


def test_inconsistent_phasing_is_rejected():
    """A phased split must sum to the total copy number."""
    with pytest.raises(ValueError, match="does not sum"):
        Genotype(3, PhasedGenotype(1, 1))


def test_negative_copy_numbers_are_rejected():
    """Negative copy numbers are invalid."""
    with pytest.raises(ValueError):
        PhasedGenotype(-1, 2)
    with pytest.raises(ValueError):
        Genotype(-1)


def test_genotypes_compare_by_value():
    """Genotypes are equal and hash equal by value."""
    table = {Genotype.create(PhasedGenotype(0, 2)): 1.0}

    assert Genotype(2, PhasedGenotype(0, 2)) in table
    assert Genotype.create(2) != Genotype.create(PhasedGenotype(1, 1))
    assert Genotype.create(2) == Genotype(2)


def test_generate_phased_genotypes_enumerates_every_split():
    """Test enumeration of phased genotypes."""
    genotypes = generate_phased_genotypes(3)

    assert genotypes == [
        PhasedGenotype(0, 0),
        PhasedGenotype(0, 1),
        PhasedGenotype(1, 0),
        PhasedGenotype(0, 2),
        PhasedGenotype(1, 1),
        PhasedGenotype(2, 0),
    ]
    with pytest.raises(ValueError):
        generate_phased_genotypes(0)


def test_major_chromosome_count_is_larger_allele():
    """Test major chromosome count."""
    assert PhasedGenotype(1, 3).major_chromosome_count == 3
    assert PhasedGenotype(2, 0).major_chromosome_count == 2


def test_inherits_from_accepts_either_pairing():
    """Test Mendelian consistency of phased genotypes."""
    mother = PhasedGenotype(1, 1)
    father = PhasedGenotype(2, 0)

    assert PhasedGenotype(1, 2).inherits_from(mother, father)
    assert PhasedGenotype(2, 1).inherits_from(mother, father)
    assert PhasedGenotype(0, 1).inherits_from(mother, father)
    # Allele copy number 3 is carried by neither parent
    assert not PhasedGenotype(3, 1).inherits_from(mother, father)
    # Both alleles taken from the mother only
    assert not PhasedGenotype(1, 1).inherits_from(PhasedGenotype(1, 1), PhasedGenotype(2, 2))
    # Each allele seen in some parent is not enough: one must come from each
    assert not PhasedGenotype(1, 1).inherits_from(PhasedGenotype(1, 1), PhasedGenotype(0, 0))


def test_offspring_combinations_cover_cartesian_product():
    """Test offspring genotype combinations."""
    genotypes = [Genotype.create(cn) for cn in range(3)]

    combinations = offspring_genotype_combinations(genotypes, 2)

    assert len(combinations) == 9
    assert combinations[0] == (Genotype(0), Genotype(0))
    assert combinations[-1] == (Genotype(2), Genotype(2))
    assert offspring_genotype_combinations(genotypes, 0) == []
