import math

import numpy as np
import pytest

from cnpedigree.core.config import CallerParameters
from cnpedigree.core.genotypes import Genotype
from cnpedigree.core.models import CopyNumberModel
from cnpedigree.core.pedigree import PedigreeInfo
from cnpedigree.core.samples import SampleMetrics, SampleType
from cnpedigree.core.segments import Balleles, Segment


PEAK_LIKELIHOOD = 0.99


class PeakedCopyNumberModel(CopyNumberModel):
    """
    Depth model whose likelihood peaks at round(median_count / coverage_per_copy).

    Allele evidence is flat; set ``forbid_alleles`` to fail on any allele query.
    """

    def __init__(self, maximum_copy_number=5, coverage_per_copy=10.0, forbid_alleles=False):
        self.maximum_copy_number = maximum_copy_number
        self.coverage_per_copy = coverage_per_copy
        self.forbid_alleles = forbid_alleles
        self.allele_queries = 0

    def get_total_copy_number_likelihoods(self, median_count):
        peak = min(int(round(median_count / self.coverage_per_copy)), self.maximum_copy_number - 1)
        rest = (1.0 - PEAK_LIKELIHOOD) / (self.maximum_copy_number - 1)
        return {
            Genotype.create(cn): PEAK_LIKELIHOOD if cn == peak else rest
            for cn in range(self.maximum_copy_number)
        }

    def get_genotype_log_likelihood(self, balleles, genotype):
        if self.forbid_alleles:
            raise AssertionError("allele evidence must not be used")
        self.allele_queries += 1
        return 0.0


def peaked_log_table(peak, maximum_copy_number=5):
    """Log-likelihood table with most of the mass on ``peak``."""
    rest = (1.0 - PEAK_LIKELIHOOD) / (maximum_copy_number - 1)
    return {
        Genotype.create(cn): math.log(PEAK_LIKELIHOOD if cn == peak else rest)
        for cn in range(maximum_copy_number)
    }


@pytest.fixture
def parameters():
    return CallerParameters(max_core_number=1)


@pytest.fixture
def make_segment():
    def _make(
        copy_number=2,
        chromosome="chr1",
        begin=0,
        end=20000,
        coverage_per_copy=10.0,
        n_bins=20,
        allele_sites=0,
        allele_coverage=20,
    ):
        counts = np.full(n_bins, copy_number * coverage_per_copy)
        half = allele_coverage // 2
        balleles = Balleles.from_counts(
            counts_a=np.full(allele_sites, half),
            counts_b=np.full(allele_sites, allele_coverage - half),
            positions=np.linspace(begin, end - 1, allele_sites).astype(int),
        )
        return Segment(chromosome, begin, end, counts=counts, balleles=balleles)

    return _make


@pytest.fixture
def peaked_model():
    return PeakedCopyNumberModel


@pytest.fixture
def trio_kinships():
    return {
        "mother": SampleType.MOTHER,
        "father": SampleType.FATHER,
        "child": SampleType.PROBAND,
    }


@pytest.fixture
def trio_samples(trio_kinships):
    return {
        sample_id: SampleMetrics(
            sample_id=sample_id,
            mean_coverage=20.0,
            mean_maf_coverage=20.0,
            max_coverage=100,
            sample_type=sample_type,
        )
        for sample_id, sample_type in trio_kinships.items()
    }


@pytest.fixture
def trio_pedigree(trio_kinships):
    return PedigreeInfo.from_sample_types(trio_kinships, maximum_copy_number=5)


@pytest.fixture
def peaked_table():
    return peaked_log_table
