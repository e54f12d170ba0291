"""Joint likelihood bookkeeping for pedigree genotype search."""

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Tuple

import numpy as np
from scipy.special import logsumexp

from cnpedigree.core.genotypes import Genotype


GenotypeAssignment = Tuple[Tuple[str, Genotype], ...]

SANITIZED_LOG_LIKELIHOOD = float(np.finfo(float).min)


def sanitize_log_likelihood(value: float) -> float:
    """Map NaN and ±inf to the most negative finite float."""
    if math.isnan(value) or math.isinf(value):
        return SANITIZED_LOG_LIKELIHOOD
    return value


def make_assignment(genotypes: Mapping[str, Genotype]) -> GenotypeAssignment:
    """Hashable key for a full per-sample genotype assignment."""
    return tuple(genotypes.items())


@dataclass
class JointLikelihoods:
    """
    Maximal joint log-likelihood and joint likelihood mass per assignment.

    Masses are kept in log space. Marginal sums are returned relative to the
    maximal recorded mass, exp(log_mass - max_log_mass); every ratio of
    marginals is therefore identical to the ratio of un-normalised masses.

    Attributes:
        maximal_log_likelihood: Best joint log-likelihood found so far
    """

    maximal_log_likelihood: float = -math.inf
    _log_masses: Dict[GenotypeAssignment, float] = field(default_factory=dict)

    def add_joint_likelihood(self, assignment: GenotypeAssignment, log_likelihood: float) -> None:
        """Accumulate the likelihood mass of ``assignment``."""
        if assignment in self._log_masses:
            self._log_masses[assignment] = float(
                np.logaddexp(self._log_masses[assignment], log_likelihood)
            )
        else:
            self._log_masses[assignment] = log_likelihood

    def __len__(self) -> int:
        return len(self._log_masses)

    def _scaled_sum(self, predicate: Callable[[Dict[str, Genotype]], bool]) -> float:
        if not self._log_masses:
            return 0.0
        reference = max(self._log_masses.values())
        selected = [
            log_mass for assignment, log_mass in self._log_masses.items()
            if predicate(dict(assignment))
        ]
        if not selected:
            return 0.0
        return float(np.exp(logsumexp(selected) - reference))

    @property
    def total_marginal_likelihood(self) -> float:
        return self._scaled_sum(lambda genotypes: True)

    def get_marginal_gain_de_novo_likelihood(
        self,
        proband: Tuple[str, Genotype],
        parent1: Tuple[str, Genotype],
        parent2: Tuple[str, Genotype],
    ) -> float:
        """
        Mass of assignments with a proband gain and reference parents.

        Each argument pairs a sample id with its reference-ploidy genotype.
        """
        proband_id, proband_ref = proband
        parent1_id, parent1_ref = parent1
        parent2_id, parent2_ref = parent2
        return self._scaled_sum(
            lambda gts: gts[proband_id].total_copy_number > proband_ref.total_copy_number
            and gts[parent1_id].total_copy_number == parent1_ref.total_copy_number
            and gts[parent2_id].total_copy_number == parent2_ref.total_copy_number
        )

    def get_marginal_loss_de_novo_likelihood(
        self,
        proband: Tuple[str, Genotype],
        parent1: Tuple[str, Genotype],
        parent2: Tuple[str, Genotype],
    ) -> float:
        """Mass of assignments with a proband loss and reference parents."""
        proband_id, proband_ref = proband
        parent1_id, parent1_ref = parent1
        parent2_id, parent2_ref = parent2
        return self._scaled_sum(
            lambda gts: gts[proband_id].total_copy_number < proband_ref.total_copy_number
            and gts[parent1_id].total_copy_number == parent1_ref.total_copy_number
            and gts[parent2_id].total_copy_number == parent2_ref.total_copy_number
        )
