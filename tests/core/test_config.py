"""Tests for caller parameters."""

import dataclasses

import pytest

from cnpedigree.core.config import CallerParameters


def test_defaults():
    """Test default caller parameters."""
    parameters = CallerParameters()

    assert parameters.maximum_copy_number == 5
    assert parameters.quality_filter_threshold == 7
    assert parameters.de_novo_quality_filter_threshold == 20
    assert parameters.de_novo_rate == pytest.approx(1e-5)
    assert parameters.max_qscore == 60


def test_parameters_are_immutable():
    """Caller parameters cannot be changed after construction."""
    parameters = CallerParameters()

    with pytest.raises(dataclasses.FrozenInstanceError):
        parameters.maximum_copy_number = 7


@pytest.mark.parametrize(
    "overrides",
    [
        {"maximum_copy_number": 2},
        {"max_core_number": 0},
        {"de_novo_rate": 0.0},
        {"de_novo_rate": 1.5},
        {"max_qscore": -1},
        {"min_allele_counts_threshold": -1},
        {"minimum_call_size": -10},
    ],
)
def test_invalid_values_are_rejected(overrides):
    """Test validation of out-of-range parameters."""
    with pytest.raises(ValueError):
        CallerParameters(**overrides)


def test_from_dict_round_trip_and_unknown_keys():
    """Test building parameters from a mapping."""
    parameters = CallerParameters.from_dict({"maximum_copy_number": 6, "max_core_number": 2})

    assert parameters.maximum_copy_number == 6
    assert CallerParameters.from_dict(parameters.to_dict()) == parameters

    with pytest.raises(ValueError, match="Unknown caller parameters: MaxCoreNumber"):
        CallerParameters.from_dict({"MaxCoreNumber": 2})
