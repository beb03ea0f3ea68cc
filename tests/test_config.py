import pytest

from mcceval.config import DiversityNormalization, FailurePolicy, load_config
from mcceval.exceptions import ConfigurationError
from mcceval.genomes import BodyFactoryConfig


def test_defaults():
    config = load_config()
    assert config.chunk_size == 100
    assert config.sample_size == 0
    assert config.failure_policy == FailurePolicy.ISOLATE
    assert config.normalization == DiversityNormalization.COUNTERPARTS


def test_values_are_coerced():
    config = load_config({"chunk_size": "10", "failure_policy": "fail_fast"})
    assert config.chunk_size == 10
    assert config.failure_policy == FailurePolicy.FAIL_FAST


@pytest.mark.parametrize(
    "values",
    [
        {"chunk_size": 0},
        {"sample_size": -1},
        {"max_body_size": 0},
        {"cluster_range": 0},
        {"unknown": 1},
    ],
)
def test_invalid_values_raise_configuration_error(values):
    with pytest.raises(ConfigurationError):
        load_config(values)


def test_body_factory_dimensions_within_ceiling():
    with pytest.raises(ValueError):
        BodyFactoryConfig(x_dimension=12, max_body_size=10)
