"""BatchConfig validation and partial overrides."""

import pytest

from royalty_batch.domain.types import BatchConfig
from royalty_kernel.exceptions import InvalidBatchConfigError


def test_defaults():
    assert BatchConfig().to_dict() == {
        "batch_size": 500,
        "max_concurrency": 3,
        "retry_attempts": 3,
        "backoff_base": 1.0,
        "backoff_cap": 30.0,
    }


@pytest.mark.parametrize(
    "field, value",
    [
        ("batch_size", 0),
        ("max_concurrency", -1),
        ("retry_attempts", 0),
        ("batch_size", 2.5),
        ("batch_size", True),
        ("backoff_base", 0),
        ("backoff_cap", "10"),
    ],
)
def test_invalid_values_rejected(field, value):
    with pytest.raises(InvalidBatchConfigError) as exc_info:
        BatchConfig(**{field: value})
    assert exc_info.value.field == field
    assert exc_info.value.code == "INVALID_BATCH_CONFIG"


def test_cap_below_base_rejected():
    with pytest.raises(InvalidBatchConfigError):
        BatchConfig(backoff_base=5.0, backoff_cap=1.0)


class TestFromOverrides:
    def test_partial_override_keeps_defaults(self):
        config = BatchConfig.from_overrides({"batch_size": 100})
        assert config.batch_size == 100
        assert config.max_concurrency == 3
        assert config.retry_attempts == 3

    def test_none_values_ignored(self):
        config = BatchConfig.from_overrides({"batch_size": None, "max_concurrency": 5})
        assert config.batch_size == 500
        assert config.max_concurrency == 5

    def test_applies_over_base(self):
        base = BatchConfig(batch_size=50)
        assert BatchConfig.from_overrides({"retry_attempts": 1}, base=base).batch_size == 50

    def test_empty_returns_base(self):
        base = BatchConfig(batch_size=7)
        assert BatchConfig.from_overrides(None, base=base) is base

    def test_unknown_key_rejected(self):
        with pytest.raises(InvalidBatchConfigError) as exc_info:
            BatchConfig.from_overrides({"batchsize": 10})
        assert exc_info.value.field == "batchsize"

    def test_invalid_override_rejected(self):
        with pytest.raises(InvalidBatchConfigError):
            BatchConfig.from_overrides({"max_concurrency": 0})
