import pytest

from tip_estimator.data_validation import AggregateValidator


def test_valid_aggregate_passes(aggregate_frame):
    validator = AggregateValidator(aggregate_frame)
    assert validator.validate() is True
    assert validator.validation_results.success


def test_validate_can_run_twice(aggregate_frame):
    validator = AggregateValidator(aggregate_frame)
    assert validator.validate() is True
    assert validator.validate() is True


def test_placeholder_borough_fails(aggregate_frame):
    bad = aggregate_frame.copy()
    bad.loc[0, 'Borough'] = 'N/A'

    validator = AggregateValidator(bad)
    with pytest.raises(ValueError, match="failed validation"):
        validator.validate()
    assert not validator.validation_results.success


def test_empty_table_fails(aggregate_frame):
    with pytest.raises(ValueError):
        AggregateValidator(aggregate_frame.iloc[0:0]).validate()
