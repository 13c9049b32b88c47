import pytest

from disk_lifecycle.utils.retry import compute_backoff


def test_backoff_doubles_from_base():
    assert [compute_backoff(n) for n in (1, 2, 3, 4)] == [2.0, 4.0, 8.0, 16.0]


def test_backoff_is_capped():
    assert compute_backoff(10, base=2.0, cap=30.0) == 30.0


def test_backoff_jitter_stays_in_range():
    for _ in range(20):
        assert 1.0 <= compute_backoff(1, base=1.0, jitter=0.5) <= 1.5


def test_retry_numbers_start_at_one():
    with pytest.raises(ValueError):
        compute_backoff(0)
