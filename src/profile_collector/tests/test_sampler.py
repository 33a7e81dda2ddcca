"""Tests for the per-request sampling decision."""

import random
from unittest.mock import MagicMock

import pytest

from profile_collector.sampler import Sampler


def test_ratio_zero_never_samples() -> None:
    sampler = Sampler(random.Random(1))
    assert not any(sampler.should_sample(0) for _ in range(10_000))


def test_ratio_hundred_always_samples() -> None:
    sampler = Sampler(random.Random(1))
    assert all(sampler.should_sample(100) for _ in range(10_000))


@pytest.mark.parametrize("ratio", [1, 10, 25, 50, 90])
def test_intermediate_ratio_matches_empirical_rate(ratio: int) -> None:
    """Over 100k independent draws the sampled share is within 3 points of the ratio."""
    sampler = Sampler(random.Random(ratio))
    trials = 100_000

    sampled = sum(sampler.should_sample(ratio) for _ in range(trials))

    assert abs(sampled / trials * 100 - ratio) < 3


def test_draws_once_per_decision() -> None:
    rng = MagicMock(spec=random.Random)
    rng.randint.return_value = 42

    assert Sampler(rng).should_sample(42)
    assert not Sampler(rng).should_sample(41)
    assert rng.randint.call_count == 2
    rng.randint.assert_called_with(1, 100)
