import random
from collections import Counter

import pytest

from src.pet_game.random_utils import weighted_choice


class FixedRandom(random.Random):
    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def test_picks_bucket_by_cumulative_weight():
    items = ['a', 'b', 'c']
    weights = [1, 2, 1]
    assert weighted_choice(items, weights, FixedRandom(0.1)) == 'a'
    assert weighted_choice(items, weights, FixedRandom(0.5)) == 'b'
    assert weighted_choice(items, weights, FixedRandom(0.9)) == 'c'


def test_zero_weight_is_never_picked():
    rng = random.Random(5)
    picks = Counter(weighted_choice(['x', 'y'], [0, 1], rng) for _ in range(1000))
    assert picks['x'] == 0


def test_falls_back_to_first_item():
    assert weighted_choice(['a', 'b'], [0, 0], FixedRandom(0.5)) == 'a'


def test_bad_input():
    with pytest.raises(ValueError):
        weighted_choice([], [])
    with pytest.raises(ValueError):
        weighted_choice(['a'], [1, 2])
