"""Delay schedule and derived lifetime. Run: pytest tests/test_delays.py -v"""
from bruteguard.delays import clamped_index, compute_delays, default_lifetime


def test_compute_delays_grows_to_max_wait():
    assert compute_delays(0, 10, 100) == (10, 10, 20, 30, 50, 80, 100)


def test_compute_delays_min_equals_max():
    assert compute_delays(0, 10, 10) == (10,)


def test_compute_delays_clamps_last_step():
    # 100, 100, 200, 300, 500, 800 -> next would be 1300
    assert compute_delays(1, 100, 1000) == (100, 100, 200, 300, 500, 800, 1000)


def test_compute_delays_non_decreasing():
    delays = compute_delays(3, 7, 5000)
    assert delays[0] == 7
    assert delays[-1] == 5000
    assert list(delays) == sorted(delays)


def test_default_lifetime_observed_pairing():
    delays = compute_delays(1, 100, 1000)
    assert default_lifetime(1, delays, 1000) == 8


def test_default_lifetime_outlasts_schedule():
    delays = compute_delays(2, 500, 1000 * 60 * 15)
    assert default_lifetime(2, delays, 1000 * 60 * 15) > sum(delays) / 1000


def test_clamped_index():
    assert clamped_index(1, 0, 7) == 0
    assert clamped_index(3, 0, 7) == 2
    assert clamped_index(50, 0, 7) == 6
    assert clamped_index(2, 1, 1) == 0
