"""Tests for slot grid generation."""

from datetime import time

import pytest

from agenda.core.scheduling import InvalidArgument, Slot
from agenda.core.scheduling.slots import from_minutes, generate, resample, to_minutes


class TestGenerate:
    """Test the 5-minute grid."""

    def test_grid_excludes_end(self):
        grid = generate(time(9, 0), time(9, 30), 5)
        assert grid == [time(9, 0), time(9, 5), time(9, 10), time(9, 15), time(9, 20), time(9, 25)]

    def test_full_morning(self):
        grid = generate(time(9, 0), time(12, 0))
        assert len(grid) == 36
        assert grid[0] == time(9, 0)
        assert grid[-1] == time(11, 55)

    def test_unaligned_end(self):
        grid = generate(time(9, 0), time(9, 12), 5)
        assert grid == [time(9, 0), time(9, 5), time(9, 10)]

    def test_window_shorter_than_granularity(self):
        assert generate(time(9, 0), time(9, 3), 5) == []

    def test_empty_and_inverted_window(self):
        assert generate(time(9, 0), time(9, 0)) == []
        assert generate(time(10, 0), time(9, 0)) == []

    def test_deterministic(self):
        assert generate(time(8, 0), time(18, 0)) == generate(time(8, 0), time(18, 0))

    def test_rejects_non_positive_granularity(self):
        with pytest.raises(InvalidArgument):
            generate(time(9, 0), time(10, 0), 0)


class TestResample:
    """Test display-grid resampling."""

    def test_resample_times(self):
        grid = generate(time(9, 0), time(10, 0))
        assert resample(grid, 15) == [time(9, 0), time(9, 15), time(9, 30), time(9, 45)]

    def test_resample_slots(self):
        slots = [Slot(t, True) for t in generate(time(9, 0), time(9, 35))]
        assert [s.time for s in resample(slots, 15)] == [time(9, 0), time(9, 15), time(9, 30)]

    def test_resample_is_subset_of_grid(self):
        grid = generate(time(7, 5), time(19, 0))
        coarse = resample(grid, 15)
        assert set(coarse) <= set(grid)

    def test_rejects_step_off_grid(self):
        with pytest.raises(InvalidArgument):
            resample(generate(time(9, 0), time(10, 0)), 7)


class TestMinuteHelpers:
    def test_round_trip(self):
        assert from_minutes(to_minutes(time(13, 45))) == time(13, 45)

    def test_out_of_range(self):
        with pytest.raises(InvalidArgument):
            from_minutes(24 * 60)
