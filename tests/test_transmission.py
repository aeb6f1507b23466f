"""Tests for transmission scheduling and the path/schedule data model."""

import numpy as np
import pandas as pd
import pytest

from telemsim.core.entities import Path, Point, TransmissionEvent
from telemsim.exceptions import ValidationError
from telemsim.parameters import SimulationParameters
from telemsim.transmission import TransmissionScheduler, as_path, schedule_transmissions


@pytest.fixture
def straight_path():
    """1000 m straight path along x."""
    return Path.from_xy([(0, 0), (500, 0), (1000, 0)])


class TestPath:
    """Test the Path container."""

    def test_lengths(self, straight_path):
        """Segment and total lengths."""
        np.testing.assert_allclose(straight_path.segment_lengths(), [500, 500])
        np.testing.assert_allclose(straight_path.cumulative_distance(), [0, 500, 1000])
        assert straight_path.total_length == 1000.0

    def test_iteration_yields_path_points(self, straight_path):
        """Iteration yields path points."""
        points = list(straight_path)
        assert [p.step for p in points] == [0, 1, 2]
        assert points[1].as_tuple() == (500.0, 0.0)
        assert straight_path[-1].step == 2

    def test_from_points_and_frame(self):
        """Paths build from points and convert to frames."""
        path = Path.from_points([Point(0, 0), Point(3, 4)])
        frame = path.to_frame()
        assert list(frame.columns) == ["step", "x", "y"]
        assert path.total_length == pytest.approx(5.0)

    def test_invalid_shapes(self):
        """Coordinates must be an (n, 2) array."""
        with pytest.raises(ValidationError):
            Path(x=[0, 1], y=[0])
        with pytest.raises(ValidationError):
            Path.from_xy([0, 1, 2])


class TestScheduleTransmissions:
    """Test transmissions along a path."""

    def test_first_at_origin_at_time_zero(self, straight_path):
        """The first transmission is at the origin at time zero."""
        sched = schedule_transmissions(straight_path, 1.0, (50, 100), rng=0)
        assert sched.elapsed_time[0] == 0.0
        assert (sched.x[0], sched.y[0]) == (0.0, 0.0)
        assert sched.transmission_id[0] == 1

    @pytest.mark.parametrize("seed", range(5))
    def test_times_strictly_increasing(self, straight_path, seed):
        """Elapsed times strictly increase."""
        sched = schedule_transmissions(straight_path, 0.5, (10, 30), rng=seed)
        assert np.all(np.diff(sched.elapsed_time) > 0)
        np.testing.assert_array_equal(sched.transmission_id, np.arange(1, len(sched) + 1))

    def test_delays_within_range_and_duration(self, straight_path):
        """Delays stay in range and times within the path duration."""
        sched = schedule_transmissions(straight_path, 2.0, (20, 40), rng=3)
        delays = np.diff(sched.elapsed_time)
        assert np.all(delays >= 20) and np.all(delays <= 40)
        assert sched.path_duration == pytest.approx(500.0)
        assert sched.elapsed_time[-1] <= 500.0
        # The next delay would have passed the end of the path
        assert sched.elapsed_time[-1] + 40 > 500.0

    def test_positions_follow_constant_velocity(self, straight_path):
        """Positions advance at constant velocity."""
        sched = schedule_transmissions(straight_path, 2.0, (20, 40), rng=3)
        np.testing.assert_allclose(sched.x, sched.elapsed_time * 2.0)
        np.testing.assert_allclose(sched.y, 0.0)

    def test_positions_on_bent_path(self):
        """Positions follow a bent path."""
        path = Path.from_xy([(0, 0), (100, 0), (100, 100)])
        sched = schedule_transmissions(path, 1.0, (30, 30), rng=0)
        np.testing.assert_allclose(sched.elapsed_time, [0, 30, 60, 90, 120, 150, 180])
        np.testing.assert_allclose(sched.x, [0, 30, 60, 90, 100, 100, 100])
        np.testing.assert_allclose(sched.y, [0, 0, 0, 0, 20, 50, 80])

    def test_duplicate_points_ignored(self):
        """Repeated points are ignored."""
        path = Path.from_xy([(0, 0), (0, 0), (100, 0), (100, 0)])
        sched = schedule_transmissions(path, 1.0, (25, 25))
        np.testing.assert_allclose(sched.x, [0, 25, 50, 75, 100])

    def test_short_path_single_transmission(self, caplog):
        """A short path gives one transmission and a warning."""
        path = Path.from_xy([(0, 0), (1, 0)])
        with caplog.at_level("WARNING", logger="telemsim"):
            sched = schedule_transmissions(path, 1.0, (10, 20), rng=0)
        assert len(sched) == 1
        assert "single transmission" in caplog.text

    def test_single_point_path(self):
        """A single-point path transmits once at that point."""
        sched = schedule_transmissions(Path.from_xy([(3, 4)]), 1.0, (10, 20), rng=0)
        assert len(sched) == 1
        assert (sched.x[0], sched.y[0]) == (3.0, 4.0)

    def test_same_seed_same_schedule(self, straight_path):
        """The same seed gives the same schedule."""
        a = schedule_transmissions(straight_path, 0.5, (10, 30), rng=9)
        b = schedule_transmissions(straight_path, 0.5, (10, 30), rng=9)
        np.testing.assert_array_equal(a.elapsed_time, b.elapsed_time)

    def test_accepts_frame_and_array(self, straight_path):
        """Frames and arrays are accepted as paths."""
        frame = straight_path.to_frame()
        a = schedule_transmissions(frame, 1.0, (100, 100))
        b = schedule_transmissions(straight_path.xy, 1.0, (100, 100))
        np.testing.assert_array_equal(a.x, b.x)
        assert len(a) == 11

    def test_custom_delay_sampler(self, straight_path):
        """A custom sampler replaces the uniform delays."""
        sched = schedule_transmissions(
            straight_path, 1.0, (1, 1000), delay_sampler=lambda rng, n: np.full(n, 250.0)
        )
        np.testing.assert_allclose(sched.elapsed_time, [0, 250, 500, 750, 1000])

    def test_delay_draws_sized_from_mean_delay(self):
        """A wide delay range does not size draws for the minimum delay."""
        requested = []

        def sampler(rng, n):
            requested.append(n)
            return rng.uniform(0.001, 10.0, n)

        path = Path.from_xy([(0, 0), (10000, 0)])
        sched = schedule_transmissions(path, 1.0, (0.001, 10.0), rng=3, delay_sampler=sampler)
        assert len(sched) > 1500
        assert max(requested) <= 2100
        assert sum(requested) < 10 * len(sched)

    def test_bad_delay_sampler(self, straight_path):
        """Non-positive sampled delays are rejected."""
        with pytest.raises(ValidationError):
            schedule_transmissions(
                straight_path, 1.0, (1, 2), delay_sampler=lambda rng, n: np.zeros(n)
            )

    def test_burst_duration_is_metadata(self, straight_path):
        """Burst duration does not change the schedule."""
        a = schedule_transmissions(straight_path, 1.0, (50, 60), burst_duration=5.0, rng=1)
        b = schedule_transmissions(straight_path, 1.0, (50, 60), burst_duration=0.0, rng=1)
        assert a.burst_duration == 5.0
        np.testing.assert_array_equal(a.elapsed_time, b.elapsed_time)

    def test_events_and_frame(self, straight_path):
        """Schedules convert to events and a frame."""
        sched = schedule_transmissions(straight_path, 1.0, (100, 100))
        events = list(sched)
        assert isinstance(events[0], TransmissionEvent)
        assert events[2].elapsed_time == 200.0
        assert events[2].position == Point(200.0, 0.0)
        frame = sched.to_frame()
        assert list(frame.columns) == ["transmission_id", "x", "y", "elapsed_time"]

    @pytest.mark.parametrize("kwargs", [
        dict(velocity=0.0, delay_range=(1, 2)),
        dict(velocity=-1.0, delay_range=(1, 2)),
        dict(velocity=1.0, delay_range=(0, 2)),
        dict(velocity=1.0, delay_range=(3, 2)),
        dict(velocity=1.0, delay_range=(1, 2), burst_duration=-1.0),
    ])
    def test_invalid_arguments(self, straight_path, kwargs):
        """Invalid velocity, delays and burst durations are rejected."""
        with pytest.raises(ValidationError):
            schedule_transmissions(straight_path, **kwargs)

    def test_missing_columns(self):
        """Path frames need x and y columns."""
        with pytest.raises(ValidationError):
            as_path(pd.DataFrame({"x": [0, 1]}))

    def test_empty_path(self):
        """An empty path is rejected."""
        with pytest.raises(ValidationError):
            schedule_transmissions(Path(x=[], y=[]), 1.0, (1, 2))


class TestTransmissionScheduler:
    """Test the reusable scheduler."""

    def test_from_parameters(self, straight_path):
        """The scheduler reads transmitter parameters."""
        params = SimulationParameters(velocity=1.0, delay_min=100, delay_max=100, burst_duration=4.0)
        scheduler = TransmissionScheduler.from_parameters(params)
        assert scheduler.delay_range == (100.0, 100.0)
        sched = scheduler.schedule(straight_path, rng=0)
        assert len(sched) == 11
        assert sched.burst_duration == 4.0

    def test_invalid(self):
        """Invalid scheduler settings are rejected."""
        with pytest.raises(ValidationError):
            TransmissionScheduler(0.0, (1, 2))
