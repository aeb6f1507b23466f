"""
Tests for the detection simulator and detection range curves.
"""

import numpy as np
import pandas as pd
import pytest

from telemsim.core.entities import (
    DETECTION_COLUMNS,
    Path,
    Point,
    Receiver,
    TransmissionEvent,
    detection_records,
    receivers_from_xy,
)
from telemsim.detection import (
    ConstantDetectionRange,
    DetectionSimulator,
    LogisticDetectionRange,
    ThresholdDetectionRange,
    evaluate_range_function,
    simulate_detections,
)
from telemsim.exceptions import EmptyInputError, ValidationError
from telemsim.transmission import schedule_transmissions


@pytest.fixture
def transmissions():
    return pd.DataFrame({
        "x": [0.0, 100.0, 30.0],
        "y": [0.0, 0.0, 0.0],
        "elapsed_time": [0.0, 10.0, 20.0],
    })


@pytest.fixture
def network():
    return receivers_from_xy([(0, 0), (500, 0), (1000, 0), (0, 500)])


@pytest.fixture
def schedule():
    path = Path.from_xy([(-200, -200), (1200, 600)])
    return schedule_transmissions(path, 1.0, (20, 60), rng=0)


class TestSimulateDetections:
    """Test Bernoulli detection of transmissions on receivers."""

    def test_threshold_scenario(self, transmissions):
        """Receiver at origin with a 50 m threshold detects transmissions 1 and 3."""
        receivers = [Receiver(1, Point(0.0, 0.0))]
        result = simulate_detections(
            transmissions, receivers, lambda d: 1.0 if d <= 50 else 0.0, seed=1
        )
        assert list(result.columns) == DETECTION_COLUMNS
        assert result["transmission_id"].tolist() == [1, 3]
        assert result["elapsed_time"].tolist() == [0.0, 20.0]
        assert result["transmission_x"].tolist() == [0.0, 30.0]
        assert result["receiver_id"].tolist() == [1, 1]

    def test_probability_one_detects_every_pair(self, schedule, network):
        """Probability one detects every transmission on every receiver."""
        result = simulate_detections(schedule, network, ConstantDetectionRange(1.0), seed=0)
        assert len(result) == len(schedule) * len(network)
        pairs = set(zip(result["transmission_id"], result["receiver_id"]))
        assert len(pairs) == len(result)

    def test_probability_zero_detects_nothing(self, schedule, network):
        """Probability zero gives an empty frame with the output columns."""
        result = simulate_detections(schedule, network, lambda d: 0.0, seed=0)
        assert len(result) == 0
        assert list(result.columns) == DETECTION_COLUMNS

    def test_sorted_by_elapsed_time(self, schedule, network):
        """Output is sorted by elapsed time."""
        shuffled = list(reversed(network))
        result = simulate_detections(schedule, shuffled, LogisticDetectionRange(3.0, -1 / 300), seed=5)
        assert len(result) > 0
        assert result["elapsed_time"].is_monotonic_increasing

    def test_ties_keep_receiver_order(self, schedule):
        """Equal times keep the receiver input order."""
        receivers = [Receiver(7, Point(0, 0)), Receiver(3, Point(10, 0))]
        result = simulate_detections(schedule, receivers, ConstantDetectionRange(1.0), seed=0)
        first = result[result["transmission_id"] == 1]
        assert first["receiver_id"].tolist() == [7, 3]

    def test_sequential_and_threaded_identical(self, schedule, network):
        """Threads give the same result as a sequential run."""
        fn = LogisticDetectionRange(2.0, -1 / 250)
        serial = simulate_detections(schedule, network, fn, seed=123)
        threaded = simulate_detections(schedule, network, fn, seed=123, max_workers=4)
        pd.testing.assert_frame_equal(serial, threaded)

    def test_same_seed_same_result(self, schedule, network):
        """The same seed gives the same detections."""
        fn = LogisticDetectionRange(2.0, -1 / 250)
        a = simulate_detections(schedule, network, fn, seed=42)
        b = simulate_detections(schedule, network, fn, seed=42)
        pd.testing.assert_frame_equal(a, b)

    def test_detection_rate_matches_probability(self, schedule):
        """Detection frequency matches a constant probability."""
        receivers = receivers_from_xy([(0, 0)])
        events = pd.concat([schedule.to_frame()] * 40, ignore_index=True)
        result = simulate_detections(events, receivers, ConstantDetectionRange(0.3), seed=8)
        assert len(result) / len(events) == pytest.approx(0.3, abs=0.05)

    def test_receiver_inputs(self, transmissions):
        """Receivers from a frame or an array."""
        frame = pd.DataFrame({"receiver_id": [10, 20], "x": [0.0, 30.0], "y": [0.0, 0.0]})
        result = simulate_detections(transmissions, frame, ConstantDetectionRange(1.0))
        assert set(result["receiver_id"]) == {10, 20}

        array = np.array([[0.0, 0.0], [30.0, 0.0]])
        result = simulate_detections(transmissions, array, ConstantDetectionRange(1.0))
        assert set(result["receiver_id"]) == {1, 2}

    def test_transmission_events_input(self, network):
        """Transmission events are accepted."""
        events = [TransmissionEvent(5, Point(0, 0), 1.5), TransmissionEvent(6, Point(1, 1), 2.5)]
        result = simulate_detections(events, network, ConstantDetectionRange(1.0))
        assert set(result["transmission_id"]) == {5, 6}

    def test_no_transmissions(self, network):
        """No transmissions is an empty-input error."""
        empty = pd.DataFrame({"x": [], "y": [], "elapsed_time": []})
        with pytest.raises(EmptyInputError):
            simulate_detections(empty, network, ConstantDetectionRange(1.0))
        with pytest.raises(EmptyInputError):
            simulate_detections([], network, ConstantDetectionRange(1.0))

    def test_no_receivers(self, transmissions):
        """No receivers is an empty-input error."""
        with pytest.raises(EmptyInputError):
            simulate_detections(transmissions, [], ConstantDetectionRange(1.0))

    def test_empty_input_is_validation_error(self, transmissions):
        """Empty-input errors are validation errors."""
        with pytest.raises(ValidationError):
            simulate_detections(transmissions, [], ConstantDetectionRange(1.0))

    def test_missing_columns(self, network):
        """Missing columns are rejected."""
        with pytest.raises(ValidationError):
            simulate_detections(pd.DataFrame({"x": [0.0], "y": [0.0]}), network, ConstantDetectionRange(1.0))

    def test_non_finite_values(self, network):
        """NaN coordinates are rejected."""
        bad = pd.DataFrame({"x": [np.nan], "y": [0.0], "elapsed_time": [0.0]})
        with pytest.raises(ValidationError):
            simulate_detections(bad, network, ConstantDetectionRange(1.0))

    @pytest.mark.parametrize("ids", [["a", "b"], [1.5, 2.0], [1.0, np.nan]])
    def test_non_integer_receiver_ids(self, transmissions, ids):
        """Receiver ids that are not whole numbers are rejected."""
        frame = pd.DataFrame({"receiver_id": ids, "x": [0.0, 30.0], "y": [0.0, 0.0]})
        with pytest.raises(ValidationError):
            simulate_detections(transmissions, frame, ConstantDetectionRange(1.0))

    def test_non_integer_transmission_ids(self, transmissions, network):
        """Transmission ids must convert to integers."""
        bad = transmissions.assign(transmission_id=["first", "second", "third"])
        with pytest.raises(ValidationError):
            simulate_detections(bad, network, ConstantDetectionRange(1.0))

    def test_non_numeric_coordinates(self, network):
        """Text coordinates are rejected."""
        bad = pd.DataFrame({"x": ["east"], "y": [0.0], "elapsed_time": [0.0]})
        with pytest.raises(ValidationError):
            simulate_detections(bad, network, ConstantDetectionRange(1.0))

    def test_duplicate_receiver_ids(self, transmissions):
        """Receiver ids must be unique."""
        receivers = [Receiver(1, Point(0, 0)), Receiver(1, Point(5, 5))]
        with pytest.raises(ValidationError):
            simulate_detections(transmissions, receivers, ConstantDetectionRange(1.0))

    @pytest.mark.parametrize("fn", [lambda d: 1.5, lambda d: -0.1, lambda d: np.nan])
    def test_probability_out_of_range(self, transmissions, network, fn):
        """Probabilities outside [0, 1] are rejected."""
        with pytest.raises(ValidationError):
            simulate_detections(transmissions, network, fn)

    def test_not_callable(self, transmissions, network):
        """The range function must be callable."""
        with pytest.raises(ValidationError):
            simulate_detections(transmissions, network, 0.5)

    def test_records(self, transmissions):
        """Detections convert to records."""
        result = simulate_detections(
            transmissions, [Receiver(1, Point(0, 0))], ThresholdDetectionRange(50.0)
        )
        records = detection_records(result)
        assert [r.transmission_id for r in records] == [1, 3]
        assert records[1].transmission_position == Point(30.0, 0.0)
        assert records[0].receiver_position == Point(0.0, 0.0)


class TestDetectionSimulator:
    """Test the reusable simulator."""

    def test_simulate(self, schedule, network):
        """The simulator forwards its settings."""
        sim = DetectionSimulator(ConstantDetectionRange(1.0), max_workers=2)
        result = sim.simulate(schedule, network, seed=3)
        assert len(result) == len(schedule) * len(network)

    def test_not_callable(self):
        """The range function must be callable."""
        with pytest.raises(ValidationError):
            DetectionSimulator("logistic")


class TestRangeFunctions:
    """Test detection range curves."""

    def test_logistic_defaults(self):
        """The default curve is one half at 60 m."""
        curve = LogisticDetectionRange()
        assert curve(60.0) == pytest.approx(0.5)
        assert curve(0.0) == pytest.approx(1 / (1 + np.exp(-0.5)))

    def test_logistic_decreasing(self):
        """Probability falls with distance."""
        p = LogisticDetectionRange(2.5, -0.01)(np.array([0, 100, 200, 400]))
        assert np.all(np.diff(p) < 0)

    def test_distance_at(self):
        """distance_at inverts the curve."""
        curve = LogisticDetectionRange(2.5, -0.01)
        d = curve.distance_at(0.5)
        assert d == pytest.approx(250.0)
        assert curve(d) == pytest.approx(0.5)
        with pytest.raises(ValidationError):
            curve.distance_at(1.0)

    def test_threshold(self):
        """Threshold is one up to the range and zero beyond."""
        curve = ThresholdDetectionRange(50.0, p=0.8)
        np.testing.assert_allclose(curve(np.array([0, 50, 51])), [0.8, 0.8, 0.0])

    def test_constant_shape(self):
        """Constant curves keep the input shape."""
        assert ConstantDetectionRange(0.2)(np.zeros(3)).shape == (3,)

    def test_invalid_curves(self):
        """Invalid curve parameters are rejected."""
        with pytest.raises(ValidationError):
            ThresholdDetectionRange(-1.0)
        with pytest.raises(ValidationError):
            ConstantDetectionRange(1.2)

    def test_evaluate_broadcasts_scalar(self):
        """A scalar result is broadcast to the distances."""
        p = evaluate_range_function(lambda d: 0.25, np.array([1.0, 2.0, 3.0]))
        np.testing.assert_allclose(p, [0.25, 0.25, 0.25])

    def test_evaluate_scalar_only_function(self):
        """Scalar-only functions are evaluated element by element."""
        p = evaluate_range_function(lambda d: 1.0 if d < 2 else 0.0, np.array([1.0, 2.0, 3.0]))
        np.testing.assert_allclose(p, [1.0, 0.0, 0.0])

    def test_evaluate_bad_shape(self):
        """Results of the wrong shape are rejected."""
        with pytest.raises(ValidationError):
            evaluate_range_function(lambda d: np.ones(2), np.array([1.0, 2.0, 3.0]))

    def test_evaluate_reports_bad_value(self):
        """The offending value is named in the error."""
        with pytest.raises(ValidationError, match="distance 2.000"):
            evaluate_range_function(lambda d: np.where(d > 1.5, 2.0, 0.5), np.array([1.0, 2.0]))
