"""
Tests for movement modules.

Tests the correlated random walk including:
- Containment in convex and non-convex regions
- Reproducibility from seeds
- Failure modes (start outside, exhausted retries, zero-area region)
- Turning-angle distributions
"""

import numpy as np
import pytest

from telemsim.exceptions import BoundaryViolationError, ValidationError
from telemsim.landscape import PolygonBoundary, rectangle_boundary
from telemsim.movement import (
    CallableTurningAngle,
    NormalTurningAngle,
    PathGenerator,
    UniformTurningAngle,
    VonMisesTurningAngle,
    generate_path,
    resolve_turn_distribution,
)
from telemsim.parameters import SimulationParameters


@pytest.fixture
def u_shape():
    return PolygonBoundary([
        (0, 0), (100, 0), (100, 100), (60, 100),
        (60, 40), (40, 40), (40, 100), (0, 100),
    ])


def assert_path_inside(path, boundary):
    assert np.all(boundary.contains_many(path.xy))
    for a, b in zip(path.xy[:-1], path.xy[1:]):
        assert boundary.segment_inside(a, b)


class TestGeneratePath:
    """Test boundary-constrained correlated random walk."""

    @pytest.mark.parametrize("seed", range(8))
    def test_path_stays_in_non_convex_region(self, u_shape, seed):
        """Every step and segment stays in the U-shaped basin."""
        path = generate_path(
            (20.0, 10.0), 5.0, 150, u_shape,
            UniformTurningAngle(-180, 180), rng=seed,
        )
        assert len(path) == 151
        assert_path_inside(path, u_shape)

    @pytest.mark.parametrize("seed", range(5))
    def test_path_stays_in_convex_region(self, seed):
        """Every step stays in a square."""
        square = rectangle_boundary(0, 0, 50, 50)
        path = generate_path(
            (25.0, 25.0), 4.0, 100, square,
            NormalTurningAngle(0, 90), rng=seed,
        )
        assert_path_inside(path, square)

    def test_default_turning_in_open_water(self):
        """Default turning gives steps of the requested length."""
        square = rectangle_boundary(0, 0, 1000, 1000)
        path = generate_path((500, 500), 10.0, 20, square, rng=3)
        assert len(path) == 21
        assert path.origin.as_tuple() == (500.0, 500.0)
        assert np.allclose(path.segment_lengths(), 10.0)

    def test_same_seed_same_path(self, u_shape):
        """The same seed gives the same path."""
        kwargs = dict(turn_angle_dist=UniformTurningAngle(-180, 180), rng=11)
        p1 = generate_path((20, 10), 5.0, 50, u_shape, **kwargs)
        p2 = generate_path((20, 10), 5.0, 50, u_shape, **kwargs)
        np.testing.assert_array_equal(p1.xy, p2.xy)

    def test_straight_line_with_zero_turning(self):
        """Zero turning walks a straight line east."""
        square = rectangle_boundary(-1000, -1000, 1000, 1000)
        path = generate_path(
            (0, 0), 10.0, 5, square, NormalTurningAngle(0, 0), initial_heading=90.0, rng=0
        )
        np.testing.assert_allclose(path.x, [0, 10, 20, 30, 40, 50])
        np.testing.assert_allclose(path.y, 0.0, atol=1e-9)

    def test_heading_zero_is_north(self):
        """Heading 0 points north."""
        square = rectangle_boundary(-100, -100, 100, 100)
        path = generate_path((0, 0), 10.0, 1, square, NormalTurningAngle(0, 0), initial_heading=0.0)
        assert path[1].x == pytest.approx(0.0, abs=1e-9)
        assert path[1].y == pytest.approx(10.0)

    def test_random_start(self, u_shape):
        """A missing start is drawn inside the region."""
        path = generate_path(None, 2.0, 10, u_shape, UniformTurningAngle(-180, 180), rng=5)
        assert u_shape.contains(path.origin)

    def test_start_outside(self, u_shape):
        """A start on land fails at step 0."""
        with pytest.raises(BoundaryViolationError) as exc:
            generate_path((50, 80), 5.0, 10, u_shape, rng=1)
        assert exc.value.step_index == 0

    def test_retries_exhausted(self):
        """Walking straight into a wall fails at the first step."""
        square = rectangle_boundary(0, 0, 100, 100)
        with pytest.raises(BoundaryViolationError) as exc:
            generate_path(
                (50, 99), 10.0, 5, square, NormalTurningAngle(0, 0),
                initial_heading=0.0, max_retries=3,
            )
        assert exc.value.step_index == 1
        assert exc.value.position == pytest.approx((50.0, 109.0))
        assert "step=1" in str(exc.value)

    def test_zero_area_region_fails(self):
        """A degenerate region rejects the start point."""
        line = PolygonBoundary([(0, 0), (10, 0), (20, 0)])
        with pytest.raises(BoundaryViolationError):
            generate_path((5, 0), 1.0, 10, line, rng=2)
        with pytest.raises(BoundaryViolationError):
            generate_path((5, 1), 1.0, 10, line, rng=2)
        with pytest.raises(BoundaryViolationError):
            generate_path(None, 1.0, 10, line, rng=2)

    def test_zero_area_region_fails_along_line(self):
        """A walk heading along a degenerate region still fails at the start."""
        line = PolygonBoundary([(0, 0), (10, 0), (20, 0)])
        with pytest.raises(BoundaryViolationError) as exc:
            generate_path(
                (5, 0), 1.0, 3, line, NormalTurningAngle(0, 0), initial_heading=90.0
            )
        assert exc.value.step_index == 0

    @pytest.mark.parametrize("kwargs", [
        dict(step_length=0.0, num_steps=10),
        dict(step_length=-1.0, num_steps=10),
        dict(step_length=float("nan"), num_steps=10),
        dict(step_length=1.0, num_steps=0),
        dict(step_length=1.0, num_steps=2.5),
    ])
    def test_invalid_arguments(self, kwargs):
        """Invalid step length and step count are rejected."""
        square = rectangle_boundary(0, 0, 10, 10)
        with pytest.raises(ValidationError):
            generate_path((5, 5), boundary=square, **kwargs)

    def test_invalid_retries(self):
        """The retry budget must be positive."""
        square = rectangle_boundary(0, 0, 10, 10)
        with pytest.raises(ValidationError):
            generate_path((5, 5), 1.0, 3, square, max_retries=0)


class TestPathGenerator:
    """Test the reusable generator."""

    def test_from_parameters(self):
        """The generator reads step and turning parameters."""
        square = rectangle_boundary(0, 0, 5000, 5000)
        params = SimulationParameters(step_length=50.0, turn_angle_sd=5.0, max_retries=20)
        gen = PathGenerator.from_parameters(square, params)
        assert gen.step_length == 50.0
        assert gen.max_retries == 20
        assert isinstance(gen.turn_angle_dist, NormalTurningAngle)
        assert gen.turn_angle_dist.sd == 5.0

        path = gen.generate(10, start=(2500, 2500), rng=7)
        assert len(path) == 11
        assert np.allclose(path.segment_lengths(), 50.0)

    def test_callable_turning(self):
        """Four right turns from a callable close a square."""
        square = rectangle_boundary(-100, -100, 100, 100)
        gen = PathGenerator(square, 10.0, turn_angle_dist=lambda rng: 90.0)
        path = gen.generate(4, start=(0, 0), initial_heading=0.0)
        # Four right turns close a square
        assert path[-1].x == pytest.approx(0.0, abs=1e-9)
        assert path[-1].y == pytest.approx(0.0, abs=1e-9)

    def test_repr_and_name(self):
        """Generators describe themselves."""
        gen = PathGenerator(rectangle_boundary(0, 0, 1, 1), 0.1)
        assert "PolygonBoundary" in repr(gen)
        assert gen.get_name() == "CRW(NormalTurningAngle)"

    def test_invalid_step_length(self):
        """The step length must be positive."""
        with pytest.raises(ValidationError):
            PathGenerator(rectangle_boundary(0, 0, 1, 1), 0.0)


class TestTurningAngles:
    """Test turning-angle distributions."""

    def test_normal_scalar_and_array(self):
        """Normal angles for scalar and array sizes."""
        rng = np.random.default_rng(0)
        dist = NormalTurningAngle(0, 10)
        assert isinstance(dist.sample(rng), float)
        draws = dist.sample(rng, 5000)
        assert draws.shape == (5000,)
        assert abs(draws.mean()) < 1.0
        assert draws.std() == pytest.approx(10.0, rel=0.1)

    def test_normal_zero_sd_is_constant(self):
        """Zero spread always returns the mean."""
        dist = NormalTurningAngle(15, 0)
        np.testing.assert_array_equal(dist.sample(None, 3), [15.0, 15.0, 15.0])

    def test_von_mises_in_degrees(self):
        """Von Mises draws are in degrees."""
        rng = np.random.default_rng(1)
        draws = VonMisesTurningAngle(0, kappa=8).sample(rng, 2000)
        assert np.all(np.abs(draws) <= 180.0)
        assert draws.std() < 40.0

    def test_uniform_bounds(self):
        """Uniform draws stay within their bounds."""
        rng = np.random.default_rng(2)
        draws = UniformTurningAngle(-30, 30).sample(rng, 1000)
        assert draws.min() >= -30 and draws.max() <= 30

    def test_resolve(self):
        """Distributions resolve from objects, callables and None."""
        assert isinstance(resolve_turn_distribution(None), NormalTurningAngle)
        assert isinstance(resolve_turn_distribution(lambda rng: 0.0), CallableTurningAngle)
        dist = UniformTurningAngle()
        assert resolve_turn_distribution(dist) is dist
        with pytest.raises(ValidationError):
            resolve_turn_distribution(5)

    @pytest.mark.parametrize("factory", [
        lambda: NormalTurningAngle(0, -1),
        lambda: VonMisesTurningAngle(0, 0),
        lambda: UniformTurningAngle(10, -10),
    ])
    def test_invalid_parameters(self, factory):
        """Invalid distribution parameters are rejected."""
        with pytest.raises(ValidationError):
            factory()
