from __future__ import annotations

import math

from pygame.math import Vector2
from pytest import approx

from aviary.sim.core.agent import Boid, NeighborState
from aviary.sim.core.config import FlockWeights


def _boid(boid_id: int, x: float, y: float, vx: float = 0.0, vy: float = 0.0, **kwargs) -> Boid:
    return Boid(id=boid_id, position=Vector2(x, y), velocity=Vector2(vx, vy), **kwargs)


def test_boid_uses_slots_and_isolates_defaults():
    first = _boid(0, 0.0, 0.0)
    second = _boid(1, 0.0, 0.0)

    assert not hasattr(first, "__dict__")
    assert hasattr(Boid, "__slots__")
    assert first.acceleration is not second.acceleration
    first.acceleration.x = 2.0
    assert second.acceleration.x == 0.0


def test_defaults_match_reference_tunables():
    boid = _boid(0, 0.0, 0.0)
    assert boid.max_speed == 4.0
    assert boid.max_force == 0.1
    assert boid.perception_radius == 100.0


def test_lone_boid_coasts_without_steering():
    boid = _boid(0, 400.0, 300.0, vx=1.0)

    neighbors = boid.flock([boid], FlockWeights(), None)
    assert neighbors == 0
    assert (boid.acceleration.x, boid.acceleration.y) == (0.0, 0.0)

    boid.update()
    assert (boid.velocity.x, boid.velocity.y) == approx((1.0, 0.0))
    assert (boid.position.x, boid.position.y) == approx((401.0, 300.0))


def test_rules_return_zero_without_neighbors_in_radius():
    boid = _boid(0, 100.0, 100.0, vx=1.0)
    far = _boid(1, 250.0, 100.0, vx=-3.0)
    flock = [boid, far]

    for rule in (boid.align, boid.cohesion, boid.separation):
        steering = rule(flock)
        assert (steering.x, steering.y) == (0.0, 0.0)


def test_separation_uses_half_the_perception_radius():
    boid = _boid(0, 100.0, 100.0)
    mid = _boid(1, 160.0, 100.0, vy=2.0)

    separation = boid.separation([boid, mid])
    alignment = boid.align([boid, mid])

    assert (separation.x, separation.y) == (0.0, 0.0)
    assert alignment.length() > 0.0


def test_neighbors_on_the_radius_are_excluded():
    boid = _boid(0, 0.0, 0.0)
    edge = _boid(1, 100.0, 0.0, vy=3.0)
    steering = boid.align([boid, edge])
    assert (steering.x, steering.y) == (0.0, 0.0)


def test_separation_pushes_close_pair_apart():
    left = _boid(0, 395.0, 300.0)
    right = _boid(1, 405.0, 300.0)
    flock = [left, right]

    push_left = left.separation(flock)
    push_right = right.separation(flock)

    assert push_left.x < 0 < push_right.x
    for push in (push_left, push_right):
        assert 0.0 < push.length() <= left.max_force + 1e-9
        assert push.y == approx(0.0)


def test_separation_tolerates_coincident_boids():
    first = _boid(0, 50.0, 50.0)
    second = _boid(1, 50.0, 50.0)
    steering = first.separation([first, second])
    assert (steering.x, steering.y) == (0.0, 0.0)


def test_alignment_steers_toward_neighbor_heading():
    boid = _boid(0, 0.0, 0.0)
    neighbor = _boid(1, 20.0, 0.0, vy=2.0)

    steering = boid.align([boid, neighbor])

    assert (steering.x, steering.y) == approx((0.0, 0.1))


def test_cohesion_steers_toward_local_center():
    boid = _boid(0, 0.0, 0.0)
    neighbors = [boid, _boid(1, 50.0, 10.0), _boid(2, 50.0, -10.0)]

    steering = boid.cohesion(neighbors)

    assert steering.x > 0
    assert steering.y == approx(0.0)
    assert steering.length() == approx(boid.max_force)


def test_attraction_is_zero_without_point():
    boid = _boid(0, 10.0, 10.0, vx=1.0)
    steering = boid.attract(None)
    assert (steering.x, steering.y) == (0.0, 0.0)


def test_attraction_points_toward_target_with_doubled_cap():
    boid = _boid(0, 400.0, 300.0, vx=0.5, vy=-0.5)
    point = Vector2(100.0, 500.0)

    steering = boid.attract(point)

    assert steering.dot(point - boid.position) >= 0
    assert steering.length() <= 2 * boid.max_force + 1e-9
    assert steering.length() == approx(2 * boid.max_force)


def test_flock_assigns_weighted_attraction_and_update_consumes_it():
    boid = _boid(0, 400.0, 300.0)
    boid.flock([boid], FlockWeights(), Vector2(700.0, 300.0))

    assert (boid.acceleration.x, boid.acceleration.y) == approx((0.6, 0.0))

    boid.update()
    assert (boid.velocity.x, boid.velocity.y) == approx((0.6, 0.0))
    assert (boid.position.x, boid.position.y) == approx((400.6, 300.0))
    assert (boid.acceleration.x, boid.acceleration.y) == (0.0, 0.0)


def test_flock_overwrites_previous_acceleration():
    boid = _boid(0, 0.0, 0.0)
    boid.acceleration.update(5.0, 5.0)
    boid.flock([boid], FlockWeights(), None)
    assert (boid.acceleration.x, boid.acceleration.y) == (0.0, 0.0)


def test_zero_weights_silence_flock_rules():
    boid = _boid(0, 0.0, 0.0, vx=1.0)
    other = _boid(1, 10.0, 5.0, vy=-2.0)

    boid.flock([boid, other], FlockWeights(separation=0.0, alignment=0.0, cohesion=0.0), None)

    assert (boid.acceleration.x, boid.acceleration.y) == approx((0.0, 0.0))


def test_update_limits_velocity_before_moving():
    boid = _boid(0, 0.0, 0.0, vx=3.0)
    boid.acceleration.update(5.0, 0.0)

    boid.update()

    assert boid.velocity.length() == approx(boid.max_speed)
    assert (boid.position.x, boid.position.y) == approx((4.0, 0.0))


def test_edges_wrap_both_axes():
    boid = _boid(0, 801.0, -3.0)
    boid.edges(800.0, 600.0)
    assert boid.position.x == 0.0
    assert boid.position.y == approx(600.0)
    assert 0.0 <= boid.position.y < 600.0

    inside = _boid(1, 10.0, 20.0)
    inside.edges(800.0, 600.0)
    assert (inside.position.x, inside.position.y) == (10.0, 20.0)


def test_boid_leaving_left_edge_reappears_on_right():
    boid = _boid(0, 0.0, 300.0, vx=-2.0)

    boid.edges(800.0, 600.0)
    boid.update()
    assert boid.position.x == approx(-2.0)

    boid.edges(800.0, 600.0)
    assert 0.0 <= boid.position.x < 800.0
    assert boid.position.x == approx(800.0)

    boid.flock([boid], FlockWeights(), None)
    boid.update()
    assert boid.position.x == approx(798.0)


def test_per_boid_perception_radius():
    short_sighted = _boid(0, 0.0, 0.0, perception_radius=10.0)
    neighbor = _boid(1, 20.0, 0.0, vx=1.0)
    steering = short_sighted.align([short_sighted, neighbor])
    assert (steering.x, steering.y) == (0.0, 0.0)


def test_neighbor_state_capture_is_a_frozen_copy():
    boid = _boid(7, 1.0, 2.0, vx=3.0, vy=4.0)
    state = NeighborState.capture(boid)

    boid.position.update(100.0, 100.0)

    assert state.id == 7
    assert (state.position.x, state.position.y) == (1.0, 2.0)
    assert (state.velocity.x, state.velocity.y) == (3.0, 4.0)


def test_boid_ignores_its_own_snapshot():
    boid = _boid(3, 0.0, 0.0)
    own = NeighborState.capture(boid)
    other = NeighborState(4, Vector2(10.0, 0.0), Vector2())

    assert boid.flock([own, other], FlockWeights(), None) == 1
    assert boid.acceleration.x < 0
    assert math.isfinite(boid.acceleration.y)
