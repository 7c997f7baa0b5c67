"""
Physics Engine Tests — motion, friction, cushions, pockets and collisions.

All positions are table pixels; one update() call is one frame.
"""

import sys
import os
import math
import dataclasses
import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from physics import (
    Ball, Table, PhysicsEngine, reflect_ray,
    TABLE_WIDTH, TABLE_HEIGHT, BALL_RADIUS, POCKET_RADIUS, FRICTION,
)


# ── Helpers ──────────────────────────────────────────────

def make_ball(x, y, vx=0.0, vy=0.0, name="ball", is_cue=False):
    return Ball(name, position=[x, y], velocity=[vx, vy], is_cue=is_cue)


@pytest.fixture
def engine():
    return PhysicsEngine(Table())


# ── Table ────────────────────────────────────────────────

class TestTable:

    def test_defaults(self):
        t = Table()
        assert (t.width, t.height) == (TABLE_WIDTH, TABLE_HEIGHT) == (800.0, 400.0)
        assert t.friction == FRICTION
        assert t.ball_radius == BALL_RADIUS
        assert t.pocket_radius == POCKET_RADIUS
        assert t.stop_epsilon is None

    def test_pockets_are_corners(self):
        np.testing.assert_array_equal(
            Table().pockets,
            [[0, 0], [800, 0], [0, 400], [800, 400]],
        )

    @pytest.mark.parametrize("friction", [0.0, 1.0, -0.5, 1.2])
    def test_friction_outside_unit_interval_rejected(self, friction):
        with pytest.raises(ValueError):
            Table(friction=friction)

    def test_bad_radius_rejected(self):
        with pytest.raises(ValueError):
            Table(ball_radius=0.0)

    def test_table_is_immutable(self):
        t = Table()
        with pytest.raises(dataclasses.FrozenInstanceError):
            t.friction = 0.5


# ── Motion + friction ────────────────────────────────────

class TestMotion:

    def test_position_integrates_before_friction(self, engine):
        b = make_ball(300, 200, vx=4.0, vy=-2.0)
        engine.update_ball(b)
        np.testing.assert_allclose(b.position, [304.0, 198.0])
        np.testing.assert_allclose(b.velocity, [4.0 * FRICTION, -2.0 * FRICTION])

    def test_speed_never_increases_without_contact(self, engine):
        b = make_ball(400, 200, vx=3.0, vy=1.0)
        last = b.speed
        for _ in range(200):
            engine.update_ball(b)
            assert b.speed <= last
            last = b.speed

    def test_speed_strictly_decreases_while_moving(self, engine):
        b = make_ball(400, 200, vx=0.5, vy=0.0)
        for _ in range(50):
            before = b.speed
            engine.update_ball(b)
            assert b.speed < before

    def test_no_snap_keeps_micro_drift(self, engine):
        b = make_ball(400, 200, vx=0.005)
        engine.update_ball(b)
        assert b.velocity[0] > 0.0

    def test_stop_epsilon_snaps_to_zero(self):
        engine = PhysicsEngine(Table(stop_epsilon=0.01))
        b = make_ball(400, 200, vx=0.005, vy=0.005)
        engine.update_ball(b)
        np.testing.assert_array_equal(b.velocity, [0.0, 0.0])

    def test_stop_epsilon_leaves_fast_ball_alone(self):
        engine = PhysicsEngine(Table(stop_epsilon=0.01))
        b = make_ball(400, 200, vx=2.0)
        engine.update_ball(b)
        assert b.velocity[0] == pytest.approx(2.0 * FRICTION)

    def test_potted_ball_is_frozen(self, engine):
        b = make_ball(400, 200, vx=3.0)
        b.potted = True
        engine.update_ball(b)
        np.testing.assert_array_equal(b.position, [400, 200])


# ── Cushions ─────────────────────────────────────────────

class TestCushions:

    def test_left_cushion_flips_vx_only(self, engine):
        b = make_ball(BALL_RADIUS + 1, 200, vx=-3.0, vy=1.5)
        engine.update_ball(b)
        assert b.velocity[0] > 0
        assert b.velocity[1] == pytest.approx(1.5 * FRICTION)

    def test_right_cushion(self, engine):
        b = make_ball(TABLE_WIDTH - BALL_RADIUS - 1, 200, vx=3.0)
        engine.update_ball(b)
        assert b.velocity[0] < 0

    def test_top_and_bottom_cushions(self, engine):
        top = make_ball(400, BALL_RADIUS + 1, vy=-3.0)
        bottom = make_ball(400, TABLE_HEIGHT - BALL_RADIUS - 1, vy=3.0)
        engine.update_ball(top)
        engine.update_ball(bottom)
        assert top.velocity[1] > 0
        assert bottom.velocity[1] < 0

    def test_exactly_on_cushion_line_reflects(self, engine):
        b = make_ball(BALL_RADIUS + 2, 200, vx=-2.0)
        engine.update_ball(b)
        assert b.position[0] == pytest.approx(BALL_RADIUS)
        assert b.velocity[0] > 0

    def test_position_not_clamped(self, engine):
        """The ball may end a frame beyond the cushion line."""
        b = make_ball(BALL_RADIUS + 1, 200, vx=-5.0)
        engine.update_ball(b)
        assert b.position[0] == pytest.approx(BALL_RADIUS - 4)
        assert b.velocity[0] == pytest.approx(5.0 * FRICTION)

    def test_clamp_walls_pulls_ball_back(self):
        engine = PhysicsEngine(Table(clamp_walls=True))
        b = make_ball(BALL_RADIUS + 1, 200, vx=-5.0)
        engine.update_ball(b)
        assert b.position[0] == pytest.approx(BALL_RADIUS)
        assert b.velocity[0] == pytest.approx(5.0 * FRICTION)

    def test_clamp_walls_does_not_flip_inward_ball(self):
        engine = PhysicsEngine(Table(clamp_walls=True))
        b = make_ball(BALL_RADIUS - 3, 200, vx=1.0)
        engine.update_ball(b)
        assert b.velocity[0] > 0

    def test_cushion_event(self, engine):
        b = make_ball(BALL_RADIUS + 1, 200, vx=-3.0, name="yellow")
        engine.update([b])
        assert engine.events[0]["type"] == "cushion"
        assert engine.events[0]["ball"] == "yellow"

    def test_resting_ball_past_line_is_silent(self):
        engine = PhysicsEngine(Table(friction=0.985, stop_epsilon=0.01))
        b = make_ball(BALL_RADIUS + 0.003, 200, vx=-0.0101)
        for _ in range(5):
            engine.update([b])
            assert engine.events == []
        assert b.position[0] < BALL_RADIUS
        assert b.speed == 0.0


# ── Pockets ──────────────────────────────────────────────

class TestPockets:

    def test_ball_at_pocket_centre_is_potted(self, engine):
        b = make_ball(0.0, 0.0)
        engine.update_ball(b)
        assert b.potted
        np.testing.assert_array_equal(b.velocity, [0.0, 0.0])

    @pytest.mark.parametrize("corner", [(0, 0), (800, 0), (0, 400), (800, 400)])
    def test_every_corner_captures(self, engine, corner):
        cx, cy = corner
        x = cx + (5 if cx == 0 else -5)
        y = cy + (5 if cy == 0 else -5)
        b = make_ball(x, y, vx=0.1)
        engine.update_ball(b)
        assert b.potted
        assert b.speed == 0.0

    def test_ball_outside_pocket_radius_stays(self, engine):
        b = make_ball(POCKET_RADIUS + 5, POCKET_RADIUS + 5)
        engine.update_ball(b)
        assert not b.potted

    def test_potted_is_permanent(self, engine):
        b = make_ball(3.0, 3.0)
        engine.update_ball(b)
        assert b.potted
        b.velocity[:] = [50.0, 50.0]
        for _ in range(10):
            engine.update([b])
            assert b.potted
        np.testing.assert_array_equal(b.position, [3.0, 3.0])

    def test_fast_ball_tunnels_past_pocket(self):
        """A ball whose one-frame move jumps over the pocket disc is not captured."""
        engine = PhysicsEngine(Table())
        # Heading diagonally into the top-left corner from outside the pocket
        b = make_ball(30.0, 30.0, vx=-60.0, vy=-60.0)
        engine.update_ball(b)
        # Landed at (-30, -30), far beyond the corner pocket
        assert not b.potted
        assert np.linalg.norm(b.position) > POCKET_RADIUS

    def test_pocket_event(self, engine):
        b = make_ball(2.0, 2.0, name="red")
        engine.update([b])
        assert {"type": "pocket", "ball": "red", "pocket": 0} in engine.events


# ── Ball-Ball Collision ──────────────────────────────────

class TestCollisions:

    def test_head_on_exchanges_velocity(self, engine):
        a = make_ball(100, 200, vx=3.0, name="a")
        b = make_ball(118, 200, name="b")
        engine.resolve_collisions([a, b])
        np.testing.assert_allclose(a.velocity, [0.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(b.velocity, [3.0, 0.0])

    def test_pair_separated_to_contact(self, engine):
        a = make_ball(100, 200, name="a")
        b = make_ball(114, 200, name="b")
        engine.resolve_collisions([a, b])
        assert np.linalg.norm(a.position - b.position) == pytest.approx(2 * BALL_RADIUS)
        # Each pushed by half the overlap
        assert a.position[0] == pytest.approx(97.0)
        assert b.position[0] == pytest.approx(117.0)

    def test_touching_exactly_is_not_a_collision(self, engine):
        a = make_ball(100, 200, vx=1.0, name="a")
        b = make_ball(120, 200, name="b")
        engine.resolve_collisions([a, b])
        np.testing.assert_array_equal(a.velocity, [1.0, 0.0])

    def test_non_finite_ball_leaves_others_alone(self, engine):
        bad = make_ball(math.nan, 200, vx=math.nan, name="bad")
        far = make_ball(600, 300, vx=1.0, name="far")
        engine.resolve_collisions([bad, far])
        np.testing.assert_array_equal(far.position, [600, 300])
        np.testing.assert_array_equal(far.velocity, [1.0, 0.0])
        assert engine.events == []

    @pytest.mark.parametrize("va,vb,offset", [
        ((3.0, 1.0), (-1.0, 0.5), (15.0, 6.0)),
        ((0.0, -2.0), (2.0, 2.0), (-4.0, 17.0)),
        ((1.5, 0.0), (0.0, 0.0), (12.0, -9.0)),
    ])
    def test_momentum_along_normal_conserved(self, engine, va, vb, offset):
        a = make_ball(400, 200, *va, name="a")
        b = make_ball(400 + offset[0], 200 + offset[1], *vb, name="b")
        n = (a.position - b.position) / np.linalg.norm(a.position - b.position)
        before_n = np.dot(a.velocity, n) + np.dot(b.velocity, n)
        before_total = a.velocity + b.velocity
        engine.resolve_collisions([a, b])
        after_n = np.dot(a.velocity, n) + np.dot(b.velocity, n)
        assert after_n == pytest.approx(before_n)
        np.testing.assert_allclose(a.velocity + b.velocity, before_total)

    def test_tangential_component_untouched(self, engine):
        # Vertical separation: normal is the y axis
        a = make_ball(400, 200, vx=2.0, vy=0.0, name="a")
        b = make_ball(400, 215, vx=-1.0, vy=-3.0, name="b")
        engine.resolve_collisions([a, b])
        assert a.velocity[0] == pytest.approx(2.0)
        assert b.velocity[0] == pytest.approx(-1.0)
        assert a.velocity[1] == pytest.approx(-3.0)
        assert b.velocity[1] == pytest.approx(0.0)

    def test_coincident_balls_are_skipped(self, engine):
        a = make_ball(300, 200, vx=1.0, name="a")
        b = make_ball(300, 200, vx=-1.0, name="b")
        engine.resolve_collisions([a, b])
        assert np.all(np.isfinite(a.velocity)) and np.all(np.isfinite(b.velocity))
        np.testing.assert_array_equal(a.velocity, [1.0, 0.0])
        np.testing.assert_array_equal(b.position, [300, 200])

    def test_potted_ball_does_not_collide(self, engine):
        a = make_ball(100, 200, vx=3.0, name="a")
        b = make_ball(110, 200, name="b")
        b.potted = True
        engine.resolve_collisions([a, b])
        np.testing.assert_array_equal(a.velocity, [3.0, 0.0])

    def test_resolution_is_order_dependent(self, engine):
        """Three balls in contact: list order changes the outcome."""
        def trio():
            return [
                make_ball(100, 200, vx=2.0, name="a"),
                make_ball(118, 200, name="b"),
                make_ball(136, 200, name="c"),
            ]
        first = trio()
        engine.resolve_collisions(first)
        second = trio()
        engine.resolve_collisions([second[1], second[2], second[0]])
        by_name = {b.name: b for b in second}
        assert not np.allclose(first[2].position, by_name["c"].position)

    def test_collision_event(self, engine):
        a = make_ball(100, 200, vx=3.0, name="cue")
        b = make_ball(118, 200, name="red")
        engine.resolve_collisions([a, b])
        ev = engine.events[-1]
        assert ev["type"] == "ball_ball"
        assert (ev["ball1"], ev["ball2"]) == ("cue", "red")
        assert ev["speed"] == pytest.approx(3.0)


# ── Full frame + headless simulation ─────────────────────

class TestUpdate:

    def test_collisions_resolved_after_all_moves(self, engine):
        a = make_ball(100, 200, vx=5.0, name="a")
        b = make_ball(125, 200, name="b")
        engine.update([a, b])
        # Exactly touching after the first move: no contact until the next frame
        assert a.position[0] == pytest.approx(105.0)
        engine.update([a, b])
        assert b.velocity[0] > 0

    def test_events_cleared_each_frame(self, engine):
        b = make_ball(2.0, 2.0, name="red")
        engine.update([b])
        assert engine.events
        engine.update([b])
        assert engine.events == []

    def test_simulate_stops_when_still(self):
        engine = PhysicsEngine(Table(stop_epsilon=0.01))
        balls = [make_ball(200, 200, vx=4.0, name="cue"), make_ball(500, 205, name="red")]
        frames = engine.simulate(balls, max_frames=5000)
        assert frames < 5000
        assert all(not b.is_moving() for b in balls)

    def test_simulate_respects_max_frames(self, engine):
        balls = [make_ball(200, 200, vx=4.0)]
        assert engine.simulate(balls, max_frames=10) == 10

    def test_cue_drives_object_ball(self):
        engine = PhysicsEngine(Table(stop_epsilon=0.01))
        cue = make_ball(150, 200, vx=6.0, name="cue", is_cue=True)
        obj = make_ball(300, 200, name="obj")
        engine.simulate([cue, obj])
        assert obj.position[0] > 300
        assert cue.position[0] < obj.position[0]


# ── Reflection preview ───────────────────────────────────

class TestReflectRay:

    def test_free_path_is_straight(self):
        pts = reflect_ray((400, 200), (1, 0), Table(), 100)
        assert len(pts) == 2
        np.testing.assert_allclose(pts[-1], [500, 200])

    def test_single_bounce_off_right_cushion(self):
        pts = reflect_ray((700, 200), (1, 0), Table(), 200)
        assert len(pts) == 3
        np.testing.assert_allclose(pts[1], [TABLE_WIDTH - BALL_RADIUS, 200])
        # 90 px to the cushion, 110 px back
        np.testing.assert_allclose(pts[2], [TABLE_WIDTH - BALL_RADIUS - 110, 200])

    def test_angled_bounce_keeps_length(self):
        pts = reflect_ray((100, 350), (1, 1), Table(), 200)
        total = sum(np.linalg.norm(b - a) for a, b in zip(pts, pts[1:]))
        assert total == pytest.approx(200)
        assert pts[1][1] == pytest.approx(TABLE_HEIGHT - BALL_RADIUS)
        # Reflected upward after the bottom cushion
        assert pts[2][1] < pts[1][1]
        assert pts[2][0] > pts[1][0]

    def test_stops_after_allowed_bounces(self):
        pts = reflect_ray((400, 200), (1, 0), Table(), 5000, bounces=1)
        assert len(pts) == 3
        np.testing.assert_allclose(pts[-1], [BALL_RADIUS, 200])

    def test_zero_direction(self):
        pts = reflect_ray((400, 200), (0, 0), Table(), 200)
        assert len(pts) == 1

    def test_direction_is_normalised(self):
        a = reflect_ray((400, 200), (0.1, 0), Table(), 50)
        b = reflect_ray((400, 200), (30, 0), Table(), 50)
        np.testing.assert_allclose(a[-1], b[-1])
        assert math.isclose(a[-1][0], 450)
