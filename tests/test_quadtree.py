"""
Quadtree tests: aggregate invariants, depth guard and force evaluation.
"""

import math

import numpy as np
import pytest

from studio_graph.layout.quadtree import QuadTree


def _grid_points(n):
    xs = [(i % 6) * 50.0 + i for i in range(n)]
    ys = [(i // 6) * 50.0 + 0.5 * i for i in range(n)]
    return xs, ys


def _exact_repulsion(xs, ys, i, strength):
    fx = fy = 0.0
    for j in range(len(xs)):
        if j == i:
            continue
        dx = xs[j] - xs[i]
        dy = ys[j] - ys[i]
        dist = math.hypot(dx, dy)
        f = strength / dist
        fx -= f * dx / dist
        fy -= f * dy / dist
    return fx, fy


class TestMassConservation:

    def test_root_mass_and_center_of_mass(self):
        rng = np.random.default_rng(3)
        xs = rng.uniform(-500, 500, 200)
        ys = rng.uniform(-300, 300, 200)

        tree = QuadTree(rng=rng)
        tree.build(xs, ys)

        assert tree.root_mass == 200
        assert tree.body_count == 200
        assert tree.center_of_mass_of(0) == tree.root_center_of_mass
        cx, cy = tree.root_center_of_mass
        assert cx == pytest.approx(float(xs.mean()), abs=1e-9)
        assert cy == pytest.approx(float(ys.mean()), abs=1e-9)

    def test_child_masses_sum_to_parent(self):
        xs, ys = _grid_points(30)
        tree = QuadTree()
        tree.build(xs, ys)

        for node in range(tree.node_count):
            children = [c for c in tree.children_of(node) if c >= 0]
            if children:
                assert sum(tree.mass_of(c) for c in children) == tree.mass_of(node)

    def test_root_box_contains_all_bodies(self):
        xs, ys = _grid_points(20)
        tree = QuadTree()
        tree.build(xs, ys)
        min_x, max_x, min_y, max_y = tree.root_bounds
        assert min_x < min(xs) and max_x > max(xs)
        assert min_y < min(ys) and max_y > max(ys)

    def test_empty_build(self):
        tree = QuadTree()
        tree.build([], [])
        assert tree.root_mass == 0
        fx, fy = tree.repulsion(800.0)
        assert fx.size == 0 and fy.size == 0


class TestDepthGuard:

    def test_coincident_points_fold_into_ancestor(self):
        xs = [10.0] * 50
        ys = [20.0] * 50
        tree = QuadTree(max_depth=20)
        tree.build(xs, ys)

        assert tree.root_mass == 50
        assert tree.root_center_of_mass == pytest.approx((10.0, 20.0))
        # one chain of cells down to the guard, no fan-out
        assert tree.node_count <= 21

    def test_smaller_guard_gives_shallower_tree(self):
        xs = [7.0, 7.0, 7.0]
        ys = [-3.0, -3.0, -3.0]
        shallow = QuadTree(max_depth=3)
        shallow.build(xs, ys)
        assert shallow.root_mass == 3
        assert shallow.node_count == 4

    def test_force_on_coincident_points_is_finite(self):
        tree = QuadTree(rng=np.random.default_rng(0))
        tree.build([5.0] * 10, [5.0] * 10)
        fx, fy = tree.repulsion(100.0)
        assert np.all(np.isfinite(fx)) and np.all(np.isfinite(fy))


class TestForces:

    def test_two_body_symmetry_in_exact_mode(self):
        tree = QuadTree(theta=0.0)
        tree.build([0.0, 30.0], [0.0, 40.0])

        fa = tree.force_on(0, 800.0)
        fb = tree.force_on(1, 800.0)

        assert fa[0] == pytest.approx(-fb[0])
        assert fa[1] == pytest.approx(-fb[1])
        # magnitude strength / dist, directed away from the other body
        assert fa == pytest.approx((-9.6, -12.8))

    def test_exact_mode_matches_brute_force(self):
        xs, ys = _grid_points(24)
        tree = QuadTree(theta=0.0)
        tree.build(xs, ys)
        fx, fy = tree.repulsion(500.0)

        for i in range(len(xs)):
            ex, ey = _exact_repulsion(xs, ys, i, 500.0)
            assert fx[i] == pytest.approx(ex, rel=1e-9, abs=1e-9)
            assert fy[i] == pytest.approx(ey, rel=1e-9, abs=1e-9)

    def test_single_body_feels_nothing(self):
        tree = QuadTree()
        tree.build([100.0], [100.0])
        assert tree.force_on(0, 800.0) == (0.0, 0.0)

    def test_approximation_keeps_direction(self):
        # a far cluster to the right pushes the lone body to the left
        xs = [0.0] + [1000.0 + i for i in range(10)]
        ys = [0.0] + [float(i) for i in range(10)]
        tree = QuadTree(theta=0.8)
        tree.build(xs, ys)
        fx, _ = tree.force_on(0, 800.0)
        assert fx < 0


class TestArenaReuse:

    def test_capacity_is_kept_between_builds(self):
        xs, ys = _grid_points(30)
        tree = QuadTree()
        tree.build(xs, ys)
        capacity = tree.capacity

        tree.build(xs[:10], ys[:10])
        assert tree.capacity == capacity
        assert tree.body_count == 10
        assert tree.root_mass == 10
