import unittest

import numpy as np
from numpy import testing

from skstomp.errors import RetimingError
from skstomp.model import JointGroup
from skstomp.planner.conversion import parameters_to_trajectory
from skstomp.planner.time_parameterization import \
    TimeOptimalParameterization


class TestTimeOptimalParameterization(unittest.TestCase):

    def setUp(self):
        self.max_velocity = np.array([1.0, 2.0])
        self.max_acceleration = np.array([4.0, 4.0])
        self.retime = TimeOptimalParameterization(self.max_velocity,
                                                  self.max_acceleration)
        self.trajectory = parameters_to_trajectory(
            np.array([[0.0, 0.5, 1.0, 1.5, 2.0],
                      [0.0, 0.5, 1.0, 1.5, 2.0]]), ['a', 'b'])

    def test_time_stamps(self):
        retimed = self.retime(self.trajectory, 1.0)
        times = retimed.time_from_start
        self.assertEqual(times[0], 0.0)
        self.assertTrue(np.all(np.diff(times) > 0.0))
        testing.assert_equal(retimed.positions, self.trajectory.positions)
        self.assertEqual(retimed.joint_names, ['a', 'b'])
        # joint a moves 2.0 at no more than 1.0
        self.assertGreaterEqual(retimed.duration, 2.0 - 1e-3)
        # starting and ending at rest
        testing.assert_almost_equal(retimed.points[0].velocities, [0.0, 0.0])
        testing.assert_almost_equal(retimed.points[-1].velocities,
                                    [0.0, 0.0])

    def test_velocity_limits(self):
        retimed = self.retime(self.trajectory, 1.0)
        velocities = np.array([p.velocities for p in retimed.points])
        self.assertTrue(np.all(
            np.abs(velocities) <= self.max_velocity + 1e-3))
        self.assertGreater(np.max(np.abs(velocities[:, 0])), 0.0)

    def test_velocity_scale(self):
        fast = self.retime(self.trajectory, 1.0)
        slow = self.retime.compute_time_stamps(self.trajectory, 0.5)
        self.assertGreater(slow.duration, fast.duration)
        self.assertGreaterEqual(slow.duration, 4.0 - 1e-3)

    def test_two_waypoints(self):
        retime = TimeOptimalParameterization([100.0], [1.0])
        trajectory = parameters_to_trajectory(np.array([[0.0, 1.0]]), ['a'])
        retimed = retime(trajectory, 1.0)
        # acceleration limited rest-to-rest motion takes 2 * sqrt(1 / 1)
        self.assertGreaterEqual(retimed.duration, 2.0 - 1e-3)
        self.assertLess(retimed.duration, 2.3)

    def test_no_motion(self):
        trajectory = parameters_to_trajectory(np.ones((2, 3)), ['a', 'b'])
        retimed = self.retime(trajectory, 1.0)
        testing.assert_equal(retimed.time_from_start, [0.0, 0.0, 0.0])
        testing.assert_equal(retimed.positions, trajectory.positions)

    def test_input_is_not_modified(self):
        self.retime(self.trajectory, 1.0)
        testing.assert_equal(self.trajectory.time_from_start,
                             [0, 0, 0, 0, 0])

    def test_from_group(self):
        group = JointGroup('arm', ['a', 'b'], [[-1, 1], [-1, 1]],
                           velocity_limits=[0.5, 0.5],
                           acceleration_limits=[2.0, 2.0])
        retime = TimeOptimalParameterization.from_group(group)
        testing.assert_equal(retime.max_velocity, [0.5, 0.5])
        testing.assert_equal(retime.max_acceleration, [2.0, 2.0])

    def test_invalid(self):
        with self.assertRaises(RetimingError):
            self.retime(self.trajectory, 0.0)
        with self.assertRaises(RetimingError):
            self.retime(self.trajectory, 1.5)
        with self.assertRaises(RetimingError):
            TimeOptimalParameterization([1.0], [1.0])(
                self.trajectory, 1.0)
        with self.assertRaises(RetimingError):
            TimeOptimalParameterization([1.0, 0.0], [1.0, 1.0])(
                self.trajectory, 1.0)
        trajectory = parameters_to_trajectory(
            np.array([[0.0, np.nan, 1.0],
                      [0.0, 0.0, 0.0]]), ['a', 'b'])
        with self.assertRaises(RetimingError):
            self.retime(trajectory, 1.0)
