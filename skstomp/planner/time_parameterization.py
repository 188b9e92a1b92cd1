"""Time parameterization of joint trajectories.

The waypoints are interpolated by a cubic spline over a uniform path
parameter ``s`` in [0, 1] and TOPP-RA computes the time-optimal path
velocity ``sd(s)`` under per-joint velocity and acceleration limits,
starting and ending at rest. Time stamps follow from integrating
``ds / sd`` with a constant path acceleration on every grid interval;
waypoint velocities and accelerations are the chain rule derivatives
``q' sd`` and ``q'' sd^2 + q' sdd``.
"""

from logging import getLogger

import numpy as np
import toppra as ta
import toppra.algorithm as algo
import toppra.constraint as constraint

from skstomp.errors import RetimingError
from skstomp.trajectory import JointTrajectory
from skstomp.trajectory import JointTrajectoryPoint


logger = getLogger(__name__)

GRIDPOINTS_PER_SEGMENT = 3


class TimeOptimalParameterization(object):
    """Retiming oracle with per-joint velocity and acceleration limits.

    Parameters
    ----------
    max_velocity : array-like (dof,)
        velocity limit of each joint.
    max_acceleration : array-like (dof,)
        acceleration limit of each joint.
    gridpoints_per_segment : int
        TOPP-RA grid intervals between two consecutive waypoints.
    """

    def __init__(self, max_velocity, max_acceleration,
                 gridpoints_per_segment=GRIDPOINTS_PER_SEGMENT):
        self.max_velocity = np.asarray(max_velocity, dtype=np.float64)
        self.max_acceleration = np.asarray(max_acceleration,
                                           dtype=np.float64)
        self.gridpoints_per_segment = int(gridpoints_per_segment)

    @classmethod
    def from_group(cls, group):
        return cls(group.velocity_limits, group.acceleration_limits)

    def compute_time_stamps(self, trajectory, velocity_scale=1.0):
        """Return a time-stamped copy of ``trajectory``.

        Raises
        ------
        RetimingError
            when the scale or the limits are invalid, the positions are
            not finite or TOPP-RA finds no feasible parameterization.
        """
        if not 0.0 < velocity_scale <= 1.0:
            raise RetimingError(
                'Velocity scaling factor must be in (0, 1], got {}'.format(
                    velocity_scale))
        positions = trajectory.positions
        dof = len(trajectory.joint_names)
        if positions.shape[1] != dof:
            raise RetimingError('Waypoints do not match the joint names')
        for name, limits in (('velocity', self.max_velocity),
                             ('acceleration', self.max_acceleration)):
            if limits.shape != (dof,):
                raise RetimingError('Expected {} {} limits, got {}'.format(
                    dof, name, limits.shape))
            if np.any(~np.isfinite(limits)) or np.any(limits <= 0.0):
                raise RetimingError(
                    'Joint {} limits must be positive'.format(name))
        if not np.all(np.isfinite(positions)):
            raise RetimingError('Trajectory contains non finite positions')

        n = len(positions)
        if n < 2 or np.allclose(positions, positions[0]):
            # no motion, every waypoint is reached at rest immediately
            times = np.zeros(n)
            velocities = np.zeros_like(positions)
            accelerations = np.zeros_like(positions)
        else:
            times, velocities, accelerations = self._parameterize(
                positions, velocity_scale)

        points = [
            JointTrajectoryPoint(positions[i].copy(), velocities[i],
                                 accelerations[i], float(times[i]))
            for i in range(n)]
        logger.debug('Retimed %d waypoints, duration %f', n,
                     times[-1] if n else 0.0)
        return JointTrajectory(list(trajectory.joint_names), points)

    __call__ = compute_time_stamps

    def _parameterize(self, positions, velocity_scale):
        n = len(positions)
        ss_waypoints = np.linspace(0.0, 1.0, n)
        path = ta.SplineInterpolator(ss_waypoints, positions)

        vlim = self.max_velocity * velocity_scale
        alim = self.max_acceleration
        constraints = [
            constraint.JointVelocityConstraint(np.column_stack((-vlim, vlim))),
            constraint.JointAccelerationConstraint(
                np.column_stack((-alim, alim))),
        ]
        step = self.gridpoints_per_segment
        gridpoints = np.linspace(0.0, 1.0, (n - 1) * step + 1)
        instance = algo.TOPPRA(constraints, path, gridpoints=gridpoints)
        sdd_vec, sd_vec, _ = instance.compute_parameterization(0.0, 0.0)
        if sd_vec is None or sdd_vec is None:
            raise RetimingError(
                'TOPP-RA found no feasible time parameterization')
        sd_vec = np.maximum(np.asarray(sd_vec, dtype=np.float64), 0.0)
        sdd_vec = np.asarray(sdd_vec, dtype=np.float64)

        speed = sd_vec[:-1] + sd_vec[1:]
        if np.any(speed <= 0.0):
            raise RetimingError('Path velocity vanishes inside the path')
        grid_times = np.zeros(len(gridpoints))
        grid_times[1:] = np.cumsum(2.0 * np.diff(gridpoints) / speed)

        index = np.arange(n) * step
        sd = sd_vec[index]
        sdd = sdd_vec[np.minimum(index, len(sdd_vec) - 1)]
        ss = gridpoints[index]
        dq = path(ss, 1)
        ddq = path(ss, 2)
        velocities = dq * sd[:, None]
        accelerations = ddq * (sd ** 2)[:, None] + dq * sdd[:, None]
        return grid_times[index], velocities, accelerations
