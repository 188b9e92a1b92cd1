"""Conversion between parameter matrices and joint trajectories.

A parameter matrix has one row per active joint and one column per
timestep; column 0 is the start and the last column is the goal.
"""

from logging import getLogger

import numpy as np

from skstomp.errors import DimensionMismatch
from skstomp.errors import RetimingError
from skstomp.request import Constraints
from skstomp.trajectory import JointTrajectory
from skstomp.trajectory import JointTrajectoryPoint


logger = getLogger(__name__)


def parameters_to_trajectory(parameters, joint_names):
    """Convert a parameter matrix to an untimed joint trajectory.

    Parameters
    ----------
    parameters : numpy.ndarray (dof, timesteps)
        parameter matrix.
    joint_names : list[str]
        active joint names, one per row.

    Returns
    -------
    trajectory : skstomp.trajectory.JointTrajectory
        one waypoint per column with zero velocities, accelerations and
        time stamps.
    """
    parameters = np.asarray(parameters, dtype=np.float64)
    dof = len(joint_names)
    if parameters.ndim != 2 or parameters.shape[0] != dof:
        raise DimensionMismatch(
            'Parameter matrix of shape {} does not have {} rows'.format(
                parameters.shape, dof))
    points = [JointTrajectoryPoint(parameters[:, t].copy())
              for t in range(parameters.shape[1])]
    return JointTrajectory(list(joint_names), points)


def trajectory_to_parameters(trajectory):
    """Convert a joint trajectory to a parameter matrix (dof, timesteps)."""
    dof = len(trajectory.joint_names)
    parameters = np.zeros((dof, len(trajectory.points)))
    for t, point in enumerate(trajectory.points):
        positions = np.asarray(point.positions, dtype=np.float64)
        if positions.shape != (dof,):
            raise DimensionMismatch(
                'Waypoint {} has {} positions, expected {}'.format(
                    t, positions.size, dof))
        parameters[:, t] = positions
    return parameters


def retime_trajectory(trajectory, velocity_scale, time_parameterization):
    """Time-stamp ``trajectory`` with an external retiming oracle.

    Parameters
    ----------
    trajectory : skstomp.trajectory.JointTrajectory
        untimed trajectory.
    velocity_scale : float
        scaling factor in (0, 1] of the velocity limits.
    time_parameterization : callable
        ``retime(trajectory, velocity_scale) -> JointTrajectory``. It may
        raise RetimingError or return None to signal failure.

    Returns
    -------
    trajectory : skstomp.trajectory.JointTrajectory
        time-stamped trajectory.
    """
    retimed = time_parameterization(trajectory, velocity_scale)
    if retimed is None:
        raise RetimingError('Failed to generate timing data')
    times = retimed.time_from_start
    if len(times) > 1 and np.any(np.diff(times) < 0):
        raise RetimingError('Time stamps are not monotonically increasing')
    return retimed


def encode_seed(trajectory):
    """Encode a joint trajectory as a sequence of joint constraints.

    The result can be passed back as ``MotionRequest.trajectory_constraints``.

    Returns
    -------
    constraints : list[skstomp.request.Constraints]
        one joint-valued entry per waypoint.
    """
    dof = len(trajectory.joint_names)
    seed = []
    for t, point in enumerate(trajectory.points):
        if len(point.positions) != dof:
            raise DimensionMismatch(
                'All trajectory position fields must have same dimensions '
                'as joint_names (waypoint {})'.format(t))
        seed.append(Constraints.from_joint_values(
            trajectory.joint_names, point.positions))
    return seed
