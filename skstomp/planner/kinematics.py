from logging import getLogger
import time

import numpy as np

from skstomp.errors import ChainTopologyError
from skstomp.errors import IKFailure
from skstomp.math import quaternion2matrix
from skstomp.math import rotation_error_vector
from skstomp.math import sr_inverse


logger = getLogger(__name__)

IK_EPSILON = 1e-3
IK_TIMEOUT = 0.01


class IKSolver(object):
    """Single-chain inverse kinematics with a fixed tolerance and timeout.

    The solver iterates damped least-squares steps on the group's chain,
    clamping every iterate to the joint bounds, until both the position
    error and the rotation error fall below ``epsilon`` or ``timeout``
    seconds have elapsed. There is no restart: a failure is reported
    to the caller as is.

    Parameters
    ----------
    epsilon : float
        position [m] and orientation [rad] tolerance.
    timeout : float
        wall-clock limit of one call in seconds.
    max_iterations : int
        iteration limit of one call, checked together with the timeout.
    damping : float
        damping of the singularity-robust inverse.
    max_step : float
        largest joint displacement norm of one iteration.
    """

    def __init__(self, epsilon=IK_EPSILON, timeout=IK_TIMEOUT,
                 max_iterations=1000, damping=1e-4, max_step=0.5):
        self.epsilon = epsilon
        self.timeout = timeout
        self.max_iterations = max_iterations
        self.damping = damping
        self.max_step = max_step

    def solve(self, target_pose, group, hint=None):
        """Solve IK of ``group``'s tool frame for ``target_pose``.

        Parameters
        ----------
        target_pose : skstomp.request.Pose
            tool pose in the group's base frame.
        group : skstomp.model.JointGroup
            joint group; its chain must have exactly one root.
        hint : numpy.ndarray (dof,) or None
            initial configuration. The middle of the joint bounds is used
            when it is None.

        Returns
        -------
        q : numpy.ndarray (dof,)
            joint vector reaching ``target_pose``.

        Raises
        ------
        ChainTopologyError
            when the group is not a single-root chain.
        IKFailure
            when no solution within tolerance was found in time.
        """
        if group.chain_roots != 1:
            raise ChainTopologyError(
                'Group {} must be a chain with exactly one root, found {}'
                .format(group.name, group.chain_roots))
        chain = group.chain

        if hint is None or len(hint) == 0:
            q = group.mid_range()
        else:
            q = np.array(hint, dtype=np.float64)
            if q.shape != (group.dof,):
                raise ValueError('hint must have {} elements, got {}'.format(
                    group.dof, q.shape))
        q = group.enforce_bounds(q)

        target_pos = np.asarray(target_pose.position, dtype=np.float64)
        target_rot = quaternion2matrix(target_pose.orientation,
                                       normalize=True)

        start = time.perf_counter()
        for _ in range(self.max_iterations):
            pos, rot = chain.forward_kinematics(q)
            pos_error = target_pos - pos
            rot_error = rotation_error_vector(target_rot, rot)
            if (np.linalg.norm(pos_error) <= self.epsilon
                    and np.linalg.norm(rot_error) <= self.epsilon):
                return q
            if time.perf_counter() - start > self.timeout:
                break
            jac = chain.jacobian(q)
            dq = sr_inverse(jac, k=self.damping).dot(
                np.hstack((pos_error, rot_error)))
            step = np.linalg.norm(dq)
            if step > self.max_step:
                dq *= self.max_step / step
            q = group.enforce_bounds(q + dq)

        logger.warning('Failed to get IK for position %s orientation %s',
                       target_pos, target_pose.orientation)
        raise IKFailure('No IK solution for group {} within {}'.format(
            group.name, self.epsilon))

    __call__ = solve


def solve_ik(target_pose, group, hint=None):
    """Solve IK with a freshly created default :class:`IKSolver`."""
    return IKSolver().solve(target_pose, group, hint=hint)
