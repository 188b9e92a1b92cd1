"""Symbolic motion plan request types."""

import dataclasses
from dataclasses import dataclass
from dataclasses import field
from typing import List
from typing import Optional

import numpy as np

from skstomp.math import quaternion_normalize


@dataclass
class Pose:
    """End-effector pose.

    Attributes
    ----------
    position : numpy.ndarray (3,)
        position in the base frame.
    orientation : numpy.ndarray (4,)
        quaternion [w, x, y, z] order.
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    orientation: np.ndarray = field(
        default_factory=lambda: np.array([1.0, 0.0, 0.0, 0.0]))

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64)
        self.orientation = quaternion_normalize(self.orientation)


@dataclass
class JointConstraint:
    joint_name: str
    position: float
    tolerance_above: float = 0.0
    tolerance_below: float = 0.0
    weight: float = 1.0


@dataclass
class PositionConstraint:
    link_name: str
    target_point: np.ndarray
    weight: float = 1.0

    def __post_init__(self):
        self.target_point = np.asarray(self.target_point, dtype=np.float64)


@dataclass
class OrientationConstraint:
    link_name: str
    orientation: np.ndarray
    weight: float = 1.0

    def __post_init__(self):
        self.orientation = quaternion_normalize(self.orientation)


@dataclass
class Constraints:
    """One goal region entry or one seed waypoint.

    It is joint-valued when ``joint_constraints`` is not empty and
    cartesian when it carries both position and orientation constraints.
    """

    name: str = ''
    joint_constraints: List[JointConstraint] = field(default_factory=list)
    position_constraints: List[PositionConstraint] = field(
        default_factory=list)
    orientation_constraints: List[OrientationConstraint] = field(
        default_factory=list)

    @property
    def is_joint(self):
        return len(self.joint_constraints) > 0

    @property
    def is_cartesian(self):
        return (len(self.position_constraints) > 0
                and len(self.orientation_constraints) > 0)

    def pose(self, index=0):
        """Target pose of the ``index``-th position/orientation pair."""
        return Pose(self.position_constraints[index].target_point,
                    self.orientation_constraints[index].orientation)

    @classmethod
    def from_joint_values(cls, joint_names, values, name=''):
        values = np.asarray(values, dtype=np.float64)
        if len(joint_names) != len(values):
            raise ValueError('got {} values for {} joints'.format(
                len(values), len(joint_names)))
        return cls(name=name, joint_constraints=[
            JointConstraint(n, float(v)) for n, v in zip(joint_names, values)])

    @classmethod
    def from_pose(cls, link_name, pose, name=''):
        return cls(
            name=name,
            position_constraints=[
                PositionConstraint(link_name, pose.position)],
            orientation_constraints=[
                OrientationConstraint(link_name, pose.orientation)])


@dataclass
class RobotState:
    """Joint positions of the whole robot, keyed by joint name."""

    joint_names: List[str] = field(default_factory=list)
    positions: List[float] = field(default_factory=list)

    def __post_init__(self):
        self.joint_names = list(self.joint_names)
        self.positions = [float(p) for p in self.positions]
        if len(self.joint_names) != len(self.positions):
            raise ValueError('joint_names and positions differ in length')

    @classmethod
    def from_dict(cls, mapping):
        return cls(list(mapping.keys()), list(mapping.values()))

    def to_dict(self):
        return dict(zip(self.joint_names, self.positions))

    def joint_vector(self, joint_names):
        """Positions for ``joint_names``; raises KeyError for a missing joint."""
        table = self.to_dict()
        return np.array([table[name] for name in joint_names],
                        dtype=np.float64)

    def updated(self, joint_names, values):
        """Copy of this state with ``joint_names`` set to ``values``."""
        table = self.to_dict()
        for name, value in zip(joint_names, values):
            table[name] = float(value)
        return RobotState.from_dict(table)


@dataclass
class MotionRequest:
    """Motion plan request for one joint group.

    Attributes
    ----------
    group_name : str
        joint group to plan for.
    start_state : RobotState
        full robot start state. Only the group's joints are used.
    goal_constraints : list[Constraints]
        goal region entries, scanned in order.
    trajectory_constraints : list[Constraints]
        optional seed, one entry per waypoint.
    allowed_planning_time : float
        wall-clock budget in seconds.
    max_velocity_scaling_factor : float
        velocity scale in (0, 1] used for retiming.
    start_pose : Pose or None
        cartesian start, resolved by IK when the goal region is cartesian.
    """

    group_name: str = ''
    start_state: RobotState = field(default_factory=RobotState)
    goal_constraints: List[Constraints] = field(default_factory=list)
    trajectory_constraints: List[Constraints] = field(default_factory=list)
    allowed_planning_time: float = 5.0
    max_velocity_scaling_factor: float = 1.0
    start_pose: Optional[Pose] = None

    @property
    def has_seed(self):
        return len(self.trajectory_constraints) > 0

    def replace(self, **changes):
        return dataclasses.replace(self, **changes)


@dataclass
class ResolvedRequest:
    """Numeric inputs of one solve, derived from a :class:`MotionRequest`.

    ``request`` is the request downstream consumers should observe. In
    direct cartesian mode it is a copy whose start state and goal
    constraints were replaced by the resolved joint values; the caller's
    request object is never modified.

    Attributes
    ----------
    request : MotionRequest
    start : numpy.ndarray (dof,)
    goal : numpy.ndarray (dof,)
    parameters : numpy.ndarray (dof, timesteps) or None
        seed matrix in seed mode, None in direct mode.
    ik_failures : int
        number of tolerated IK failures while building a cartesian seed.
    """

    request: MotionRequest
    start: np.ndarray
    goal: np.ndarray
    parameters: Optional[np.ndarray] = None
    ik_failures: int = 0

    @property
    def use_seed(self):
        return self.parameters is not None
