from logging import getLogger

import numpy as np

from skstomp.errors import InvalidGroupError
from skstomp.math import rotation_matrix
from skstomp.math import rpy_matrix


logger = getLogger(__name__)

_JOINT_TYPES = ('rotational', 'linear', 'fixed')


def _read_only(arr):
    arr = np.array(arr, dtype=np.float64)
    arr.flags.writeable = False
    return arr


class ChainJoint(object):
    """A joint of a serial chain in URDF convention.

    Parameters
    ----------
    name : str
        joint name.
    parent_link : str
        name of the link the joint is attached to.
    child_link : str
        name of the link moved by the joint.
    joint_type : str
        'rotational', 'linear' or 'fixed'.
    axis : list or numpy.ndarray
        joint axis expressed in the joint frame.
    translation : list or numpy.ndarray
        origin of the joint frame in the parent link frame.
    rpy : list or numpy.ndarray
        orientation of the joint frame in the parent link frame as
        [roll, pitch, yaw].
    """

    def __init__(self, name, parent_link, child_link,
                 joint_type='rotational', axis=(0, 0, 1),
                 translation=(0, 0, 0), rpy=(0, 0, 0)):
        if joint_type not in _JOINT_TYPES:
            raise ValueError('joint_type must be one of {}, got {}'.format(
                _JOINT_TYPES, joint_type))
        self.name = name
        self.parent_link = parent_link
        self.child_link = child_link
        self.joint_type = joint_type
        axis = np.asarray(axis, dtype=np.float64)
        self.axis = _read_only(axis / np.linalg.norm(axis))
        self.translation = _read_only(translation)
        roll, pitch, yaw = rpy
        self.rotation = _read_only(rpy_matrix(yaw, pitch, roll))

    @property
    def movable(self):
        return self.joint_type != 'fixed'

    def local_transform(self, q):
        """Pose of the child link frame in the parent link frame."""
        rot = self.rotation
        pos = self.translation
        if self.joint_type == 'rotational':
            rot = rot.dot(rotation_matrix(q, self.axis))
        elif self.joint_type == 'linear':
            pos = pos + rot.dot(self.axis) * q
        return pos, rot

    def __repr__(self):
        return '<ChainJoint {} ({}: {} -> {})>'.format(
            self.name, self.joint_type, self.parent_link, self.child_link)


class SerialChain(object):
    """Root-to-tip chain of joints with forward kinematics.

    Parameters
    ----------
    joints : list[ChainJoint]
        joints ordered from the root to the tip.
    tool_translation : list or numpy.ndarray
        offset of the tool frame in the last link frame.
    tool_rpy : list or numpy.ndarray
        orientation of the tool frame in the last link frame.
    """

    def __init__(self, joints, tool_translation=(0, 0, 0),
                 tool_rpy=(0, 0, 0)):
        self.joints = tuple(joints)
        self.tool_translation = _read_only(tool_translation)
        roll, pitch, yaw = tool_rpy
        self.tool_rotation = _read_only(rpy_matrix(yaw, pitch, roll))

    @property
    def movable_joints(self):
        return [j for j in self.joints if j.movable]

    @property
    def n_joints(self):
        return len(self.movable_joints)

    @property
    def root_links(self):
        """Links that are parents in the chain but never children."""
        children = set(j.child_link for j in self.joints)
        roots = []
        for j in self.joints:
            if j.parent_link not in children and j.parent_link not in roots:
                roots.append(j.parent_link)
        return roots

    @property
    def base_link(self):
        roots = self.root_links
        return roots[0] if roots else None

    @property
    def tip_link(self):
        return self.joints[-1].child_link if self.joints else None

    def _frames(self, q):
        q = np.asarray(q, dtype=np.float64)
        if len(q) != self.n_joints:
            raise ValueError('expected {} joint values, got {}'.format(
                self.n_joints, len(q)))
        pos = np.zeros(3)
        rot = np.eye(3)
        frames = []
        k = 0
        for joint in self.joints:
            angle = 0.0
            if joint.movable:
                angle = q[k]
                k += 1
            local_pos, local_rot = joint.local_transform(angle)
            # joint frame before actuation is needed for the jacobian
            joint_pos = pos + rot.dot(joint.translation)
            joint_axis = rot.dot(joint.rotation).dot(joint.axis)
            pos = pos + rot.dot(local_pos)
            rot = rot.dot(local_rot)
            if joint.movable:
                frames.append((joint.joint_type, joint_pos, joint_axis))
        tool_pos = pos + rot.dot(self.tool_translation)
        tool_rot = rot.dot(self.tool_rotation)
        return tool_pos, tool_rot, frames

    def forward_kinematics(self, q):
        """Return tool position and rotation matrix for joint vector ``q``.

        Returns
        -------
        position : numpy.ndarray (3,)
        rotation : numpy.ndarray (3, 3)
        """
        pos, rot, _ = self._frames(q)
        return pos, rot

    def jacobian(self, q):
        """Geometric jacobian (6, n_joints) of the tool frame in the base frame.

        Rows are ordered [linear velocity, angular velocity].
        """
        tool_pos, _, frames = self._frames(q)
        jac = np.zeros((6, len(frames)))
        for i, (joint_type, joint_pos, joint_axis) in enumerate(frames):
            if joint_type == 'rotational':
                jac[:3, i] = np.cross(joint_axis, tool_pos - joint_pos)
                jac[3:, i] = joint_axis
            else:
                jac[:3, i] = joint_axis
        return jac


class JointGroup(object):
    """Immutable description of a named group of active joints.

    The order of ``joint_names`` defines the row order of every joint
    vector and parameter matrix handled by the planner.

    Parameters
    ----------
    name : str
        group name.
    joint_names : list[str]
        ordered active joint names.
    bounds : array-like (n_joints, 2)
        per-joint [min, max] position bounds.
    chain : SerialChain or None
        kinematic chain used for cartesian requests.
    base_link : str or None
        base frame name. Defaults to the chain root.
    tool_link : str or None
        tool frame name. Defaults to the chain tip.
    velocity_limits : array-like (n_joints,) or None
        defaults to 1.0 for every joint.
    acceleration_limits : array-like (n_joints,) or None
        defaults to 1.0 for every joint.
    """

    def __init__(self, name, joint_names, bounds, chain=None,
                 base_link=None, tool_link=None,
                 velocity_limits=None, acceleration_limits=None):
        self._name = name
        self._joint_names = tuple(joint_names)
        n = len(self._joint_names)
        bounds = np.asarray(bounds, dtype=np.float64).reshape(-1, 2)
        if bounds.shape[0] != n:
            raise ValueError('bounds must have {} rows, got {}'.format(
                n, bounds.shape[0]))
        if np.any(bounds[:, 0] > bounds[:, 1]):
            raise ValueError('lower bound is larger than upper bound')
        self._bounds = _read_only(bounds)
        if chain is not None and chain.n_joints != n:
            raise ValueError(
                'chain has {} movable joints but group {} has {}'.format(
                    chain.n_joints, name, n))
        self._chain = chain
        if base_link is None and chain is not None:
            base_link = chain.base_link
        if tool_link is None and chain is not None:
            tool_link = chain.tip_link
        self._base_link = base_link
        self._tool_link = tool_link
        if velocity_limits is None:
            velocity_limits = np.ones(n)
        if acceleration_limits is None:
            acceleration_limits = np.ones(n)
        self._velocity_limits = _read_only(velocity_limits)
        self._acceleration_limits = _read_only(acceleration_limits)

    @classmethod
    def from_chain(cls, name, chain, bounds, **kwargs):
        """Create a group whose active joints are the chain's movable joints."""
        joint_names = [j.name for j in chain.movable_joints]
        return cls(name, joint_names, bounds, chain=chain, **kwargs)

    @property
    def name(self):
        return self._name

    @property
    def joint_names(self):
        return self._joint_names

    @property
    def dof(self):
        return len(self._joint_names)

    @property
    def bounds(self):
        return self._bounds

    @property
    def lower(self):
        return self._bounds[:, 0]

    @property
    def upper(self):
        return self._bounds[:, 1]

    @property
    def chain(self):
        return self._chain

    @property
    def base_link(self):
        return self._base_link

    @property
    def tool_link(self):
        return self._tool_link

    @property
    def velocity_limits(self):
        return self._velocity_limits

    @property
    def acceleration_limits(self):
        return self._acceleration_limits

    @property
    def chain_roots(self):
        """Number of chain roots. 0 when the group has no chain."""
        if self._chain is None:
            return 0
        return len(self._chain.root_links)

    def mid_range(self):
        """Joint vector in the middle of the bounds.

        Unbounded joints are placed at 0.
        """
        mid = (self.lower + self.upper) / 2.0
        return np.where(np.isfinite(mid), mid, 0.0)

    def satisfies_bounds(self, q, margin=0.0):
        q = np.asarray(q, dtype=np.float64)
        if q.shape != (self.dof,):
            return False
        return bool(np.all(q >= self.lower - margin)
                    and np.all(q <= self.upper + margin))

    def enforce_bounds(self, q):
        return np.clip(np.asarray(q, dtype=np.float64),
                       self.lower, self.upper)

    def __repr__(self):
        return '<JointGroup {} {}>'.format(self._name, list(self._joint_names))


class RobotModel(object):
    """Collection of joint groups of one robot.

    This plays the kinematic model provider role for the planner.
    """

    def __init__(self, name, groups=None):
        self.name = name
        self._groups = {}
        for group in groups or []:
            self.add_group(group)

    def add_group(self, group):
        if group.name in self._groups:
            logger.warning('Overwriting joint group %s of %s',
                           group.name, self.name)
        self._groups[group.name] = group

    @property
    def group_names(self):
        return list(self._groups.keys())

    def has_group(self, name):
        return name in self._groups

    def get_group(self, name):
        try:
            return self._groups[name]
        except KeyError:
            raise InvalidGroupError(
                "Planning group '{}' was not found in robot '{}'".format(
                    name, self.name))

    def active_joint_names(self, name):
        return list(self.get_group(name).joint_names)

    def joint_bounds(self, name):
        return self.get_group(name).bounds

    def chain_roots(self, name):
        return self.get_group(name).chain_roots

    def base_link_name(self, name):
        return self.get_group(name).base_link

    def tool_link_name(self, name):
        return self.get_group(name).tool_link
