import math

import numpy as np


# epsilon for testing whether a number is close to zero
_EPS = np.finfo(float).eps * 4.0


def quaternion_norm(q):
    """Return the norm of quaternion.

    Parameters
    ----------
    q : list or numpy.ndarray
        quaternion [w, x, y, z] order

    Returns
    -------
    norm_q : float
        quaternion norm of q

    Examples
    --------
    >>> from skstomp.math import quaternion_norm
    >>> quaternion_norm([1, 1, 1, 1])
    2.0
    """
    q = np.asarray(q, dtype=np.float64)
    return float(np.sqrt(np.dot(q, q)))


def quaternion_normalize(q):
    """Return the normalized quaternion.

    Parameters
    ----------
    q : list or numpy.ndarray
        quaternion [w, x, y, z] order

    Returns
    -------
    normalized_q : numpy.ndarray
        normalized quaternion
    """
    q = np.asarray(q, dtype=np.float64)
    norm = quaternion_norm(q)
    if norm < _EPS:
        raise ValueError('cannot normalize a zero quaternion')
    return q / norm


def quaternion2matrix(q, normalize=False):
    """Returns matrix of given quaternion.

    Parameters
    ----------
    q : list or numpy.ndarray
        quaternion [w, x, y, z] order
    normalize : bool
        if normalize is True, input quaternion is normalized.

    Returns
    -------
    rot : numpy.ndarray
        3x3 rotation matrix

    Examples
    --------
    >>> from skstomp.math import quaternion2matrix
    >>> quaternion2matrix([1, 0, 0, 0])
    array([[1., 0., 0.],
           [0., 1., 0.],
           [0., 0., 1.]])
    """
    q = np.asarray(q, dtype=np.float64)
    if normalize:
        q = quaternion_normalize(q)
    elif not np.allclose(quaternion_norm(q), 1.0):
        raise ValueError("quaternion q's norm is not 1")
    q0, q1, q2, q3 = q

    m = np.zeros((3, 3))
    m[0, 0] = q0 * q0 + q1 * q1 - q2 * q2 - q3 * q3
    m[0, 1] = 2 * (q1 * q2 - q0 * q3)
    m[0, 2] = 2 * (q1 * q3 + q0 * q2)

    m[1, 0] = 2 * (q1 * q2 + q0 * q3)
    m[1, 1] = q0 * q0 - q1 * q1 + q2 * q2 - q3 * q3
    m[1, 2] = 2 * (q2 * q3 - q0 * q1)

    m[2, 0] = 2 * (q1 * q3 - q0 * q2)
    m[2, 1] = 2 * (q2 * q3 + q0 * q1)
    m[2, 2] = q0 * q0 - q1 * q1 - q2 * q2 + q3 * q3
    return m


def matrix2quaternion(m):
    """Returns quaternion of given rotation matrix.

    Parameters
    ----------
    m : list or numpy.ndarray
        3x3 rotation matrix

    Returns
    -------
    quaternion : numpy.ndarray
        quaternion [w, x, y, z] order

    Examples
    --------
    >>> import numpy as np
    >>> from skstomp.math import matrix2quaternion
    >>> matrix2quaternion(np.eye(3))
    array([1., 0., 0., 0.])
    """
    m = np.asarray(m, dtype=np.float64)
    tr = m[0, 0] + m[1, 1] + m[2, 2]
    if tr > 0:
        S = math.sqrt(tr + 1.0) * 2
        qw = 0.25 * S
        qx = (m[2, 1] - m[1, 2]) / S
        qy = (m[0, 2] - m[2, 0]) / S
        qz = (m[1, 0] - m[0, 1]) / S
    elif (m[0, 0] > m[1, 1]) and (m[0, 0] > m[2, 2]):
        S = math.sqrt(1. + m[0, 0] - m[1, 1] - m[2, 2]) * 2
        qw = (m[2, 1] - m[1, 2]) / S
        qx = 0.25 * S
        qy = (m[0, 1] + m[1, 0]) / S
        qz = (m[0, 2] + m[2, 0]) / S
    elif m[1, 1] > m[2, 2]:
        S = math.sqrt(1. + m[1, 1] - m[0, 0] - m[2, 2]) * 2
        qw = (m[0, 2] - m[2, 0]) / S
        qx = (m[0, 1] + m[1, 0]) / S
        qy = 0.25 * S
        qz = (m[1, 2] + m[2, 1]) / S
    else:
        S = math.sqrt(1. + m[2, 2] - m[0, 0] - m[1, 1]) * 2
        qw = (m[1, 0] - m[0, 1]) / S
        qx = (m[0, 2] + m[2, 0]) / S
        qy = (m[1, 2] + m[2, 1]) / S
        qz = 0.25 * S
    return np.array([qw, qx, qy, qz])


def rotation_matrix(theta, axis):
    """Return the rotation matrix.

    Return the rotation matrix associated with counterclockwise rotation
    about the given axis by theta radians.

    Parameters
    ----------
    theta : float
        radian
    axis : list or numpy.ndarray
        rotation axis. It is normalized internally.

    Returns
    -------
    rot : numpy.ndarray
        rotation matrix about the given axis by theta radians.
    """
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.sqrt(np.dot(axis, axis))
    a = np.cos(theta / 2.0)
    b, c, d = -axis * np.sin(theta / 2.0)
    aa, bb, cc, dd = a * a, b * b, c * c, d * d
    bc, ad, ac, ab, bd, cd = b * c, a * d, a * c, a * b, b * d, c * d
    return np.array([[aa + bb - cc - dd, 2 * (bc + ad), 2 * (bd - ac)],
                     [2 * (bc - ad), aa + cc - bb - dd, 2 * (cd + ab)],
                     [2 * (bd + ac), 2 * (cd - ab), aa + dd - bb - cc]])


def rpy_matrix(az, ay, ax):
    """Return rotation matrix from yaw-pitch-roll angles.

    Parameters
    ----------
    az : float
        rotation around z axis (yaw).
    ay : float
        rotation around y axis (pitch).
    ax : float
        rotation around x axis (roll).

    Returns
    -------
    rot : numpy.ndarray
        3x3 rotation matrix ``Rz(az) Ry(ay) Rx(ax)``.
    """
    r = rotation_matrix(ax, [1, 0, 0])
    r = rotation_matrix(ay, [0, 1, 0]).dot(r)
    r = rotation_matrix(az, [0, 0, 1]).dot(r)
    return r


def rotation_error_vector(target_rot, current_rot):
    """Rotation vector (axis * angle) taking ``current_rot`` to ``target_rot``.

    Both rotations are expressed in the same (world) frame, so the
    returned vector is in that frame as well.
    """
    rel_rot = np.dot(target_rot, np.transpose(current_rot))
    trace_val = np.clip((np.trace(rel_rot) - 1) / 2, -1, 1)
    angle = np.arccos(trace_val)
    skew = np.array([
        rel_rot[2, 1] - rel_rot[1, 2],
        rel_rot[0, 2] - rel_rot[2, 0],
        rel_rot[1, 0] - rel_rot[0, 1]])
    if angle < 1e-6:
        return 0.5 * skew
    if np.pi - angle < 1e-6:
        # sin(angle) vanishes near pi; recover the axis from the diagonal.
        diag = np.clip((np.diag(rel_rot) + 1.0) / 2.0, 0.0, None)
        axis = np.sqrt(diag)
        k = int(np.argmax(axis))
        for i in range(3):
            if i != k and rel_rot[k, i] + rel_rot[i, k] < 0:
                axis[i] = -axis[i]
        return axis / np.linalg.norm(axis) * angle
    return skew / (2 * np.sin(angle)) * angle


def sr_inverse(J, k=1.0):
    """Returns SR-inverse of given Jacobian.

    Calculate Singularity-Robust Inverse
    See: `Inverse Kinematic Solutions With Singularity Robustness \
          for Robot Manipulator Control`

    Parameters
    ----------
    J : numpy.ndarray
        jacobian
    k : float
        damping coefficient. ``k=0`` gives the pseudo-inverse.

    Returns
    -------
    ret : numpy.ndarray
        result of SR-inverse
    """
    if k == 0.0:
        return np.linalg.pinv(J)
    r, _ = J.shape
    # J^T (J J^T + kI)^(-1)
    return np.matmul(J.T, np.linalg.inv(np.matmul(J, J.T) + k * np.eye(r)))
