from functools import lru_cache
from logging import getLogger

import numpy as np
import scipy.linalg

from skstomp.errors import SmoothingError


logger = getLogger(__name__)

POLYNOMIAL_ORDER = 5
JOINT_LIMIT_MARGIN = 1e-5


@lru_cache(maxsize=100)
def _sample_points(n_points):
    return np.linspace(0.0, 1.0, n_points)


@lru_cache(maxsize=100)
def _vandermonde(n_points, order):
    return np.vander(_sample_points(n_points), order + 1, increasing=True)


def constrained_polynomial_fit(x, y, order, fixed_x, fixed_y):
    """Least squares polynomial fit passing exactly through fixed points.

    Solves ``min ||V c - y||^2  s.t.  A c = b`` through its KKT system,
    where ``V`` and ``A`` are the Vandermonde matrices of ``x`` and
    ``fixed_x``.

    Parameters
    ----------
    x : numpy.ndarray (n,)
    y : numpy.ndarray (n,)
    order : int
        polynomial order.
    fixed_x : numpy.ndarray (m,)
    fixed_y : numpy.ndarray (m,)

    Returns
    -------
    coeffs : numpy.ndarray (order + 1,)
        coefficients in increasing order.
    """
    V = np.vander(x, order + 1, increasing=True)
    A = np.vander(fixed_x, order + 1, increasing=True)
    n_coeffs = order + 1
    n_fixed = len(fixed_x)
    kkt = np.zeros((n_coeffs + n_fixed, n_coeffs + n_fixed))
    kkt[:n_coeffs, :n_coeffs] = 2.0 * V.T.dot(V)
    kkt[:n_coeffs, n_coeffs:] = A.T
    kkt[n_coeffs:, :n_coeffs] = A
    rhs = np.hstack((2.0 * V.T.dot(y), fixed_y))
    sol = scipy.linalg.solve(kkt, rhs)
    return sol[:n_coeffs]


def apply_polynomial_smoothing(group, parameters,
                               poly_order=POLYNOMIAL_ORDER,
                               joint_limit_margin=JOINT_LIMIT_MARGIN):
    """Smooth every joint row of ``parameters`` with a bounded polynomial.

    Each row is replaced by a polynomial fit of order ``poly_order``
    (lowered to ``timesteps - 1`` for short trajectories) that passes
    through both endpoints. Interior samples leaving the joint bounds
    are pinned to the bound, shrunk by ``joint_limit_margin``, and the
    row is fit again. The first and last columns are never altered.

    Parameters
    ----------
    group : skstomp.model.JointGroup
        joint group providing the bounds of each row.
    parameters : numpy.ndarray (dof, timesteps)
        parameter matrix.
    poly_order : int
        polynomial order.
    joint_limit_margin : float
        distance kept from a bound when pinning a sample.

    Returns
    -------
    smoothed : numpy.ndarray (dof, timesteps)
        smoothed copy of ``parameters``.
    """
    parameters = np.array(parameters, dtype=np.float64)
    dof, n_points = parameters.shape
    if n_points < 3:
        raise SmoothingError(
            'Polynomial smoothing needs at least 3 points, got {}'.format(
                n_points))
    order = min(poly_order, n_points - 1)
    x = _sample_points(n_points)
    V = _vandermonde(n_points, order)

    smoothed = parameters.copy()
    for r in range(dof):
        y = parameters[r]
        lower, upper = group.lower[r], group.upper[r]
        fixed = {0: y[0], n_points - 1: y[-1]}
        while True:
            if len(fixed) > order + 1:
                raise SmoothingError(
                    'Could not keep joint {} within bounds with a '
                    'polynomial of order {}'.format(
                        group.joint_names[r], order))
            idx = np.array(sorted(fixed))
            try:
                coeffs = constrained_polynomial_fit(
                    x, y, order, x[idx], np.array([fixed[i] for i in idx]))
            except (np.linalg.LinAlgError, ValueError) as e:
                raise SmoothingError(
                    'Polynomial fit failed for joint {}: {}'.format(
                        group.joint_names[r], e))
            fit = V.dot(coeffs)
            if not np.all(np.isfinite(fit)):
                raise SmoothingError(
                    'Polynomial fit diverged for joint {}'.format(
                        group.joint_names[r]))
            violated = [i for i in range(1, n_points - 1)
                        if i not in fixed
                        and (fit[i] < lower or fit[i] > upper)]
            if not violated:
                break
            worst = max(violated, key=lambda i: max(lower - fit[i],
                                                    fit[i] - upper))
            if fit[worst] < lower:
                fixed[worst] = lower + joint_limit_margin
            else:
                fixed[worst] = upper - joint_limit_margin

        smoothed[r, 1:-1] = fit[1:-1]

    logger.debug('Applied polynomial smoothing of order %d to %d joints',
                 order, dof)
    return smoothed
