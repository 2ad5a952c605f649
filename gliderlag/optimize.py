"""
Small wrapper around the derivative-free minimizers in scipy, so the
estimators do not depend on which one is used.
"""
import collections
import logging

import numpy as np
import scipy.optimize

_log = logging.getLogger(__name__)

# returned instead of a non-finite cost so the search moves away from it
PENALTY = 1e10

MinimizeResult = collections.namedtuple(
    'MinimizeResult', ['params', 'cost', 'converged', 'nfev', 'message'])


def _nelder_mead(fun, x0, bounds, maxiter, maxfev, xatol, fatol):
    return scipy.optimize.minimize(
        fun, x0, method='Nelder-Mead', bounds=bounds,
        options={'maxiter': maxiter, 'maxfev': maxfev,
                 'xatol': xatol, 'fatol': fatol, 'adaptive': len(x0) > 2})


def _powell(fun, x0, bounds, maxiter, maxfev, xatol, fatol):
    return scipy.optimize.minimize(
        fun, x0, method='Powell', bounds=bounds,
        options={'maxiter': maxiter, 'maxfev': maxfev,
                 'xtol': xatol, 'ftol': fatol})


_BACKENDS = {
    'nelder-mead': _nelder_mead,
    'powell': _powell,
}


def available_methods():
    return sorted(_BACKENDS)


def minimize(cost_fn, initial_guess, bounds=None, method='nelder-mead',
             maxiter=None, maxfev=None, xatol=1e-4, fatol=1e-4):
    """
    Minimize *cost_fn* starting from *initial_guess*.

    Parameters
    ----------
    cost_fn : callable
        ``cost_fn(params) -> float``.
    initial_guess : array
    bounds : sequence of (low, high), optional
    method : {'nelder-mead', 'powell'}
    maxiter, maxfev : int, optional
        Caps on iterations and function evaluations.
    xatol, fatol : float
        Convergence tolerances on the parameters and the cost.

    Returns
    -------
    MinimizeResult
        ``params``, ``cost``, ``converged`` (bool), ``nfev`` and the
        backend ``message``.
    """
    try:
        backend = _BACKENDS[method.lower()]
    except KeyError:
        raise ValueError(f'Unknown minimization method {method!r}; '
                         f'expected one of {available_methods()}') from None

    def fun(params):
        cost = cost_fn(np.asarray(params))
        if not np.isfinite(cost):
            return PENALTY
        return float(cost)

    x0 = np.atleast_1d(np.asarray(initial_guess, dtype=np.float64))
    if bounds is not None:
        bounds = scipy.optimize.Bounds(*np.asarray(bounds, dtype=np.float64).T)
        x0 = np.clip(x0, bounds.lb, bounds.ub)
    res = backend(fun, x0, bounds, maxiter, maxfev, xatol, fatol)
    converged = bool(res.success) and res.fun < PENALTY
    _log.debug('%s: %s after %d evaluations, cost %s', method, res.message,
               res.nfev, res.fun)
    return MinimizeResult(np.atleast_1d(res.x), float(res.fun), converged,
                          int(res.nfev), str(res.message))
