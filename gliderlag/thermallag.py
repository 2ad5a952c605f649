"""
Thermal lag and sensor time response corrections for glider CTDs, and the
estimation of their parameters from pairs of profiles that sample the same
water column in opposite directions.

The thermal lag model is the recursive filter of Lueck and Picklo (1990)
and Morison et al. (1994), with flow-speed dependent parameters as in
Garau et al. (2011):

    alpha = alpha_offset + alpha_slope / V
    tau = tau_offset + tau_slope / sqrt(V)

where V is the flow speed through the conductivity cell.
"""
import collections
import logging

import numpy as np
from scipy.integrate import trapezoid
from scipy.interpolate import PchipInterpolator

import gliderlag.optimize as optimize
import gliderlag.utils as utils
from gliderlag._config_components import (
    MORISON_PARAMS,
    OptimizerOptions,
    ThermalLagOptions,
    TimeConstantOptions,
)

_log = logging.getLogger(__name__)

THERMAL_LAG_PARAMS = ['alpha_offset', 'alpha_slope', 'tau_offset', 'tau_slope']
TIME_CONSTANT_PARAMS = ['time_constant']

FAIL_DEGENERATE = 'degenerate'
FAIL_NOT_CONVERGED = 'not_converged'

# relative flow speed inside/outside the cell as a polynomial of surge speed,
# rows are 0th, 1st and 2nd order approximations
SPEED_FACTOR_POLYS = np.array([[0.00, 0.00, 0.40],
                               [0.00, 0.03, 0.45],
                               [1.58, 1.15, 0.70]])
SPEED_FACTOR_DEGREE = 1

FitResult = collections.namedtuple(
    'FitResult', ['params', 'cost', 'converged', 'reason', 'nfev'])


def _failed(nparams, reason):
    return FitResult(np.full(nparams, np.nan), np.nan, False, reason, 0)


def flow_speed(time, depth, pitch):
    """
    Flow speed past the conductivity cell between consecutive samples.

    *pitch* is in radians.  Returns an array one shorter than the inputs.
    """
    dtime = np.abs(np.diff(time))
    with np.errstate(divide='ignore', invalid='ignore'):
        depth_rate = np.abs(np.diff(depth)) / dtime
        surge_speed = depth_rate / np.sin(pitch[:-1])
    speed_factor = np.polyval(SPEED_FACTOR_POLYS[SPEED_FACTOR_DEGREE], surge_speed)
    return np.abs(speed_factor * surge_speed) + np.finfo(float).eps


def correct_thermal_lag(profile, params=None, default_pitch=26.0):
    """
    Apply the cell thermal mass correction to a profile.

    Parameters
    ----------
    profile : dict
        Clean profile with ``time`` (s), ``depth`` (m), ``temp`` and
        ``cond`` and optionally ``pitch`` (degrees).
    params : array of 4, optional
        ``[alpha_offset, alpha_slope, tau_offset, tau_slope]``.  Defaults
        to the values proposed by Morison et al. (1994).
    default_pitch : float
        Pitch (degrees) to assume when the profile has none.

    Returns
    -------
    temp_in_cell : ndarray
        Temperature of the water inside the conductivity cell; use this with
        the measured conductivity to compute salinity.
    cond_out_cell : ndarray
        Conductivity corrected to the temperature outside the cell.
    """
    if params is None:
        params = MORISON_PARAMS
    params = np.asarray(params, dtype=np.float64)
    if params.shape != (4,):
        raise ValueError(f'Expected 4 thermal lag parameters, got {params.shape}')
    alpha_offset, alpha_slope, tau_offset, tau_slope = params

    time = np.asarray(profile['time'], dtype=np.float64)
    depth = np.asarray(profile['depth'], dtype=np.float64)
    temp = np.asarray(profile['temp'], dtype=np.float64)
    cond = np.asarray(profile['cond'], dtype=np.float64)
    if 'pitch' in profile:
        pitch = np.deg2rad(np.asarray(profile['pitch'], dtype=np.float64))
    else:
        pitch = np.full(len(depth), np.deg2rad(default_pitch))
    if len(time) <= 1:
        return temp.copy(), cond.copy()

    with np.errstate(divide='ignore', invalid='ignore'):
        sampling_freq = 1 / np.abs(np.diff(time))
        flow = flow_speed(time, depth, pitch)
        alpha = alpha_offset + alpha_slope / flow
        tau = tau_offset + tau_slope / np.sqrt(flow)
        coefa = 4 * sampling_freq * alpha * tau / (1 + 4 * sampling_freq * tau)
        coefb = 1 - 2 * coefa / alpha

    # SeaBird approximation of the sensitivity of conductivity to temperature
    dcdt = 0.088 + 0.0006 * temp
    dtemp = np.diff(temp)

    cond_correction = np.zeros(len(cond))
    temp_correction = np.zeros(len(temp))
    a = coefa.tolist()
    b = coefb.tolist()
    dt = dtemp.tolist()
    dc = dcdt.tolist()
    ccor = 0.
    tcor = 0.
    for n in range(len(dt)):
        ccor = -b[n] * ccor + a[n] * dc[n] * dt[n]
        tcor = -b[n] * tcor + a[n] * dt[n]
        cond_correction[n + 1] = ccor
        temp_correction[n + 1] = tcor

    return temp - temp_correction, cond + cond_correction


def correct_time_response(data, time, time_constant):
    """
    Advance a sensor signal in time to undo a first order response.

    ``out = data + time_constant * d(data)/dt``, with the derivative taken
    as zero at the first sample.
    """
    data = np.asarray(data, dtype=np.float64)
    time = np.asarray(time, dtype=np.float64)
    if len(data) <= 1:
        return data.copy()
    with np.errstate(divide='ignore', invalid='ignore'):
        delta = np.concatenate(([0.], np.diff(data) / np.diff(time)))
    return data + np.squeeze(time_constant) * delta


def profile_salinity(profile, temperature, conductivity_units='S m-1'):
    """Practical salinity of a profile, using ``pres`` if present, else depth."""
    pres = profile['pres'] if 'pres' in profile else profile['depth']
    return utils.get_salinity(profile['cond'], temperature, pres,
                              units=conductivity_units)


def common_depth_grid(depth1, depth2, spacing=1.0):
    """
    Regular depth grid over the range sampled by both profiles.

    Returns None if the profiles do not overlap.
    """
    top = max(np.nanmin(depth1), np.nanmin(depth2))
    bottom = min(np.nanmax(depth1), np.nanmax(depth2))
    if not bottom > top:
        return None
    n = max(int(np.ceil((bottom - top) / spacing)) + 1, 2)
    return np.linspace(top, bottom, n)


def grid_profile(depth, values, grid):
    """
    Monotone cubic (pchip) interpolation of *values* onto *grid*.

    Repeated depths are averaged first.  Returns None if there are fewer
    than two distinct depth levels.
    """
    depth = np.asarray(depth, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    good = np.isfinite(depth) & np.isfinite(values)
    levels, inverse = np.unique(depth[good], return_inverse=True)
    if len(levels) < 2:
        return None
    mean = (np.bincount(inverse, weights=values[good]) /
            np.bincount(inverse))
    return PchipInterpolator(levels, mean, extrapolate=False)(grid)


def profile_mismatch(depth1, values1, depth2, values2, spacing=1.0,
                     metric='area'):
    """
    Distance between two profiles on their common depth grid.

    ``'area'`` is the area between the two curves in the value-depth plane,
    ``'rms'`` the root mean square difference.  NaN if the profiles cannot
    be compared.
    """
    if metric not in ('area', 'rms'):
        raise ValueError(f'Unknown metric {metric!r}; expected area or rms')
    grid = common_depth_grid(depth1, depth2, spacing)
    if grid is None:
        return np.nan
    v1 = grid_profile(depth1, values1, grid)
    v2 = grid_profile(depth2, values2, grid)
    if v1 is None or v2 is None:
        return np.nan
    diff = np.abs(v1 - v2)
    if metric == 'area':
        return trapezoid(diff, grid)
    return np.sqrt(np.mean(diff**2))


def thermal_lag_cost(params, profile1, profile2, options=None):
    """Salinity mismatch of two profiles corrected with the same *params*."""
    options = options or ThermalLagOptions()
    temp1, _ = correct_thermal_lag(profile1, params, options.default_pitch)
    temp2, _ = correct_thermal_lag(profile2, params, options.default_pitch)
    salt1 = profile_salinity(profile1, temp1, options.conductivity_units)
    salt2 = profile_salinity(profile2, temp2, options.conductivity_units)
    return profile_mismatch(profile1['depth'], salt1, profile2['depth'], salt2,
                            spacing=options.grid_spacing,
                            metric=options.metric)


def _enough_levels(*profiles):
    return all(len(np.unique(p['depth'])) >= 2 for p in profiles)


def _run_fit(cost, guess, lower, upper, optimizer):
    if np.any(upper <= lower):
        _log.debug('Empty parameter bounds %s %s', lower, upper)
        return _failed(len(guess), FAIL_DEGENERATE)
    guess = np.clip(guess, lower, upper)
    if not np.isfinite(cost(guess)):
        _log.debug('Cost is not finite at the first guess')
        return _failed(len(guess), FAIL_DEGENERATE)
    res = optimize.minimize(cost, guess, bounds=list(zip(lower, upper)),
                            method=optimizer.method, maxiter=optimizer.maxiter,
                            maxfev=optimizer.maxfev, xatol=optimizer.xatol,
                            fatol=optimizer.fatol)
    if not res.converged:
        _log.info('Unable to estimate parameters: %s', res.message)
        return FitResult(res.params, res.cost, False, FAIL_NOT_CONVERGED, res.nfev)
    return FitResult(res.params, res.cost, True, None, res.nfev)


def fit_thermal_lag_params(profile1, profile2, options=None, optimizer=None):
    """
    Find the thermal lag parameters that make two profiles agree best.

    The profiles are assumed to measure the same water column in opposite
    directions.  Both are corrected with the same parameters and the
    mismatch of their salinity against depth is minimized.

    Parameters
    ----------
    profile1, profile2 : dict
        Clean profiles with ``time``, ``depth``, ``temp``, ``cond`` and
        optionally ``pitch`` and ``pres``.
    options : ThermalLagOptions, optional
    optimizer : OptimizerOptions, optional

    Returns
    -------
    FitResult
        ``params`` (4), ``cost``, ``converged``, ``reason`` (None,
        ``'degenerate'`` or ``'not_converged'``) and ``nfev``.
    """
    options = options or ThermalLagOptions()
    optimizer = optimizer or OptimizerOptions()
    if not _enough_levels(profile1, profile2):
        return _failed(4, FAIL_DEGENERATE)

    duration = np.ptp(profile1['time'])
    if options.upper_bound is None:
        upper = np.array([2, 1, duration, duration / 2])
    else:
        upper = np.asarray(options.upper_bound, dtype=np.float64)
    lower = np.asarray(options.lower_bound, dtype=np.float64)
    guess = np.asarray(options.first_guess, dtype=np.float64)

    def cost(params):
        return thermal_lag_cost(params, profile1, profile2, options)

    return _run_fit(cost, guess, lower, upper, optimizer)


def time_constant_cost(time_constant, profile1, profile2, options=None):
    """Mismatch of two profiles of ``data`` corrected with *time_constant*."""
    options = options or TimeConstantOptions()
    data1 = correct_time_response(profile1['data'], profile1['time'], time_constant)
    data2 = correct_time_response(profile2['data'], profile2['time'], time_constant)
    return profile_mismatch(profile1['depth'], data1, profile2['depth'], data2,
                            spacing=options.grid_spacing, metric=options.metric)


def fit_time_constant(profile1, profile2, options=None, optimizer=None):
    """
    Find the sensor time constant that makes two profiles agree best.

    The profiles have ``time``, ``depth`` and ``data`` (any variable
    measured by a sensor with a first order response).
    """
    options = options or TimeConstantOptions()
    optimizer = optimizer or OptimizerOptions()
    if not _enough_levels(profile1, profile2):
        return _failed(1, FAIL_DEGENERATE)

    def cost(params):
        return time_constant_cost(params[0], profile1, profile2, options)

    return _run_fit(cost, np.array([options.first_guess]),
                    np.array([options.lower_bound]),
                    np.array([options.upper_bound]), optimizer)
