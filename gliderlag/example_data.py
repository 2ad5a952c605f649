"""
Synthetic glider deployments with a known thermal lag, for testing and for
trying out the estimation routines.
"""
import collections
import logging

import gsw
import numpy as np
import xarray as xr

import gliderlag.profiles as profiles
import gliderlag.thermallag as thermallag

_log = logging.getLogger(__name__)

TRUE_PARAMS = [0.03, 0.02, 10.0, 4.0]


def water_column(depth, thermocline=40.0, width=8.0):
    """Temperature and practical salinity of a two-layer water column."""
    step = 0.5 * (1 + np.tanh((depth - thermocline) / width))
    temperature = 18.0 - 8.0 * step
    salinity = 34.5 + 0.6 * step
    return temperature, salinity


def sawtooth_depth(n_profiles=6, min_depth=0.0, max_depth=100.0,
                   vertical_speed=0.2, dt=2.0):
    """
    Depth of a glider diving and climbing *n_profiles* times.

    Returns the depth at every sample and the 0-based indices of the
    turnarounds.
    """
    nsamp = int(round((max_depth - min_depth) / (vertical_speed * dt)))
    down = np.linspace(min_depth, max_depth, nsamp + 1)[:-1]
    up = np.linspace(max_depth, min_depth, nsamp + 1)[:-1]
    legs = [down if n % 2 == 0 else up for n in range(n_profiles)]
    last = max_depth if n_profiles % 2 else min_depth
    depth = np.concatenate(legs + [[last]])
    inflections = np.arange(n_profiles + 1) * nsamp
    return depth, inflections


def lag_response(values, time, time_constant):
    """First order sensor response to *values*; inverse of correct_time_response."""
    out = np.empty(len(values))
    out[0] = values[0]
    dt = np.diff(time)
    for n in range(1, len(values)):
        out[n] = ((values[n] * dt[n - 1] + time_constant * out[n - 1]) /
                  (dt[n - 1] + time_constant))
    return out


def get_synthetic_deployment(n_profiles=6, params=TRUE_PARAMS, min_depth=0.0,
                             max_depth=100.0, vertical_speed=0.2, dt=2.0,
                             pitch=26.0, time_constant=None):
    """
    Make an xarray timeseries of a glider deployment with a known thermal lag.

    The temperature is the true water temperature.  The conductivity is
    what a cell with thermal inertia *params* reads, so that salinity
    computed from it with `thermallag.correct_thermal_lag` and the true
    parameters gives back the water column salinity.

    Parameters
    ----------
    n_profiles : int
        Number of dives plus climbs.
    params : array of 4
        Thermal lag parameters of the simulated cell.
    pitch : float
        Glider pitch in degrees; negative when diving.
    time_constant : float, optional
        If given, also add ``temperature_slow``: the temperature as seen by
        a sensor with this first order time constant (s).

    Returns
    -------
    ds : xarray.Dataset
        ``depth``, ``temperature``, ``conductivity`` (S m-1), ``pitch`` and
        ``profile_index`` on a ``time`` dimension.  The turnaround indices
        are in ``ds.attrs['inflections']``.
    """
    depth, inflections = sawtooth_depth(n_profiles, min_depth, max_depth,
                                        vertical_speed, dt)
    time = np.arange(len(depth)) * dt
    temperature, salinity = water_column(depth)
    pitches = np.full(len(depth), pitch)
    pitches[np.gradient(depth) > 0] = -pitch

    temp_in_cell = temperature.copy()
    for start, stop in zip(inflections[:-1], inflections[1:]):
        inds = slice(start, stop)
        profile = collections.OrderedDict([
            ('time', time[inds]), ('depth', depth[inds]),
            ('temp', temperature[inds]), ('cond', temperature[inds] * 0),
            ('pitch', pitches[inds])])
        temp_in_cell[inds], _ = thermallag.correct_thermal_lag(profile, params)
    conductivity = gsw.C_from_SP(salinity, temp_in_cell, depth) / 10

    profile_index, _ = profiles.find_profiles(depth, inflections)
    starttime = np.datetime64('2022-06-14T00:00:00')
    ds = xr.Dataset(coords={'time': ('time', starttime +
                                     (time * 1e9).astype('timedelta64[ns]'))})
    ds['depth'] = (('time'), depth, {'units': 'm', 'positive': 'down'})
    ds['temperature'] = (('time'), temperature, {'units': 'Celsius'})
    ds['conductivity'] = (('time'), conductivity, {'units': 'S m-1'})
    ds['pitch'] = (('time'), pitches, {'units': 'degrees'})
    ds['profile_index'] = (('time'), profile_index, {'long_name': 'profile index'})
    if time_constant is not None:
        ds['temperature_slow'] = (('time'),
                                  lag_response(temperature, time, time_constant),
                                  {'units': 'Celsius',
                                   'time_constant': time_constant})
    ds.attrs['inflections'] = inflections
    ds.attrs['thermal_lag_params'] = np.asarray(params, dtype=np.float64)
    _log.debug('Synthetic deployment with %d samples', len(depth))
    return ds


__all__ = ['get_synthetic_deployment', 'water_column', 'sawtooth_depth']
