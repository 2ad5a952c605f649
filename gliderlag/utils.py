import collections
import logging

import gsw
import numpy as np
import xarray as xr

_log = logging.getLogger(__name__)


def time_to_seconds(time):
    """
    Return glider time as float seconds since 1970-01-01.

    Accepts either a float array (already seconds) or a ``datetime64``
    array, as found in xarray timeseries.
    """
    time = np.asarray(time)
    if np.issubdtype(time.dtype, np.datetime64):
        seconds = (time - np.datetime64('1970-01-01')) / np.timedelta64(1, 's')
        return seconds.astype(np.float64)
    return time.astype(np.float64)


def get_series(data, variables, optional=()):
    """
    Pull a set of named, equal-length 1-D arrays out of a dataset.

    Parameters
    ----------
    data : xarray.Dataset or mapping
        The synchronized glider timeseries.
    variables : list of str
        Names that must be present.
    optional : list of str
        Names that are returned only if present.

    Returns
    -------
    series : dict
        name -> float64 numpy array.  Any variable called ``time`` is
        converted to seconds.
    """
    series = collections.OrderedDict()
    missing = [v for v in variables if v not in data]
    if missing:
        raise KeyError(f'Required variables missing from timeseries: {missing}')
    names = list(variables) + [v for v in optional
                               if v is not None and v in data]
    for name in names:
        val = data[name]
        if isinstance(val, xr.DataArray):
            val = val.values
        val = np.asarray(val)
        if val.ndim != 1:
            raise ValueError(f'Variable {name} must be 1-D, got shape {val.shape}')
        if name == 'time' or np.issubdtype(val.dtype, np.datetime64):
            series[name] = time_to_seconds(val)
        else:
            series[name] = val.astype(np.float64)
    check_lengths(series)
    return series


def check_lengths(series):
    """Raise ValueError if the arrays in *series* differ in length."""
    lengths = {k: len(v) for k, v in series.items()}
    if len(set(lengths.values())) > 1:
        raise ValueError(f'Timeseries arrays have mismatched lengths: {lengths}')
    return series


def conductivity_scale(units):
    """Factor taking conductivity in *units* to mS/cm, as gsw expects."""
    # GPCTD and slocum ctd report S/m and need a scale factor of 10. Legato does not
    if 'S m' in units:
        return 10.
    elif 'mS cm' in units:
        return 1.
    raise ValueError("Could not parse conductivity units. Expected 'S m-1' or 'mS cm-1'. "
                     "Check the thermal_lag: conductivity_units entry")


def get_salinity(conductivity, temperature, pressure, units='S m-1'):
    """Practical salinity from conductivity, temperature and pressure."""
    r = conductivity_scale(units) * np.asarray(conductivity)
    return gsw.conversions.SP_from_C(r, temperature, pressure)

