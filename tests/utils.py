"""Utilities specific to the test suite."""

import numpy as np


def make_series(depth, dt=2.0, **variables):
    """A plain dict timeseries with regular time and temperature/conductivity
    defaults that are constant, so only the depth matters."""
    depth = np.asarray(depth, dtype=np.float64)
    series = {'time': np.arange(len(depth)) * dt,
              'depth': depth,
              'temperature': np.full(len(depth), 12.0),
              'conductivity': np.full(len(depth), 4.0)}
    series.update({k: np.asarray(v, dtype=np.float64)
                   for k, v in variables.items()})
    return series
