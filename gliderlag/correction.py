"""
Deployment-wide estimation of the CTD correction parameters.

Every pair of consecutive profiles going in opposite directions gives one
estimate of the parameters; the best guess for the deployment is their
coordinate-wise median.
"""
import collections
import logging
from dataclasses import dataclass, field
from typing import Optional

import dask
import numpy as np
import xarray as xr

import gliderlag.profiles as profiles
import gliderlag.thermallag as thermallag
import gliderlag.utils as utils
from gliderlag.config import ProcessingConfig

_log = logging.getLogger(__name__)


@dataclass
class CorrectionResult:
    """
    Best guess correction parameters and the per-pair estimates behind them.

    ``params`` has one row per accepted pair, ``pair_index`` gives the index
    of the first profile of each of those pairs.  ``dismissed`` counts the
    rejected pairs by reason.  ``segmentation`` holds the profile counts
    when the profiles were found here rather than read from the timeseries.
    """
    best_guess: np.ndarray
    params: np.ndarray
    pair_index: np.ndarray
    costs: np.ndarray
    param_names: list
    n_pairs_analyzed: int = 0
    dismissed: collections.Counter = field(default_factory=collections.Counter)
    segmentation: Optional[profiles.SegmentationStats] = None

    @property
    def n_accepted(self):
        return len(self.pair_index)

    @property
    def n_dismissed(self):
        return sum(self.dismissed.values())

    def to_dataset(self):
        """Per-pair parameter estimates as an xarray Dataset."""
        ds = xr.Dataset(coords={'pair': ('pair', self.pair_index)})
        for n, name in enumerate(self.param_names):
            ds[name] = (('pair'), self.params[:, n],
                        {'long_name': name.replace('_', ' '),
                         'best_guess': self.best_guess[n]})
        ds['cost'] = (('pair'), self.costs,
                      {'long_name': 'profile mismatch at the fitted parameters'})
        ds['pair'].attrs = {'long_name': 'index of the first profile in the pair'}
        ds.attrs['pairs_analyzed'] = self.n_pairs_analyzed
        ds.attrs['pairs_accepted'] = self.n_accepted
        for reason, count in sorted(self.dismissed.items()):
            ds.attrs[f'pairs_dismissed_{reason}'] = count
        if self.segmentation is not None:
            ds.attrs['inflections_found'] = self.segmentation.n_inflections
            ds.attrs['profiles_found'] = self.segmentation.n_profiles
            ds.attrs['profiles_dismissed'] = self.segmentation.n_dismissed
        return ds


def median_params(vectors, nparams):
    """
    Coordinate-wise median of the parameter *vectors*.

    Returns a vector of NaN (and logs a warning) if there are none.
    """
    vectors = [np.asarray(v, dtype=np.float64) for v in vectors]
    if len(vectors) == 0:
        _log.warning('could not find any suitable correction params')
        return np.full(nparams, np.nan)
    return np.median(np.vstack(vectors), axis=0)


def _fit_pairs(pairs, fit, parallel=False):
    tasks = []
    for pair in pairs:
        _log.info('Finding correction params (profile %d)...', pair.index)
        if parallel:
            tasks.append(dask.delayed(fit)(pair.first, pair.second))
        else:
            tasks.append(fit(pair.first, pair.second))
    if parallel:
        return list(dask.compute(*tasks, scheduler='threads'))
    return tasks


def _aggregate(pairs, results, param_names, n_analyzed, dismissed,
               segmentation=None):
    nparams = len(param_names)
    accepted = []
    for pair, res in zip(pairs, results):
        if res.converged:
            accepted.append((pair.index, res))
        else:
            _log.info('Dismissing pair %d (%s)', pair.index, res.reason)
            dismissed[res.reason] += 1
    vectors = [res.params for _, res in accepted]
    best_guess = median_params(vectors, nparams)
    _log.info('%d pairs analyzed, %d accepted, %d dismissed', n_analyzed,
              len(accepted), sum(dismissed.values()))
    return CorrectionResult(
        best_guess=best_guess,
        params=(np.vstack(vectors) if vectors else np.empty((0, nparams))),
        pair_index=np.array([k for k, _ in accepted], dtype=int),
        costs=np.array([res.cost for _, res in accepted], dtype=np.float64),
        param_names=list(param_names),
        n_pairs_analyzed=n_analyzed,
        dismissed=dismissed,
        segmentation=segmentation)


def _segment(series, config):
    """Find the profiles of *series*; returns the index and the counts."""
    seg = config.segmentation
    depth = utils.get_series(series, [config.variables.depth])[config.variables.depth]
    inflections = profiles.find_inflections(depth, filt_length=seg.filt_length,
                                            decim=seg.decim)
    return profiles.find_profiles(depth, inflections,
                                  min_depth_range=seg.min_depth_range,
                                  max_gap_ratio=seg.max_gap_ratio)


def _get_profile_index(series, config, profile_index, segmented=None):
    if profile_index in series:
        return utils.get_series(series, [profile_index])[profile_index], None
    if segmented is not None:
        return segmented
    _log.info('No %s in the timeseries, finding profiles', profile_index)
    return _segment(series, config)


def _run(series, config, variables, names, optional, fit, param_names,
         profile_index, parallel, segmented=None):
    data = utils.get_series(series, variables, optional)
    index, stats = _get_profile_index(series, config, profile_index,
                                      segmented=segmented)
    if len(index) != len(data[variables[0]]):
        raise ValueError(f'{profile_index} and the timeseries have different lengths')
    variables = list(variables)
    names = list(names)
    for var, name in optional.items():
        if var is not None and var in data:
            variables.append(var)
            names.append(name)

    dismissed = collections.Counter()
    pairs = list(profiles.iter_profile_pairs(data, index, variables, names,
                                             counter=dismissed))
    if np.all(np.isnan(index)):
        n_analyzed = 0
    else:
        n_analyzed = max(int(np.nanmax(index)) - 1, 0)
    results = _fit_pairs(pairs, fit, parallel=parallel)
    return _aggregate(pairs, results, param_names, n_analyzed, dismissed,
                      segmentation=stats)


def _thermal_lag_params(series, config, temperature, conductivity,
                        profile_index, parallel, segmented=None):
    var = config.variables
    variables = [var.time, var.depth, temperature, conductivity]
    names = ['time', 'depth', 'temp', 'cond']
    optional = collections.OrderedDict([(var.pitch, 'pitch'),
                                        (var.pressure, 'pres')])

    def fit(first, second):
        return thermallag.fit_thermal_lag_params(
            first, second, options=config.thermal_lag,
            optimizer=config.optimizer)

    _log.info('Finding thermal lag params for %s and %s', temperature, conductivity)
    return _run(series, config, variables, names, optional, fit,
                thermallag.THERMAL_LAG_PARAMS, profile_index, parallel,
                segmented=segmented)


def find_correction_params(series, config=None, temperature=None,
                           conductivity=None, profile_index='profile_index',
                           parallel=False):
    """
    Estimate the thermal lag parameters of a deployment.

    Parameters
    ----------
    series : xarray.Dataset or mapping
        Synchronized timeseries with time, depth, temperature and
        conductivity, and optionally pitch, pressure and *profile_index*.
        If *profile_index* is missing the profiles are found with the
        segmentation options of *config*, and the profile counts are
        returned in ``CorrectionResult.segmentation``.
    config : ProcessingConfig, optional
    temperature, conductivity : str, optional
        Override the variable names in ``config.variables``.
    profile_index : str, default 'profile_index'
    parallel : bool, default False
        Fit the profile pairs concurrently with dask.

    Returns
    -------
    CorrectionResult
        ``best_guess`` is ``[alpha_offset, alpha_slope, tau_offset,
        tau_slope]``, or NaN if no pair could be used.
    """
    config = config or ProcessingConfig()
    return _thermal_lag_params(series, config,
                               temperature or config.variables.temperature,
                               conductivity or config.variables.conductivity,
                               profile_index, parallel)


def find_glider_correction_params(series, config=None,
                                  profile_index='profile_index', parallel=False):
    """
    Estimate thermal lag parameters for every available CTD variable set.

    The raw temperature and conductivity are always used (``'TH'``).  If
    the timeseries has ``temperature_corrected`` (sensor response corrected
    temperature) it is used with the raw conductivity (``'T_TH'``), and if
    it also has ``conductivity_corrected`` both corrected variables are
    used (``'T_C_TH'``).  Without *profile_index* the profiles are found
    once and shared by all the sets.

    Returns
    -------
    results : OrderedDict
        label -> CorrectionResult
    """
    config = config or ProcessingConfig()
    var = config.variables
    sets = collections.OrderedDict()
    sets['TH'] = (var.temperature, var.conductivity)
    if 'temperature_corrected' in series:
        sets['T_TH'] = ('temperature_corrected', var.conductivity)
        if 'conductivity_corrected' in series:
            sets['T_C_TH'] = ('temperature_corrected', 'conductivity_corrected')

    segmented = None
    if profile_index not in series:
        _log.info('No %s in the timeseries, finding profiles', profile_index)
        segmented = _segment(series, config)

    results = collections.OrderedDict()
    for label, (temperature, conductivity) in sets.items():
        results[label] = _thermal_lag_params(
            series, config, temperature, conductivity, profile_index,
            parallel, segmented=segmented)
    return results


def find_variable_time_constant(series, variable, config=None,
                                profile_index='profile_index', parallel=False):
    """
    Estimate the response time constant of the sensor measuring *variable*.

    Returns
    -------
    CorrectionResult
        ``best_guess`` has a single entry, the time constant in seconds.
    """
    config = config or ProcessingConfig()
    var = config.variables
    variables = [var.time, var.depth, variable]
    names = ['time', 'depth', 'data']

    def fit(first, second):
        return thermallag.fit_time_constant(
            first, second, options=config.time_constant,
            optimizer=config.optimizer)

    _log.info('Finding %s time constant', variable)
    return _run(series, config, variables, names, {}, fit,
                thermallag.TIME_CONSTANT_PARAMS, profile_index, parallel)
