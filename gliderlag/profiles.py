"""
Split a glider depth timeseries into dive and climb profiles, and pair
neighbouring profiles that travel in opposite directions.
"""
import collections
import logging
from dataclasses import dataclass

import numpy as np
from scipy.signal import argrelextrema

import gliderlag.utils as utils

_log = logging.getLogger(__name__)

ProfilePair = collections.namedtuple('ProfilePair', ['index', 'first', 'second'])

DISMISS_NO_DATA = 'insufficient_data'
DISMISS_SAME_DIRECTION = 'same_direction'


@dataclass
class SegmentationStats:
    n_inflections: int = 0
    n_profiles: int = 0
    n_dismissed: int = 0

    @property
    def n_analyzed(self):
        return self.n_profiles + self.n_dismissed


def clean_profile(profile, return_index=False, time='time'):
    """
    Remove the rows of a profile where any of its variables is NaN.

    If the profile has a *time* variable, rows that do not advance in time
    (repeated or out of order timestamps) are removed as well.

    Parameters
    ----------
    profile : dict
        name -> 1-D array, all the same length.
    return_index : bool, default False
        Also return the positions (into the input arrays) that survived.
    time : str, default 'time'
        Name of the time variable.

    Returns
    -------
    cleaned : dict
        Same keys as *profile*; possibly empty arrays.
    good : ndarray of int, optional
    """
    utils.check_lengths(profile)
    arrays = [np.asarray(v, dtype=np.float64) for v in profile.values()]
    if len(arrays) == 0:
        good = np.array([], dtype=int)
    else:
        ok = np.ones(len(arrays[0]), dtype=bool)
        for val in arrays:
            ok &= ~np.isnan(val)
        good = np.where(ok)[0]
    if time in profile and len(good) > 1:
        t = np.asarray(profile[time], dtype=np.float64)[good]
        latest = np.maximum.accumulate(t)
        good = good[np.concatenate(([True], t[1:] > latest[:-1]))]
    cleaned = collections.OrderedDict(
        (k, val[good]) for k, val in zip(profile.keys(), arrays))
    if return_index:
        return cleaned, good
    return cleaned


def build_combined_profile(series, index_range, variables, names=None,
                           return_index=False):
    """
    Select *variables* from *series* over *index_range* into a clean profile.

    Optionally rename the variables to *names*.  If *return_index* the
    surviving indices into *series* are also returned.
    """
    missing = [v for v in variables if v not in series]
    if missing:
        raise KeyError(f'Variables {missing} are not in the input timeseries')
    if names is None:
        names = variables
    if len(names) != len(variables):
        raise ValueError('names and variables must have the same length')
    index_range = np.asarray(index_range, dtype=int)
    profile = collections.OrderedDict(
        (new, np.asarray(series[old])[index_range])
        for old, new in zip(variables, names))
    cleaned, good = clean_profile(profile, return_index=True)
    if return_index:
        return cleaned, index_range[good]
    return cleaned


def is_empty(profile):
    return len(profile) == 0 or len(next(iter(profile.values()))) == 0


def is_downcast(depth):
    """True if the profile ends deeper than it starts."""
    depth = np.asarray(depth)
    if len(depth) == 0:
        raise ValueError('Cannot classify the direction of an empty profile')
    return bool(depth[-1] > depth[0])


def profile_direction(depth):
    """Return 'down' for a descending profile and 'up' otherwise."""
    return 'down' if is_downcast(depth) else 'up'


def _check_inflections(inflections, n):
    inflections = np.asarray(inflections)
    if inflections.ndim != 1:
        raise ValueError('inflections must be a 1-D array of sample indices')
    if len(inflections) == 0:
        return inflections.astype(int)
    if not np.issubdtype(inflections.dtype, np.integer):
        if not np.all(np.mod(inflections, 1) == 0):
            raise ValueError('inflections must be integer sample indices')
    inflections = inflections.astype(int)
    if np.any(np.diff(inflections) <= 0):
        raise ValueError('inflections must be strictly increasing')
    if inflections[0] < 0 or inflections[-1] >= n:
        raise ValueError(f'inflections must lie within the series (0 to {n - 1})')
    return inflections


def find_profiles(depth, inflections, min_depth_range=10.0, max_gap_ratio=0.8):
    """
    Label the samples between successive inflection points with a profile
    index.

    Parameters
    ----------
    depth : array
        Depth of the whole deployment, positive down, may contain NaN.
    inflections : array of int
        0-based sample indices of the turnarounds, strictly increasing.
    min_depth_range : float, default 10
        A profile must span more than this (m).
    max_gap_ratio : float, default 0.8
        The largest depth step divided by the depth span must be smaller
        than this.

    Returns
    -------
    profile_index : ndarray
        Same length as *depth*.  1, 2, 3... for the accepted profiles and
        NaN elsewhere.  Profile *k* covers samples
        ``inflections[n]:inflections[n + 1]``.
    stats : SegmentationStats
    """
    depth = np.asarray(depth, dtype=np.float64)
    if depth.ndim != 1:
        raise ValueError('depth must be 1-D')
    inflections = _check_inflections(inflections, len(depth))

    profile = np.full(len(depth), np.nan)
    stats = SegmentationStats(n_inflections=len(inflections))
    for start, stop in zip(inflections[:-1], inflections[1:]):
        # the turnaround belongs to the span of both neighbours:
        pdepth = depth[start:stop + 1]
        pdepth = pdepth[~np.isnan(pdepth)]
        if len(pdepth) < 2:
            _log.debug('Dismissing %d:%d, not enough depths', start, stop)
            stats.n_dismissed += 1
            continue
        depth_range = np.max(pdepth) - np.min(pdepth)
        max_gap = np.max(np.abs(np.diff(pdepth)))
        gap_ratio = max_gap / depth_range if depth_range > 0 else np.inf
        if depth_range > min_depth_range and gap_ratio < max_gap_ratio:
            stats.n_profiles += 1
            profile[start:stop] = stats.n_profiles
        else:
            _log.debug('Dismissing %d:%d, range %f gap ratio %f',
                       start, stop, depth_range, gap_ratio)
            stats.n_dismissed += 1

    _log.info('%d inflection points', stats.n_inflections)
    _log.info('%d profiles found', stats.n_profiles)
    _log.info('%d profiles dismissed', stats.n_dismissed)
    _log.info('%d total profiles analyzed', stats.n_analyzed)
    return profile, stats


def find_inflections(depth, filt_length=7, decim=None):
    """
    Find the turnarounds of a glider depth timeseries.

    Depth is smoothed with a boxcar of *filt_length* samples and decimated
    before looking for local extrema, because argrelextrema does not like
    repeated values.  The first and last good samples are always included.

    Returns
    -------
    inflections : ndarray of int
        Sorted 0-based sample indices.
    """
    depth = np.asarray(depth, dtype=np.float64)
    good = np.where(np.isfinite(depth))[0]
    if len(good) == 0:
        return np.array([], dtype=int)
    filt_length = min(filt_length, len(good))
    p = np.convolve(depth[good], np.ones(filt_length) / filt_length, 'same')
    if decim is None:
        decim = max(int(filt_length / 3), 2)
    pp = p[::decim]
    maxs = argrelextrema(pp, np.greater)[0]
    mins = argrelextrema(pp, np.less)[0]
    _log.debug('mins: %d, maxs: %d', len(mins), len(maxs))
    inds = np.concatenate(([0], maxs * decim, mins * decim, [len(good) - 1]))
    return np.unique(good[inds])


def iter_profile_pairs(series, profile_index, variables, names=None,
                       counter=None):
    """
    Yield consecutive profile pairs that are suitable for comparison.

    Pair *k* is made of profiles *k* and *k + 1*, each cleaned of NaN over
    *variables*.  A pair is dismissed if either cleaned profile is empty or
    both go in the same direction.

    Parameters
    ----------
    series : mapping
        name -> array, all the same length as *profile_index*.
    profile_index : array
        Output of `find_profiles`.
    variables, names : list of str
        Variables to take from *series* and what to call them in the
        profiles.  One of the output names must be ``depth``.
    counter : collections.Counter, optional
        Incremented with the dismissal reason of every dismissed pair.

    Yields
    ------
    ProfilePair
    """
    names = variables if names is None else names
    if 'depth' not in names:
        raise ValueError('One of the profile variables must be named depth')
    profile_index = np.asarray(profile_index, dtype=np.float64)
    for v in variables:
        if v in series and len(series[v]) != len(profile_index):
            raise ValueError(f'profile_index and {v} have different lengths')
    if counter is None:
        counter = collections.Counter()
    if np.all(np.isnan(profile_index)):
        return
    maxind = int(np.nanmax(profile_index))

    for k in range(1, maxind):
        first = build_combined_profile(
            series, np.where(profile_index == k)[0], variables, names)
        second = build_combined_profile(
            series, np.where(profile_index == k + 1)[0], variables, names)
        if is_empty(first) or is_empty(second):
            _log.info('Dismissing pair %d (insufficient data)', k)
            counter[DISMISS_NO_DATA] += 1
            continue
        if is_downcast(first['depth']) == is_downcast(second['depth']):
            _log.info('Dismissing pair %d (same direction)', k)
            counter[DISMISS_SAME_DIRECTION] += 1
            continue
        yield ProfilePair(k, first, second)


def get_profiles(ds, min_depth_range=10.0, max_gap_ratio=0.8, filt_length=7,
                 decim=None, depth='depth'):
    """
    Make two variables: profile_direction and profile_index.

    Turnarounds are found in ``ds[depth]`` with `find_inflections` and the
    profiles between them are screened with `find_profiles`.
    """
    dep = ds[depth].values
    inflections = find_inflections(dep, filt_length=filt_length, decim=decim)
    profile, stats = find_profiles(dep, inflections,
                                   min_depth_range=min_depth_range,
                                   max_gap_ratio=max_gap_ratio)
    direction = np.zeros(len(dep))
    for k in range(1, stats.n_profiles + 1):
        inds = np.where(profile == k)[0]
        pdep = dep[inds]
        pdep = pdep[~np.isnan(pdep)]
        if len(pdep) > 0:
            direction[inds] = 1 if is_downcast(pdep) else -1

    attrs = collections.OrderedDict([('long_name', 'profile index'),
             ('units', '1'),
             ('comment', 'N = inside profile N, NaN = not in a profile'),
             ('sources', f'time {depth}'),
             ('method', 'get_profiles'),
             ('min_depth_range', min_depth_range),
             ('max_gap_ratio', max_gap_ratio),
             ('filt_length', filt_length),
             ('profiles_found', stats.n_profiles),
             ('profiles_dismissed', stats.n_dismissed)])
    ds['profile_index'] = (('time'), profile, attrs)

    attrs = collections.OrderedDict([('long_name', 'glider vertical speed direction'),
             ('units', '1'),
             ('comment',
              '-1 = ascending, 0 = inflecting or stalled, 1 = descending'),
             ('sources', f'time {depth}'),
             ('method', 'get_profiles')])
    ds['profile_direction'] = (('time'), direction, attrs)
    return ds
