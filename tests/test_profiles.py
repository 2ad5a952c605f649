import collections

import numpy as np
import pytest
import xarray as xr

import gliderlag.example_data as glexamp
import gliderlag.profiles as profiles
from tests.utils import make_series

VEE = [0, 5, 10, 15, 20, 15, 10, 5, 0]
VARIABLES = ['time', 'depth', 'temperature', 'conductivity']
NAMES = ['time', 'depth', 'temp', 'cond']


def test_clean_profile():
    profile = {'time': [0., 1, 2, 3],
               'depth': [0., np.nan, 2, 3],
               'temp': [1., 2, np.nan, 4]}
    cleaned, good = profiles.clean_profile(profile, return_index=True)
    np.testing.assert_array_equal(good, [0, 3])
    np.testing.assert_array_equal(cleaned['depth'], [0, 3])
    np.testing.assert_array_equal(cleaned['temp'], [1, 4])
    assert list(cleaned.keys()) == ['time', 'depth', 'temp']


def test_clean_profile_all_nan():
    cleaned = profiles.clean_profile({'time': [0., 1, 2],
                                      'depth': [1., 2, 3],
                                      'temp': [np.nan] * 3})
    assert profiles.is_empty(cleaned)
    assert len(cleaned['depth']) == 0


def test_clean_profile_time_order():
    cleaned, good = profiles.clean_profile(
        {'time': [0., 1, 1, 0.5, 2], 'depth': [0., 1, 2, 3, 4]},
        return_index=True)
    np.testing.assert_array_equal(good, [0, 1, 4])


def test_clean_profile_mismatched():
    with pytest.raises(ValueError, match='mismatched'):
        profiles.clean_profile({'time': [0., 1], 'depth': [0., 1, 2]})


def test_build_combined_profile():
    series = make_series(VEE)
    series['temperature'][2] = np.nan
    profile, inds = profiles.build_combined_profile(
        series, np.arange(1, 5), VARIABLES, NAMES, return_index=True)
    np.testing.assert_array_equal(inds, [1, 3, 4])
    np.testing.assert_array_equal(profile['depth'], [5, 15, 20])
    assert list(profile.keys()) == NAMES


def test_build_combined_profile_missing():
    series = make_series(VEE)
    with pytest.raises(KeyError, match='pitch'):
        profiles.build_combined_profile(series, np.arange(3),
                                        ['time', 'depth', 'pitch'])


def test_find_profiles_vee():
    index, stats = profiles.find_profiles(VEE, [0, 4, 8])
    np.testing.assert_array_equal(index[:8], [1, 1, 1, 1, 2, 2, 2, 2])
    assert np.isnan(index[8])
    assert stats.n_profiles == 2
    assert stats.n_dismissed == 0
    assert stats.n_inflections == 3
    assert stats.n_analyzed == 2


def test_find_profiles_single_excursion():
    depth = np.arange(0, 51.)
    index, stats = profiles.find_profiles(depth, [0, 50])
    assert np.all(index[:50] == 1)
    assert np.isnan(index[50])
    assert stats.n_profiles == 1


def test_find_profiles_outside_inflections():
    depth = np.concatenate(([3, 2, 1], np.arange(0, 51.), [49, 48]))
    index, stats = profiles.find_profiles(depth, [3, 53])
    assert np.all(np.isnan(index[:3]))
    assert np.all(np.isnan(index[53:]))
    assert np.all(index[3:53] == 1)


@pytest.mark.parametrize('depth', [
    [0., 1, 2, 20],          # gap ratio 0.9
    [0., 1, 2, 3, 15],       # gap ratio 0.8 exactly
    [0., 30, 31, 32],        # gap ratio ~0.94
])
def test_find_profiles_gappy(depth):
    index, stats = profiles.find_profiles(depth, [0, len(depth) - 1])
    assert stats.n_profiles == 0
    assert stats.n_dismissed == 1
    assert np.all(np.isnan(index))


def test_find_profiles_gap_ratio_configurable():
    depth = [0., 2, 4, 6, 8, 20]   # ratio 0.6
    _, stats = profiles.find_profiles(depth, [0, 5])
    assert stats.n_profiles == 1
    _, stats = profiles.find_profiles(depth, [0, 5], max_gap_ratio=0.5)
    assert stats.n_profiles == 0


def test_find_profiles_too_short():
    depth = [0, 1, 2, 3, 2, 1, 0, 5, 10, 15, 20]
    index, stats = profiles.find_profiles(depth, [0, 3, 6, 10])
    assert stats.n_profiles == 1
    assert stats.n_dismissed == 2
    # the 3 m profiles are unassigned and the deep one is profile 1:
    assert np.all(np.isnan(index[:6]))
    assert np.all(index[6:10] == 1)


def test_find_profiles_nan_depth():
    depth = np.array(VEE, dtype=float)
    depth[[1, 6]] = np.nan
    index, stats = profiles.find_profiles(depth, [0, 4, 8])
    assert stats.n_profiles == 2


@pytest.mark.parametrize('inflections', [
    [0, 4, 4, 8],
    [4, 0],
    [0, 4, 9],
    [-1, 4],
    [0.5, 4],
    [[0, 4]],
])
def test_find_profiles_bad_inflections(inflections):
    with pytest.raises(ValueError):
        profiles.find_profiles(VEE, inflections)


def test_profile_direction():
    down = np.array([0., 5, 10])
    assert profiles.profile_direction(down) == 'down'
    assert profiles.profile_direction(down) == 'down'
    assert profiles.profile_direction(down[::-1]) == 'up'
    assert profiles.is_downcast(down)
    assert not profiles.is_downcast(down[::-1])
    # only the ends matter
    assert profiles.profile_direction([3., 50, 0, 4]) == 'down'


def test_profile_direction_empty():
    with pytest.raises(ValueError):
        profiles.profile_direction([])


def test_pairs_vee():
    series = make_series(VEE)
    index, _ = profiles.find_profiles(VEE, [0, 4, 8])
    counter = collections.Counter()
    pairs = list(profiles.iter_profile_pairs(series, index, VARIABLES, NAMES,
                                             counter=counter))
    assert len(pairs) == 1
    assert pairs[0].index == 1
    assert profiles.profile_direction(pairs[0].first['depth']) == 'down'
    assert profiles.profile_direction(pairs[0].second['depth']) == 'up'
    assert sum(counter.values()) == 0


def test_pairs_restartable():
    series = make_series(VEE)
    index, _ = profiles.find_profiles(VEE, [0, 4, 8])
    gen = profiles.iter_profile_pairs(series, index, VARIABLES, NAMES)
    assert len(list(gen)) == 1
    assert len(list(gen)) == 0
    gen = profiles.iter_profile_pairs(series, index, VARIABLES, NAMES)
    assert len(list(gen)) == 1


def test_pairs_same_direction():
    depth = [0, 5, 10, 15, 20, 0, 5, 10, 15, 20]
    index, stats = profiles.find_profiles(depth, [0, 4, 5, 9])
    assert stats.n_profiles == 2
    counter = collections.Counter()
    pairs = list(profiles.iter_profile_pairs(make_series(depth), index,
                                             VARIABLES, NAMES, counter=counter))
    assert pairs == []
    assert counter == {'same_direction': 1}


def test_pairs_insufficient_data():
    series = make_series(VEE)
    series['temperature'][4:8] = np.nan
    index, _ = profiles.find_profiles(VEE, [0, 4, 8])
    counter = collections.Counter()
    pairs = list(profiles.iter_profile_pairs(series, index, VARIABLES, NAMES,
                                             counter=counter))
    assert pairs == []
    assert counter == {'insufficient_data': 1}


def test_pairs_never_same_direction(deployment):
    series = {k: deployment[k].values for k in ['depth', 'temperature']}
    series['time'] = np.arange(len(deployment.time)) * 2.
    # drop every other profile so some neighbours travel the same way:
    index = deployment.profile_index.values.copy()
    index[index == 2] = np.nan
    index[index > 2] -= 1
    for pair in profiles.iter_profile_pairs(
            series, index, ['time', 'depth', 'temperature'],
            ['time', 'depth', 'temp']):
        assert (profiles.profile_direction(pair.first['depth']) !=
                profiles.profile_direction(pair.second['depth']))


def test_pairs_no_profiles():
    series = make_series(VEE)
    pairs = list(profiles.iter_profile_pairs(series, np.full(9, np.nan),
                                             VARIABLES, NAMES))
    assert pairs == []


def test_pairs_need_depth():
    series = make_series(VEE)
    with pytest.raises(ValueError, match='depth'):
        list(profiles.iter_profile_pairs(series, np.ones(9), ['time', 'depth'],
                                         ['time', 'z']))


def test_find_inflections():
    depth, inflections = glexamp.sawtooth_depth(n_profiles=4)
    found = profiles.find_inflections(depth, filt_length=1, decim=1)
    np.testing.assert_array_equal(found, inflections)


def test_find_inflections_smoothed():
    depth, inflections = glexamp.sawtooth_depth(n_profiles=4)
    found = profiles.find_inflections(depth)
    assert len(found) == len(inflections)
    assert np.max(np.abs(found - inflections)) <= 2


def test_find_inflections_nan():
    assert len(profiles.find_inflections(np.full(10, np.nan))) == 0


def test_get_profiles():
    depth, _ = glexamp.sawtooth_depth(n_profiles=4)
    ds = xr.Dataset({'depth': (('time'), depth)},
                    coords={'time': np.arange(len(depth)) * 2.})
    ds = profiles.get_profiles(ds, filt_length=1, decim=1)
    assert np.nanmax(ds.profile_index.values) == 4
    assert ds.profile_index.attrs['profiles_found'] == 4
    assert ds.profile_index.attrs['profiles_dismissed'] == 0
    for k, direction in zip(range(1, 5), [1, -1, 1, -1]):
        assert np.all(ds.profile_direction.values[ds.profile_index.values == k]
                      == direction)
    assert ds.profile_direction.values[-1] == 0
