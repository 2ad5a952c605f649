import numpy as np
import pytest

import gliderlag.example_data as glexamp
import gliderlag.profiles as profiles
import gliderlag.utils as utils

VARIABLES = ['time', 'depth', 'temperature', 'conductivity', 'pitch']
NAMES = ['time', 'depth', 'temp', 'cond', 'pitch']


@pytest.fixture(scope='session')
def deployment():
    return glexamp.get_synthetic_deployment(n_profiles=4, time_constant=3.0)


@pytest.fixture
def pair(deployment):
    """First dive and climb of the synthetic deployment, as clean profiles."""
    series = utils.get_series(deployment, VARIABLES)
    index = deployment.profile_index.values
    first = profiles.build_combined_profile(
        series, np.where(index == 1)[0], VARIABLES, NAMES)
    second = profiles.build_combined_profile(
        series, np.where(index == 2)[0], VARIABLES, NAMES)
    return first, second
