import logging

import gliderlag.correction as correction
import gliderlag.example_data as glexamp
import gliderlag.profiles as profiles
from gliderlag.config import ProcessingConfig

logging.basicConfig(level='INFO')

configyaml = './processing.yml'

with open(configyaml) as fin:
    config = ProcessingConfig.load_yaml(fin.read())

# a deployment with a known thermal lag; replace with a real timeseries
ds = glexamp.get_synthetic_deployment(n_profiles=10, time_constant=2.0)
ds = ds.drop_vars('profile_index')

# find dives and climbs...
seg = config.segmentation
ds = profiles.get_profiles(ds, min_depth_range=seg.min_depth_range,
                           max_gap_ratio=seg.max_gap_ratio,
                           filt_length=seg.filt_length, decim=seg.decim)

# thermal lag parameters for each available temperature/conductivity set
results = correction.find_glider_correction_params(ds, config=config,
                                                   parallel=True)
for label, res in results.items():
    print(label, res.best_guess, f'{res.n_accepted} of {res.n_pairs_analyzed} pairs')

# sensor time constant of the slow temperature channel
res = correction.find_variable_time_constant(ds, 'temperature_slow', config=config)
print('time constant', res.best_guess)
