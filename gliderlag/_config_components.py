from typing import List, Literal, Optional

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator

MORISON_PARAMS = [0.0135, 0.0264, 7.1499, 2.7858]


class VariableNames(BaseModel):
    time: str = 'time'
    depth: str = 'depth'
    temperature: str = 'temperature'
    conductivity: str = 'conductivity'
    pitch: Optional[str] = 'pitch'  # used only if present in the timeseries
    pressure: Optional[str] = None  # salinity uses depth when not given


class SegmentationOptions(BaseModel):
    min_depth_range: float = Field(10.0, ge=0)
    max_gap_ratio: float = Field(0.8, gt=0)
    filt_length: int = Field(7, ge=1)
    decim: Optional[int] = Field(None, ge=1)


class OptimizerOptions(BaseModel):
    method: Literal['nelder-mead', 'powell'] = 'nelder-mead'
    maxiter: Optional[int] = Field(1000, ge=1)
    maxfev: Optional[int] = Field(None, ge=1)
    xatol: float = Field(1e-4, gt=0)
    fatol: float = Field(1e-4, gt=0)


class ThermalLagOptions(BaseModel):
    first_guess: List[float] = MORISON_PARAMS
    lower_bound: List[float] = [float(np.finfo(float).eps)] * 4
    upper_bound: Optional[List[float]] = None  # [2, 1, T, T/2] when None
    default_pitch: float = 26.0
    grid_spacing: float = Field(1.0, gt=0)
    metric: Literal['area', 'rms'] = 'area'
    conductivity_units: Literal['S m-1', 'mS cm-1'] = 'S m-1'

    @field_validator('first_guess', 'lower_bound', 'upper_bound')
    @classmethod
    def _four_params(cls, v):
        if v is not None and len(v) != 4:
            raise ValueError('thermal lag parameter vectors have 4 entries')
        return v


class TimeConstantOptions(BaseModel):
    first_guess: float = 0.5
    lower_bound: float = float(np.finfo(float).eps)
    upper_bound: float = 16.0
    grid_spacing: float = Field(1.0, gt=0)
    metric: Literal['area', 'rms'] = 'area'

    @model_validator(mode='after')
    def _check_bounds(self):
        if not self.lower_bound < self.upper_bound:
            raise ValueError('time constant lower_bound must be below upper_bound')
        return self
