import yaml
from pydantic import BaseModel, Field

from gliderlag._config_components import (
    OptimizerOptions,
    SegmentationOptions,
    ThermalLagOptions,
    TimeConstantOptions,
    VariableNames,
)

__all__ = ['ProcessingConfig', 'dump_yaml']


class ProcessingConfig(BaseModel):
    variables: VariableNames = Field(default_factory=VariableNames)
    segmentation: SegmentationOptions = Field(default_factory=SegmentationOptions)
    optimizer: OptimizerOptions = Field(default_factory=OptimizerOptions)
    thermal_lag: ThermalLagOptions = Field(default_factory=ThermalLagOptions)
    time_constant: TimeConstantOptions = Field(default_factory=TimeConstantOptions)

    @classmethod
    def load_yaml(cls, yaml_str: str) -> 'ProcessingConfig':
        """Load a yaml string into a ProcessingConfig model."""
        return _generic_load_yaml(yaml_str, cls)


def dump_yaml(model: BaseModel) -> str:
    """Dump a pydantic model to a yaml string."""
    return yaml.safe_dump(model.model_dump(), default_flow_style=False)


def _generic_load_yaml(data: str, model: BaseModel) -> BaseModel:
    """Load a yaml string into a pydantic model."""
    return model.model_validate(yaml.safe_load(data) or {})
