"""
Model Module.

Definitions, records and the model types that orchestrate them.
"""

from .callbacks import Callback, deliver
from .definition import ModelBuilder, ModelDefinition
from .loader import DefinitionLoader, load_definitions
from .model_type import ModelType
from .record import Record, RecordState

__all__ = [
    "Callback",
    "deliver",
    "ModelBuilder",
    "ModelDefinition",
    "DefinitionLoader",
    "load_definitions",
    "ModelType",
    "Record",
    "RecordState",
]
