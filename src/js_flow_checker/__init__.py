"""
jsflowcheck - AMD dependency resolution and property taint tracking

Static checks over JavaScript code: resolving the dependencies listed at
AMD loader calls against a project tree, and tracking taint through object
properties and accessor methods with per-instance precision.
"""

__version__ = "0.1.0"

from .checker import FlowChecker
from .config import Config, config
from .resolver import DependencySpec, ModuleResolver, ProjectTree, ResolutionResult
from .taint import PropertyTaintTracker, SinkVerdict, TaintState

__all__ = [
    "FlowChecker",
    "Config",
    "config",
    "DependencySpec",
    "ModuleResolver",
    "ProjectTree",
    "ResolutionResult",
    "PropertyTaintTracker",
    "SinkVerdict",
    "TaintState",
]
