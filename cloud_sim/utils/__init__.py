"""Configuration and scenario construction utilities."""

from .config import load_config, save_config, save_results, default_scenario, ScenarioConfig
from .scenario import Scenario, build_scenario, run_scenario

__all__ = [
    "load_config",
    "save_config",
    "save_results",
    "default_scenario",
    "ScenarioConfig",
    "Scenario",
    "build_scenario",
    "run_scenario",
]
