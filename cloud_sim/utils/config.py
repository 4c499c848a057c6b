"""Scenario configuration: pydantic models plus YAML/JSON persistence."""

from typing import Any, Dict, List, Literal, Optional
from pathlib import Path
import json

import pandas as pd
import yaml
from pydantic import BaseModel, Field, ValidationError
from loguru import logger


class SimulationSettings(BaseModel):
    """Engine settings."""
    num_user: int = Field(1, ge=0)
    trace_flag: bool = False


class HostSpec(BaseModel):
    """A group of identical hosts."""
    count: int = Field(1, ge=1)
    pes: int = Field(..., ge=1)
    mips: float = Field(..., gt=0)
    ram: float = Field(..., ge=0)
    bw: float = Field(..., ge=0)
    storage: float = Field(..., ge=0)
    vm_scheduler: Literal["time_shared", "space_shared"] = "time_shared"


class DatacenterSpec(BaseModel):
    """A datacenter, its hosts and its characteristics."""
    name: str
    hosts: List[HostSpec] = Field(..., min_length=1)
    architecture: str = "x86"
    os: str = "Linux"
    vmm: str = "Xen"
    time_zone: float = 10.0
    cost_per_sec: float = Field(3.0, ge=0)
    cost_per_mem: float = Field(0.05, ge=0)
    cost_per_storage: float = Field(0.1, ge=0)
    cost_per_bw: float = Field(0.1, ge=0)
    allocation_policy: Literal["simple", "spread"] = "simple"
    scheduling_interval: float = Field(0.0, ge=0)


class VmSpec(BaseModel):
    """A group of identical VMs."""
    count: int = Field(1, ge=1)
    mips: float = Field(..., gt=0)
    pes: int = Field(1, ge=1)
    ram: float = Field(..., ge=0)
    bw: float = Field(..., ge=0)
    size: float = Field(..., ge=0)
    vmm: str = "Xen"
    cloudlet_scheduler: Literal["time_shared", "space_shared"] = "time_shared"


class CloudletSpec(BaseModel):
    """A group of identical cloudlets."""
    count: int = Field(1, ge=1)
    length: float = Field(..., gt=0)
    pes: int = Field(1, ge=1)
    file_size: float = Field(300, ge=0)
    output_size: float = Field(300, ge=0)
    utilization: Literal["full", "null", "stochastic"] = "full"
    seed: Optional[int] = None


class BrokerSpec(BaseModel):
    """A broker with its VM and cloudlet requests."""
    name: str
    vms: List[VmSpec] = Field(default_factory=list)
    cloudlets: List[CloudletSpec] = Field(default_factory=list)
    binding: Literal["round_robin", "none"] = "round_robin"


class ScenarioConfig(BaseModel):
    """Main configuration class."""
    simulation: SimulationSettings = Field(default_factory=SimulationSettings)
    datacenters: List[DatacenterSpec] = Field(default_factory=list)
    brokers: List[BrokerSpec] = Field(..., min_length=1)


def load_config(config_path: Path) -> ScenarioConfig:
    """Load a scenario from a YAML or JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the format is unsupported or the content is invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, 'r') as f:
        try:
            if config_path.suffix.lower() in ['.yaml', '.yml']:
                config_data = yaml.safe_load(f)
            elif config_path.suffix.lower() == '.json':
                config_data = json.load(f)
            else:
                raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to parse configuration file {config_path}: {e}") from e

    if config_data is None:
        raise ValueError(f"Configuration file is empty: {config_path}")

    try:
        config = ScenarioConfig.model_validate(config_data)
    except ValidationError as e:
        raise ValueError(f"Invalid scenario configuration in {config_path}:\n{e}") from e

    logger.info(
        f"Configuration loaded: {len(config.datacenters)} datacenter(s), "
        f"{len(config.brokers)} broker(s)"
    )
    return config


def save_config(config: ScenarioConfig, config_path: Path) -> None:
    """Save a scenario to a YAML or JSON file."""
    config_path = Path(config_path)
    suffix = config_path.suffix.lower()
    if suffix not in ['.yaml', '.yml', '.json']:
        raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_dict = config.model_dump(mode="json", exclude_none=True)

    with open(config_path, 'w') as f:
        if suffix == '.json':
            json.dump(config_dict, f, indent=2)
        else:
            yaml.dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)

    logger.info(f"Configuration saved to {config_path}")


def save_results(analysis: Dict[str, Any], output_dir: Path) -> None:
    """Save every table of the analysis as ``<key>.csv`` and the summaries as JSON."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    summaries = {}
    for key, value in analysis.items():
        if isinstance(value, pd.DataFrame):
            table_file = output_dir / f"{key}.csv"
            value.to_csv(table_file, index=False)
            logger.info(f"Table {key} saved to {table_file}")
        else:
            summaries[key] = value

    results_file = output_dir / "simulation_results.json"
    with open(results_file, 'w') as f:
        json.dump(
            summaries,
            f,
            indent=2,
            default=str,
        )
    logger.info(f"Results saved to {results_file}")


def default_scenario() -> ScenarioConfig:
    """Two datacenters, one broker with 10 VMs and 20 cloudlets."""
    datacenters = [
        DatacenterSpec(
            name=f"Datacenter_{index}",
            hosts=[
                HostSpec(pes=4, mips=2000, ram=4096, bw=10000, storage=1000000),
                HostSpec(pes=2, mips=2000, ram=4096, bw=10000, storage=1000000),
            ],
        )
        for index in range(2)
    ]
    broker = BrokerSpec(
        name="Broker",
        vms=[VmSpec(count=10, mips=1000, pes=1, ram=1024, bw=1000, size=10000)],
        cloudlets=[CloudletSpec(count=20, length=100000, pes=1, file_size=300, output_size=300)],
    )
    return ScenarioConfig(datacenters=datacenters, brokers=[broker])
