"""Build runnable scenarios from a ScenarioConfig."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ..core.broker import DatacenterBroker
from ..core.cloudlet import Cloudlet
from ..core.datacenter import Datacenter, DatacenterCharacteristics
from ..core.provisioners import BwProvisioner, RamProvisioner
from ..core.resources import Host, create_pe_list
from ..core.simulation import Simulation
from ..core.utilization import create_utilization_model
from ..core.vm import Vm
from ..scheduling.allocation import create_allocation_policy
from ..scheduling.cloudlet_scheduler import create_cloudlet_scheduler
from ..scheduling.vm_scheduler import create_vm_scheduler
from .config import BrokerSpec, DatacenterSpec, HostSpec, ScenarioConfig


@dataclass
class Scenario:
    """Everything a configured simulation run consists of."""
    simulation: Simulation
    datacenters: List[Datacenter] = field(default_factory=list)
    brokers: List[DatacenterBroker] = field(default_factory=list)
    vms: Dict[str, List[Vm]] = field(default_factory=dict)
    cloudlets: Dict[str, List[Cloudlet]] = field(default_factory=dict)


def create_host(host_id: int, spec: HostSpec) -> Host:
    pe_list = create_pe_list(spec.pes, spec.mips)
    return Host(
        host_id,
        RamProvisioner(spec.ram),
        BwProvisioner(spec.bw),
        spec.storage,
        pe_list,
        create_vm_scheduler(spec.vm_scheduler, pe_list),
    )


def create_datacenter(spec: DatacenterSpec, simulation: Simulation) -> Datacenter:
    hosts = []
    for host_spec in spec.hosts:
        for _ in range(host_spec.count):
            hosts.append(create_host(len(hosts), host_spec))

    characteristics = DatacenterCharacteristics(
        architecture=spec.architecture,
        os=spec.os,
        vmm=spec.vmm,
        host_list=hosts,
        time_zone=spec.time_zone,
        cost_per_sec=spec.cost_per_sec,
        cost_per_mem=spec.cost_per_mem,
        cost_per_storage=spec.cost_per_storage,
        cost_per_bw=spec.cost_per_bw,
    )
    return Datacenter(
        spec.name,
        simulation,
        characteristics,
        create_allocation_policy(spec.allocation_policy, hosts),
        scheduling_interval=spec.scheduling_interval,
    )


def create_broker(
    spec: BrokerSpec, simulation: Simulation
) -> Tuple[DatacenterBroker, List[Vm], List[Cloudlet]]:
    broker = DatacenterBroker(spec.name, simulation)

    vms: List[Vm] = []
    for vm_spec in spec.vms:
        for _ in range(vm_spec.count):
            vms.append(Vm(
                len(vms), broker.id, vm_spec.mips, vm_spec.pes, vm_spec.ram, vm_spec.bw,
                vm_spec.size, vm_spec.vmm, create_cloudlet_scheduler(vm_spec.cloudlet_scheduler),
            ))

    cloudlets: List[Cloudlet] = []
    for cl_spec in spec.cloudlets:
        for _ in range(cl_spec.count):
            cloudlet_id = len(cloudlets)
            seed: Optional[int] = None if cl_spec.seed is None else cl_spec.seed + cloudlet_id
            cloudlets.append(Cloudlet(
                cloudlet_id, cl_spec.length, cl_spec.pes, cl_spec.file_size, cl_spec.output_size,
                create_utilization_model(cl_spec.utilization, seed),
                create_utilization_model(cl_spec.utilization, seed),
                create_utilization_model(cl_spec.utilization, seed),
                user_id=broker.id,
            ))

    broker.submit_vm_list(vms)
    broker.submit_cloudlet_list(cloudlets)

    if spec.binding == "round_robin" and vms:
        for cloudlet in cloudlets:
            broker.bind_cloudlet_to_vm(cloudlet.cloudlet_id, vms[cloudlet.cloudlet_id % len(vms)].vm_id)

    return broker, vms, cloudlets


def build_scenario(config: ScenarioConfig) -> Scenario:
    """Create the simulation, its datacenters and its brokers."""
    simulation = Simulation(
        num_user=config.simulation.num_user,
        trace_flag=config.simulation.trace_flag,
    )
    scenario = Scenario(simulation=simulation)

    for dc_spec in config.datacenters:
        scenario.datacenters.append(create_datacenter(dc_spec, simulation))

    for broker_spec in config.brokers:
        broker, vms, cloudlets = create_broker(broker_spec, simulation)
        scenario.brokers.append(broker)
        scenario.vms[broker.name] = vms
        scenario.cloudlets[broker.name] = cloudlets

    if len(scenario.brokers) != config.simulation.num_user:
        logger.warning(
            f"Scenario declares {config.simulation.num_user} user(s) "
            f"but defines {len(scenario.brokers)} broker(s)"
        )
    return scenario


def run_scenario(config: ScenarioConfig) -> Tuple[Scenario, Dict[str, List[Cloudlet]]]:
    """Build and run a scenario; returns it with each broker's received cloudlets."""
    scenario = build_scenario(config)
    scenario.simulation.start_simulation()
    received = {broker.name: broker.get_cloudlet_received_list() for broker in scenario.brokers}
    scenario.simulation.stop_simulation()
    return scenario, received
