"""Builders for hosts, VMs, cloudlets and small broker scenarios."""

from typing import List

from cloud_sim.core.broker import DatacenterBroker
from cloud_sim.core.cloudlet import Cloudlet
from cloud_sim.core.datacenter import Datacenter, DatacenterCharacteristics
from cloud_sim.core.provisioners import BwProvisioner, RamProvisioner
from cloud_sim.core.resources import Host, create_pe_list
from cloud_sim.core.simulation import Simulation
from cloud_sim.core.vm import Vm
from cloud_sim.scheduling.allocation import VmAllocationPolicySimple
from cloud_sim.scheduling.cloudlet_scheduler import create_cloudlet_scheduler
from cloud_sim.scheduling.vm_scheduler import create_vm_scheduler


def make_host(
    host_id: int = 0,
    pes: int = 4,
    mips: float = 2000,
    ram: float = 8192,
    bw: float = 10000,
    storage: float = 1000000,
    vm_scheduler: str = "time_shared",
) -> Host:
    pe_list = create_pe_list(pes, mips)
    return Host(
        host_id,
        RamProvisioner(ram),
        BwProvisioner(bw),
        storage,
        pe_list,
        create_vm_scheduler(vm_scheduler, pe_list),
    )


def make_vm(
    vm_id: int = 0,
    user_id: int = 1,
    mips: float = 1000,
    pes: int = 1,
    ram: float = 512,
    bw: float = 1000,
    size: float = 10000,
    cloudlet_scheduler: str = "time_shared",
) -> Vm:
    return Vm(vm_id, user_id, mips, pes, ram, bw, size, "Xen",
              create_cloudlet_scheduler(cloudlet_scheduler))


def make_cloudlet(cloudlet_id: int = 0, length: float = 100000, pes: int = 1, user_id: int = -1) -> Cloudlet:
    return Cloudlet(cloudlet_id, length, pes, 300, 300, user_id=user_id)


def make_datacenter(
    simulation: Simulation,
    hosts: List[Host],
    name: str = "Datacenter_0",
    cost_per_sec: float = 3.0,
) -> Datacenter:
    characteristics = DatacenterCharacteristics(
        "x86", "Linux", "Xen", hosts, 10.0, cost_per_sec, 0.05, 0.1, 0.1
    )
    return Datacenter(name, simulation, characteristics, VmAllocationPolicySimple(hosts))


class SingleBrokerScenario:
    """One broker with VMs and cloudlets bound one-to-one (cloudlet i -> VM i % n)."""

    def __init__(
        self,
        host_lists: List[List[Host]],
        vm_specs: List[dict],
        cloudlet_lengths: List[float],
        bind: bool = True,
        trace_flag: bool = False,
    ):
        self.simulation = Simulation(num_user=1, trace_flag=trace_flag)
        self.datacenters = [
            make_datacenter(self.simulation, hosts, name=f"Datacenter_{index}")
            for index, hosts in enumerate(host_lists)
        ]
        self.broker = DatacenterBroker("Broker", self.simulation)
        self.vms = [
            make_vm(vm_id=index, user_id=self.broker.id, **spec)
            for index, spec in enumerate(vm_specs)
        ]
        self.cloudlets = [
            make_cloudlet(index, length) for index, length in enumerate(cloudlet_lengths)
        ]
        self.broker.submit_vm_list(self.vms)
        self.broker.submit_cloudlet_list(self.cloudlets)
        if bind:
            for cloudlet in self.cloudlets:
                self.broker.bind_cloudlet_to_vm(
                    cloudlet.cloudlet_id, self.vms[cloudlet.cloudlet_id % len(self.vms)].vm_id
                )

    def run(self) -> List[Cloudlet]:
        self.simulation.start_simulation()
        received = self.broker.get_cloudlet_received_list()
        self.simulation.stop_simulation()
        return received

    def by_id(self, received: List[Cloudlet]) -> dict:
        return {cloudlet.cloudlet_id: cloudlet for cloudlet in received}
