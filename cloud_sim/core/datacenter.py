"""Datacenter entity: owns hosts and runs the VM and cloudlet lifecycle."""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from loguru import logger

from ..scheduling.allocation import VmAllocationPolicy
from .cloudlet import Cloudlet
from .entity import SimEntity
from .events import (
    CloudletAction,
    EventTag,
    SimEvent,
    VmCreateAck,
    VmDestroyAck,
    VmDestroyRequest,
)
from .exceptions import NoSuitableHost
from .resources import Host
from .simulation import Simulation
from .vm import Vm


@dataclass
class DatacenterCharacteristics:
    """Static description of a datacenter and its cost rates."""

    architecture: str
    os: str
    vmm: str
    host_list: List[Host]
    time_zone: float = 0.0
    cost_per_sec: float = 0.0
    cost_per_mem: float = 0.0
    cost_per_storage: float = 0.0
    cost_per_bw: float = 0.0
    resource_id: Optional[int] = field(default=None, compare=False)

    @property
    def number_of_hosts(self) -> int:
        return len(self.host_list)

    @property
    def number_of_pes(self) -> int:
        return sum(host.number_of_pes for host in self.host_list)

    @property
    def number_of_free_pes(self) -> int:
        return sum(host.number_of_free_pes for host in self.host_list)

    @property
    def mips_of_one_pe(self) -> float:
        if not self.host_list or not self.host_list[0].pe_list:
            return 0.0
        return self.host_list[0].pe_list[0].mips

    @property
    def total_mips(self) -> float:
        return sum(host.total_mips for host in self.host_list)


class Datacenter(SimEntity):
    """An entity owning a set of hosts.

    The datacenter keeps the authoritative VM objects in ``vm_table``
    (keyed by VM uid). Cloudlet progress is re-evaluated lazily: after every
    change it computes the next completion time across all hosts and keeps
    exactly one pending VM_DATACENTER_EVENT for that time.
    """

    is_resource = True

    def __init__(
        self,
        name: str,
        simulation: Simulation,
        characteristics: DatacenterCharacteristics,
        allocation_policy: VmAllocationPolicy,
        scheduling_interval: float = 0.0,
    ):
        if scheduling_interval < 0:
            raise ValueError("scheduling_interval must be non-negative")

        super().__init__(name, simulation)
        self.characteristics = characteristics
        self.characteristics.resource_id = self.id
        self.allocation_policy = allocation_policy
        self.scheduling_interval = scheduling_interval

        self.vm_table: Dict[str, Vm] = {}
        self.last_process_time = 0.0
        self._pending_update: Optional[SimEvent] = None

        for host in characteristics.host_list:
            host.datacenter_id = self.id

        logger.info(
            f"Datacenter {name} created with {characteristics.number_of_hosts} hosts, "
            f"{characteristics.number_of_pes} PEs"
        )

    @property
    def host_list(self) -> List[Host]:
        return self.characteristics.host_list

    @property
    def vm_list(self) -> List[Vm]:
        return list(self.vm_table.values())

    def _setup_event_handlers(self) -> None:
        self.subscribe(EventTag.RESOURCE_CHARACTERISTICS_REQUEST, self._handle_characteristics_request)
        self.subscribe(EventTag.VM_CREATE, self._handle_vm_create)
        self.subscribe(EventTag.VM_DESTROY, self._handle_vm_destroy)
        self.subscribe(EventTag.CLOUDLET_SUBMIT, self._handle_cloudlet_submit)
        self.subscribe(EventTag.CLOUDLET_CANCEL, self._handle_cloudlet_cancel)
        self.subscribe(EventTag.CLOUDLET_PAUSE, self._handle_cloudlet_pause)
        self.subscribe(EventTag.CLOUDLET_RESUME, self._handle_cloudlet_resume)
        self.subscribe(EventTag.VM_DATACENTER_EVENT, self._handle_update_processing)

    def _handle_characteristics_request(self, event: SimEvent) -> None:
        self.send_now(event.source, EventTag.RESOURCE_CHARACTERISTICS, self.characteristics)

    def _handle_vm_create(self, event: SimEvent) -> None:
        vm: Vm = event.data
        # Shares of resident VMs change on placement, so settle progress first.
        self.update_cloudlet_processing()

        try:
            host = self.allocation_policy.allocate_host_for_vm(vm)
        except NoSuitableHost as e:
            ack = VmCreateAck(self.id, vm.vm_id, False, reason=str(e))
        else:
            vm.being_instantiated = False
            self.vm_table[vm.uid] = vm
            ack = VmCreateAck(self.id, vm.vm_id, True, host_id=host.host_id)
            self.update_cloudlet_processing()

        self.send_now(event.source, EventTag.VM_CREATE_ACK, ack)

    def _handle_vm_destroy(self, event: SimEvent) -> None:
        request: VmDestroyRequest = event.data
        vm = self.vm_table.get(request.vm.uid)
        if vm is None:
            logger.debug(f"{self.name}: VM {request.vm.uid} not present, nothing to destroy")
            if request.ack:
                self.send_now(event.source, EventTag.VM_DESTROY_ACK,
                              VmDestroyAck(self.id, request.vm.vm_id, False))
            return

        self.update_cloudlet_processing()
        for cloudlet in vm.cloudlet_scheduler.fail_all(self.clock, f"VM {vm.uid} destroyed"):
            self.send_now(cloudlet.user_id, EventTag.CLOUDLET_RETURN, cloudlet)
        self._return_finished_cloudlets()

        self.allocation_policy.deallocate_host_for_vm(vm)
        del self.vm_table[vm.uid]
        self.update_cloudlet_processing()

        if request.ack:
            self.send_now(event.source, EventTag.VM_DESTROY_ACK, VmDestroyAck(self.id, vm.vm_id, True))

    def _handle_cloudlet_submit(self, event: SimEvent) -> None:
        cloudlet: Cloudlet = event.data
        self.update_cloudlet_processing()

        if cloudlet.status.is_terminal:
            logger.warning(f"{self.name}: cloudlet {cloudlet.cloudlet_id} already "
                           f"{cloudlet.status.value}, returning it")
            self.send_now(cloudlet.user_id, EventTag.CLOUDLET_RETURN, cloudlet)
            return

        cloudlet.set_resource_parameter(
            self.id, self.characteristics.cost_per_sec, self.characteristics.cost_per_bw
        )
        cloudlet.submission_time = self.clock

        vm = self.vm_table.get(Vm.get_uid(cloudlet.user_id, cloudlet.vm_id))
        if vm is None:
            cloudlet.mark_failed(self.clock, f"VM {cloudlet.vm_id} not found in {self.name}")
            self.send_now(cloudlet.user_id, EventTag.CLOUDLET_RETURN, cloudlet)
            return

        vm.cloudlet_scheduler.cloudlet_submit(cloudlet)
        logger.debug(f"{self.name}: cloudlet {cloudlet.cloudlet_id} submitted to VM {vm.uid}")

        self.update_cloudlet_processing()

    def _handle_cloudlet_cancel(self, event: SimEvent) -> None:
        action: CloudletAction = event.data
        vm = self._vm_for(action)
        self.update_cloudlet_processing()
        cloudlet = vm.cloudlet_scheduler.cloudlet_cancel(action.cloudlet_id) if vm else None
        if cloudlet is None:
            logger.info(f"{self.name}: cancel of cloudlet {action.cloudlet_id} had no effect")
            return
        self.send_now(cloudlet.user_id, EventTag.CLOUDLET_RETURN, cloudlet)
        self.update_cloudlet_processing()

    def _handle_cloudlet_pause(self, event: SimEvent) -> None:
        action: CloudletAction = event.data
        vm = self._vm_for(action)
        self.update_cloudlet_processing()
        if vm is None or not vm.cloudlet_scheduler.cloudlet_pause(action.cloudlet_id):
            logger.info(f"{self.name}: pause of cloudlet {action.cloudlet_id} had no effect")
            return
        self.update_cloudlet_processing()

    def _handle_cloudlet_resume(self, event: SimEvent) -> None:
        action: CloudletAction = event.data
        vm = self._vm_for(action)
        self.update_cloudlet_processing()
        if vm is None or not vm.cloudlet_scheduler.cloudlet_resume(action.cloudlet_id):
            logger.info(f"{self.name}: resume of cloudlet {action.cloudlet_id} had no effect")
            return
        self.update_cloudlet_processing()

    def _handle_update_processing(self, event: SimEvent) -> None:
        self.update_cloudlet_processing()

    def update_cloudlet_processing(self) -> None:
        """Bring every host up to the current clock and reschedule the next update."""
        now = self.clock
        smaller_time = math.inf
        for host in self.host_list:
            smaller_time = min(smaller_time, host.update_vms_processing(now, self.vm_table))
        self.last_process_time = now

        self._return_finished_cloudlets()

        if self.scheduling_interval > 0 and self._has_running_work():
            smaller_time = min(smaller_time, now + self.scheduling_interval)

        for vm in self.vm_table.values():
            vm.record_utilization(now)

        # Keep exactly one pending processing update.
        if self._pending_update is not None:
            self.simulation.cancel_event(self._pending_update)
            self._pending_update = None
        if smaller_time != math.inf:
            self._pending_update = self.schedule_self(smaller_time - now, EventTag.VM_DATACENTER_EVENT)

    def _return_finished_cloudlets(self) -> None:
        for host in self.host_list:
            for uid in host.vm_ids:
                scheduler = self.vm_table[uid].cloudlet_scheduler
                while scheduler.is_finished_cloudlets():
                    cloudlet = scheduler.next_finished_cloudlet()
                    self.send_now(cloudlet.user_id, EventTag.CLOUDLET_RETURN, cloudlet)

    def _has_running_work(self) -> bool:
        return any(vm.cloudlet_scheduler.has_work for vm in self.vm_table.values())

    def _vm_for(self, action: CloudletAction) -> Optional[Vm]:
        return self.vm_table.get(Vm.get_uid(action.user_id, action.vm_id))

    def shutdown_entity(self) -> None:
        if self.vm_table:
            logger.info(f"{self.name}: releasing {len(self.vm_table)} remaining VM(s)")
            for vm in list(self.vm_table.values()):
                self.allocation_policy.deallocate_host_for_vm(vm)
            self.vm_table.clear()
        super().shutdown_entity()
