"""Broker entity: a tenant submitting VMs and cloudlets and collecting results."""

from typing import Dict, Iterable, List, Optional

from loguru import logger

from .cloudlet import Cloudlet, CloudletStatus
from .datacenter import DatacenterCharacteristics
from .entity import SimEntity
from .events import CloudletAction, EventTag, SimEvent, VmCreateAck, VmDestroyAck, VmDestroyRequest
from .simulation import Simulation
from .vm import Vm


class DatacenterBroker(SimEntity):
    """Submits VMs and cloudlets on behalf of one user.

    On start the broker asks every datacenter for its characteristics, then
    tries to create its VMs in the first datacenter, retrying the VMs that
    failed in the next one until none is left. Cloudlets are then sent to
    the datacenter of their bound VM; a cloudlet whose VM could not be
    created anywhere is marked FAILED and lands directly in the received
    list. Once every submitted cloudlet is back the broker destroys its VMs
    and finishes.
    """

    is_user = True

    def __init__(self, name: str, simulation: Simulation):
        super().__init__(name, simulation)

        self.vm_list: List[Vm] = []
        self.vms_created: List[Vm] = []
        self.vms_failed: List[Vm] = []
        self.vms_to_datacenters: Dict[int, int] = {}

        self.cloudlet_list: List[Cloudlet] = []
        self.cloudlet_submitted_list: List[Cloudlet] = []
        self.cloudlet_received_list: List[Cloudlet] = []
        self.cloudlets_submitted = 0

        self.datacenter_ids: List[int] = []
        self.datacenter_characteristics: Dict[int, DatacenterCharacteristics] = {}
        self.datacenter_requested_ids: List[int] = []
        self.vms_requested = 0
        self.vms_acks = 0

    def _setup_event_handlers(self) -> None:
        self.subscribe(EventTag.RESOURCE_CHARACTERISTICS_REQUEST, self._handle_characteristics_request)
        self.subscribe(EventTag.RESOURCE_CHARACTERISTICS, self._handle_characteristics)
        self.subscribe(EventTag.VM_CREATE_ACK, self._handle_vm_create_ack)
        self.subscribe(EventTag.VM_DESTROY, self._handle_vm_destroy)
        self.subscribe(EventTag.VM_DESTROY_ACK, self._handle_vm_destroy_ack)
        self.subscribe(EventTag.CLOUDLET_RETURN, self._handle_cloudlet_return)
        self.subscribe(EventTag.CLOUDLET_CANCEL, self._forward_cloudlet_action)
        self.subscribe(EventTag.CLOUDLET_PAUSE, self._forward_cloudlet_action)
        self.subscribe(EventTag.CLOUDLET_RESUME, self._forward_cloudlet_action)

    # Driver-facing API

    def submit_vm_list(self, vms: Iterable[Vm]) -> None:
        for vm in vms:
            if vm.user_id != self.id:
                raise ValueError(f"VM {vm.vm_id} belongs to user {vm.user_id}, not {self.id}")
            self.vm_list.append(vm)

    def submit_cloudlet_list(self, cloudlets: Iterable[Cloudlet]) -> None:
        for cloudlet in cloudlets:
            if cloudlet.user_id == -1:
                cloudlet.user_id = self.id
            elif cloudlet.user_id != self.id:
                raise ValueError(
                    f"Cloudlet {cloudlet.cloudlet_id} belongs to user {cloudlet.user_id}, not {self.id}"
                )
            self.cloudlet_list.append(cloudlet)

    def bind_cloudlet_to_vm(self, cloudlet_id: int, vm_id: int) -> None:
        """Statically bind a not yet submitted cloudlet to one of this broker's VMs."""
        cloudlet = self._find_cloudlet(self.cloudlet_list, cloudlet_id)
        if cloudlet is None:
            raise ValueError(f"Cloudlet {cloudlet_id} was not submitted to broker {self.name}")
        cloudlet.vm_id = vm_id

    def get_cloudlet_received_list(self) -> List[Cloudlet]:
        return list(self.cloudlet_received_list)

    def cancel_cloudlet(self, cloudlet_id: int, delay: float = 0.0) -> None:
        self.schedule_self(delay, EventTag.CLOUDLET_CANCEL, cloudlet_id)

    def pause_cloudlet(self, cloudlet_id: int, delay: float = 0.0) -> None:
        self.schedule_self(delay, EventTag.CLOUDLET_PAUSE, cloudlet_id)

    def resume_cloudlet(self, cloudlet_id: int, delay: float = 0.0) -> None:
        self.schedule_self(delay, EventTag.CLOUDLET_RESUME, cloudlet_id)

    def destroy_vm(self, vm_id: int, delay: float = 0.0) -> None:
        self.schedule_self(delay, EventTag.VM_DESTROY, vm_id)

    # Lifecycle

    def start_entity(self) -> None:
        logger.info(f"{self.name} is starting with {len(self.vm_list)} VMs "
                    f"and {len(self.cloudlet_list)} cloudlets")
        self.schedule_self(0.0, EventTag.RESOURCE_CHARACTERISTICS_REQUEST)

    def _handle_characteristics_request(self, event: SimEvent) -> None:
        self.datacenter_ids = self.simulation.resource_ids
        if not self.datacenter_ids:
            logger.warning(f"{self.name}: no datacenter available")
            self._submit_cloudlets()
            return

        logger.debug(f"{self.name}: cloud resource list received with "
                     f"{len(self.datacenter_ids)} resource(s)")
        for datacenter_id in self.datacenter_ids:
            self.send_now(datacenter_id, EventTag.RESOURCE_CHARACTERISTICS_REQUEST)

    def _handle_characteristics(self, event: SimEvent) -> None:
        characteristics: DatacenterCharacteristics = event.data
        self.datacenter_characteristics[characteristics.resource_id] = characteristics

        if len(self.datacenter_characteristics) == len(self.datacenter_ids):
            self._create_vms_in_datacenter(self.datacenter_ids[0])

    def _create_vms_in_datacenter(self, datacenter_id: int) -> None:
        name = self.simulation.get_entity(datacenter_id).name
        self.datacenter_requested_ids.append(datacenter_id)
        self.vms_acks = 0
        self.vms_requested = 0

        for vm in self.vm_list:
            if vm.vm_id not in self.vms_to_datacenters:
                logger.info(f"{self.name}: trying to create VM #{vm.vm_id} in {name}")
                self.send_now(datacenter_id, EventTag.VM_CREATE, vm)
                self.vms_requested += 1

        if self.vms_requested == 0:
            self._submit_cloudlets()

    def _handle_vm_create_ack(self, event: SimEvent) -> None:
        ack: VmCreateAck = event.data
        vm = self._find_vm(self.vm_list, ack.vm_id)
        if ack.success:
            self.vms_to_datacenters[ack.vm_id] = ack.datacenter_id
            self.vms_created.append(vm)
            logger.info(f"{self.name}: VM #{ack.vm_id} created in datacenter "
                        f"#{ack.datacenter_id}, host #{ack.host_id}")
        else:
            logger.warning(f"{self.name}: creation of VM #{ack.vm_id} failed in datacenter "
                           f"#{ack.datacenter_id}: {ack.reason}")

        self.vms_acks += 1
        if self.vms_acks < self.vms_requested:
            return

        if len(self.vms_created) == len(self.vm_list):
            self._submit_cloudlets()
            return

        for datacenter_id in self.datacenter_ids:
            if datacenter_id not in self.datacenter_requested_ids:
                self._create_vms_in_datacenter(datacenter_id)
                return

        self.vms_failed = [vm for vm in self.vm_list if vm.vm_id not in self.vms_to_datacenters]
        logger.warning(f"{self.name}: {len(self.vms_failed)} VM(s) could not be created "
                       f"in any datacenter")
        self._submit_cloudlets()

    def _submit_cloudlets(self) -> None:
        vm_index = 0
        for cloudlet in self.cloudlet_list:
            if cloudlet.vm_id is None and self.vms_created:
                vm = self.vms_created[vm_index % len(self.vms_created)]
                vm_index += 1
                cloudlet.vm_id = vm.vm_id
            else:
                vm = self._find_vm(self.vms_created, cloudlet.vm_id)

            if vm is None:
                cloudlet.mark_failed(self.clock, f"bound VM {cloudlet.vm_id} is not available")
                self.cloudlet_received_list.append(cloudlet)
                continue

            cloudlet.status = CloudletStatus.READY
            logger.debug(f"{self.name}: sending cloudlet {cloudlet.cloudlet_id} to VM #{vm.vm_id}")
            self.send_now(self.vms_to_datacenters[vm.vm_id], EventTag.CLOUDLET_SUBMIT, cloudlet)
            self.cloudlet_submitted_list.append(cloudlet)
            self.cloudlets_submitted += 1

        self.cloudlet_list.clear()
        if self.cloudlets_submitted == 0:
            self._finish_execution()

    def _handle_cloudlet_return(self, event: SimEvent) -> None:
        cloudlet: Cloudlet = event.data
        self.cloudlet_received_list.append(cloudlet)
        self.cloudlets_submitted -= 1
        logger.info(f"{self.name}: cloudlet {cloudlet.cloudlet_id} received "
                    f"({cloudlet.status.value}) at {self.clock:.2f}")

        if self.cloudlets_submitted == 0 and not self.cloudlet_list:
            logger.info(f"{self.name}: all cloudlets executed")
            self._finish_execution()

    def _forward_cloudlet_action(self, event: SimEvent) -> None:
        cloudlet = self._find_cloudlet(self.cloudlet_submitted_list, event.data)
        if cloudlet is None or cloudlet.vm_id not in self.vms_to_datacenters:
            logger.info(f"{self.name}: {event.tag.value} for cloudlet {event.data} ignored, "
                        f"it was never submitted")
            return
        action = CloudletAction(cloudlet.cloudlet_id, self.id, cloudlet.vm_id)
        self.send_now(self.vms_to_datacenters[cloudlet.vm_id], event.tag, action)

    def _handle_vm_destroy(self, event: SimEvent) -> None:
        vm = self._find_vm(self.vms_created, event.data)
        if vm is None:
            logger.info(f"{self.name}: VM #{event.data} is not running, nothing to destroy")
            return
        self.send_now(self.vms_to_datacenters[vm.vm_id], EventTag.VM_DESTROY,
                      VmDestroyRequest(vm, ack=True))

    def _handle_vm_destroy_ack(self, event: SimEvent) -> None:
        ack: VmDestroyAck = event.data
        if not ack.success:
            logger.warning(f"{self.name}: destruction of VM #{ack.vm_id} failed")
            return
        vm = self._find_vm(self.vms_created, ack.vm_id)
        if vm is not None:
            self.vms_created.remove(vm)
        logger.info(f"{self.name}: VM #{ack.vm_id} destroyed at {self.clock:.2f}")

    def _finish_execution(self) -> None:
        for vm in self.vms_created:
            logger.debug(f"{self.name}: destroying VM #{vm.vm_id}")
            self.send_now(self.vms_to_datacenters[vm.vm_id], EventTag.VM_DESTROY, VmDestroyRequest(vm))
        self.vms_created = []
        self.shutdown_entity()

    @staticmethod
    def _find_vm(vms: List[Vm], vm_id: Optional[int]) -> Optional[Vm]:
        for vm in vms:
            if vm.vm_id == vm_id:
                return vm
        return None

    @staticmethod
    def _find_cloudlet(cloudlets: List[Cloudlet], cloudlet_id: int) -> Optional[Cloudlet]:
        for cloudlet in cloudlets:
            if cloudlet.cloudlet_id == cloudlet_id:
                return cloudlet
        return None
