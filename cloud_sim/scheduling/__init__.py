"""Scheduling and placement policies."""

from .vm_scheduler import (
    VmScheduler,
    VmSchedulerTimeShared,
    VmSchedulerSpaceShared,
    create_vm_scheduler,
)
from .cloudlet_scheduler import (
    CloudletScheduler,
    CloudletSchedulerTimeShared,
    CloudletSchedulerSpaceShared,
    create_cloudlet_scheduler,
)
from .allocation import (
    VmAllocationPolicy,
    VmAllocationPolicySimple,
    VmAllocationPolicySpread,
    create_allocation_policy,
)

__all__ = [
    "VmScheduler",
    "VmSchedulerTimeShared",
    "VmSchedulerSpaceShared",
    "create_vm_scheduler",
    "CloudletScheduler",
    "CloudletSchedulerTimeShared",
    "CloudletSchedulerSpaceShared",
    "create_cloudlet_scheduler",
    "VmAllocationPolicy",
    "VmAllocationPolicySimple",
    "VmAllocationPolicySpread",
    "create_allocation_policy",
]
