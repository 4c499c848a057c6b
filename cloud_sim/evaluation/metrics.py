"""Cloudlet result tables and summary metrics."""

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from ..core.cloudlet import Cloudlet, CloudletStatus
from ..core.vm import Vm

RESULT_COLUMNS = [
    "cloudlet_id",
    "status",
    "datacenter_id",
    "vm_id",
    "time",
    "start_time",
    "finish_time",
    "cost",
]

VM_UTILIZATION_COLUMNS = ["vm_id", "time", "cpu_utilization"]


def cloudlets_to_frame(cloudlets: Iterable[Cloudlet]) -> pd.DataFrame:
    """One row per cloudlet, in received order."""
    rows = [
        {
            "cloudlet_id": cl.cloudlet_id,
            "status": cl.status.name,
            "datacenter_id": cl.resource_id,
            "vm_id": cl.vm_id,
            "time": cl.actual_cpu_time,
            "start_time": cl.exec_start_time,
            "finish_time": cl.finish_time,
            "cost": cl.processing_cost,
        }
        for cl in cloudlets
    ]
    return pd.DataFrame(rows, columns=RESULT_COLUMNS)


def summarize_results(frame: pd.DataFrame) -> Dict[str, Any]:
    """Counts, makespan and CPU time statistics of a result frame."""
    succeeded = frame[frame["status"] == CloudletStatus.SUCCESS.name]
    cpu_times = succeeded["time"].to_numpy(dtype=float)

    return {
        "total_cloudlets": int(len(frame)),
        "successful_cloudlets": int(len(succeeded)),
        "failed_cloudlets": int((frame["status"] == CloudletStatus.FAILED.name).sum()),
        "canceled_cloudlets": int((frame["status"] == CloudletStatus.CANCELED.name).sum()),
        "makespan": float(succeeded["finish_time"].max()) if len(succeeded) else 0.0,
        "avg_cpu_time": float(np.mean(cpu_times)) if cpu_times.size else 0.0,
        "p95_cpu_time": float(np.percentile(cpu_times, 95)) if cpu_times.size else 0.0,
        "max_cpu_time": float(np.max(cpu_times)) if cpu_times.size else 0.0,
        "total_cost": float(frame["cost"].sum()) if len(frame) else 0.0,
    }


def vm_utilization_to_frame(vms: Iterable[Vm]) -> pd.DataFrame:
    """One row per recorded CPU utilization sample of each VM."""
    rows = [
        {"vm_id": vm.vm_id, "time": sample_time, "cpu_utilization": utilization}
        for vm in vms
        for sample_time, utilization in vm.utilization_history
    ]
    return pd.DataFrame(rows, columns=VM_UTILIZATION_COLUMNS)


def time_weighted_mean(history: Sequence[Tuple[float, float]]) -> float:
    """Mean of a step function given as (time, value) samples.

    Each value holds until the next sample. A single sample is its own mean.
    """
    if not history:
        return 0.0
    times = np.array([t for t, _ in history], dtype=float)
    values = np.array([v for _, v in history], dtype=float)
    spans = np.diff(times)
    if spans.sum() <= 0:
        return float(values[-1])
    return float(np.average(values[:-1], weights=spans))


def average_vm_utilization(vms: Iterable[Vm]) -> float:
    """Mean over VMs of each VM's time-weighted CPU utilization."""
    means = [time_weighted_mean(vm.utilization_history) for vm in vms if vm.utilization_history]
    return float(np.mean(means)) if means else 0.0


class ResultsAnalyzer:
    """Builds the result table and summary for one or more brokers."""

    def __init__(self):
        self.logger = logger.bind(component="ResultsAnalyzer")

    def analyze(
        self,
        received: Dict[str, List[Cloudlet]],
        vms: Optional[Dict[str, List[Vm]]] = None,
    ) -> Dict[str, Any]:
        """Analyze the received lists of several brokers, keyed by broker name.

        When the brokers' VMs are given as well, their CPU utilization
        history is added as ``vm_utilization`` together with the
        ``avg_vm_cpu_utilization`` summary metric.
        """
        frames = []
        for broker_name, cloudlets in received.items():
            frame = cloudlets_to_frame(cloudlets)
            frame.insert(0, "broker", broker_name)
            frames.append(frame)

        if frames:
            results = pd.concat(frames, ignore_index=True)
        else:
            results = pd.DataFrame(columns=["broker"] + RESULT_COLUMNS)

        summary = summarize_results(results)
        per_broker = {
            name: summarize_results(results[results["broker"] == name])
            for name in received
        }
        analysis: Dict[str, Any] = {
            "summary": summary,
            "per_broker": per_broker,
            "cloudlets": results,
        }

        if vms is not None:
            utilization_frames = []
            for broker_name, broker_vms in vms.items():
                frame = vm_utilization_to_frame(broker_vms)
                frame.insert(0, "broker", broker_name)
                utilization_frames.append(frame)
                if broker_name in per_broker:
                    per_broker[broker_name]["avg_vm_cpu_utilization"] = average_vm_utilization(broker_vms)
            summary["avg_vm_cpu_utilization"] = average_vm_utilization(
                vm for broker_vms in vms.values() for vm in broker_vms
            )
            if utilization_frames:
                analysis["vm_utilization"] = pd.concat(utilization_frames, ignore_index=True)
            else:
                analysis["vm_utilization"] = pd.DataFrame(columns=["broker"] + VM_UTILIZATION_COLUMNS)

        self.logger.info(
            f"Analyzed {summary['total_cloudlets']} cloudlets: "
            f"{summary['successful_cloudlets']} succeeded, makespan {summary['makespan']:.2f}"
        )
        return analysis
