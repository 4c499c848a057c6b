"""Command-line interface for the cloud simulator."""

from typing import Any, Dict, List, Optional
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from loguru import logger

from .core.cloudlet import Cloudlet, CloudletStatus
from .evaluation.metrics import ResultsAnalyzer
from .utils.config import ScenarioConfig, default_scenario, load_config, save_config, save_results
from .utils.scenario import run_scenario

app = typer.Typer(name="cloud-sim", help="Discrete-event simulator for VMs and cloudlets")
console = Console()


@app.command()
def run(
    config: Path = typer.Option(..., "--config", "-c", help="Scenario file (YAML or JSON)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a scenario described in a configuration file."""
    _configure_logging(verbose)

    try:
        scenario_config = load_config(config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"❌ {e}", style="bold red")
        raise typer.Exit(code=1)

    console.print(f"📋 Loaded scenario from {config}")
    _simulate(scenario_config, output)


@app.command()
def example(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run the built-in two-datacenter example."""
    _configure_logging(verbose)
    console.print("📋 Using the built-in example scenario")
    _simulate(default_scenario(), output)


@app.command("init-config")
def init_config(
    path: Path = typer.Argument(..., help="Where to write the example scenario"),
) -> None:
    """Write the built-in example scenario to a file."""
    try:
        save_config(default_scenario(), path)
    except ValueError as e:
        console.print(f"❌ {e}", style="bold red")
        raise typer.Exit(code=1)
    console.print(f"💾 Example scenario written to {path}")


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logger.remove()
        logger.add("logs/simulation_{time}.log", level="DEBUG")
        logger.add(lambda msg: console.print(msg, style="dim", end=""), level="INFO")


def _simulate(config: ScenarioConfig, output: Optional[Path]) -> None:
    console.print("🚀 Starting simulation", style="bold blue")
    scenario, received = run_scenario(config)
    console.print(f"⏱️  Simulation finished at clock {scenario.simulation.clock:.2f}")

    for broker_name, cloudlets in received.items():
        display_cloudlet_list(broker_name, cloudlets)

    analysis = ResultsAnalyzer().analyze(received, scenario.vms)
    display_results_summary(analysis["summary"])

    if output:
        save_results(analysis, output)
        console.print(f"💾 Results saved to {output}")

    console.print("✅ Simulation completed successfully!", style="bold green")


def display_cloudlet_list(broker_name: str, cloudlets: List[Cloudlet]) -> None:
    """Print one row per received cloudlet."""
    table = Table(title=f"{broker_name} - received cloudlets")
    for column in ["Cloudlet ID", "STATUS", "Data center ID", "VM ID", "Time", "Start Time", "Finish Time"]:
        table.add_column(column, justify="right")

    for cloudlet in cloudlets:
        if cloudlet.status is CloudletStatus.SUCCESS:
            table.add_row(
                str(cloudlet.cloudlet_id),
                "SUCCESS",
                str(cloudlet.resource_id),
                str(cloudlet.vm_id),
                f"{cloudlet.actual_cpu_time:.2f}",
                f"{cloudlet.exec_start_time:.2f}",
                f"{cloudlet.finish_time:.2f}",
                style="green",
            )
        else:
            table.add_row(str(cloudlet.cloudlet_id), cloudlet.status.name, "", "", "", "", "", style="red")

    console.print(table)


def display_results_summary(summary: Dict[str, Any]) -> None:
    """Display simulation results summary."""
    table = Table(title="Simulation Results Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Unit", style="yellow")

    metrics = [
        ("Total Cloudlets", f"{summary['total_cloudlets']}", "count"),
        ("Successful Cloudlets", f"{summary['successful_cloudlets']}", "count"),
        ("Failed Cloudlets", f"{summary['failed_cloudlets']}", "count"),
        ("Canceled Cloudlets", f"{summary['canceled_cloudlets']}", "count"),
        ("Makespan", f"{summary['makespan']:.2f}", "time units"),
        ("Average CPU Time", f"{summary['avg_cpu_time']:.2f}", "time units"),
        ("P95 CPU Time", f"{summary['p95_cpu_time']:.2f}", "time units"),
        ("Total Cost", f"{summary['total_cost']:.2f}", "cost units"),
    ]
    if "avg_vm_cpu_utilization" in summary:
        metrics.append(
            ("Avg VM CPU Utilization", f"{summary['avg_vm_cpu_utilization']:.1%}", "percent")
        )
    for metric, value, unit in metrics:
        table.add_row(metric, value, unit)

    console.print(table)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
