"""Tests for the command-line interface."""

import json

import pytest
from typer.testing import CliRunner

from cloud_sim.cli import app
from cloud_sim.utils.config import default_scenario, load_config

runner = CliRunner()


def test_example_command(tmp_path):
    result = runner.invoke(app, ["example", "--output", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "SUCCESS" in result.output
    assert "Simulation completed successfully" in result.output
    assert (tmp_path / "cloudlets.csv").exists()
    assert (tmp_path / "vm_utilization.csv").exists()
    with open(tmp_path / "simulation_results.json") as f:
        results = json.load(f)
    assert results["summary"]["successful_cloudlets"] == 20
    assert results["summary"]["avg_vm_cpu_utilization"] == pytest.approx(1.0)


def test_init_config_then_run(tmp_path):
    config_path = tmp_path / "scenario.yaml"

    result = runner.invoke(app, ["init-config", str(config_path)])
    assert result.exit_code == 0, result.output
    assert load_config(config_path) == default_scenario()

    result = runner.invoke(app, ["run", "--config", str(config_path)])
    assert result.exit_code == 0, result.output
    assert "Simulation Results Summary" in result.output


def test_run_with_missing_config(tmp_path):
    result = runner.invoke(app, ["run", "--config", str(tmp_path / "absent.yaml")])
    assert result.exit_code == 1
