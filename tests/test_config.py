"""Tests for scenario configuration and scenario building."""

import json
from pathlib import Path

import pytest

from cloud_sim.core.cloudlet import CloudletStatus
from cloud_sim.evaluation.metrics import ResultsAnalyzer
from cloud_sim.scheduling.allocation import VmAllocationPolicySpread
from cloud_sim.utils.config import (
    BrokerSpec,
    CloudletSpec,
    DatacenterSpec,
    HostSpec,
    ScenarioConfig,
    VmSpec,
    default_scenario,
    load_config,
    save_config,
    save_results,
)
from cloud_sim.utils.scenario import build_scenario, run_scenario

CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"


class TestConfigPersistence:
    """Test loading and saving scenario files."""

    @pytest.mark.parametrize("suffix", [".yaml", ".json"])
    def test_save_and_load(self, tmp_path, suffix):
        config = default_scenario()
        path = tmp_path / f"scenario{suffix}"

        save_config(config, path)

        assert load_config(path) == config

    def test_shipped_example_matches_default(self):
        assert load_config(CONFIG_DIR / "example_custom.yaml") == default_scenario()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "scenario.toml"
        path.write_text("brokers = []")
        with pytest.raises(ValueError):
            load_config(path)
        with pytest.raises(ValueError):
            save_config(default_scenario(), tmp_path / "scenario.ini")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError):
            load_config(path)

    def test_invalid_content(self, tmp_path):
        path = tmp_path / "invalid.yaml"
        path.write_text("brokers:\n- name: Broker\n  vms:\n  - mips: -5\n    ram: 1\n    bw: 1\n    size: 1\n")
        with pytest.raises(ValueError, match="Invalid scenario configuration"):
            load_config(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("brokers: [unclosed")
        with pytest.raises(ValueError):
            load_config(path)


class TestScenarioBuilding:
    """Test turning a configuration into entities."""

    def test_default_scenario_layout(self):
        scenario = build_scenario(default_scenario())

        assert [dc.name for dc in scenario.datacenters] == ["Datacenter_0", "Datacenter_1"]
        assert [host.host_id for host in scenario.datacenters[0].host_list] == [0, 1]
        assert len(scenario.vms["Broker"]) == 10
        assert len(scenario.cloudlets["Broker"]) == 20
        assert scenario.cloudlets["Broker"][13].vm_id == 3

    def test_allocation_policy_is_configurable(self):
        config = ScenarioConfig(
            datacenters=[DatacenterSpec(
                name="dc",
                hosts=[HostSpec(count=3, pes=2, mips=1000, ram=2048, bw=1000, storage=10000)],
                allocation_policy="spread",
            )],
            brokers=[BrokerSpec(name="user")],
        )

        scenario = build_scenario(config)

        assert isinstance(scenario.datacenters[0].allocation_policy, VmAllocationPolicySpread)
        assert len(scenario.datacenters[0].host_list) == 3

    def test_default_scenario_runs_to_completion(self):
        scenario, received = run_scenario(default_scenario())

        cloudlets = received["Broker"]
        assert len(cloudlets) == 20
        assert all(cl.status is CloudletStatus.SUCCESS for cl in cloudlets)
        assert all(cl.finish_time == pytest.approx(200) for cl in cloudlets)
        used_datacenters = {cl.resource_id for cl in cloudlets}
        assert used_datacenters == {dc.id for dc in scenario.datacenters}

    def test_stochastic_utilization_with_seed(self):
        config = ScenarioConfig(
            datacenters=[DatacenterSpec(
                name="dc", hosts=[HostSpec(pes=2, mips=1000, ram=2048, bw=1000, storage=100000)],
            )],
            brokers=[BrokerSpec(
                name="user",
                vms=[VmSpec(mips=1000, ram=512, bw=100, size=1000)],
                cloudlets=[CloudletSpec(count=2, length=1000, utilization="stochastic", seed=11)],
            )],
        )

        first = build_scenario(config).cloudlets["user"]
        second = build_scenario(config).cloudlets["user"]

        draws = [cl.utilization_model_cpu.get_utilization(1.0) for cl in first]
        assert draws == [cl.utilization_model_cpu.get_utilization(1.0) for cl in second]
        assert all(0.0 <= value <= 1.0 for value in draws)


class TestUtilizationReporting:
    """Test that the configured utilization model shows in the results."""

    @staticmethod
    def single_cloudlet_config(utilization):
        return ScenarioConfig(
            datacenters=[DatacenterSpec(
                name="dc", hosts=[HostSpec(pes=1, mips=1000, ram=2048, bw=1000, storage=100000)],
            )],
            brokers=[BrokerSpec(
                name="user",
                vms=[VmSpec(mips=1000, ram=512, bw=100, size=1000)],
                cloudlets=[CloudletSpec(length=1000, utilization=utilization, seed=3)],
            )],
        )

    @pytest.mark.parametrize("utilization, expected", [("full", 1.0), ("null", 0.0)])
    def test_model_drives_vm_cpu_utilization(self, utilization, expected):
        scenario, received = run_scenario(self.single_cloudlet_config(utilization))

        vm = scenario.vms["user"][0]
        assert received["user"][0].finish_time == pytest.approx(1.0)
        first_time, first_value = vm.utilization_history[0]
        last_time, last_value = vm.utilization_history[-1]
        assert (first_time, first_value) == (0.0, expected)
        assert last_time == pytest.approx(1.0)
        assert last_value == 0.0

        analysis = ResultsAnalyzer().analyze(received, scenario.vms)
        assert analysis["summary"]["avg_vm_cpu_utilization"] == pytest.approx(expected)
        assert analysis["per_broker"]["user"]["avg_vm_cpu_utilization"] == pytest.approx(expected)

    def test_stochastic_model_is_reproducible(self):
        def average():
            scenario, received = run_scenario(self.single_cloudlet_config("stochastic"))
            return ResultsAnalyzer().analyze(received, scenario.vms)["summary"]["avg_vm_cpu_utilization"]

        first = average()
        assert first == average()
        assert 0.0 <= first <= 1.0


def test_save_results_writes_every_table(tmp_path):
    config = TestUtilizationReporting.single_cloudlet_config("full")
    scenario, received = run_scenario(config)
    analysis = ResultsAnalyzer().analyze(received, scenario.vms)

    save_results(analysis, tmp_path)

    assert (tmp_path / "cloudlets.csv").exists()
    assert (tmp_path / "vm_utilization.csv").exists()
    with open(tmp_path / "simulation_results.json") as f:
        results = json.load(f)
    assert set(results) == {"summary", "per_broker"}
    assert results["summary"]["avg_vm_cpu_utilization"] == pytest.approx(1.0)
