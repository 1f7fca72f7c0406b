from unittest.mock import Mock

import pytest

from scripts import run_benchmark
from benchmark.runner import DEFAULT_SCENARIOS


@pytest.fixture
def no_dispatch(monkeypatch):
    driver = Mock(side_effect=AssertionError("no request may be dispatched"))
    monkeypatch.setattr(run_benchmark, "LoadDriver", driver)
    return driver


def test_missing_seed_aborts_the_run(tmp_path, capsys, no_dispatch):
    missing = tmp_path / "missing.jpg"

    code = run_benchmark.main(["--sample", str(missing), "--api", "http://bench.test/upload"])

    assert code == 1
    no_dispatch.assert_not_called()
    assert f"Sample image not found at {missing}" in capsys.readouterr().out


def test_unknown_scenario_is_rejected(capsys, no_dispatch):
    assert run_benchmark.main(["--scenario", "nope"]) == 1
    no_dispatch.assert_not_called()
    assert "Unknown scenario: nope" in capsys.readouterr().out


def test_list_prints_default_scenarios(capsys, no_dispatch):
    assert run_benchmark.main(["--list"]) == 0

    out = capsys.readouterr().out
    for scenario in DEFAULT_SCENARIOS:
        assert scenario.name in out
