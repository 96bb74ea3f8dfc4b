import importlib.util

import pytest

from conftest import ROOT


def load_checker():
    spec = importlib.util.spec_from_file_location(
        "check_dependencies", ROOT / "scripts" / "check_dependencies.py"
    )
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.parametrize("requirement, name", [
    ("uvicorn[standard]>=0.27", "uvicorn"),
    ("pydantic-settings>=2.1", "pydantic-settings"),
    ("redis", "redis"),
    ("  beautifulsoup4 >= 4.12", "beautifulsoup4"),
])
def test_requirement_name(requirement, name):
    assert load_checker().requirement_name(requirement) == name


def test_requirements_come_from_pyproject():
    groups = load_checker().load_requirements()

    runtime = [req.split(">")[0] for req in groups["runtime"]]
    assert "beautifulsoup4" in runtime
    assert "redis" in runtime
    assert any(req.startswith("pytest-asyncio") for req in groups["extra 'test'"])


def test_report_lists_missing_distributions(capsys):
    checker = load_checker()

    missing = checker.report("runtime", ["pytest>=7", "no-such-distribution-for-lens>=1"])

    assert missing == ["no-such-distribution-for-lens>=1"]
    out = capsys.readouterr().out
    assert "[OK] pytest" in out
    assert "[MISSING] no-such-distribution-for-lens>=1" in out
