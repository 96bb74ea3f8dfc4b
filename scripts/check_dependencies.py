"""
Check that the distributions declared in pyproject.toml are installed
"""

import re
import sys
import tomllib
from importlib import metadata
from pathlib import Path

PYPROJECT = Path(__file__).resolve().parents[1] / "pyproject.toml"

# "uvicorn[standard]>=0.27" -> "uvicorn"
_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def requirement_name(requirement):
    match = _NAME.match(requirement)
    if not match:
        raise ValueError(f"Unparseable requirement: {requirement!r}")
    return match.group(1)


def load_requirements(path=PYPROJECT):
    """Runtime and extra requirements from the [project] table"""
    project = tomllib.loads(path.read_text(encoding="utf-8"))["project"]
    groups = {"runtime": project.get("dependencies", [])}
    for extra, requirements in project.get("optional-dependencies", {}).items():
        groups[f"extra '{extra}'"] = requirements
    return groups


def report(group, requirements):
    print(f"\n{group}:")
    missing = []
    for requirement in requirements:
        name = requirement_name(requirement)
        try:
            version = metadata.version(name)
        except metadata.PackageNotFoundError:
            print(f"  [MISSING] {requirement}")
            missing.append(requirement)
        else:
            print(f"  [OK] {name} {version} (wants {requirement})")
    return missing


def check_dependencies():
    print(f"Checking dependencies from {PYPROJECT.name}...")
    print("=" * 50)

    missing = {}
    for group, requirements in load_requirements().items():
        absent = report(group, requirements)
        if absent:
            missing[group] = absent

    print("\n" + "=" * 50)
    if not missing:
        print("\nAll declared dependencies are installed!")
        return True

    for group, absent in missing.items():
        print(f"\nMissing {group} dependencies: {', '.join(absent)}")
    print("\nInstall with: pip install -e '.[test]'")
    return "runtime" not in missing


if __name__ == "__main__":
    sys.exit(0 if check_dependencies() else 1)
