"""Pytest configuration for tests.

No sys.path hacks - tests should import from installed pactverify package.
"""

import os
import pytest
from pathlib import Path


def pytest_addoption(parser):
    """Add gated perf test option."""
    parser.addoption(
        "--run-perf",
        action="store_true",
        default=False,
        help="Run performance sentinel benchmarks (gated)."
    )


def pytest_collection_modifyitems(config, items):
    """Skip perf-marked tests unless --run-perf is set."""
    if config.getoption("--run-perf"):
        return
    skip_perf = pytest.mark.skip(reason="perf tests gated; pass --run-perf")
    for item in items:
        if "perf" in item.keywords:
            item.add_marker(skip_perf)


def pytest_sessionfinish(session, exitstatus):
    """Best-effort cleanup for basetemp on Windows without patching pytest internals."""
    if os.name != "nt":
        return
    basetemp = getattr(session.config.option, "basetemp", None)
    if not basetemp:
        return
    basetemp_path = Path(basetemp)
    if not basetemp_path.exists():
        return
    try:
        import shutil
        shutil.rmtree(basetemp_path)
    except (PermissionError, OSError):
        import warnings
        warnings.warn(f"Could not remove basetemp: {basetemp_path}")


@pytest.fixture
def user_pact():
    """A small V3 pact: one HTTP interaction with a provider state and matching rules."""
    return {
        "consumer": {"name": "web"},
        "provider": {"name": "users"},
        "interactions": [
            {
                "description": "a request for user 1",
                "providerStates": [{"name": "user 1 exists", "params": {"id": 1}}],
                "request": {"method": "GET", "path": "/users/1", "headers": {"Accept": "application/json"}},
                "response": {
                    "status": 200,
                    "headers": {"Content-Type": "application/json"},
                    "body": {"id": 1, "name": "Mary", "tags": ["admin"]},
                    "matchingRules": {
                        "body": {
                            "$.name": {"matchers": [{"match": "type"}]},
                            "$.tags": {"matchers": [{"match": "type", "min": 1}]},
                        }
                    },
                },
            },
            {
                "description": "a request for a missing user",
                "request": {"method": "GET", "path": "/users/404"},
                "response": {"status": 404},
            },
        ],
        "metadata": {"pactSpecification": {"version": "3.0.0"}},
    }
