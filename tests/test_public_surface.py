"""Test public API surface - ensure imports work correctly and no side effects.

This test verifies:
- pactverify exposes verify_pact, load_pact and the configuration models
- pactverify.api re-exports the comparison entry points
- Importing the package does not configure logging
"""

import logging


def test_package_exports():
    import pactverify

    for name in pactverify.__all__:
        assert hasattr(pactverify, name), name
    assert callable(pactverify.verify_pact)
    assert callable(pactverify.load_pact)
    assert isinstance(pactverify.__version__, str)


def test_api_exports_comparison_functions():
    from pactverify.api import compare_message, compare_response, match_body, verify_pact

    assert all(callable(f) for f in (compare_message, compare_response, match_body, verify_pact))


def test_pact_load_error_is_value_error():
    from pactverify import PactLoadError

    assert issubclass(PactLoadError, ValueError)


def test_import_does_not_add_root_handlers():
    root = logging.getLogger()
    before = list(root.handlers)
    import pactverify  # noqa: F401
    import pactverify.api  # noqa: F401
    assert root.handlers == before


def test_no_module_shadowing():
    """Importing pactverify.api module doesn't shadow the verify_pact function."""
    from pactverify import verify_pact as func
    import pactverify.api as api_module

    assert callable(func)
    assert func is api_module.verify_pact
