"""Performance sentinels (gated)."""

from __future__ import annotations

import pytest

from pactverify.kernel.body import OptionalBody
from pactverify.kernel.content import match_body
from pactverify.kernel.matching import MatchingContext, MatchingRules

MAX_WIDE_DOCUMENT_MS = 500.0
MAX_RULED_ARRAY_MS = 750.0


def _assert_budget(benchmark, max_ms: float) -> None:
    mean_ms = benchmark.stats.stats.mean * 1000.0
    assert mean_ms < max_ms, f"Mean {mean_ms:.2f} ms exceeded budget {max_ms:.2f} ms"


@pytest.mark.perf
def test_wide_document_sentinel(benchmark):
    document = {f"field_{n}": {"value": n, "label": f"label {n}"} for n in range(5000)}
    expected = OptionalBody.json(document)
    actual = OptionalBody.json(document)

    result = benchmark.pedantic(lambda: match_body(expected, actual), rounds=3, iterations=1)

    assert result.is_ok()
    _assert_budget(benchmark, MAX_WIDE_DOCUMENT_MS)


@pytest.mark.perf
def test_ruled_array_sentinel(benchmark):
    rules = MatchingRules.from_json({"body": {
        "$.items": {"matchers": [{"match": "type", "min": 1}]},
        "$.items[*].id": {"matchers": [{"match": "integer"}]},
        "$.items[*].sku": {"matchers": [{"match": "regex", "regex": "^SKU-\\d+$"}]},
    }})
    context = MatchingContext.for_category(rules, "body")
    expected = OptionalBody.json({"items": [{"id": 1, "sku": "SKU-1", "qty": 1}]})
    actual = OptionalBody.json({"items": [{"id": n, "sku": f"SKU-{n}", "qty": 1} for n in range(5000)]})

    result = benchmark.pedantic(lambda: match_body(expected, actual, context), rounds=3, iterations=1)

    assert result.is_ok()
    _assert_budget(benchmark, MAX_RULED_ARRAY_MS)
