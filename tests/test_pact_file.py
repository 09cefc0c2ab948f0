"""Tests for loading V2, V3 and V4 pact documents."""

import base64
import json

import pytest

from pactverify._internal.io.pact_file import PactLoadError, load_pact, load_pact_from_dict
from pactverify.kernel.interaction import MessageInteraction, RequestResponseInteraction


def _v2_pact():
    return {
        "consumer": {"name": "web"},
        "provider": {"name": "users"},
        "interactions": [{
            "description": "list users",
            "providerState": "users exist",
            "request": {"method": "get", "path": "/users", "query": "page=2&sort=name&sort=id"},
            "response": {
                "status": 200,
                "headers": {"Content-Type": "application/json"},
                "body": [{"name": "Mary"}],
                "matchingRules": {"$.body": {"min": 1}, "$.body[*].name": {"match": "type"}},
            },
        }],
        "metadata": {"pactSpecification": {"version": "2.0.0"}},
    }


def test_v2_states_query_and_rules():
    pact = load_pact_from_dict(_v2_pact())
    interaction = pact.interactions[0]
    assert isinstance(interaction, RequestResponseInteraction)
    assert interaction.provider_state_names() == ["users exist"]
    assert interaction.request.method == "GET"
    assert interaction.request.query == {"page": ["2"], "sort": ["name", "id"]}
    body_rules = interaction.response.matching_rules.rules_for("body")
    assert set(body_rules) == {"$", "$[*].name"}
    assert json.loads(interaction.response.body.text()) == [{"name": "Mary"}]
    assert interaction.response.body.content_type == "application/json"


def test_v3_states_with_params(user_pact):
    pact = load_pact_from_dict(user_pact)
    assert pact.consumer == "web"
    assert pact.provider == "users"
    assert pact.pact_version() == "3.0.0"
    first = pact.interactions[0]
    assert first.provider_states[0].params == {"id": 1}
    assert first.response.matching_rules.rules_for("body")["$.tags"].rules[0].min == 1
    assert pact.interactions[1].response.body.is_missing()


def test_legacy_string_body_is_raw_and_null_is_preserved():
    data = {
        "consumer": {"name": "c"},
        "provider": {"name": "p"},
        "interactions": [
            {"description": "text", "request": {"path": "/t"},
             "response": {"headers": {"Content-Type": "text/plain"}, "body": "hello"}},
            {"description": "null", "request": {"path": "/n"}, "response": {"body": None}},
        ],
    }
    pact = load_pact_from_dict(data)
    assert pact.interactions[0].response.body.text() == "hello"
    assert pact.interactions[1].response.body.is_null()


def test_v3_message_pact():
    data = {
        "consumer": {"name": "billing"},
        "provider": {"name": "orders"},
        "messages": [{
            "description": "an order created event",
            "providerStates": [{"name": "an order exists"}],
            "contents": {"orderId": 10},
            "metaData": {"contentType": "application/json", "topic": "orders"},
            "matchingRules": {"body": {"$.orderId": {"matchers": [{"match": "integer"}]}}},
        }],
        "metadata": {"pactSpecification": {"version": "3.0.0"}},
    }
    pact = load_pact_from_dict(data)
    message = pact.interactions[0]
    assert isinstance(message, MessageInteraction)
    assert message.metadata["topic"] == "orders"
    assert message.content_type() == "application/json"
    assert json.loads(message.contents.text()) == {"orderId": 10}


def test_v4_mixed_interactions():
    png = base64.b64encode(b"\x89PNG").decode("ascii")
    data = {
        "consumer": {"name": "c"},
        "provider": {"name": "p"},
        "interactions": [
            {
                "type": "Synchronous/HTTP",
                "key": "abc123",
                "description": "get image",
                "request": {"method": "GET", "path": "/img"},
                "response": {
                    "status": 200,
                    "body": {"content": png, "contentType": "image/png", "encoded": "base64"},
                    "matchingRules": {"header": {"ETag": {"matchers": [{"match": "type"}]}}},
                },
            },
            {
                "type": "Asynchronous/Messages",
                "description": "an event",
                "contents": {"content": {"a": 1}, "contentType": "application/json", "encoded": False},
                "metadata": {"topic": "t"},
                "matchingRules": {"content": {"$.a": {"matchers": [{"match": "integer"}]}}},
            },
            {"type": "Synchronous/Messages", "description": "sync message"},
        ],
        "metadata": {"pactSpecification": {"version": "4.0"}},
    }
    pact = load_pact_from_dict(data)
    assert [i.description for i in pact.interactions] == ["get image", "an event"]
    http, message = pact.interactions
    assert http.unique_key() == "abc123"
    assert http.response.body.value == b"\x89PNG"
    assert http.response.body.content_type == "image/png"
    assert "ETag" in http.response.matching_rules.rules_for("header")
    assert json.loads(message.contents.text()) == {"a": 1}
    assert "$.a" in message.matching_rules.rules_for("body")


def test_unique_key_is_stable_digest_without_declared_key(user_pact):
    first = load_pact_from_dict(user_pact).interactions[0]
    again = load_pact_from_dict(user_pact).interactions[0]
    assert first.unique_key() == again.unique_key()
    assert len(first.unique_key()) == 16
    assert first.display_id() == first.unique_key()


@pytest.mark.parametrize("data", [
    [],
    {"provider": {"name": "p"}},
    {"consumer": {"name": "c"}, "provider": {"name": "p"}, "interactions": [{"description": "no request"}]},
    {"consumer": {"name": "c"}, "provider": {"name": "p"}, "metadata": {"pactSpecification": {"version": "x"}}},
])
def test_invalid_documents(data):
    with pytest.raises(PactLoadError):
        load_pact_from_dict(data)


def test_load_pact_from_file(tmp_path, user_pact):
    path = tmp_path / "web-users.json"
    path.write_text(json.dumps(user_pact), encoding="utf-8")
    pact = load_pact(path)
    assert pact.source == str(path)
    assert len(pact.interactions) == 2


def test_load_pact_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_pact(tmp_path / "missing.json")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(PactLoadError):
        load_pact(broken)
