"""Tests for the gateway catalog and the gateway's REST client."""

import json

import httpx
import pytest

from gateway_rules.errors import GatewayError, PersistenceError, UnresolvedReferenceError
from gateway_rules.gateway import Gateway, GatewayClient, Thing
from gateway_rules.models.expressions import PropertyRef
from tests.test_helpers import make_description, prop_ref


@pytest.mark.unit
class TestGatewayCatalog:
    """Test reference resolution in the thing catalog."""

    def test_thing_by_href(self, gateway, lamp):
        assert gateway.thing_by_href("/things/lamp") == lamp

    def test_thing_by_href_unresolved(self, gateway):
        with pytest.raises(UnresolvedReferenceError, match="/things/ghost"):
            gateway.thing_by_href("/things/ghost")

    def test_thing_by_property_href(self, gateway, lamp):
        assert gateway.thing_by_property(prop_ref("lamp", "level")) == lamp

    def test_thing_by_property_link(self, gateway, sensor):
        assert gateway.thing_by_property(prop_ref("sensor", "temperature")) == sensor

    def test_thing_by_property_name_mismatch(self, gateway):
        ref = PropertyRef(href="/things/lamp/properties/on", name="level")
        with pytest.raises(UnresolvedReferenceError):
            gateway.thing_by_property(ref)

    def test_load_replaces_catalog(self, gateway, sensor):
        gateway.load([sensor])
        assert gateway.things == [sensor]
        with pytest.raises(UnresolvedReferenceError):
            gateway.thing_by_href("/things/lamp")

    def test_thing_accepts_name_or_title(self):
        assert Thing.model_validate({"href": "/things/a", "name": "A"}).name == "A"
        assert Thing.model_validate({"href": "/things/b", "title": "B"}).name == "B"


def make_client(handler) -> GatewayClient:
    return GatewayClient(
        address="http://gateway.local/",
        token="secret",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.unit
class TestGatewayClient:
    """Test the REST calls issued by GatewayClient."""

    async def test_create_posts_description_and_returns_id(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"id": 42})

        description = make_description(id=99, name="Hall")
        rule_id = await make_client(handler).create(description)

        assert rule_id == 42
        (request,) = requests
        assert request.method == "POST"
        assert request.url == "http://gateway.local/rules/"
        assert request.headers["Authorization"] == "Bearer secret"
        assert request.headers["Content-Type"] == "application/json"
        body = json.loads(request.content)
        assert "id" not in body
        assert body["name"] == "Hall"

    async def test_update_puts_to_rule_url(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={})

        await make_client(handler).update(5, make_description())

        assert requests[0].method == "PUT"
        assert requests[0].url.path == "/rules/5"

    async def test_remove_deletes_rule_url(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        await make_client(handler).remove(5)

        assert requests[0].method == "DELETE"
        assert requests[0].url.path == "/rules/5"

    async def test_server_error_raises_persistence_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="broken")

        with pytest.raises(PersistenceError, match="500"):
            await make_client(handler).update(5, make_description())

    async def test_transport_error_raises_persistence_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(PersistenceError):
            await make_client(handler).create(make_description())

    async def test_create_without_id_raises_persistence_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={})

        with pytest.raises(PersistenceError):
            await make_client(handler).create(make_description())

    async def test_list_rules(self):
        wire = make_description(name="Hall").to_wire() | {"id": 3}

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/rules"
            return httpx.Response(200, json=[wire])

        (description,) = await make_client(handler).list_rules()
        assert description.id == 3
        assert description.name == "Hall"

    @pytest.mark.parametrize(
        "record",
        [
            {"enabled": "notabool", "trigger": None, "effect": None},
            {"id": "three", "trigger": None, "effect": None},
        ],
    )
    async def test_list_rules_rejects_malformed_records(self, record):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[record])

        with pytest.raises(PersistenceError, match="malformed rule"):
            await make_client(handler).list_rules()

    async def test_list_rules_keeps_non_string_tags(self):
        record = {"id": 4, "trigger": {"type": ["Sunset"]}, "effect": {"type": 9}}

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[record])

        (description,) = await make_client(handler).list_rules()
        assert description.trigger.type == ["Sunset"]
        assert description.effect.type == 9

    async def test_get_things_and_refresh(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/things"
            return httpx.Response(
                200,
                json=[
                    {
                        "href": "/things/fan",
                        "title": "Fan",
                        "properties": {
                            "on": {
                                "type": "boolean",
                                "links": [
                                    {"rel": "property", "href": "/things/fan/properties/on"}
                                ],
                            }
                        },
                    }
                ],
            )

        gateway = Gateway()
        await gateway.refresh(make_client(handler))

        assert gateway.thing_by_property(prop_ref("fan", "on")).name == "Fan"

    async def test_things_error_raises_gateway_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, text="unauthorized")

        with pytest.raises(GatewayError) as info:
            await make_client(handler).get_things()
        assert not isinstance(info.value, PersistenceError)

    def test_reads_connection_details_from_environment(self, monkeypatch):
        monkeypatch.setenv("GATEWAY_ADDRESS", "http://env.local")
        monkeypatch.setenv("GATEWAY_ACCESS_TOKEN", "env-token")
        client = GatewayClient()
        assert client._address == "http://env.local"
        assert client._token == "env-token"

    def test_missing_environment_exits(self, monkeypatch):
        monkeypatch.delenv("GATEWAY_ADDRESS", raising=False)
        with pytest.raises(SystemExit):
            GatewayClient(token="secret")
