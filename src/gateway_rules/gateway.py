from collections.abc import Iterable
import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .errors import GatewayError, PersistenceError, UnresolvedReferenceError
from .models.api import RuleDescription
from .models.expressions import PropertyRef
from .rules.store import RuleStore
from .util import env_var

logger = logging.getLogger(__name__)


class Link(BaseModel):
    rel: str | None = None
    href: str


class ThingProperty(BaseModel):
    model_config = ConfigDict(extra="ignore")

    href: str | None = None
    links: list[Link] = []
    title: str | None = None
    type: str | None = None

    @property
    def property_href(self) -> str | None:
        """The property's own href, falling back to its "property" link."""
        if self.href:
            return self.href
        for link in self.links:
            if link.rel == "property":
                return link.href
        return None


class Thing(BaseModel):
    model_config = ConfigDict(extra="ignore")

    href: str
    name: str = Field(validation_alias=AliasChoices("title", "name"))
    properties: dict[str, ThingProperty] = {}
    actions: dict[str, Any] = {}
    events: dict[str, Any] = {}

    def has_property(self, ref: PropertyRef) -> bool:
        prop = self.properties.get(ref.name)
        return prop is not None and prop.property_href == ref.href


class Gateway:
    """Catalog of the things known to the gateway."""

    def __init__(self, things: Iterable[Thing] = ()):
        self._things_by_href: dict[str, Thing] = {}
        self._things_by_property_href: dict[str, Thing] = {}
        self.load(things)

    @property
    def things(self) -> list[Thing]:
        return list(self._things_by_href.values())

    def load(self, things: Iterable[Thing]):
        """Replace the catalog with the given things."""
        self._things_by_href = {}
        self._things_by_property_href = {}
        for thing in things:
            self._things_by_href[thing.href] = thing
            for prop in thing.properties.values():
                href = prop.property_href
                if href is not None:
                    self._things_by_property_href[href] = thing
        logger.debug("Loaded %d things into the catalog", len(self._things_by_href))

    async def refresh(self, client: "GatewayClient"):
        """Reload the catalog from the gateway."""
        self.load(await client.get_things())

    def thing_by_href(self, href: str) -> Thing:
        thing = self._things_by_href.get(href)
        if thing is None:
            raise UnresolvedReferenceError(href)
        return thing

    def thing_by_property(self, ref: PropertyRef) -> Thing:
        """The thing exposing the referenced property under the referenced name."""
        thing = self._things_by_property_href.get(ref.href)
        if thing is None or not thing.has_property(ref):
            raise UnresolvedReferenceError(ref.href)
        return thing


class GatewayClient(RuleStore):
    """Wrapper around the gateway's REST API for things and rules."""

    def __init__(
        self,
        address: str | None = None,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the gateway client with connection details."""
        self._address = (address or env_var("GATEWAY_ADDRESS")).rstrip("/")
        self._token = token or env_var("GATEWAY_ACCESS_TOKEN")
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        path: str,
        body: dict[str, Any] | None = None,
        error_cls: type[GatewayError] = GatewayError,
    ) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self._address, headers=self._headers(), transport=self._transport
        ) as client:
            try:
                resp = await client.request(method, path, json=body)
            except httpx.HTTPError as error:
                raise error_cls(
                    f"Gateway request {method} {path} failed: {error}"
                ) from error

        if resp.is_error:
            raise error_cls(
                f"Gateway returned '{resp.status_code}' status for {method} {path}: "
                f"{resp.text}"
            )

        return resp

    async def get_things(self) -> list[Thing]:
        """Get every thing the gateway knows about.

        Returns:
            List of Thing objects
        """
        resp = await self._make_request("GET", "/things")
        return [Thing.model_validate(data) for data in resp.json()]

    async def create(self, description: RuleDescription) -> int:
        resp = await self._make_request(
            "POST", "/rules/", description.to_wire(), PersistenceError
        )
        try:
            rule_id = int(resp.json()["id"])
        except (KeyError, TypeError, ValueError) as error:
            raise PersistenceError(
                f"Gateway did not return an id for the new rule: {resp.text}"
            ) from error
        logger.info("Created rule %d", rule_id)
        return rule_id

    async def update(self, rule_id: int, description: RuleDescription) -> None:
        await self._make_request(
            "PUT", self._rule_path(rule_id), description.to_wire(), PersistenceError
        )
        logger.info("Updated rule %d", rule_id)

    async def remove(self, rule_id: int) -> None:
        await self._make_request(
            "DELETE", self._rule_path(rule_id), error_cls=PersistenceError
        )
        logger.info("Removed rule %d", rule_id)

    async def list_rules(self) -> list[RuleDescription]:
        resp = await self._make_request("GET", "/rules", error_cls=PersistenceError)
        try:
            return [RuleDescription.model_validate(data) for data in resp.json()]
        except ValidationError as error:
            raise PersistenceError(
                f"Gateway returned a malformed rule: {error}"
            ) from error

    def _rule_path(self, rule_id: int) -> str:
        return f"/rules/{quote(str(rule_id), safe='')}"
