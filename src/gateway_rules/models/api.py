from typing import Any

from pydantic import BaseModel, ConfigDict

from .expressions import EffectNode, TriggerNode

DEFAULT_NAME = "Rule Name"


class RuleDescription(BaseModel):
    """Serialized form of a rule, as stored by the gateway's rules engine."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | None = None
    enabled: bool = True
    name: str | None = None
    trigger: TriggerNode | None = None
    effect: EffectNode | None = None

    def to_wire(self) -> dict[str, Any]:
        """The JSON body sent on create and update; the id lives in the URL."""
        data = self.model_dump(mode="json", by_alias=True, exclude={"id"})
        if data["name"] is None:
            data["name"] = DEFAULT_NAME
        return data
