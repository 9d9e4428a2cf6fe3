"""Pydantic models for the trigger and effect trees of a rule.

Both trees are tagged unions keyed on the ``type`` field, the same tag the
gateway stores on the wire. A node carrying a tag this package does not know
about is kept as an ``UnknownTrigger`` / ``UnknownEffect`` so the tree still
round-trips, but it can never be rendered.
"""

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    SerializerFunctionWrapHandler,
    Tag,
    model_serializer,
)

UNKNOWN_TAG = "unknown"


class ExpressionModel(BaseModel):
    """Base for every tree node and reference, accepting wire or python names."""

    model_config = ConfigDict(populate_by_name=True)


class DeviceRef(ExpressionModel):
    """A reference to a thing on the gateway."""

    model_config = ConfigDict(extra="allow")

    href: str


class PropertyRef(ExpressionModel):
    """A reference to a property of a thing on the gateway."""

    model_config = ConfigDict(extra="allow")

    href: str
    name: str
    type: str | None = None

    @model_serializer(mode="wrap")
    def _omit_missing_type(
        self, handler: SerializerFunctionWrapHandler
    ) -> dict[str, Any]:
        data = handler(self)
        if data.get("type") is None:
            data.pop("type", None)
        return data


class TriggerOp(str, Enum):
    AND = "AND"
    OR = "OR"


class LevelType(str, Enum):
    LESS = "LESS"
    GREATER = "GREATER"


# Triggers


class MultiTrigger(ExpressionModel):
    """Combines child triggers with a single boolean operator."""

    type: Literal["MultiTrigger"] = "MultiTrigger"
    op: TriggerOp = TriggerOp.AND
    triggers: list["TriggerNode"] = Field(default_factory=list)


class TimeTrigger(ExpressionModel):
    type: Literal["TimeTrigger"] = "TimeTrigger"
    time: str  # "HH:MM" in UTC


class EventTrigger(ExpressionModel):
    type: Literal["EventTrigger"] = "EventTrigger"
    thing: DeviceRef
    event: str


class BooleanTrigger(ExpressionModel):
    type: Literal["BooleanTrigger"] = "BooleanTrigger"
    property: PropertyRef
    on_value: bool = Field(alias="onValue")


class LevelTrigger(ExpressionModel):
    type: Literal["LevelTrigger"] = "LevelTrigger"
    property: PropertyRef
    level_type: LevelType = Field(alias="levelType")
    value: float | int


class EqualityTrigger(ExpressionModel):
    type: Literal["EqualityTrigger"] = "EqualityTrigger"
    property: PropertyRef
    value: Any


class UnknownTrigger(ExpressionModel):
    """A trigger whose tag is not recognised, kept verbatim."""

    model_config = ConfigDict(extra="allow")

    type: Any = None


# Effects


class MultiEffect(ExpressionModel):
    """Applies every child effect; effects are conjunctive only."""

    permanence: ClassVar[bool | None] = None

    type: Literal["MultiEffect"] = "MultiEffect"
    effects: list["EffectNode"] = Field(default_factory=list)


class ActionEffect(ExpressionModel):
    permanence: ClassVar[bool | None] = None

    type: Literal["ActionEffect"] = "ActionEffect"
    thing: DeviceRef
    action: str


class PropertyEffect(ExpressionModel):
    """Assigns a value to a property of a thing."""

    permanence: ClassVar[bool | None] = None

    property: PropertyRef
    value: Any


class SetEffect(PropertyEffect):
    """Property assignment that stays in place after the trigger clears."""

    permanence: ClassVar[bool | None] = True

    type: Literal["SetEffect"] = "SetEffect"


class PulseEffect(PropertyEffect):
    """Property assignment that only holds while the trigger is active."""

    permanence: ClassVar[bool | None] = False

    type: Literal["PulseEffect"] = "PulseEffect"


class UnknownEffect(ExpressionModel):
    """An effect whose tag is not recognised, kept verbatim."""

    model_config = ConfigDict(extra="allow")

    permanence: ClassVar[bool | None] = None

    type: Any = None


def _tagger(known: set[str]):
    def tag(value: Any) -> str:
        if isinstance(value, dict):
            kind = value.get("type")
        else:
            kind = getattr(value, "type", None)
        if isinstance(kind, str) and kind in known:
            return kind
        return UNKNOWN_TAG

    return tag


TRIGGER_TYPES = {
    "MultiTrigger",
    "TimeTrigger",
    "EventTrigger",
    "BooleanTrigger",
    "LevelTrigger",
    "EqualityTrigger",
}
EFFECT_TYPES = {"MultiEffect", "ActionEffect", "SetEffect", "PulseEffect"}

TriggerNode = Annotated[
    Annotated[MultiTrigger, Tag("MultiTrigger")]
    | Annotated[TimeTrigger, Tag("TimeTrigger")]
    | Annotated[EventTrigger, Tag("EventTrigger")]
    | Annotated[BooleanTrigger, Tag("BooleanTrigger")]
    | Annotated[LevelTrigger, Tag("LevelTrigger")]
    | Annotated[EqualityTrigger, Tag("EqualityTrigger")]
    | Annotated[UnknownTrigger, Tag(UNKNOWN_TAG)],
    Discriminator(_tagger(TRIGGER_TYPES)),
]

EffectNode = Annotated[
    Annotated[MultiEffect, Tag("MultiEffect")]
    | Annotated[ActionEffect, Tag("ActionEffect")]
    | Annotated[SetEffect, Tag("SetEffect")]
    | Annotated[PulseEffect, Tag("PulseEffect")]
    | Annotated[UnknownEffect, Tag(UNKNOWN_TAG)],
    Discriminator(_tagger(EFFECT_TYPES)),
]

MultiTrigger.model_rebuild()
MultiEffect.model_rebuild()
