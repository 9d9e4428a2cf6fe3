from collections.abc import Callable
from datetime import tzinfo
import logging
from typing import Any

from ..errors import InvalidRuleError, RuleDeletedError
from ..gateway import Gateway
from ..models.api import DEFAULT_NAME, RuleDescription
from ..models.expressions import (
    EffectNode,
    MultiEffect,
    MultiTrigger,
    PropertyEffect,
    PulseEffect,
    SetEffect,
    TriggerNode,
    TriggerOp,
)
from .render import render_effect, render_rule, render_trigger
from .store import RuleStore

logger = logging.getLogger(__name__)

class Rule:
    """A rule loaded from, or destined for, the gateway's rules engine.

    The rule owns its trigger and effect trees. Every mutation notifies the
    ``on_update`` listener and then tries to persist the rule through its store.
    """

    def __init__(
        self,
        gateway: Gateway,
        store: RuleStore,
        description: RuleDescription | dict[str, Any] | None = None,
        on_update: Callable[["Rule"], None] | None = None,
        tz: tzinfo | None = None,
    ):
        self._gateway = gateway
        self._store = store
        self._on_update = on_update
        self._tz = tz
        self._deleted = False

        self.id: int | None = None
        self.enabled = True
        self.name: str | None = None
        self.trigger: TriggerNode | None = None
        self.effect: EffectNode | None = None

        if description is not None:
            if isinstance(description, dict):
                description = RuleDescription.model_validate(description)
            # Trees are copied so no two rules ever share one
            description = description.model_copy(deep=True)
            self.id = description.id
            self.enabled = description.enabled
            self.name = description.name or DEFAULT_NAME
            self.trigger = description.trigger
            self.effect = description.effect

    @property
    def deleted(self) -> bool:
        return self._deleted

    def to_description(self) -> RuleDescription | None:
        """Convert this rule into a serializable description.

        Returns:
            The description, or None if the rule lacks a trigger or an effect
        """
        if self.trigger is None or self.effect is None:
            return None
        return RuleDescription(
            enabled=self.enabled,
            name=self.name,
            trigger=self.trigger,
            effect=self.effect,
        )

    async def save(self):
        """Create or update the rule in its store.

        Raises:
            InvalidRuleError: The rule has no trigger or no effect
            PersistenceError: The store rejected the request
        """
        self._check_not_deleted()
        description = self.to_description()
        if description is None:
            raise InvalidRuleError(
                "A rule needs both a trigger and an effect to be saved"
            )

        if self.id is None:
            self.id = await self._store.create(description)
            logger.info("Rule '%s' saved as %d", self.name, self.id)
        else:
            await self._store.update(self.id, description)
            logger.debug("Rule %d updated", self.id)

    async def update(self):
        """Notify the listener, then validate and save the rule."""
        if self._on_update is not None:
            self._on_update(self)
        await self.save()

    async def delete(self):
        """Remove the rule from its store. Does nothing if it was never saved."""
        self._check_not_deleted()
        if self.id is None:
            return
        await self._store.remove(self.id)
        self._deleted = True
        logger.info("Rule %d deleted", self.id)

    async def set_trigger(self, trigger: TriggerNode | None):
        self.trigger = trigger.model_copy(deep=True) if trigger is not None else None
        await self.update()

    async def set_effect(self, effect: EffectNode | None):
        self.effect = effect.model_copy(deep=True) if effect is not None else None
        await self.update()

    async def set_name(self, name: str):
        self.name = name
        await self.update()

    async def set_enabled(self, enabled: bool):
        self.enabled = enabled
        await self.update()

    async def set_operator(self, op: TriggerOp):
        """Change how the children of a composite trigger are combined."""
        if not isinstance(self.trigger, MultiTrigger):
            raise InvalidRuleError("Only a MultiTrigger has an operator to change")
        self.trigger.op = op
        await self.update()

    async def set_permanent(self, permanent: bool):
        """Turn every property effect into a SetEffect (permanent) or PulseEffect."""
        if not isinstance(self.effect, MultiEffect):
            raise InvalidRuleError("Only a MultiEffect can change its permanence")
        effect_cls = SetEffect if permanent else PulseEffect
        self.effect.effects = [
            effect_cls(property=child.property, value=child.value)
            if isinstance(child, PropertyEffect)
            else child
            for child in self.effect.effects
        ]
        await self.update()

    def is_valid(self) -> bool:
        """Whether both trees are present and every reference in them resolves."""
        return bool(
            render_trigger(self.trigger, self._gateway, tz=self._tz)
            and render_effect(self.effect, self._gateway)
        )

    def to_human_text(self) -> str:
        """The rule as a plain-text sentence."""
        return render_rule(self.trigger, self.effect, self._gateway, tz=self._tz)

    def to_human_markup(self) -> str:
        """The rule as a sentence with selectable operator and predicate controls."""
        return render_rule(
            self.trigger, self.effect, self._gateway, interactive=True, tz=self._tz
        )

    def _check_not_deleted(self):
        if self._deleted:
            raise RuleDeletedError(f"Rule {self.id} has been deleted")
