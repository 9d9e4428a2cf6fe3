"""Rendering of trigger and effect trees into English sentence fragments.

Every function here is pure: it only reads the trees and the gateway catalog,
so it can run on each edit of a rule. Inside a tree failures are strict, one
unresolvable leaf makes the whole subtree unrenderable. Only ``render_rule``
softens that by substituting a placeholder for the failing side.
"""

from datetime import tzinfo
from html import escape
import logging

from ..errors import RenderError, UnknownNodeError
from ..gateway import Gateway
from ..models.expressions import (
    ActionEffect,
    BooleanTrigger,
    EffectNode,
    EqualityTrigger,
    EventTrigger,
    LevelTrigger,
    LevelType,
    MultiEffect,
    MultiTrigger,
    PropertyEffect,
    TimeTrigger,
    TriggerNode,
    TriggerOp,
)
from ..util import format_value, utc_to_local

logger = logging.getLogger(__name__)

PLACEHOLDER = "???"


def _select(css_class: str, options: list[tuple[str, bool]]) -> str:
    rendered = "".join(
        f"<option{' selected' if selected else ''}>{label}</option>"
        for label, selected in options
    )
    return (
        '<span class="triangle-select-container">'
        f'<select class="triangle-select {css_class}">{rendered}</select>'
        "</span>"
    )


def join_phrases(phrases: list[str], conjunction: str) -> str:
    """Join phrases as an English list: "a", "a or b", "a, b, and c"."""
    text = ""
    for i, phrase in enumerate(phrases):
        if i > 0:
            if len(phrases) > 2:
                text += ","
            text += " "
            if i == len(phrases) - 1:
                text += f"{conjunction} "
        text += phrase
    return text


def _operator(op: TriggerOp, interactive: bool) -> str:
    if interactive:
        return _select(
            "rule-trigger-select",
            [("and", op == TriggerOp.AND), ("or", op == TriggerOp.OR)],
        )
    return "and" if op == TriggerOp.AND else "or"


def _text(value: object, interactive: bool) -> str:
    text = format_value(value)
    return escape(text) if interactive else text


def trigger_text(
    trigger: TriggerNode, gateway: Gateway, interactive: bool, tz: tzinfo | None
) -> str:
    """Render a trigger, raising RenderError if any part of it cannot be rendered."""
    match trigger:
        case MultiTrigger(op=op, triggers=children):
            if not children:
                raise RenderError("MultiTrigger has no triggers")
            phrases = [
                trigger_text(child, gateway, interactive, tz) for child in children
            ]
            return join_phrases(phrases, _operator(op, interactive))
        case TimeTrigger(time=time):
            return f"the time of day is {utc_to_local(time, tz)}"
        case EventTrigger(thing=ref, event=event):
            thing = gateway.thing_by_href(ref.href)
            return (
                f"{_text(thing.name, interactive)} event "
                f'"{_text(event, interactive)}" occurs'
            )
        case BooleanTrigger(property=ref, on_value=on_value):
            thing = gateway.thing_by_property(ref)
            negation = "" if on_value else "not "
            return (
                f"{_text(thing.name, interactive)} is "
                f"{negation}{_text(ref.name, interactive)}"
            )
        case LevelTrigger(property=ref, level_type=level_type, value=value):
            thing = gateway.thing_by_property(ref)
            comparison = "less than" if level_type == LevelType.LESS else "greater than"
            return (
                f"{_text(thing.name, interactive)} {_text(ref.name, interactive)} "
                f"is {comparison} {_text(value, interactive)}"
            )
        case EqualityTrigger(property=ref, value=value):
            thing = gateway.thing_by_property(ref)
            return (
                f"{_text(thing.name, interactive)} {_text(ref.name, interactive)} "
                f"is {_text(value, interactive)}"
            )
        case _:
            node_type = getattr(trigger, "type", None)
            logger.warning("Unknown trigger type %r: %r", node_type, trigger)
            raise UnknownNodeError(node_type)


def effect_text(effect: EffectNode, gateway: Gateway, interactive: bool = False) -> str:
    """Render an effect, raising RenderError if any part of it cannot be rendered."""
    match effect:
        case MultiEffect(effects=children):
            if not children:
                raise RenderError("MultiEffect has no effects")
            return join_phrases(
                [effect_text(child, gateway, interactive) for child in children], "and"
            )
        case ActionEffect(thing=ref, action=action):
            thing = gateway.thing_by_href(ref.href)
            return (
                f"do {_text(thing.name, interactive)} action "
                f'"{_text(action, interactive)}"'
            )
        case PropertyEffect(property=ref, value=value) if ref.name == "on":
            thing = gateway.thing_by_property(ref)
            return f"turn {_text(thing.name, interactive)} {'on' if value else 'off'}"
        case PropertyEffect(property=ref, value=value):
            thing = gateway.thing_by_property(ref)
            return (
                f"set {_text(thing.name, interactive)} {_text(ref.name, interactive)} "
                f"to {_text(value, interactive)}"
            )
        case _:
            node_type = getattr(effect, "type", None)
            logger.warning("Unknown effect type %r: %r", node_type, effect)
            raise UnknownNodeError(node_type)


def render_trigger(
    trigger: TriggerNode | None,
    gateway: Gateway,
    interactive: bool = False,
    tz: tzinfo | None = None,
) -> str | None:
    """Render a trigger tree to text.

    Args:
        trigger: Root of the trigger tree
        gateway: Catalog used to resolve thing and property references
        interactive: Render the and/or operator as a selectable control
        tz: Zone to show times of day in, defaults to the system local zone

    Returns:
        The rendered text, or None if any node of the tree cannot be rendered
    """
    if trigger is None:
        return None
    try:
        return trigger_text(trigger, gateway, interactive, tz)
    except RenderError as error:
        logger.debug("Unable to render trigger: %s", error)
        return None


def render_effect(
    effect: EffectNode | None, gateway: Gateway, interactive: bool = False
) -> str | None:
    """Render an effect tree to text, or None if any node cannot be rendered."""
    if effect is None:
        return None
    try:
        return effect_text(effect, gateway, interactive)
    except RenderError as error:
        logger.debug("Unable to render effect: %s", error)
        return None


def is_permanent(effect: EffectNode | None) -> bool:
    """Whether the effect reads as a standing state change rather than a transient one.

    A composite with children defaults to permanent. The first child that is
    either a SetEffect or a PulseEffect decides, whatever comes after it.
    """
    children = effect.effects if isinstance(effect, MultiEffect) else []
    permanent = len(children) > 0
    for child in children:
        if child.permanence is not None:
            permanent = child.permanence
            break
    return permanent


def predicate(permanent: bool, interactive: bool = False) -> str:
    if interactive:
        return _select(
            "rule-effect-select", [("If", permanent), ("While", not permanent)]
        )
    return "If" if permanent else "While"


def render_rule(
    trigger: TriggerNode | None,
    effect: EffectNode | None,
    gateway: Gateway,
    interactive: bool = False,
    tz: tzinfo | None = None,
) -> str:
    """Assemble the full "<If|While> <trigger>, <effect>" sentence.

    Unlike the tree renderers this always produces a sentence; a side that
    cannot be rendered shows up as the placeholder.
    """
    trigger_str = render_trigger(trigger, gateway, interactive, tz) or PLACEHOLDER
    effect_str = render_effect(effect, gateway, interactive) or PLACEHOLDER
    return f"{predicate(is_permanent(effect), interactive)} {trigger_str}, {effect_str}"
