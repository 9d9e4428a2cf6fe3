from abc import ABC, abstractmethod
import json
import logging

from pydantic import TypeAdapter
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from ..errors import PersistenceError
from ..models.api import RuleDescription
from ..models.database import DBRule
from ..models.expressions import EffectNode, TriggerNode

logger = logging.getLogger(__name__)

_trigger_adapter: TypeAdapter[TriggerNode] = TypeAdapter(TriggerNode)
_effect_adapter: TypeAdapter[EffectNode] = TypeAdapter(EffectNode)


class RuleStore(ABC):
    """Somewhere a rule's description can be persisted."""

    @abstractmethod
    async def create(self, description: RuleDescription) -> int:
        """Persist a new rule and return the identifier assigned to it."""

    @abstractmethod
    async def update(self, rule_id: int, description: RuleDescription) -> None:
        """Replace the persisted description of an existing rule."""

    @abstractmethod
    async def remove(self, rule_id: int) -> None:
        """Remove a persisted rule."""

    @abstractmethod
    async def list_rules(self) -> list[RuleDescription]:
        """All persisted rules, identifiers included."""


class LocalRuleStore(RuleStore):
    """Rule store backed by a local SQL database."""

    def __init__(self, engine: Engine):
        self._engine = engine
        SQLModel.metadata.create_all(engine)

    async def create(self, description: RuleDescription) -> int:
        dumped = self._dump(description)
        try:
            with Session(self._engine) as session:
                record = DBRule(
                    enabled=description.enabled,
                    name=description.name,
                    trigger_json=dumped["trigger"],
                    effect_json=dumped["effect"],
                )
                session.add(record)
                session.commit()
                session.refresh(record)
        except SQLAlchemyError as error:
            raise PersistenceError(f"Failed to create rule: {error}") from error

        logger.info("Created rule %d", record.id)
        return record.id

    async def update(self, rule_id: int, description: RuleDescription) -> None:
        try:
            with Session(self._engine) as session:
                record = session.get(DBRule, rule_id)
                if record is None:
                    raise PersistenceError(f"Rule {rule_id} not found")
                dumped = self._dump(description)
                record.enabled = description.enabled
                record.name = description.name
                record.trigger_json = dumped["trigger"]
                record.effect_json = dumped["effect"]
                session.add(record)
                session.commit()
        except SQLAlchemyError as error:
            raise PersistenceError(
                f"Failed to update rule {rule_id}: {error}"
            ) from error

        logger.info("Updated rule %d", rule_id)

    async def remove(self, rule_id: int) -> None:
        try:
            with Session(self._engine) as session:
                record = session.get(DBRule, rule_id)
                if record is None:
                    raise PersistenceError(f"Rule {rule_id} not found")
                session.delete(record)
                session.commit()
        except SQLAlchemyError as error:
            raise PersistenceError(
                f"Failed to remove rule {rule_id}: {error}"
            ) from error

        logger.info("Removed rule %d", rule_id)

    async def list_rules(self) -> list[RuleDescription]:
        with Session(self._engine) as session:
            records = session.exec(select(DBRule).order_by(DBRule.id)).all()

        return [
            RuleDescription(
                id=record.id,
                enabled=record.enabled,
                name=record.name,
                trigger=_trigger_adapter.validate_json(record.trigger_json),
                effect=_effect_adapter.validate_json(record.effect_json),
            )
            for record in records
        ]

    def _dump(self, description: RuleDescription) -> dict[str, str]:
        wire = description.to_wire()
        return {
            "trigger": json.dumps(wire["trigger"]),
            "effect": json.dumps(wire["effect"]),
        }
