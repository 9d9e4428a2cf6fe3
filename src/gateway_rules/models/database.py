from sqlmodel import Field, SQLModel


class DBRule(SQLModel, table=True):
    """Represents a rule stored in the local database"""

    id: int | None = Field(default=None, primary_key=True)
    enabled: bool = True
    name: str | None = None
    trigger_json: str  # JSON serialized TriggerNode
    effect_json: str  # JSON serialized EffectNode
