class RulesError(Exception):
    """Base class for every error raised by this package."""


class RenderError(RulesError):
    """A trigger or effect tree could not be turned into text."""


class UnresolvedReferenceError(RenderError):
    """A thing or property reference has no match in the gateway catalog."""

    def __init__(self, href: str):
        super().__init__(f"No thing matches reference '{href}'")
        self.href = href


class UnknownNodeError(RenderError):
    """A tree contains a node whose type tag is not recognised."""

    def __init__(self, node_type: object):
        super().__init__(f"Unknown node type '{node_type}'")
        self.node_type = node_type


class InvalidRuleError(RulesError):
    """The rule is missing its trigger or its effect and cannot be persisted."""


class RuleDeletedError(RulesError):
    """The rule was deleted and can no longer talk to its store."""


class GatewayError(RulesError):
    """The gateway could not be reached or answered with an error."""


class PersistenceError(GatewayError):
    """A create, update or remove request for a rule failed."""
