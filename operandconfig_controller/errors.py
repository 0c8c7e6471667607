"""Error types raised by the OperandConfig Controller."""


class OperandConfigError(Exception):
    """Base class for all controller errors."""


class NotFoundError(OperandConfigError):
    """A cluster object the reconcile depends on does not exist."""


class ConflictError(OperandConfigError):
    """The object changed since it was read; the reconcile must be retried."""


class ClusterAPIError(OperandConfigError):
    """Any other failure talking to the Kubernetes API."""


class MalformedRuleDocumentError(OperandConfigError):
    """The static rules document could not be parsed."""


class MalformedOperandConfigError(OperandConfigError):
    """The OperandConfig does not carry a spec.services list."""


class MalformedContributionError(OperandConfigError):
    """A tenant tree does not have the shape the engine expects at a path."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"{path}: {message}")


class IncompleteResourceIdentityError(MalformedContributionError):
    """A resource override is missing apiVersion, kind or name."""

    def __init__(self, api_version: str, kind: str, name: str, namespace: str):
        self.api_version = api_version
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(
            f"{api_version}/{kind}/{name}/{namespace}",
            "apiVersion, kind or name is not set",
        )
