"""
Engine-wide exception hierarchy.

Business-rule outcomes (blocked activation, incomplete gates, governance
regression, missing phase justification) are never exceptions: they are
returned as result objects.  The types below exist for genuinely malformed
input, i.e. configuration records that cannot be interpreted at all.

Usage:
    from governance_engine.core.exceptions import ConfigurationError

    raise ConfigurationError("overheadMultiplier must be numeric",
                             details={"overheadMultiplier": "abc"})
"""


class ValidationError(Exception):
    """Raised when a JSON-shaped record fails structural validation.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(ValidationError):
    """Raised when scoring, sizing or TOM configuration cannot be used.

    SizeEstimator catches this at its boundary and reports it through the
    ``error`` field of its result instead of propagating.

    Args:
        message: Human-readable explanation.
        section: Configuration section the problem was found in
                 (e.g. "tShirtSizing", "scoringModel", "tomConfig").
        details: Optional field-level breakdown.
    """

    def __init__(
        self,
        message: str,
        section: str | None = None,
        details: dict | None = None,
    ) -> None:
        self.section = section
        super().__init__(message, details=details)
