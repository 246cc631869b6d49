"""Exception types raised by finport."""

from typing import Any


class FinportError(Exception):
    """Base class for all finport errors."""


class CsvParseError(FinportError, ValueError):
    """Raised when CSV text cannot be split into rows (e.g. unbalanced quotes)."""


class InvalidRuleError(FinportError, ValueError):
    """Raised when a rule pattern cannot be compiled."""


class ValidationFailed(FinportError):
    """Input rejected before processing, with per-field messages."""

    def __init__(
        self,
        message: str,
        field_errors: dict[str, list[str]] | None = None,
        form_errors: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.field_errors = field_errors or {}
        self.form_errors = form_errors or []

    @classmethod
    def from_pydantic(cls, message: str, exc: Any) -> "ValidationFailed":
        """Build from a ``pydantic.ValidationError``."""
        field_errors: dict[str, list[str]] = {}
        form_errors: list[str] = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err.get("loc", ()))
            msg = str(err.get("msg", "Invalid value"))
            # pydantic prefixes messages raised from validators
            msg = msg.removeprefix("Value error, ")
            if loc:
                field_errors.setdefault(loc, []).append(msg)
            else:
                form_errors.append(msg)
        return cls(message, field_errors=field_errors, form_errors=form_errors)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON error body handed back to clients."""
        return {
            "error": {
                "formErrors": list(self.form_errors),
                "fieldErrors": {k: list(v) for k, v in self.field_errors.items()},
            }
        }


class UploadValidationError(ValidationFailed):
    """Uploaded file metadata (name, MIME type, size) was rejected."""


class ImportValidationError(ValidationFailed):
    """The import form (account name, mapping) or its CSV was rejected."""
