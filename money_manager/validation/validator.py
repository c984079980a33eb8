"""
Boundary Validation

DESIGN DECISION: Raw request values (query strings, JSON bodies) are turned
into typed models here, before they reach the filter engine or the store.
Anything malformed becomes an InvalidInputError carrying one
ValidationIssue per problem, so callers get every problem at once.

IMPORTANT: Validation NEVER silently fixes values. The one deliberate
leniency is an unknown `period`, which is dropped unless strict mode is on.
"""

from datetime import tzinfo
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from money_manager.models.transaction import (
    ALL,
    Period,
    TransactionCreate,
    TransactionQuery,
    TransactionUpdate,
)


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'enum', 'invalid_date')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )


class InvalidInputError(Exception):
    """Malformed or missing input. Surfaces as a client error."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__(self.summary)

    @property
    def summary(self) -> str:
        return "; ".join(f"{i.field}: {i.message}" for i in self.issues)

    def issue_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


def issues_from_pydantic(exc: ValidationError) -> list[ValidationIssue]:
    """One ValidationIssue per pydantic error."""
    issues = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "body"
        issues.append(ValidationIssue(
            field=location,
            issue_type=error["type"],
            message=error["msg"],
        ))
    return issues


class TransactionValidator:
    """
    Parses raw request data into typed models.

    Args:
        tz: Timezone for naive query datetimes
        strict_period: Reject unknown period values instead of ignoring them
    """

    def __init__(self, tz: Optional[tzinfo] = None, strict_period: bool = False):
        self._tz = tz
        self._strict_period = strict_period

    def _require_mapping(self, data: Any, what: str) -> Mapping:
        if not isinstance(data, Mapping):
            raise InvalidInputError([ValidationIssue(
                field=what,
                issue_type="invalid_type",
                message=f"Expected an object, got {type(data).__name__}",
            )])
        return data

    def parse_create(self, body: Any) -> TransactionCreate:
        body = self._require_mapping(body, "body")
        try:
            return TransactionCreate.model_validate(dict(body))
        except ValidationError as e:
            raise InvalidInputError(issues_from_pydantic(e))

    def parse_update(self, body: Any) -> TransactionUpdate:
        body = self._require_mapping(body, "body")
        try:
            return TransactionUpdate.model_validate(dict(body))
        except ValidationError as e:
            raise InvalidInputError(issues_from_pydantic(e))

    def parse_query(self, params: Optional[Mapping[str, Any]]) -> TransactionQuery:
        """
        Parse list-endpoint parameters.

        An unrecognised period means "no temporal constraint" unless
        strict_period is set.
        """
        values = dict(self._require_mapping(params or {}, "query"))

        period = values.get("period")
        if isinstance(period, str) and period.strip():
            known = {p.value for p in Period}
            if period.strip().lower() not in known | {ALL}:
                if self._strict_period:
                    raise InvalidInputError([ValidationIssue(
                        field="period",
                        issue_type="enum",
                        message=(
                            f"Unknown period {period!r}; expected one of "
                            f"{', '.join(sorted(known))}"
                        ),
                    )])
                values.pop("period")
            else:
                values["period"] = period.strip().lower()

        try:
            return TransactionQuery.model_validate(values, context={"tz": self._tz})
        except ValidationError as e:
            raise InvalidInputError(issues_from_pydantic(e))

    def parse_summary_query(self, params: Optional[Mapping[str, Any]]) -> TransactionQuery:
        """Summary queries only honour division and category."""
        values = self._require_mapping(params or {}, "query")
        scoped = {k: values[k] for k in ("division", "category") if k in values}
        try:
            return TransactionQuery.model_validate(scoped)
        except ValidationError as e:
            raise InvalidInputError(issues_from_pydantic(e))
