"""Pydantic models and enums for the rule engine layer."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

BASE_MODULE_ID = "base"
TRIGGER_PREFIXES = ("tag:", "path:")


def split_trigger(trigger: str) -> tuple[str | None, str]:
    """Split an optional "tag:"/"path:" scope off a trigger; the pattern is lowercased."""
    for prefix in TRIGGER_PREFIXES:
        if trigger.startswith(prefix):
            return prefix[:-1], trigger[len(prefix) :].strip().lower()
    return None, trigger.strip().lower()


class Severity(StrEnum):
    BLOCKING = "blocking"  # fails the check
    ADVISORY = "advisory"  # reported only


class PatternKind(StrEnum):
    EMPTY_HANDLER = "empty_handler"
    FALLBACK_MASKING = "fallback_masking"
    FILE_LENGTH = "file_length"
    VERSION_SUFFIX = "version_suffix"
    MEMO_CALLBACK = "memo_callback"
    FORBIDDEN_REGEX = "forbidden_regex"
    REQUIRED_REGEX = "required_regex"


_REGEX_KINDS = frozenset({PatternKind.FORBIDDEN_REGEX, PatternKind.REQUIRED_REGEX})


class _CatalogModel(BaseModel):
    """Catalog entries: immutable, unknown keys rejected."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class _ReportModel(BaseModel):
    """Request-scoped values serialised with camelCase keys."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class PatternSpec(_CatalogModel):
    kind: PatternKind
    severity: Severity
    description: str = ""
    regex: str | None = None
    threshold: int | None = Field(default=None, gt=0)
    exempt_region: str | None = Field(
        default=None, validation_alias=AliasChoices("exempt_region", "exemptRegion")
    )
    applies_to: tuple[str, ...] = Field(
        default=(), validation_alias=AliasChoices("applies_to", "appliesTo")
    )

    @field_validator("regex")
    @classmethod
    def _regex_compiles(cls, value: str | None) -> str | None:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid regex {value!r}: {e}") from e
        return value

    @model_validator(mode="after")
    def _kind_requirements(self) -> PatternSpec:
        if self.kind in _REGEX_KINDS and not self.regex:
            raise ValueError(f"pattern kind '{self.kind}' requires 'regex'")
        if self.kind == PatternKind.FILE_LENGTH and self.threshold is None:
            raise ValueError("pattern kind 'file_length' requires 'threshold'")
        return self


class Rule(_CatalogModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    body: str
    pillar: str
    precedence_tier: int = Field(
        ge=0, validation_alias=AliasChoices("precedence_tier", "precedenceTier")
    )
    patterns: tuple[PatternSpec, ...] = ()
    conflicts_with: tuple[str, ...] = Field(
        default=(), validation_alias=AliasChoices("conflicts_with", "conflictsWith")
    )
    module_id: str = ""  # authoring module, filled in by the catalog loader

    @property
    def checked(self) -> bool:
        """False for advisory-only rules with no machine-checkable signature."""
        return bool(self.patterns)


class Module(_CatalogModel):
    id: str = Field(min_length=1)
    title: str = ""
    triggers: tuple[str, ...] = ()
    rules: tuple[Rule, ...] = ()
    references: tuple[str, ...] = ()

    @field_validator("triggers")
    @classmethod
    def _triggers_not_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for trigger in value:
            _, pattern = split_trigger(trigger)
            if not pattern:
                raise ValueError(f"empty trigger {trigger!r}")
        return value

    @property
    def is_base(self) -> bool:
        return self.id == BASE_MODULE_ID

    @property
    def rule_ids(self) -> list[str]:
        """Owned rule ids followed by referenced ones, in declaration order."""
        return [r.id for r in self.rules] + list(self.references)


class FileChange(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str = Field(min_length=1)
    content: str | None = None
    diff: str | None = None
    line_count: int | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("line_count", "lineCount")
    )


class ChangeDescriptor(BaseModel):
    """Caller-supplied description of one task."""

    model_config = ConfigDict(frozen=True)

    tags: tuple[str, ...] = ()
    files: tuple[FileChange, ...] = ()

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]


class TriggerMatch(_ReportModel):
    module_id: str
    trigger: str
    target: str  # "tag" | "path"
    value: str


class Violation(_ReportModel):
    rule_id: str
    severity: Severity
    location: str  # "<path>:<line>" or "file:<path>"
    message: str
    path: str = ""
    line: int | None = None
    column: int | None = None
    superseded_by: str | None = None
    note: str = ""

    @property
    def is_blocking(self) -> bool:
        return self.severity == Severity.BLOCKING and self.superseded_by is None


class DuplicateRuleWarning(_ReportModel):
    """A rule id authored by two selected modules; the later module's rule won."""

    rule_id: str
    kept_module: str
    dropped_module: str
    message: str = ""


class CheckResult(_ReportModel):
    violations: tuple[Violation, ...] = ()

    @property
    def ok(self) -> bool:
        return not any(v.is_blocking for v in self.violations)


class CheckReport(_ReportModel):
    ok: bool
    loaded_modules: list[str] = Field(default_factory=list)
    violations: list[Violation] = Field(default_factory=list)
    duplicate_warnings: list[DuplicateRuleWarning] = Field(default_factory=list)
    unchecked_rules: list[str] = Field(default_factory=list)

    def to_json(self, *, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)
