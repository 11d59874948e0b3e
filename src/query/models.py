"""
Declarative Query Models.

Defines the query, parameter, and join specifications a benchmark suite is
built from. Keys are accepted in camelCase (as written in suite files) or
snake_case. Models are frozen: specs never change during a run.
"""

import re
from enum import Enum
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.config.settings import get_settings

PLACEHOLDER_PATTERN = re.compile(r"\$\{param:([^}]+)\}")


class ParameterKind(str, Enum):
    """How a parameter value is produced."""

    RANGE = "range"
    CHOICE = "choice"
    SEQUENCE = "sequence"
    FIXED = "fixed"
    PATTERN = "pattern"
    SAMPLED_FIELD = "sampled_field"


class QueryKind(str, Enum):
    """Kind of primary query issued against the target collection."""

    FIND = "find"
    AGGREGATE = "aggregate"
    COUNT = "count"


_PARAMETER_KIND_ALIASES = {
    "random_range": "range",
    "random_choice": "choice",
    "sequential": "sequence",
    "random_pattern": "pattern",
    "random_from_loaded": "sampled_field",
    "sampled-field": "sampled_field",
    "sampled": "sampled_field",
}

_QUERY_KIND_ALIASES = {
    "point_lookup": "find",
    "point-lookup": "find",
    "aggregation": "aggregate",
    "aggregation_pipeline": "aggregate",
    "aggregation-pipeline": "aggregate",
}


def normalize_parameter_kind(v: Any) -> Any:
    """Map legacy and hyphenated kind names onto ParameterKind values."""
    if isinstance(v, str):
        v = v.strip().lower()
        return _PARAMETER_KIND_ALIASES.get(v, v)
    return v


def normalize_query_kind(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip().lower()
        return _QUERY_KIND_ALIASES.get(v, v)
    return v


def find_placeholders(template: Any) -> set[str]:
    """Collect every parameter name referenced by ``${param:<name>}`` in a template."""
    names: set[str] = set()
    if isinstance(template, str):
        names.update(PLACEHOLDER_PATTERN.findall(template))
    elif isinstance(template, dict):
        for value in template.values():
            names |= find_placeholders(value)
    elif isinstance(template, list):
        for item in template:
            names |= find_placeholders(item)
    return names


class SpecModel(BaseModel):
    """Base for all suite models."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )


class ParameterSpec(SpecModel):
    """Definition of a single query parameter."""

    kind: Annotated[ParameterKind | None, BeforeValidator(normalize_parameter_kind)] = Field(
        default=None,
        validation_alias=AliasChoices("kind", "type"),
        description="Generation kind (ignored for correlated parameters)",
    )
    min: int | None = Field(default=None, description="Lower bound for range/sequence")
    max: int | None = Field(default=None, description="Upper bound for range/sequence")
    values: list[Any] | None = Field(default=None, description="Candidates for choice")
    value: Any = Field(default=None, description="Constant for fixed")
    pattern: str | None = Field(default=None, description="Template for pattern")
    collection: str | None = Field(default=None, description="Collection to sample from")
    field: str | None = Field(default=None, description="Dot-notation field path to sample")
    correlation_group: str | None = Field(
        default=None, description="Group whose parameters read from one shared document"
    )

    @property
    def is_correlated(self) -> bool:
        return self.correlation_group is not None


class JoinSpec(SpecModel):
    """One level of a client-side join chain."""

    collection: str = Field(..., description="Target collection")
    local_field: str = Field(..., description="Path read from the source document")
    foreign_field: str = Field(..., description="Path matched in the target collection")
    filter: dict[str, Any] | None = Field(default=None, description="Extra parameterized filter")
    join: "JoinSpec | None" = Field(default=None, description="Next level of the chain")

    @property
    def depth(self) -> int:
        """Number of levels in the chain starting at this join."""
        return 1 + (self.join.depth if self.join else 0)

    def levels(self) -> list["JoinSpec"]:
        chain = []
        current: JoinSpec | None = self
        while current is not None:
            chain.append(current)
            current = current.join
        return chain


JoinSpec.model_rebuild()


class QuerySpec(SpecModel):
    """A named, parameterized query to benchmark."""

    name: str = Field(..., description="Query name")
    description: str = Field(default="", description="Human readable description")
    collection: str = Field(..., description="Primary collection")
    kind: Annotated[QueryKind, BeforeValidator(normalize_query_kind)] = Field(
        default=QueryKind.FIND,
        validation_alias=AliasChoices("kind", "type"),
        description="Primary query kind",
    )
    filter: dict[str, Any] = Field(default_factory=dict, description="Filter template")
    projection: dict[str, Any] | None = Field(default=None, description="Find projection")
    sort: dict[str, int] | None = Field(default=None, description="Find sort specification")
    limit: int | None = Field(default=None, description="Find result limit")
    pipeline: list[dict[str, Any]] | None = Field(default=None, description="Aggregation pipeline")
    join: JoinSpec | None = Field(default=None, description="Client-side join chain")
    parameters: dict[str, ParameterSpec] = Field(default_factory=dict, description="Parameters by name")
    requires_index: str | None = Field(default=None, description="Index the query is meant to use")
    expected_results: int | None = Field(default=None, description="Expected matched count per execution")

    @property
    def has_join(self) -> bool:
        return self.join is not None

    def referenced_parameters(self) -> set[str]:
        """Names referenced anywhere in the filter, pipeline, or join filters."""
        names = find_placeholders(self.filter)
        if self.pipeline:
            names |= find_placeholders(self.pipeline)
        if self.join:
            for level in self.join.levels():
                if level.filter:
                    names |= find_placeholders(level.filter)
        return names

    def correlation_groups(self) -> dict[str, str]:
        """Map correlation group to its declared collection (first declaration wins)."""
        groups: dict[str, str] = {}
        for param in self.parameters.values():
            if param.correlation_group and param.collection:
                groups.setdefault(param.correlation_group, param.collection)
        return groups


def _default_iterations() -> int:
    return get_settings().benchmark.iterations


def _default_warmup() -> int:
    return get_settings().benchmark.warmup_iterations


def _default_threads() -> int:
    return get_settings().benchmark.threads


def _default_explain() -> bool:
    return get_settings().benchmark.include_explain_plan


class QueryExecution(SpecModel):
    """Run-level execution settings; defaults come from BenchmarkSettings."""

    iterations: int = Field(default_factory=_default_iterations, ge=0)
    warmup_iterations: int = Field(default_factory=_default_warmup, ge=0)
    threads: int = Field(default_factory=_default_threads, ge=1)
    include_explain_plan: bool = Field(default_factory=_default_explain)


class QuerySuite(SpecModel):
    """A list of queries plus how to run them."""

    queries: list[QuerySpec] = Field(default_factory=list)
    query_execution: QueryExecution = Field(default_factory=QueryExecution)

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "QuerySuite":
        """Build a suite from an already-parsed configuration mapping."""
        return cls.model_validate(data)
