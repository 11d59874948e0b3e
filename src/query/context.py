"""
Per-run execution context.

Everything mutable that parameter generation needs lives here, so two runs
(or two concurrently benchmarked queries) never share state:
- random number generator
- sequence counters
- correlation selections for the current query execution
- store-derived sample pools
"""

import random
from dataclasses import dataclass, field
from typing import Any

from src.config.settings import get_settings
from src.query.models import QuerySpec
from src.query.sampler import SampleStore


@dataclass
class ExecutionContext:
    """State for benchmarking one QuerySpec against one store handle."""

    query: QuerySpec
    store: Any
    rng: random.Random = field(default_factory=random.Random)
    samples: SampleStore = field(default_factory=SampleStore)
    max_join_depth: int = 16

    sequence_counters: dict[str, int] = field(default_factory=dict)
    selections: dict[str, dict[str, Any] | None] = field(default_factory=dict)

    @classmethod
    def for_query(
        cls,
        query: QuerySpec,
        store: Any,
        seed: int | None = None,
        settings: Any = None,
    ) -> "ExecutionContext":
        """Create a context using benchmark settings for sample size, join depth, and seed."""
        settings = settings or get_settings().benchmark
        if seed is None:
            seed = settings.seed
        return cls(
            query=query,
            store=store,
            rng=random.Random(seed),
            samples=SampleStore(settings.sample_size),
            max_join_depth=settings.max_join_depth,
        )

    def clear_selections(self) -> None:
        self.selections.clear()

    def reset_phase(self) -> None:
        """Reset between warmup and measurement; sample pools are kept."""
        self.sequence_counters.clear()
        self.selections.clear()

    def reset(self) -> None:
        """Reset everything, including sample pools, for an independent run."""
        self.reset_phase()
        self.samples.clear()
