"""Static, ordered stage catalog."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

from .models import StageDefinition

# ---------------------------------------------------------------------------
# Default mortgage underwriting stages
# ---------------------------------------------------------------------------

_DEFAULT_STAGES: list[dict] = [
    {
        "stage_id": "pfs-analysis",
        "title": "Personal Financial Statement Analysis",
        "description": "Extracting key financial data from client documents",
        "duration_ms": 3000,
        "requires_review": False,
        "subtasks": [
            "Reading uploaded PFS document",
            "Extracting net worth calculations",
            "Identifying liquid assets",
            "Calculating debt obligations",
        ],
    },
    {
        "stage_id": "credit-analysis",
        "title": "Credit Report Analysis",
        "description": "Analyzing credit history and scoring",
        "duration_ms": 2500,
        "requires_review": False,
        "subtasks": [
            "Processing credit report data",
            "Extracting credit score",
            "Analyzing payment history",
            "Calculating monthly obligations",
        ],
    },
    {
        "stage_id": "mortgage-calc",
        "title": "Mortgage Calculations",
        "description": "Computing DTI, LTV, and affordability metrics",
        "duration_ms": 2000,
        "requires_review": True,
        "subtasks": [
            "Calculating debt-to-income ratio",
            "Computing loan-to-value ratio",
            "Analyzing cash flow requirements",
            "Validating affordability metrics",
        ],
    },
    {
        "stage_id": "policy-check",
        "title": "Policy & Procedure Matching",
        "description": "Checking compliance with underwriting guidelines",
        "duration_ms": 1500,
        "requires_review": False,
        "subtasks": [
            "Matching against policy requirements",
            "Validating minimum criteria",
            "Checking exception rules",
            "Generating compliance report",
        ],
    },
]


class StageCatalog:
    """Read-only ordered sequence of ``StageDefinition``.

    Ordinals are assigned from list position, so a definition's declared
    ``ordinal`` is ignored.  Duplicate stage ids raise ``ValueError``.
    """

    def __init__(self, stages: Sequence[StageDefinition | dict]) -> None:
        built: list[StageDefinition] = []
        seen: set[str] = set()
        for i, raw in enumerate(stages):
            data = raw.model_dump() if isinstance(raw, StageDefinition) else dict(raw)
            data["ordinal"] = i
            stage = StageDefinition.model_validate(data)
            if stage.stage_id in seen:
                raise ValueError(f"Duplicate stage id in catalog: {stage.stage_id!r}")
            seen.add(stage.stage_id)
            built.append(stage)
        self._stages: tuple[StageDefinition, ...] = tuple(built)
        self._by_id = {s.stage_id: s for s in self._stages}

    @classmethod
    def default(cls) -> StageCatalog:
        return cls(_DEFAULT_STAGES)

    def stages(self) -> tuple[StageDefinition, ...]:
        return self._stages

    def get(self, stage_id: str) -> StageDefinition | None:
        return self._by_id.get(stage_id)

    def __contains__(self, stage_id: object) -> bool:
        return stage_id in self._by_id

    def __iter__(self) -> Iterator[StageDefinition]:
        return iter(self._stages)

    def __len__(self) -> int:
        return len(self._stages)
