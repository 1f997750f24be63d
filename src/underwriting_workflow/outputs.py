"""Stage-output providers.

The engine treats the domain calculation as an opaque function
``compute(stage_id, inputs) -> StageOutput``.  ``CannedOutputProvider``
returns fixed underwriting figures and explanations for the default
catalog; embedding applications plug in their own provider.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .models import CategorizedDocument, Confidence, StageOutput


class StageOutputProvider(Protocol):
    """Callable producing the output of a finished stage."""

    def __call__(self, stage_id: str, inputs: Sequence[CategorizedDocument]) -> StageOutput: ...


_CANNED_OUTPUTS: dict[str, StageOutput] = {
    "pfs-analysis": StageOutput(
        confidence=Confidence.HIGH,
        payload={
            "net_worth": "$1,247,000",
            "liquid_assets": "$850,000",
            "monthly_income": "$18,500",
        },
        reasoning=(
            "Personal Financial Statement shows strong financial position with "
            "diversified assets and manageable debt levels."
        ),
        key_findings=[
            "Net worth exceeds loan amount by 4.2x",
            "Liquid assets cover 6+ months payments",
            "Income trend is stable",
        ],
        sources=["PFS_Document.pdf", "Bank_Statements.pdf"],
    ),
    "credit-analysis": StageOutput(
        confidence=Confidence.HIGH,
        payload={
            "credit_score": 726,
            "monthly_obligations": "$3,200",
            "payment_history": "100% on-time",
        },
        reasoning=(
            "Credit report indicates excellent payment history with manageable "
            "existing debt obligations."
        ),
        key_findings=[
            "FICO score in excellent range",
            "No late payments in 24 months",
            "Credit utilization under 30%",
        ],
        sources=["Credit_Report.pdf", "Payment_History.xlsx"],
    ),
    "mortgage-calc": StageOutput(
        confidence=Confidence.MEDIUM,
        requires_review=True,
        payload={
            "dti": "28.5%",
            "ltv": "75%",
            "cash_reserves": "6.2 months",
        },
        reasoning=(
            "DTI ratio is within acceptable range but approaching upper threshold "
            "for this loan program."
        ),
        key_findings=[
            "DTI at 28.5% (threshold: 30%)",
            "LTV provides adequate equity cushion",
            "Cash reserves adequate",
        ],
        sources=["Income_Verification.pdf", "Tax_Returns.pdf"],
    ),
    "policy-check": StageOutput(
        confidence=Confidence.HIGH,
        payload={
            "policy_matched": "Policy #12A",
            "status": "Compliant",
            "exceptions": "None",
        },
        reasoning="All underwriting criteria met per Policy #12A with no exceptions required.",
        key_findings=[
            "Minimum FICO requirement met",
            "LTV within policy limits",
            "Income documentation complete",
        ],
        sources=["Underwriting_Guidelines.pdf", "Policy_Matrix.xlsx"],
    ),
}


class CannedOutputProvider:
    """Returns the fixed output registered for a stage id.

    Unknown stage ids get *fallback* (a high-confidence empty output by
    default), so custom catalogs run without a real provider.
    """

    def __init__(
        self,
        outputs: dict[str, StageOutput] | None = None,
        fallback: StageOutput | None = None,
    ) -> None:
        self.outputs = dict(_CANNED_OUTPUTS if outputs is None else outputs)
        self.fallback = fallback or StageOutput()

    def __call__(self, stage_id: str, inputs: Sequence[CategorizedDocument]) -> StageOutput:
        output = self.outputs.get(stage_id, self.fallback)
        payload = dict(output.payload)
        payload.setdefault("documents_considered", len(inputs))
        return output.model_copy(update={"payload": payload}, deep=True)
