"""
Pure grade arithmetic.

Nothing here touches the database: callers pass the published rubric bounds and
the awards, and get back the numbers to persist. Same input, same output.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from coursework.core.errors import BadRequestError

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class CriterionBound:
    criteria_id: int
    max_points: float


@dataclass(frozen=True)
class CriterionAward:
    criteria_id: int
    points_awarded: float
    feedback: Optional[str] = None


@dataclass(frozen=True)
class GradeResult:
    total_points: float
    late_penalty_applied: float
    final_points: float


def to_decimal(value) -> Decimal:
    # str() first so 0.1 stays 0.1 instead of its binary expansion
    return Decimal(str(value)) if value is not None else Decimal("0")


def round_points(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def check_awards(awards: Sequence[CriterionAward], bounds: Iterable[CriterionBound]) -> None:
    """Every award must hit a known criterion once and stay within [0, maxPoints]."""
    by_id: Dict[int, CriterionBound] = {b.criteria_id: b for b in bounds}
    seen = set()

    for award in awards:
        bound = by_id.get(award.criteria_id)
        if bound is None:
            raise BadRequestError(
                "UnknownCriteria",
                f"Criteria {award.criteria_id} does not belong to this assignment",
            )
        if award.criteria_id in seen:
            raise BadRequestError("DuplicateCriteria", f"Criteria {award.criteria_id} graded more than once")
        seen.add(award.criteria_id)

        points = to_decimal(award.points_awarded)
        if points < 0 or points > to_decimal(bound.max_points):
            raise BadRequestError(
                "PointsOutOfRange",
                f"Points for criteria {award.criteria_id} must be between 0 and {bound.max_points}",
            )


def compute_late_penalty(total_points: Decimal, late_penalty_percent, is_late: bool) -> Decimal:
    if not is_late or not late_penalty_percent:
        return Decimal("0")
    return round_points(total_points * to_decimal(late_penalty_percent) / Decimal(100))


def compute_grade(
    awards: Sequence[CriterionAward],
    late_penalty_percent,
    is_late: bool,
    bounds: Optional[Iterable[CriterionBound]] = None,
) -> GradeResult:
    if bounds is not None:
        check_awards(awards, bounds)

    total = sum((to_decimal(a.points_awarded) for a in awards), Decimal("0"))
    penalty = compute_late_penalty(total, late_penalty_percent, is_late)
    final = max(Decimal("0"), total - penalty)

    return GradeResult(
        total_points=float(round_points(total)),
        late_penalty_applied=float(penalty),
        final_points=float(round_points(final)),
    )


def sum_max_points(values: List) -> Decimal:
    return sum((to_decimal(v) for v in values), Decimal("0"))
