"""
Routing Scoring
===============

Pure functions that turn similar tickets and documents into a routing
decision. Stateless and deterministic: identical inputs always produce
identical outputs.

Department score:
    (total_similarity / count) * ln(count + 1)

The mean rewards topical closeness; the log term rewards corroboration by
several tickets without letting volume alone beat one very close hit.
"""

import math
from typing import Dict, Iterable, Optional, Sequence, Tuple

from ticket_routing.routing.domain.entities import DepartmentEvidence, SimilarityResult
from ticket_routing.routing.domain.value_objects import RoutingWeights


NO_EVIDENCE_REASON = "No similar tickets or documents found for routing analysis."


def aggregate_departments(
    similar_tickets: Iterable[SimilarityResult]
) -> Dict[str, DepartmentEvidence]:
    """
    Group similar tickets by department, in first-seen order.

    Tickets without a department contribute nothing here.
    """
    aggregation: Dict[str, DepartmentEvidence] = {}
    for ticket in similar_tickets:
        if not ticket.department_id:
            continue
        evidence = aggregation.get(ticket.department_id)
        if evidence is None:
            evidence = DepartmentEvidence(department_id=ticket.department_id)
            aggregation[ticket.department_id] = evidence
        evidence.add(ticket.similarity, ticket.assigned_to)
    return aggregation


def department_score(evidence: DepartmentEvidence) -> float:
    if evidence.count == 0:
        return 0.0
    return evidence.mean_similarity * math.log(evidence.count + 1)


def select_department(
    aggregation: Dict[str, DepartmentEvidence]
) -> Optional[DepartmentEvidence]:
    """Highest-scoring department; the first one seen wins a tie."""
    best: Optional[DepartmentEvidence] = None
    best_score = 0.0
    for evidence in aggregation.values():
        score = department_score(evidence)
        if score > best_score:
            best = evidence
            best_score = score
    return best


def select_assignee(evidence: DepartmentEvidence) -> Optional[str]:
    """Assignee with the greatest cumulative similarity within one department."""
    best: Optional[str] = None
    best_score = 0.0
    for assignee_id, score in evidence.assignees.items():
        if score > best_score:
            best = assignee_id
            best_score = score
    return best


def compute_confidence(
    similar_tickets: Sequence[SimilarityResult],
    similar_docs: Sequence[SimilarityResult],
    weights: RoutingWeights
) -> float:
    """
    Bounded confidence in [0, confidence_cap].

    ``similar_tickets`` is expected best first, as search returns it; the
    first ticket is taken as the top match.
    """
    if similar_tickets:
        top_similarity = similar_tickets[0].similarity
        corroboration = min(
            len(similar_tickets) / weights.corroboration_divisor,
            weights.corroboration_cap
        )
        raw = top_similarity * weights.top_similarity_weight + corroboration
    elif similar_docs:
        raw = weights.document_only_confidence
    else:
        raw = 0.0
    return max(0.0, min(weights.confidence_cap, raw))


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'s' if count != 1 else ''}"


def build_reason(ticket_count: int, doc_count: int) -> str:
    """
    Human-readable justification, e.g.
    "Suggested based on 3 similar tickets and 2 related documents".
    """
    if ticket_count == 0 and doc_count == 0:
        return NO_EVIDENCE_REASON

    clauses = []
    if ticket_count > 0:
        clauses.append(_plural(ticket_count, "similar ticket"))
    if doc_count > 0:
        clauses.append(_plural(doc_count, "related document"))
    return "Suggested based on " + " and ".join(clauses)


def top_by_similarity(
    results: Iterable[SimilarityResult],
    limit: int
) -> Tuple[SimilarityResult, ...]:
    """Highest-similarity results first; equal scores keep their input order."""
    ordered = sorted(results, key=lambda result: -result.similarity)
    return tuple(ordered[:limit])
