"""
Two-cohort comparison pipeline: aggregate, score, assemble.
"""

import logging
import typing
from dataclasses import dataclass

from stairval.notepad import Notepad

from .aggregate import CountTable, count_patients
from .ontology import PhenotypeOntology
from .patient import Cohort, check_cohorts
from .report import ScoredRow, assemble_report
from .stats import score_counts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonResult:
    counts: CountTable
    rows: typing.List[ScoredRow]
    sizes: typing.Tuple[int, ...]


def compare_cohorts(
    ontology: PhenotypeOntology,
    cohort_a: Cohort,
    cohort_b: Cohort,
    notepad: Notepad,
    workers: int = 1,
) -> ComparisonResult:
    """
    Compare two cohorts node by node.

    Empty cohorts are rejected (`EmptyCohortError`) before any counting.
    """
    cohorts = (cohort_a, cohort_b)
    if [c.label for c in cohorts] != ["A", "B"]:
        raise ValueError("Cohorts must be given in order A, B")
    check_cohorts(cohorts)

    counts = count_patients(cohorts, ontology, notepad, workers=workers)
    sizes = tuple(c.size for c in cohorts)
    scores = score_counts(counts.items(), sizes)
    undefined = sum(1 for s in scores.values() if not s.is_defined)
    if undefined:
        logger.info(f"Chi-squared undefined for {undefined} of {len(scores)} terms")
    rows = assemble_report(counts, scores, ontology)
    return ComparisonResult(counts=counts, rows=rows, sizes=sizes)
