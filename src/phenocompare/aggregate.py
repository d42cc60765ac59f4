"""
Closure and aggregation.

For every patient the reported terms are closed over the ontology (union of
the ancestor sets), and the closure is folded into a sparse table of
per-cohort counts. A patient contributes at most one count to any node.
"""

from __future__ import annotations

import logging
import typing
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import hpotk
from stairval.notepad import Notepad

from .ontology import PhenotypeOntology, UnknownTermError, term_id_key, term_id_value
from .patient import COHORT_LABELS, Cohort, Patient

logger = logging.getLogger(__name__)

NUM_GROUPS = len(COHORT_LABELS)


@dataclass(frozen=True)
class TermClosure:
    """
    Outcome of closing one patient's terms over the ontology.

    Attributes:
        patient_id: the patient the closure belongs to.
        ancestors: union of the ancestor sets of every resolvable term.
        skipped: reported terms that failed ontology lookup, in sorted order.
    """

    patient_id: str
    ancestors: typing.FrozenSet[hpotk.TermId]
    skipped: typing.Tuple[hpotk.TermId, ...] = ()

    @property
    def is_complete(self) -> bool:
        return not self.skipped


def close_patient(patient: Patient, ontology: PhenotypeOntology) -> TermClosure:
    """
    Union the ancestor closures of all the patient's terms.

    Terms missing from the ontology are collected in `skipped` instead of
    aborting; the remaining terms are still closed.
    """
    ancestors: typing.Set[hpotk.TermId] = set()
    skipped = []
    for term_id in patient.terms:
        try:
            primary = ontology.resolve(term_id)
            if primary != term_id:
                logger.debug(
                    f"Patient {patient.patient_id!r}: {term_id_value(term_id)} is an alternate id of {term_id_value(primary)}"
                )
            ancestors.update(ontology.ancestors_of(primary))
        except UnknownTermError:
            skipped.append(term_id)
    return TermClosure(
        patient_id=patient.patient_id,
        ancestors=frozenset(ancestors),
        skipped=tuple(sorted(skipped, key=term_id_key)),
    )


class CountTable:
    """
    Sparse mapping from term id to a two-slot counter, one slot per cohort.

    Terms never implied by any patient are not stored and read as (0, 0).
    The table can be frozen once aggregation is done; a frozen table rejects
    further updates.
    """

    def __init__(self):
        self._counts: typing.Dict[hpotk.TermId, typing.List[int]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "CountTable":
        self._frozen = True
        return self

    def increment(self, term_id: hpotk.TermId, slot: int, by: int = 1) -> None:
        if self._frozen:
            raise RuntimeError("Cannot update a frozen count table")
        if not 0 <= slot < NUM_GROUPS:
            raise IndexError(f"Cohort slot out of range: {slot}")
        counts = self._counts.get(term_id)
        if counts is None:
            # first time we see this term
            counts = [0] * NUM_GROUPS
            self._counts[term_id] = counts
        counts[slot] += by

    def add_closure(self, closure: TermClosure, slot: int) -> None:
        for term_id in closure.ancestors:
            self.increment(term_id, slot)

    def merge(self, partial: typing.Mapping[hpotk.TermId, int], slot: int) -> None:
        """Add a partial per-term tally into one cohort's slot."""
        for term_id in sorted(partial, key=term_id_key):
            self.increment(term_id, slot, partial[term_id])

    def get(self, term_id: hpotk.TermId) -> typing.Tuple[int, ...]:
        return tuple(self._counts.get(term_id, (0,) * NUM_GROUPS))

    def __getitem__(self, term_id: hpotk.TermId) -> typing.Tuple[int, ...]:
        return self.get(term_id)

    def __contains__(self, term_id: hpotk.TermId) -> bool:
        return term_id in self._counts

    def __len__(self) -> int:
        return len(self._counts)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CountTable):
            return NotImplemented
        return self._counts == other._counts

    def term_ids(self) -> typing.List[hpotk.TermId]:
        return sorted(self._counts, key=term_id_key)

    def items(self) -> typing.Iterator[typing.Tuple[hpotk.TermId, typing.Tuple[int, ...]]]:
        """Iterate (term id, counts) in ascending term id order."""
        for term_id in self.term_ids():
            yield term_id, tuple(self._counts[term_id])


def _close_chunk(
    patients: typing.Sequence[Patient], ontology: PhenotypeOntology
) -> typing.Tuple[Counter, typing.List[TermClosure]]:
    # one partial table per worker
    partial: Counter = Counter()
    closures = []
    for patient in patients:
        closure = close_patient(patient, ontology)
        partial.update(closure.ancestors)
        closures.append(closure)
    return partial, closures


def _chunk(members: typing.Sequence[Patient], n: int) -> typing.List[typing.Sequence[Patient]]:
    size = -(-len(members) // n)
    return [members[i:i + size] for i in range(0, len(members), size)]


def _record_skipped(closure: TermClosure, cohort: Cohort, notepad: Notepad) -> None:
    if closure.is_complete:
        return
    patient_notes = notepad.add_subsection(closure.patient_id)
    for term_id in closure.skipped:
        message = f"Group {cohort.label}, patient {closure.patient_id!r}: {term_id_value(term_id)} not found in ontology, skipping"
        logger.warning(message)
        patient_notes.add_warning(message, "Update the term to a current ontology id")


def count_cohort(
    cohort: Cohort,
    ontology: PhenotypeOntology,
    table: CountTable,
    notepad: Notepad,
    workers: int = 1,
) -> None:
    """
    Fold every member's closure into `cohort.slot` of `table`.

    With `workers > 1` closures are computed concurrently, each worker keeping
    its own partial tally; partial tallies are summed into `table` once all
    workers are done.
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")
    cohort_notes = notepad.add_subsection(f"group {cohort.label}")
    logger.info(f"Counting {cohort.size} patients of group {cohort.label}")

    if workers == 1 or cohort.size < 2:
        for patient in cohort:
            closure = close_patient(patient, ontology)
            _record_skipped(closure, cohort, cohort_notes)
            table.add_closure(closure, cohort.slot)
        return

    chunks = _chunk(cohort.members, workers)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(lambda chunk: _close_chunk(chunk, ontology), chunks))

    for partial, closures in results:
        for closure in closures:
            _record_skipped(closure, cohort, cohort_notes)
        table.merge(partial, cohort.slot)


def count_patients(
    cohorts: typing.Sequence[Cohort],
    ontology: PhenotypeOntology,
    notepad: Notepad,
    workers: int = 1,
) -> CountTable:
    """
    Count, for each ontology node, the patients of each cohort it covers.

    Returns a frozen `CountTable`.
    """
    table = CountTable()
    for cohort in cohorts:
        count_cohort(cohort, ontology, table, notepad, workers=workers)
    logger.info(f"Counted {len(table)} ontology nodes")
    return table.freeze()
