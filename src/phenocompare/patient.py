"""
Cohort domain model.

Defines the Patient and Cohort classes: a named group of patients and the
phenotype terms each patient exhibits.
"""

import re
import typing
from dataclasses import dataclass

import hpotk

# Two cohorts only; the order of the labels fixes the output column order.
COHORT_LABELS = ("A", "B")

_VALID_ID = re.compile(r"^\S(?:.*\S)?$")


class EmptyCohortError(ValueError):
    """Raised when one or more cohorts have no members."""


@dataclass(frozen=True)
class Patient:
    """
    A patient and the set of phenotype terms reported for them.

    Attributes:
        patient_id: identifier, usually the stem of the patient file.
        terms: reported term ids; duplicates collapse (set semantics).
    """

    patient_id: str
    terms: typing.FrozenSet[hpotk.TermId] = frozenset()

    def __post_init__(self):
        if not isinstance(self.patient_id, str) or not _VALID_ID.match(self.patient_id):
            raise ValueError(f"Invalid patient ID: {self.patient_id!r}")
        object.__setattr__(self, "terms", frozenset(self.terms))


@dataclass(frozen=True)
class Cohort:
    """
    A labeled, ordered, read-only group of patients.

    Attributes:
        label: 'A' or 'B'.
        members: patients in load order.
        source: where the cohort was read from (directory path), if known.
    """

    label: str
    members: typing.Tuple[Patient, ...] = ()
    source: typing.Optional[str] = None

    def __post_init__(self):
        if self.label not in COHORT_LABELS:
            raise ValueError(f"Cohort label must be one of {COHORT_LABELS}, got {self.label!r}")
        object.__setattr__(self, "members", tuple(self.members))

    @property
    def slot(self) -> int:
        """Index of this cohort's counter in a two-slot count array."""
        return COHORT_LABELS.index(self.label)

    @property
    def size(self) -> int:
        return len(self.members)

    def is_empty(self) -> bool:
        return not self.members

    def __len__(self) -> int:
        return len(self.members)

    def __iter__(self) -> typing.Iterator[Patient]:
        return iter(self.members)


def check_cohorts(cohorts: typing.Sequence[Cohort]) -> None:
    """
    Raise `EmptyCohortError` naming every empty cohort, if any.
    """
    lines = []
    for cohort in cohorts:
        if cohort.is_empty():
            where = cohort.source if cohort.source else f"group {cohort.label}"
            lines.append(f"Empty patient group {cohort.label} from: {where}")
    if lines:
        raise EmptyCohortError("\n".join(lines))
