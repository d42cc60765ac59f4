"""
Association scoring.

Pearson chi-squared statistic (one degree of freedom, no Yates correction)
for a 2x2 table of cohort vs. has/lacks phenotype.
"""

import typing
from dataclasses import dataclass

import hpotk
from scipy.stats import chi2_contingency


@dataclass(frozen=True)
class ChiSquared:
    """
    Result of a chi-squared computation.

    `value` is None when the statistic is undefined, i.e. some cell has an
    expected count of zero.
    """

    value: typing.Optional[float]

    @property
    def is_defined(self) -> bool:
        return self.value is not None

    def format(self, precision: int = 3, undefined: str = "NA") -> str:
        if self.value is None:
            return undefined
        return f"{self.value:.{precision}f}"


UNDEFINED = ChiSquared(None)


def contingency_table(counts: typing.Sequence[int], sizes: typing.Sequence[int]) -> typing.List[typing.List[int]]:
    """
    Build the observed table: one row per cohort, columns (has, lacks).
    """
    if len(counts) != len(sizes):
        raise ValueError("counts and cohort sizes must have the same length")
    table = []
    for count, size in zip(counts, sizes):
        if count < 0 or count > size:
            raise ValueError(f"Count {count} outside of [0, {size}]")
        table.append([count, size - count])
    return table


def chi_squared(observed: typing.Sequence[typing.Sequence[int]]) -> ChiSquared:
    """
    Pearson chi-squared statistic of a contingency table.

    Expected value of a cell = row total * column total / grand total.
    Returns `UNDEFINED` if any expected value is zero.
    """
    if sum(sum(row) for row in observed) == 0:
        return UNDEFINED
    try:
        chi2, _, _, _ = chi2_contingency(observed, correction=False)
    except ValueError:
        # scipy rejects tables with a zero expected frequency
        return UNDEFINED
    return ChiSquared(float(chi2))


def score_counts(
    counts: typing.Iterable[typing.Tuple[hpotk.TermId, typing.Sequence[int]]],
    sizes: typing.Sequence[int],
) -> typing.Dict[hpotk.TermId, ChiSquared]:
    """Score every (term id, counts) pair against the cohort sizes."""
    return {
        term_id: chi_squared(contingency_table(term_counts, sizes))
        for term_id, term_counts in counts
    }
