"""
Report assembly and output.

Zips the frozen count table with the chi-squared scores into rows sorted by
term id, and writes them as a tab-separated file.
"""

import logging
import os
import pathlib
import typing
from dataclasses import dataclass

import hpotk
import pandas as pd

from .aggregate import CountTable
from .ontology import PhenotypeOntology, term_id_value
from .patient import COHORT_LABELS
from .stats import ChiSquared

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["term_id", "term_name"] + [f"group_{label}" for label in COHORT_LABELS] + ["chi_squared"]


class ReportInconsistencyError(RuntimeError):
    """Raised when counted terms cannot be matched to the ontology or to a score."""


class OutputNotWritableError(OSError):
    """Raised when the report path cannot be written."""


@dataclass(frozen=True)
class ScoredRow:
    """
    One line of the report.

    Attributes:
        term_id: ontology term id.
        name: term label from the ontology.
        counts: patients covered by the term, per cohort (A, B).
        statistic: chi-squared score, possibly undefined.
    """

    term_id: hpotk.TermId
    name: str
    counts: typing.Tuple[int, ...]
    statistic: ChiSquared


def assemble_report(
    counts: CountTable,
    scores: typing.Mapping[hpotk.TermId, ChiSquared],
    ontology: PhenotypeOntology,
) -> typing.List[ScoredRow]:
    """
    Build one ScoredRow per counted term, in ascending term id order.

    Raises `ReportInconsistencyError` listing every counted term that is
    missing from the ontology or has no score.
    """
    rows = []
    problems = []
    for term_id, term_counts in counts.items():
        term = ontology.get_term(term_id)
        if term is None:
            problems.append(f"{term_id_value(term_id)} is counted but absent from the ontology")
            continue
        statistic = scores.get(term_id)
        if statistic is None:
            problems.append(f"{term_id_value(term_id)} is counted but was not scored")
            continue
        rows.append(ScoredRow(term_id=term_id, name=term.name, counts=term_counts, statistic=statistic))

    if problems:
        raise ReportInconsistencyError("; ".join(problems))
    return rows


def rows_to_frame(rows: typing.Sequence[ScoredRow]) -> pd.DataFrame:
    """Tabulate rows; the statistic is rendered with 3 decimals, `NA` when undefined."""
    records = []
    for row in rows:
        record = {"term_id": term_id_value(row.term_id), "term_name": row.name}
        for label, count in zip(COHORT_LABELS, row.counts):
            record[f"group_{label}"] = count
        record["chi_squared"] = row.statistic.format()
        records.append(record)
    return pd.DataFrame.from_records(records, columns=REPORT_COLUMNS)


def check_output_writable(path: typing.Union[str, pathlib.Path]) -> pathlib.Path:
    """
    Make sure the report can be written to `path` before any work is done.
    """
    out = pathlib.Path(path)
    if out.is_dir():
        raise OutputNotWritableError(f"Output path {str(out)!r} is a directory")
    parent = out.parent if str(out.parent) else pathlib.Path(".")
    if not parent.is_dir():
        raise OutputNotWritableError(f"Output directory {str(parent)!r} does not exist")
    target = out if out.exists() else parent
    if not os.access(target, os.W_OK):
        raise OutputNotWritableError(f"Output path {str(out)!r} is not writable")
    return out


def write_report(rows: typing.Sequence[ScoredRow], path: typing.Union[str, pathlib.Path]) -> pathlib.Path:
    """
    Write rows in the given order as TSV: term id, term name, group A count,
    group B count, chi-squared (3 decimals, `NA` when undefined).
    """
    out = pathlib.Path(path)
    frame = rows_to_frame(rows)
    try:
        frame.to_csv(out, sep="\t", index=False)
    except OSError as e:
        raise OutputNotWritableError(f"Problem writing output file {str(out)!r}: {e}") from e
    logger.info(f"Wrote {len(rows)} rows to {out}")
    return out
