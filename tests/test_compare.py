"""
End-to-end comparisons on in-memory ontologies and cohorts.
"""

import pytest

from stairval.notepad import create_notepad

from phenocompare.compare import compare_cohorts
from phenocompare.ontology import PhenotypeOntology, term_id_key
from phenocompare.patient import Cohort, EmptyCohortError, Patient

from conftest import tid


def _cohort(label, *term_lists):
    return Cohort(
        label=label,
        members=[
            Patient(patient_id=f"{label}{i}", terms=frozenset(tid(t) for t in terms))
            for i, terms in enumerate(term_lists)
        ],
    )


def test_root_and_two_children(tiny_hpo: PhenotypeOntology):
    result = compare_cohorts(
        tiny_hpo, _cohort("A", ["HP:0000002"]), _cohort("B", ["HP:0000003"]), create_notepad("test")
    )
    assert result.counts[tid("HP:0000001")] == (1, 1)
    assert result.counts[tid("HP:0000002")] == (1, 0)
    assert result.counts[tid("HP:0000003")] == (0, 1)

    by_id = {row.term_id.value: row for row in result.rows}
    assert not by_id["HP:0000001"].statistic.is_defined
    assert by_id["HP:0000002"].statistic.value == pytest.approx(2.0)
    assert by_id["HP:0000003"].statistic.value == pytest.approx(2.0)
    assert [row.name for row in result.rows] == ["R", "C1", "C2"]


def test_term_in_every_patient_shows_no_divergence(toy_hpo: PhenotypeOntology):
    # "has" is 5/5 in both groups and "lacks" is empty: zero expected cells,
    # so no positive divergence can be reported.
    terms = [["HP:0001250"]] * 5
    result = compare_cohorts(toy_hpo, _cohort("A", *terms), _cohort("B", *terms), create_notepad("test"))
    row = next(r for r in result.rows if r.term_id == tid("HP:0001250"))
    assert row.counts == (5, 5)
    assert not row.statistic.is_defined


def test_equal_proportions_score_zero(toy_hpo: PhenotypeOntology):
    group = [["HP:0001250"], ["HP:0001250"], ["HP:0001627"], ["HP:0001627"]]
    result = compare_cohorts(toy_hpo, _cohort("A", *group), _cohort("B", *group), create_notepad("test"))
    row = next(r for r in result.rows if r.term_id == tid("HP:0000707"))
    assert row.counts == (2, 2)
    assert row.statistic.value == pytest.approx(0.0)


def test_unknown_term_skipped_run_completes(toy_hpo: PhenotypeOntology):
    notepad = create_notepad("test")
    result = compare_cohorts(
        toy_hpo, _cohort("A", ["HP:9999999", "HP:0001251"]), _cohort("B", ["HP:0001627"]), notepad
    )
    assert result.counts[tid("HP:0001251")] == (1, 0)
    assert tid("HP:9999999") not in result.counts
    assert notepad.has_warnings(include_subsections=True)


def test_rows_strictly_increasing_and_only_counted_terms(toy_hpo: PhenotypeOntology):
    result = compare_cohorts(
        toy_hpo,
        _cohort("A", ["HP:0002119"], ["HP:0001251"]),
        _cohort("B", ["HP:0001627"]),
        create_notepad("test"),
    )
    keys = [term_id_key(row.term_id) for row in result.rows]
    assert all(a < b for a, b in zip(keys, keys[1:]))
    assert tid("HP:0001250") not in {row.term_id for row in result.rows}
    assert len(result.rows) == len(result.counts)
    assert result.sizes == (2, 1)


def test_report_does_not_depend_on_member_order(toy_hpo: PhenotypeOntology):
    a_terms = [["HP:0002119"], ["HP:0001251", "HP:0001250"], ["HP:0000234"]]
    b_terms = [["HP:0001627"], ["HP:0001250"]]
    first = compare_cohorts(toy_hpo, _cohort("A", *a_terms), _cohort("B", *b_terms), create_notepad("x"))
    second = compare_cohorts(
        toy_hpo, _cohort("A", *reversed(a_terms)), _cohort("B", *reversed(b_terms)), create_notepad("y"), workers=2
    )
    assert first.counts == second.counts
    assert [(r.term_id, r.counts, r.statistic) for r in first.rows] == [
        (r.term_id, r.counts, r.statistic) for r in second.rows
    ]


def test_empty_cohort_rejected_before_counting(toy_hpo: PhenotypeOntology):
    notepad = create_notepad("test")
    with pytest.raises(EmptyCohortError):
        compare_cohorts(toy_hpo, _cohort("A", ["HP:9999999"]), Cohort(label="B", source="groupB"), notepad)
    # nothing was counted, so the unknown term was never reported
    assert not notepad.has_warnings(include_subsections=True)


def test_cohorts_must_be_in_label_order(toy_hpo: PhenotypeOntology):
    with pytest.raises(ValueError):
        compare_cohorts(toy_hpo, _cohort("B", ["HP:0001250"]), _cohort("A", ["HP:0001250"]), create_notepad("test"))
