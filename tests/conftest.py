import hpotk
import json
import pytest

from phenocompare.ontology import PhenotypeOntology, Term


def tid(curie: str) -> hpotk.TermId:
    return hpotk.TermId.from_curie(curie)


# (curie, name, parents, alt ids)
TOY_TERMS = [
    ("HP:0000001", "All", [], []),
    ("HP:0000118", "Phenotypic abnormality", ["HP:0000001"], []),
    ("HP:0000707", "Abnormality of the nervous system", ["HP:0000118"], []),
    ("HP:0000152", "Abnormality of head or neck", ["HP:0000118"], []),
    ("HP:0000234", "Abnormality of the head", ["HP:0000152"], []),
    ("HP:0001250", "Seizure", ["HP:0000707"], ["HP:0002279"]),
    ("HP:0001251", "Ataxia", ["HP:0000707"], []),
    # two parents on purpose
    ("HP:0002119", "Ventriculomegaly", ["HP:0000707", "HP:0000234"], []),
    ("HP:0001627", "Abnormal heart morphology", ["HP:0000118"], []),
]


def make_ontology(spec) -> PhenotypeOntology:
    return PhenotypeOntology(
        [
            Term(
                identifier=tid(curie),
                name=name,
                parents=frozenset(tid(p) for p in parents),
                alt_term_ids=frozenset(tid(a) for a in alts),
            )
            for curie, name, parents, alts in spec
        ],
        version="toy",
    )


@pytest.fixture(scope="session")
def toy_hpo() -> PhenotypeOntology:
    """
    A small HPO-like DAG:

        All > Phenotypic abnormality > {nervous system, head or neck, heart}
        Ventriculomegaly sits under both nervous system and head.
    """
    return make_ontology(TOY_TERMS)


@pytest.fixture(scope="session")
def tiny_hpo() -> PhenotypeOntology:
    """Root R with two children C1 and C2."""
    return make_ontology(
        [
            ("HP:0000001", "R", [], []),
            ("HP:0000002", "C1", ["HP:0000001"], []),
            ("HP:0000003", "C2", ["HP:0000001"], []),
        ]
    )


def _purl(curie: str) -> str:
    return "http://purl.obolibrary.org/obo/" + curie.replace(":", "_")


@pytest.fixture
def fpath_toy_hpo_json(tmp_path) -> str:
    """
    The toy ontology written as an obographs JSON document, as HPO ships it.
    """
    nodes = [{"id": _purl(curie), "lbl": name, "type": "CLASS"} for curie, name, _, _ in TOY_TERMS]
    edges = [
        {"sub": _purl(curie), "pred": "is_a", "obj": _purl(parent)}
        for curie, _, parents, _ in TOY_TERMS
        for parent in parents
    ]
    document = {
        "graphs": [
            {
                "id": "http://purl.obolibrary.org/obo/hp.json",
                "meta": {
                    "version": "http://purl.obolibrary.org/obo/hp/releases/2024-04-26/hp.json",
                    "basicPropertyValues": [
                        {"pred": "http://www.w3.org/2002/07/owl#versionInfo", "val": "2024-04-26"}
                    ],
                },
                "nodes": nodes,
                "edges": edges,
            }
        ]
    }
    path = tmp_path / "hp.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return str(path)
