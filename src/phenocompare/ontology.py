"""
Ontology graph model.

Defines an immutable phenotype DAG (term -> parent terms) with ancestor
closure queries. Terms are keyed by `hpotk.TermId`; multiple inheritance
is kept as-is.
"""

from __future__ import annotations

import logging
import typing
from dataclasses import dataclass, field

import hpotk

logger = logging.getLogger(__name__)


class UnknownTermError(KeyError):
    """Raised when a term id is absent from the ontology (unknown or obsolete)."""

    def __init__(self, term_id: hpotk.TermId):
        super().__init__(term_id)
        self.term_id = term_id

    def __str__(self) -> str:
        return f"Term {term_id_value(self.term_id)!r} is not present in the ontology"


def term_id_value(term_id: hpotk.TermId) -> str:
    return term_id.value


def term_id_key(term_id: hpotk.TermId) -> typing.Tuple[str, str]:
    """
    Sort key giving term ids their total order: prefix first, then local id.
    HPO local ids are zero-padded, so string order matches numeric order.
    """
    return term_id.prefix, term_id.id


@dataclass(frozen=True)
class Term:
    """
    A single ontology concept.

    Attributes:
        identifier: primary term id (e.g. HP:0001250).
        name: human readable label.
        parents: ids of the direct "is-a" parents; empty for a root.
        alt_term_ids: retired ids merged into this term.
    """

    identifier: hpotk.TermId
    name: str
    parents: typing.FrozenSet[hpotk.TermId] = frozenset()
    alt_term_ids: typing.FrozenSet[hpotk.TermId] = field(default=frozenset())

    def __post_init__(self):
        if not isinstance(self.name, str):
            raise ValueError(f"Term name must be a string, got {type(self.name).__name__}")
        object.__setattr__(self, "parents", frozenset(self.parents))
        object.__setattr__(self, "alt_term_ids", frozenset(self.alt_term_ids))


class PhenotypeOntology:
    """
    Immutable term DAG built once from a collection of `Term`s.

    Every parent referenced by a term must itself be a term of the ontology.
    """

    def __init__(self, terms: typing.Iterable[Term], version: typing.Optional[str] = None):
        table: typing.Dict[hpotk.TermId, Term] = {}
        for term in terms:
            if term.identifier in table:
                raise ValueError(f"Duplicate term id {term_id_value(term.identifier)!r}")
            table[term.identifier] = term

        for term in table.values():
            dangling = [p for p in term.parents if p not in table]
            if dangling:
                missing = ", ".join(sorted(term_id_value(p) for p in dangling))
                raise ValueError(
                    f"Term {term_id_value(term.identifier)!r} has parents missing from the ontology: {missing}"
                )

        aliases: typing.Dict[hpotk.TermId, hpotk.TermId] = {}
        for term in table.values():
            for alt in term.alt_term_ids:
                if alt not in table:
                    aliases[alt] = term.identifier

        self._terms = table
        self._aliases = aliases
        self._version = version

    @property
    def version(self) -> typing.Optional[str]:
        return self._version

    @property
    def term_ids(self) -> typing.List[hpotk.TermId]:
        """All primary term ids, in ascending order."""
        return sorted(self._terms, key=term_id_key)

    def __len__(self) -> int:
        return len(self._terms)

    def __contains__(self, term_id: hpotk.TermId) -> bool:
        return term_id in self._terms

    def get_term(self, term_id: hpotk.TermId) -> typing.Optional[Term]:
        """Return the term for a primary id, or None."""
        return self._terms.get(term_id)

    def get_parents(self, term_id: hpotk.TermId) -> typing.FrozenSet[hpotk.TermId]:
        return self._require(term_id).parents

    def resolve(self, term_id: hpotk.TermId) -> hpotk.TermId:
        """
        Map a term id to its primary id.

        Primary ids map to themselves, alternate ids to the term they were
        merged into. Anything else raises `UnknownTermError`.
        """
        if term_id in self._terms:
            return term_id
        primary = self._aliases.get(term_id)
        if primary is None:
            raise UnknownTermError(term_id)
        return primary

    def ancestors_of(self, term_id: hpotk.TermId) -> typing.FrozenSet[hpotk.TermId]:
        """
        Return `term_id` and every term reachable through `parents`.

        Raises `UnknownTermError` if `term_id` is not a primary id of the
        ontology. A root yields a singleton set.
        """
        self._require(term_id)
        visited: typing.Set[hpotk.TermId] = set()
        stack = [term_id]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            stack.extend(p for p in self._terms[current].parents if p not in visited)
        return frozenset(visited)

    def _require(self, term_id: hpotk.TermId) -> Term:
        term = self._terms.get(term_id)
        if term is None:
            raise UnknownTermError(term_id)
        return term

    @staticmethod
    def from_hpotk(hpo: hpotk.MinimalOntology) -> "PhenotypeOntology":
        """
        Convert an `hpotk` ontology, keeping current (non-obsolete) terms only.
        """
        current = {term.identifier: term for term in hpo.terms if not term.is_obsolete}
        terms = []
        for term_id, term in current.items():
            parents = set()
            for parent in hpo.graph.get_parents(term_id):
                if parent in current:
                    parents.add(parent)
                else:
                    logger.debug(f"Dropping edge {term_id.value} -> {parent.value}: parent is not a current term")
            terms.append(
                Term(
                    identifier=term_id,
                    name=term.name,
                    parents=frozenset(parents),
                    alt_term_ids=frozenset(term.alt_term_ids),
                )
            )
        return PhenotypeOntology(terms, version=hpo.version)
