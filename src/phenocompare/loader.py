"""
Input loading: the HPO ontology and the two patient cohorts.

The ontology is read from an HPO obographs JSON release with `hpotk`.
A cohort is a directory with one file per patient, either a plain text list
of HPO terms or a phenopacket JSON document.
"""

import logging
import pathlib
import re
import typing

import hpotk
from google.protobuf.json_format import Parse, ParseError
from phenopackets.schema.v2.phenopackets_pb2 import Phenopacket
from stairval.notepad import Notepad

from .ontology import PhenotypeOntology
from .patient import Cohort, Patient

logger = logging.getLogger(__name__)

# File names looked up, in order, when given an ontology directory
HPO_FILE_NAMES = ("hp.json", "hp.json.gz")

TEXT_SUFFIXES = {"", ".txt", ".tsv", ".hpo"}
PHENOPACKET_SUFFIXES = {".json"}

# "HP:0001250", "HP_0001250", "1250"
_HPO_ID_PATTERN = re.compile(r"^(?:HP[:_])?(?P<digits>\d{1,7})$", re.IGNORECASE)

# "Seizure (HP:0001250)"
_LABELED_HPO_ID_PATTERN = re.compile(r"^.*\(\s*HP[:_](?P<digits>\d{1,7})\s*\)$", re.IGNORECASE)


class OntologyNotFoundError(FileNotFoundError):
    """Raised when the ontology file cannot be found."""


class OntologyParseError(ValueError):
    """Raised when the ontology file exists but cannot be read as an ontology."""


class CohortDirectoryError(FileNotFoundError):
    """Raised when a cohort directory does not exist."""


class PatientFileError(ValueError):
    """Raised when a patient file cannot be decoded."""


def locate_ontology_file(hpo_path: typing.Union[str, pathlib.Path]) -> pathlib.Path:
    """
    Resolve the ontology file: a file path is used as-is, a directory is
    searched for `hp.json` then `hp.json.gz`.
    """
    path = pathlib.Path(hpo_path)
    if path.is_file():
        return path
    if path.is_dir():
        for name in HPO_FILE_NAMES:
            candidate = path / name
            if candidate.is_file():
                return candidate
        raise OntologyNotFoundError(
            f"No HPO file ({', '.join(HPO_FILE_NAMES)}) found in directory {str(path)!r}"
        )
    raise OntologyNotFoundError(f"HPO file not found at {str(path)!r}")


def load_ontology(hpo_path: typing.Union[str, pathlib.Path]) -> PhenotypeOntology:
    """
    Load the ontology from a file or directory.

    Raises `OntologyNotFoundError` if there is no file and
    `OntologyParseError` if the file cannot be parsed.
    """
    hpo_file = locate_ontology_file(hpo_path)
    logger.info(f"Reading ontology from {hpo_file}")
    try:
        hpo = hpotk.load_minimal_ontology(str(hpo_file))
        ontology = PhenotypeOntology.from_hpotk(hpo)
    except (ValueError, KeyError, TypeError, EOFError, OSError) as e:
        raise OntologyParseError(f"Problem parsing HPO file {str(hpo_file)!r}: {e}") from e
    logger.info(f"Loaded {len(ontology)} terms (version {ontology.version})")
    return ontology


def parse_term_line(line: str) -> typing.Optional[hpotk.TermId]:
    """
    Parse one line of a text patient file into a term id.

    Only the first tab-separated field is used; it is either a labeled id,
    `Seizure (HP:0001250)`, or an id followed by optional space separated
    text. Returns None for blank and comment lines; raises ValueError for
    anything else that is not an HPO id.
    """
    field = line.split("\t", 1)[0].strip()
    if not field or field.startswith("#"):
        return None
    m = _LABELED_HPO_ID_PATTERN.match(field) or _HPO_ID_PATTERN.match(field.split(None, 1)[0])
    if not m:
        raise ValueError(f"Cannot parse HPO term ID from {field!r}")
    return hpotk.TermId.from_curie(f"HP:{m.group('digits').zfill(7)}")


def read_text_patient(path: pathlib.Path, notepad: Notepad) -> Patient:
    terms = []
    with open(path, encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            try:
                term_id = parse_term_line(line)
            except ValueError as e:
                message = f"{path.name}, line {lineno}: {e}"
                logger.warning(message)
                notepad.add_warning(message)
                continue
            if term_id is not None:
                terms.append(term_id)
    return Patient(patient_id=path.stem, terms=frozenset(terms))


def read_phenopacket_patient(path: pathlib.Path, notepad: Notepad) -> Patient:
    """
    Read a phenopacket JSON file; excluded phenotypic features are ignored.
    """
    with open(path, encoding="utf-8") as fh:
        try:
            phenopacket = Parse(fh.read(), Phenopacket())
        except ParseError as e:
            raise PatientFileError(f"Problem parsing phenopacket {str(path)!r}: {e}") from e

    patient_id = phenopacket.subject.id or phenopacket.id or path.stem
    terms = []
    for feature in phenopacket.phenotypic_features:
        if feature.excluded:
            continue
        try:
            terms.append(hpotk.TermId.from_curie(feature.type.id))
        except ValueError as e:
            message = f"{path.name}: invalid phenotypic feature id {feature.type.id!r}: {e}"
            logger.warning(message)
            notepad.add_warning(message)
    return Patient(patient_id=patient_id, terms=frozenset(terms))


def read_patient_file(path: pathlib.Path, notepad: Notepad) -> typing.Optional[Patient]:
    """Read one patient file, or return None if the file type is not recognized."""
    suffix = path.suffix.lower()
    if suffix in PHENOPACKET_SUFFIXES:
        return read_phenopacket_patient(path, notepad)
    if suffix in TEXT_SUFFIXES:
        return read_text_patient(path, notepad)
    logger.debug(f"Skipping {path}: unrecognized patient file type")
    return None


def list_patient_files(directory: pathlib.Path) -> typing.List[pathlib.Path]:
    return sorted(
        p for p in directory.iterdir()
        if p.is_file() and not p.name.startswith(".")
    )


def load_cohort(directory: typing.Union[str, pathlib.Path], label: str, notepad: Notepad) -> Cohort:
    """
    Build a cohort from the patient files in `directory`, in file name order.

    An empty directory yields an empty cohort; emptiness is checked by the caller.
    """
    path = pathlib.Path(directory)
    if not path.is_dir():
        raise CohortDirectoryError(f"Patient directory not found: {str(path)!r}")

    section = notepad.add_subsection(f"group {label} files")
    try:
        patient_files = list_patient_files(path)
    except OSError as e:
        raise CohortDirectoryError(f"Cannot list patient directory {str(path)!r}: {e}") from e

    members = []
    for patient_file in patient_files:
        try:
            patient = read_patient_file(patient_file, section)
        except PatientFileError:
            raise
        except (ValueError, OSError) as e:
            raise PatientFileError(f"Problem reading patient file {str(patient_file)!r}: {e}") from e
        if patient is not None:
            members.append(patient)

    logger.info(f"Read {len(members)} patients for group {label} from {path}")
    return Cohort(label=label, members=tuple(members), source=str(path))
