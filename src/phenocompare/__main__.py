"""
Command-line interface for PhenoCompare.

Compares two groups of patients node by node over the Human Phenotype
Ontology and writes per-term counts and chi-squared statistics.
"""

import click
import logging
import os
import pathlib
import requests
import sys
import typing

from stairval.notepad import create_notepad

from .compare import compare_cohorts
from .loader import (
    HPO_FILE_NAMES,
    CohortDirectoryError,
    OntologyNotFoundError,
    OntologyParseError,
    PatientFileError,
    load_cohort,
    load_ontology,
)
from .patient import COHORT_LABELS, EmptyCohortError
from .report import OutputNotWritableError, ReportInconsistencyError, check_output_writable, write_report

_HPO_RELEASES = os.getenv(
    "HPO_RELEASES_URL", "https://github.com/obophenotype/human-phenotype-ontology"
).rstrip("/")

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(context_settings=CONTEXT_SETTINGS)
def main():
    """PhenoCompare: compare two patient groups over the Human Phenotype Ontology."""
    pass


@main.command(name="download")
@click.option(
    "-i",
    "--hpo-dir",
    "hpo_dir",
    default="data",
    show_default=True,
    type=click.Path(file_okay=False),
    help="directory to save hp.json in; pass the same directory to `compare -i`",
)
@click.option(
    "-v",
    "--hpo-version",
    default=None,
    type=str,
    help="exact HPO release tag (e.g. 2025-03-03 or v2025-03-03)",
)
@click.option("--force", is_flag=True, help="Replace an existing hp.json")
def download(hpo_dir: str, hpo_version: typing.Optional[str], force: bool = False):
    """
    Fetch an HPO JSON release and check that it loads as an ontology.
    """
    out = pathlib.Path(hpo_dir) / HPO_FILE_NAMES[0]
    if out.exists() and not force:
        click.echo(f"{out} already exists, use --force to replace it")
        return
    out.parent.mkdir(parents=True, exist_ok=True)

    tag = _release_tag(hpo_version)
    click.echo(f"Downloading HPO release {tag} …")
    try:
        resp = requests.get(f"{_HPO_RELEASES}/releases/download/{tag}/hp.json", timeout=120)
        resp.raise_for_status()
    except requests.RequestException as e:
        _fail(f"Problem downloading HPO release {tag}: {e}")

    # keep any previous hp.json until the new one is known to load
    partial = out.with_name(out.name + ".part")
    partial.write_bytes(resp.content)
    try:
        ontology = load_ontology(partial)
    except OntologyParseError as e:
        partial.unlink()
        _fail(str(e))
    partial.replace(out)

    click.echo(f"Saved HPO {ontology.version or tag} ({len(ontology)} terms) to {out}")


def _release_tag(hpo_version: typing.Optional[str]) -> str:
    if hpo_version:
        return hpo_version if hpo_version.startswith("v") else f"v{hpo_version}"
    try:
        resp = requests.get(f"{_release_api_url()}/latest", timeout=30)
        resp.raise_for_status()
        return resp.json()["tag_name"]
    except (requests.RequestException, KeyError, ValueError) as e:
        _fail(f"Problem looking up the latest HPO release: {e}")


@main.command(name="compare")
@click.option(
    "-i",
    "--hpo-dir",
    "hpo_dir",
    required=True,
    type=click.Path(),
    help="directory containing hp.json (or the HPO JSON file itself)",
)
@click.option(
    "-o",
    "--output-file",
    "output_file",
    required=True,
    type=click.Path(dir_okay=False),
    help="results file",
)
@click.option(
    "-a",
    "--group-a-dir",
    "group_a_dir",
    required=True,
    type=click.Path(),
    help="directory containing group A patient files",
)
@click.option(
    "-b",
    "--group-b-dir",
    "group_b_dir",
    required=True,
    type=click.Path(),
    help="directory containing group B patient files",
)
@click.option("--workers", default=1, show_default=True, type=click.IntRange(min=1), help="threads used to close patient terms")
@click.option("--verbose-logging", is_flag=True, help="Also emit debug logs to stderr")
@click.option(
    "--log-file-path",
    type=click.Path(dir_okay=False, writable=True),
    help="Append timestamped logs to this file",
)
def compare(
    hpo_dir: str,
    output_file: str,
    group_a_dir: str,
    group_b_dir: str,
    workers: int = 1,
    verbose_logging: bool = False,
    log_file_path: typing.Optional[str] = None,
):
    """
    For each HPO term covering at least one patient, count the patients of
    group A and group B under the term and compute a chi-squared statistic.
    """
    _configure_logging(verbose_logging, log_file_path)
    notepad = create_notepad("phenocompare")

    try:
        # 1) Fail early on an unusable output path
        check_output_writable(output_file)

        # 2) Load the ontology
        ontology = load_ontology(hpo_dir)

        # 3) Read both patient groups, then the actual comparison
        cohort_a = load_cohort(group_a_dir, "A", notepad)
        cohort_b = load_cohort(group_b_dir, "B", notepad)
        result = compare_cohorts(ontology, cohort_a, cohort_b, notepad, workers=workers)

        # 4) Write the report
        write_report(result.rows, output_file)
    except OntologyNotFoundError as e:
        _fail(f"Problem reading HPO file: {e}")
    except OntologyParseError as e:
        _fail(str(e))
    except (CohortDirectoryError, PatientFileError) as e:
        _fail(f"Problem reading patient files, {e}")
    except EmptyCohortError as e:
        _fail(f"Cannot compare empty patient groups\n{e}")
    except OutputNotWritableError as e:
        _fail(str(e))
    except ReportInconsistencyError as e:
        _fail(f"Inconsistent results, no report written: {e}")

    _report_issues(notepad)
    sizes = ", ".join(f"group {label}: {n}" for label, n in zip(COHORT_LABELS, result.sizes))
    click.echo(f"Compared {sizes} patients")
    click.echo(f"Wrote {len(result.rows)} terms to {output_file}")


def _release_api_url() -> str:
    # https://github.com/<org>/<repo> -> https://api.github.com/repos/<org>/<repo>/releases
    repo = _HPO_RELEASES.split("github.com/", 1)[-1]
    return f"https://api.github.com/repos/{repo}/releases"


def _configure_logging(verbose_logging: bool, log_file_path: typing.Optional[str]) -> None:
    handlers: list[logging.Handler] = []
    if log_file_path:
        handlers.append(logging.FileHandler(log_file_path, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            handlers=handlers,
            force=True,
        )


def _fail(message: str) -> typing.NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _report_issues(notepad):
    # errors first, then warnings; neither stops the run at this point
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in input:")
        for section in notepad.iter_sections():
            for err in section.errors():
                click.echo(f"- {err.message}")
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in input:")
        for section in notepad.iter_sections():
            for w in section.warnings():
                click.echo(f"- {w.message}")


if __name__ == "__main__":
    main()
