"""
Entry points for each kind of input. They differ only in how submissions are
read; every one of them hands off to the same SubmissionPipeline.
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Sequence

from .airtable import RecordStore
from .core import SubmissionPipeline, SubmissionResult
from .csv_parser import parse_csv
from .errors import BatchError, SearchError
from .submissions import (
    CsvLayout,
    StoreFields,
    Submission,
    extract_from_references,
    extract_from_store,
    extract_submissions,
)

logger = logging.getLogger("imagepipeline")


def read_text(path: Path) -> str:
    try:
        # utf-8-sig drops the BOM spreadsheet exports like to add
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise BatchError(f"Could not read {path}: {exc}") from exc


def load_csv_submissions(text: str, layout: CsvLayout = CsvLayout()) -> List[Submission]:
    rows = parse_csv(text)
    submissions = extract_submissions(rows, layout)
    logger.info("Found %d submissions with images in %d CSV rows", len(submissions), max(len(rows) - 1, 0))
    return submissions


def load_reference_submissions(path: Path) -> List[Submission]:
    try:
        payload: Any = json.loads(read_text(path))
    except json.JSONDecodeError as exc:
        raise BatchError(f"{path} is not valid JSON: {exc}") from exc

    # Accept a bare list or the {"clubs": [...]} request body shape.
    if isinstance(payload, dict):
        payload = payload.get("clubs") or payload.get("submissions") or []
    if not isinstance(payload, list):
        raise BatchError(f"{path} must contain a list of submissions")
    return extract_from_references([item for item in payload if isinstance(item, dict)])


def load_store_submissions(store: RecordStore, fields: StoreFields = StoreFields()) -> List[Submission]:
    try:
        records = store.list_records()
    except SearchError as exc:
        raise BatchError(str(exc)) from exc
    submissions = extract_from_store(records, fields)
    logger.info("Found %d submissions with images in %d store records", len(submissions), len(records))
    return submissions


def process_csv(pipeline: SubmissionPipeline, path: Path, layout: CsvLayout = CsvLayout()) -> List[SubmissionResult]:
    return _run(pipeline, load_csv_submissions(read_text(path), layout))


def process_references(pipeline: SubmissionPipeline, path: Path) -> List[SubmissionResult]:
    return _run(pipeline, load_reference_submissions(path))


def process_store(
    pipeline: SubmissionPipeline,
    store: RecordStore,
    fields: StoreFields = StoreFields(),
) -> List[SubmissionResult]:
    return _run(pipeline, load_store_submissions(store, fields))


def _run(pipeline: SubmissionPipeline, submissions: Sequence[Submission]) -> List[SubmissionResult]:
    if not submissions:
        logger.warning("No submissions with images found")
        return []
    return pipeline.run(submissions)
