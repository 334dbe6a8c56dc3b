import json
import logging
import zipfile
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import requests

from .core import SubmissionResult

logger = logging.getLogger("imagepipeline")


def summarize(results: Sequence[SubmissionResult]) -> Dict[str, int]:
    return {
        "submissions": len(results),
        "assets": sum(len(r.assets) for r in results),
        "slot_errors": sum(len(r.slot_errors) for r in results),
        "reconciled": sum(1 for r in results if r.reconciliation and r.reconciliation.matched),
        "reconcile_failures": sum(1 for r in results if r.reconciliation and not r.reconciliation.matched),
    }


def write_report(results: Sequence[SubmissionResult], path: Path) -> Dict[str, Any]:
    report = {
        "summary": summarize(results),
        "results": [r.to_dict() for r in results],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
    return report


def export_zip(
    results: Sequence[SubmissionResult],
    destination: Path,
    session: Optional[requests.Session] = None,
    timeout: float = 30.0,
) -> int:
    """
    Download every published asset into a ZIP with one folder per
    submission slug. Assets that fail to download are logged and left out.

    Returns the number of files written.
    """
    session = session or requests.Session()
    destination.parent.mkdir(parents=True, exist_ok=True)
    written = 0

    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_STORED) as archive:
        for result in results:
            for asset in result.assets:
                try:
                    resp = session.get(asset.published_url, timeout=timeout)
                    resp.raise_for_status()
                except requests.RequestException as exc:
                    logger.warning("Failed to download %s for export: %s", asset.filename, exc)
                    continue
                archive.writestr(f"{result.normalized_slug}/{asset.filename}", resp.content)
                written += 1

    logger.info("Wrote %d files to %s", written, destination)
    return written
