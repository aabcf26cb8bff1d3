"""JSON report writer."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from surveyflow import __version__
from surveyflow.models import PipelineResult

logger = logging.getLogger(__name__)

REPORT_FILENAME = "survey-report.json"


def report_path(output_dir: Path) -> Path:
    return output_dir / REPORT_FILENAME


def build_report(result: PipelineResult) -> dict[str, object]:
    """The serialisable report: camelCase keys, raw responses left out."""
    payload = result.model_dump(
        mode="json",
        by_alias=True,
        exclude={"responses", "report_path", "elapsed_seconds"},
    )
    payload["generatedAt"] = datetime.now(tz=timezone.utc).isoformat()
    payload["version"] = __version__
    return payload


def write_report(result: PipelineResult, output_dir: Path) -> Path:
    """Write the report to *output_dir* (atomic: write tmp then rename)."""
    path = report_path(output_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(
        json.dumps(build_report(result), indent=2, ensure_ascii=False),
        encoding="utf-8",
    )
    tmp.replace(path)
    logger.info("Wrote report to %s", path)
    return path


def load_report(output_dir: Path) -> dict[str, object] | None:
    """Read a previously written report, or None if there is none."""
    path = report_path(output_dir)
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))
