"""Per-upload job directories for the web app.

A job directory holds the uploaded ``input.pdf``, the record table in each
output format and a ``metadata.json`` summary of the conversion.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict
from uuid import UUID, uuid4

JOBS_ROOT = Path(os.getenv("TAXATION_JOBS_ROOT", "/tmp/taxation/jobs"))
INPUT_PDF_NAME = "input.pdf"
METADATA_NAME = "metadata.json"
# Output format -> file name inside the job directory; the download URLs use the same names.
OUTPUT_FILE_NAMES: Dict[str, str] = {
    "xlsx": "records.xlsx",
    "csv": "records.csv",
}


@dataclass(frozen=True)
class JobContext:
    job_id: str
    job_dir: Path
    source_filename: str
    created_at: str

    @property
    def input_pdf_path(self) -> Path:
        return self.job_dir / INPUT_PDF_NAME


def _parse_job_id(job_id: str) -> UUID:
    parsed = UUID(job_id)
    if parsed.version != 4:
        raise ValueError("job_id must be UUID v4")
    return parsed


def create_job(source_filename: str) -> JobContext:
    job_id = str(uuid4())
    job_dir = JOBS_ROOT / job_id
    job_dir.mkdir(parents=True, exist_ok=False)
    return JobContext(
        job_id=job_id,
        job_dir=job_dir,
        source_filename=Path(source_filename).name or INPUT_PDF_NAME,
        created_at=datetime.now(timezone.utc).isoformat(),
    )


def output_file_name(file_kind: str) -> str:
    try:
        return OUTPUT_FILE_NAMES[file_kind]
    except KeyError:
        raise ValueError(f"Unsupported output kind: {file_kind}") from None


def output_path(job: JobContext, file_kind: str) -> Path:
    return job.job_dir / output_file_name(file_kind)


def save_input_pdf(job: JobContext, pdf_bytes: bytes) -> Path:
    path = job.input_pdf_path
    path.write_bytes(pdf_bytes)
    return path


def metadata_path(job: JobContext) -> Path:
    return job.job_dir / METADATA_NAME


def save_metadata(job: JobContext, conversion: Dict[str, Any]) -> Path:
    """Write the job identity plus the conversion summary (counts, columns, files)."""
    payload = {
        "job_id": job.job_id,
        "source_filename": job.source_filename,
        "created_at": job.created_at,
        **conversion,
    }
    path = metadata_path(job)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def resolve_job_output_path(job_id: str, file_kind: str) -> Path:
    """Path of a job's output file; raises ``ValueError`` for a foreign id or unknown kind."""
    parsed = _parse_job_id(job_id)
    return JOBS_ROOT / str(parsed) / output_file_name(file_kind)
