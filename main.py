import html
from pathlib import Path
from uuid import UUID

from fastapi import FastAPI, File, UploadFile, Request, HTTPException
from fastapi.templating import Jinja2Templates
from fastapi.responses import HTMLResponse, FileResponse
import uvicorn

from taxation.converter import ProgressEvent, convert_pdf
from taxation.job_store import create_job, output_path, resolve_job_output_path, save_input_pdf, save_metadata

app = FastAPI()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv; charset=utf-8",
}
EXTRACTOR_VERSION = "taxation-v1"


def _is_pdf_upload(file: UploadFile) -> bool:
    name = (file.filename or "").lower()
    return name.endswith(".pdf")


def _log_progress(event: ProgressEvent) -> None:
    if event.stage != "pages":
        print(f"Conversion {event.stage}: {event.message}")


def _render_error_html(title: str, message: str) -> str:
    safe_error = html.escape(message, quote=True)
    return f"""
    <div class="p-4 bg-copper-light/20 border border-copper text-wood-dark rounded-sm" data-status="error">
        <strong>{html.escape(title)}</strong><br>
        {safe_error}
    </div>
    """


def _render_job_result_html(job_id: str, rows: int, kinds: dict[str, int]) -> str:
    safe_job_id = html.escape(job_id)
    kinds_html = "".join(
        f"<li><code class=\"font-mono\">{html.escape(kind)}</code>: {count}</li>" for kind, count in kinds.items()
    ) or "<li>-</li>"
    return f"""
    <section class="mt-4 rounded-sm border border-stone/30 bg-paper-dark p-4 text-ink" data-status="success" data-job-id="{safe_job_id}">
        <div class="text-sm font-semibold text-wood-dark">Conversion finished</div>
        <div class="mt-2 text-sm">Job ID: <code class="font-mono">{safe_job_id}</code></div>
        <div class="mt-1 text-sm">Records: {rows}</div>
        <ul class="mt-1 text-sm">{kinds_html}</ul>
        <a href="/jobs/{safe_job_id}/records.xlsx" class="mt-3 inline-block rounded-sm border border-wood px-3 py-2 text-sm font-semibold text-wood hover:bg-paper">
            Download XLSX
        </a>
        <a href="/jobs/{safe_job_id}/records.csv" class="mt-3 ml-2 inline-block rounded-sm border border-wood px-3 py-2 text-sm font-semibold text-wood hover:bg-paper">
            Download CSV
        </a>
    </section>
    """


def _run_conversion_job(file_bytes: bytes, source_filename: str):
    job = create_job(source_filename=source_filename)
    input_pdf_path = save_input_pdf(job, file_bytes)

    result = convert_pdf(
        pdf_path=input_pdf_path,
        output_xlsx=output_path(job, "xlsx"),
        output_csv=output_path(job, "csv"),
        on_progress=_log_progress,
    )
    save_metadata(
        job,
        {
            "files": [output_path(job, "xlsx").name, output_path(job, "csv").name],
            "record_count": result["rows"],
            "kinds": result["kinds"],
            "columns": result["columns"],
            "extractor_version": EXTRACTOR_VERSION,
        },
    )
    return job, result


@app.get("/", response_class=HTMLResponse)
async def read_root(request: Request):
    return templates.TemplateResponse(request, "index.html", {"request": request})


@app.post("/convert/upload", response_class=HTMLResponse)
async def handle_convert_upload(file: UploadFile = File(...)):
    if not _is_pdf_upload(file):
        return _render_error_html("Error:", "Please upload a valid PDF file.")

    try:
        file_bytes = await file.read()
        job, result = _run_conversion_job(
            file_bytes=file_bytes,
            source_filename=file.filename or "upload.pdf",
        )
        return _render_job_result_html(
            job_id=job.job_id,
            rows=int(result["rows"]),
            kinds=dict(result["kinds"]),
        )
    except Exception as exc:
        print(f"Taxation conversion failed: {exc}")
        return _render_error_html("Error Processing PDF:", str(exc))


def _download_job_file(job_id: UUID, file_kind: str):
    job_id_str = str(job_id)
    try:
        path = resolve_job_output_path(job_id=job_id_str, file_kind=file_kind)
    except ValueError:
        raise HTTPException(status_code=404, detail="Job not found")
    if not path.parent.exists():
        raise HTTPException(status_code=404, detail="Job not found")
    if not path.exists():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(
        path=path,
        media_type=MEDIA_TYPES[file_kind],
        filename=path.name,
    )


@app.get("/jobs/{job_id}/records.xlsx")
async def download_records_xlsx(job_id: UUID):
    return _download_job_file(job_id=job_id, file_kind="xlsx")


@app.get("/jobs/{job_id}/records.csv")
async def download_records_csv(job_id: UUID):
    return _download_job_file(job_id=job_id, file_kind="csv")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
