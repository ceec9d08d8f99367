"""
Router for metadata extraction endpoints.

Handles:
- Listing the extractable fields
- Running a batch extraction over uploaded PDFs
"""

import logging
import tempfile
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from ..config import ExtractionConfig, get_extraction_config
from ..models import BatchExtractionResponse, FieldInfo, FieldListResponse
from ..services.batch_service import BatchService, get_batch_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["extract"])


def _parse_fields(fields: str | None) -> list[str] | None:
    """Split a comma-separated field list; blank means the defaults."""
    if fields is None:
        return None
    names = [name.strip() for name in fields.split(",") if name.strip()]
    return names or None


@router.get("/fields", response_model=FieldListResponse)
async def list_fields(
    config: ExtractionConfig = Depends(get_extraction_config),
) -> FieldListResponse:
    """List the metadata fields that can be requested."""
    return FieldListResponse(
        fields=[
            FieldInfo(name=name, description=description)
            for name, description in config.field_specification.items()
        ],
        default_fields=list(config.default_fields),
    )


@router.post("/extract", response_model=BatchExtractionResponse)
async def extract(
    files: Annotated[list[UploadFile], File(description="PDF files to process")],
    fields: Annotated[
        str | None, Form(description="Comma-separated field names (defaults if omitted)")
    ] = None,
    delay_seconds: Annotated[
        float | None, Form(ge=0.0, description="Pause between documents in seconds")
    ] = None,
    batch_service: BatchService = Depends(get_batch_service),
) -> BatchExtractionResponse:
    """
    Extract metadata from the uploaded PDFs.

    Files are processed one after another; documents that fail are reported
    in the error log while the others still produce rows.
    """
    requested = _parse_fields(fields)

    with tempfile.TemporaryDirectory(prefix="summarizer-") as tmp_dir:
        paths: list[Path] = []
        try:
            for upload in files:
                filename = Path(upload.filename or "").name
                if not filename:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="No filename provided",
                    )
                if not filename.lower().endswith(".pdf"):
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"Only PDF files are accepted: {filename}",
                    )

                file_bytes = await upload.read()
                if not file_bytes:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"Empty file provided: {filename}",
                    )

                path = Path(tmp_dir) / filename
                if path.exists():
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=f"Duplicate filename: {filename}",
                    )
                path.write_bytes(file_bytes)
                paths.append(path)
                logger.info("Received %s (%d bytes)", filename, len(file_bytes))
        finally:
            for upload in files:
                await upload.close()

        result = await run_in_threadpool(
            batch_service.process_batch, paths, requested, delay_seconds
        )

    return BatchExtractionResponse(
        columns=[str(column) for column in result.results.columns],
        rows=result.results.to_dict(orient="records"),
        error_log=result.error_log,
        summary=result.summary,
        report=result.report,
    )
