from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile
from pydantic import ValidationError

from backoffice.application import get_batch_service
from backoffice.core.identifiers import read_identifiers
from backoffice.core.schema import ActionResult, BatchSubmission, FileResult, ReportRequest, SubjectPayload

router = APIRouter(prefix="/batches", tags=["batches"])


@router.post("")
async def submit_batch(payload: BatchSubmission) -> ActionResult:
    return await get_batch_service().submit(payload)


@router.post("/upload")
async def upload_batch(
    file: UploadFile = File(...),
    provider: str = Form(...),
    owner_id: str = Form(...),
    kind: str = Form("fgts"),
    v8_provider: str | None = Form(None),
    owner_email: str = Form(""),
) -> ActionResult:
    """Read CPFs (and optional contact columns) from a spreadsheet and submit them as a batch."""
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file must have a filename")

    safe_name = Path(file.filename).name
    with tempfile.TemporaryDirectory() as tmp_dir:
        path = Path(tmp_dir) / safe_name
        try:
            with path.open("wb") as target:
                shutil.copyfileobj(file.file, target)
        finally:
            await file.close()
        try:
            sheet = read_identifiers(path)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    if not sheet.identifiers:
        raise HTTPException(status_code=400, detail="Nenhum CPF válido encontrado no arquivo.")

    try:
        submission = BatchSubmission(
            identifiers=sheet.identifiers,
            provider=provider,
            kind=kind,
            v8_provider=v8_provider or None,
            owner_id=owner_id,
            owner_email=owner_email,
            file_name=safe_name,
            subjects=[
                SubjectPayload(
                    cpf=subject.cpf,
                    nome=subject.name,
                    data_nascimento=subject.birth_date,
                    telefone_ddd=subject.phone_area_code,
                    telefone_numero=subject.phone_number,
                )
                for subject in sheet.subjects
            ],
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors(include_url=False, include_context=False)) from exc
    result = await get_batch_service().submit(submission)
    if sheet.skipped and result.status == "success":
        result.message = f"{result.message} {sheet.skipped} linha(s) ignorada(s) sem CPF válido."
    return result


@router.get("")
async def list_batches(owner_id: str | None = Query(default=None)) -> dict:
    items = get_batch_service().list(owner_id)
    return {"items": [item.model_dump(mode="json") for item in items]}


@router.post("/report")
async def generate_report(payload: ReportRequest) -> FileResult:
    return get_batch_service().generate_report(payload)


@router.get("/{batch_id}")
async def get_batch(batch_id: str) -> dict:
    view = get_batch_service().get(batch_id)
    if view is None:
        raise HTTPException(status_code=404, detail="batch not found")
    return view.model_dump(mode="json")


@router.post("/{batch_id}/reprocess")
async def reprocess_batch(batch_id: str) -> ActionResult:
    try:
        return await get_batch_service().reprocess(batch_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="batch not found") from exc


@router.get("/{batch_id}/report")
async def batch_report(batch_id: str) -> FileResult:
    try:
        return get_batch_service().report_for_batch(batch_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="batch not found") from exc
