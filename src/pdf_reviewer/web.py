from __future__ import annotations

from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from .config import configure_logging
from .session import AppStatus, ReviewSession
from .writer import (
    CATEGORY_LABELS,
    XLSX_MEDIA_TYPE,
    corrected_text_filename,
    export_corrected_text,
    export_spreadsheet,
    spreadsheet_filename,
)

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES = Jinja2Templates(directory=str(BASE_DIR / "templates"))

router = APIRouter()


def get_session(request: Request) -> ReviewSession:
    return request.app.state.session


def _back_to_index() -> RedirectResponse:
    return RedirectResponse("/", status_code=303)


def _attachment(filename: str) -> dict:
    return {"Content-Disposition": f"attachment; filename*=utf-8''{quote(filename)}"}


@router.get("/", response_class=HTMLResponse)
async def index(request: Request, session: ReviewSession = Depends(get_session)):
    return TEMPLATES.TemplateResponse(
        request,
        "index.html",
        {
            "session": session,
            "statuses": AppStatus,
            "category_labels": CATEGORY_LABELS,
        },
    )


@router.get("/api/session")
async def api_session(session: ReviewSession = Depends(get_session)):
    return JSONResponse(content=session.snapshot())


@router.post("/target")
async def upload_target(
    file: UploadFile = File(...),
    session: ReviewSession = Depends(get_session),
):
    content = await file.read()
    await session.upload_target(file.filename or "", content)
    return _back_to_index()


@router.post("/target/delete")
async def remove_target(session: ReviewSession = Depends(get_session)):
    session.remove_target()
    return _back_to_index()


@router.post("/references")
async def upload_references(
    files: List[UploadFile] = File(...),
    session: ReviewSession = Depends(get_session),
):
    batch = [(upload.filename or "", await upload.read()) for upload in files]
    await session.upload_references(batch)
    return _back_to_index()


@router.post("/references/{doc_id}/delete")
async def remove_reference(doc_id: str, session: ReviewSession = Depends(get_session)):
    session.remove_reference(doc_id)
    return _back_to_index()


@router.post("/analyze")
async def analyze(session: ReviewSession = Depends(get_session)):
    await session.start_analysis()
    return _back_to_index()


@router.post("/reset")
async def reset(session: ReviewSession = Depends(get_session)):
    session.reset()
    return _back_to_index()


@router.get("/download/text")
async def download_text(session: ReviewSession = Depends(get_session)):
    if session.result is None or session.target is None:
        raise HTTPException(status_code=404, detail="Nenhuma revisão disponível.")
    return Response(
        content=export_corrected_text(session.result),
        media_type="text/plain; charset=utf-8",
        headers=_attachment(corrected_text_filename(session.target.name)),
    )


@router.get("/download/xlsx")
async def download_spreadsheet(session: ReviewSession = Depends(get_session)):
    if session.result is None or session.target is None:
        raise HTTPException(status_code=404, detail="Nenhuma revisão disponível.")
    return Response(
        content=export_spreadsheet(session.result.corrections),
        media_type=XLSX_MEDIA_TYPE,
        headers=_attachment(spreadsheet_filename(session.target.name)),
    )


def create_app(session: Optional[ReviewSession] = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title="Revisor Pro AI")
    app.state.session = session or ReviewSession()
    app.include_router(router)
    return app


app = create_app()
