from __future__ import annotations

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from column_preferences import ColumnPreferences
from feedback_analysis import Theme
from feedback_collection import FeedbackOutbox, build_payload
from feedback_ingestion import decode_csv_bytes, extract_text_from_csv, parse_csv_text, select_column, validate_upload
from generate_artifacts import theme_to_text

from .openai_client import complete_prompt
from .pipeline import AnalysisRun, build_analyze_response, default_store, preview_csv, run_analysis, theme_to_model
from .schemas import (
    AnalyzeResponse,
    CSVPreviewResponse,
    FeedbackRequest,
    FeedbackResponse,
    IssuesURLRequest,
    RenameRequest,
    ThemeModel,
)

app =FastAPI(title="Chorus Feedback Themes", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


LAST_RUN = AnalysisRun()
STORE = default_store()
PREFERENCES = ColumnPreferences(STORE)
OUTBOX = FeedbackOutbox(STORE)


def _require_run() -> AnalysisRun:
    if not LAST_RUN.themes:
        raise HTTPException(status_code=404, detail="No themes available. Run /analyze first.")
    return LAST_RUN


def _theme_at(index: int) -> Theme:
    run = _require_run()
    if index < 0 or index >= len(run.themes):
        raise HTTPException(status_code=404, detail=f"Theme {index} does not exist")
    return run.themes[index]


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/csv/preview", response_model=CSVPreviewResponse)
async def csv_preview(
    file: UploadFile = File(...),
    column_index: int | None = Form(None, ge=0),
    remember: bool = Form(True),
) -> CSVPreviewResponse:
    content = await file.read()
    try:
        return preview_csv(
            file.filename or "",
            content,
            preferences=PREFERENCES,
            column_index=column_index,
            remember=remember,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze(
    text: str = Form(""),
    file: UploadFile | None = File(None),
    column_index: int | None = Form(None, ge=0),
) -> AnalyzeResponse:
    csv_lines: list[str] = []
    try:
        if file is not None:
            content = await file.read()
            validate_upload(file.filename or "", len(content))
            table = parse_csv_text(decode_csv_bytes(content))
            if column_index is None:
                column_index, _ = select_column(table, PREFERENCES)
            csv_lines = extract_text_from_csv(table, column_index).text_lines

        merge, run = await run_in_threadpool(run_analysis, text, csv_lines, complete=complete_prompt)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    LAST_RUN.lines = run.lines
    LAST_RUN.themes = run.themes
    LAST_RUN.stats = run.stats
    return build_analyze_response(merge, run)


@app.post("/themes/{index}/title", response_model=ThemeModel)
def rename_theme(index: int, request: RenameRequest) -> ThemeModel:
    theme = _theme_at(index)
    try:
        theme.rename(request.title)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return theme_to_model(theme)


@app.delete("/themes/{index}/title", response_model=ThemeModel)
def reset_theme_title(index: int) -> ThemeModel:
    theme = _theme_at(index)
    theme.reset_title()
    return theme_to_model(theme)


@app.get("/themes/{index}/text")
def theme_copy_text(index: int) -> PlainTextResponse:
    return PlainTextResponse(content=theme_to_text(_theme_at(index)))


@app.post("/feedback", response_model=FeedbackResponse)
def submit_feedback(request: FeedbackRequest, http_request: Request) -> FeedbackResponse:
    try:
        payload = build_payload(
            request.message,
            intent=request.intent,
            rating=request.rating,
            email=request.email,
            page_url=request.page_url or str(http_request.url),
            user_agent=request.user_agent or http_request.headers.get("user-agent", ""),
            include_context=request.include_context,
            context=LAST_RUN.feedback_context(),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    saved_count = OUTBOX.save(payload)
    title, body, issue_link, mailto_link = OUTBOX.draft_links(payload)
    return FeedbackResponse(
        title=title,
        body=body,
        issue_url=issue_link,
        mailto_url=mailto_link,
        saved_count=saved_count,
    )


@app.put("/feedback/issues-url")
def set_issues_url(request: IssuesURLRequest) -> dict[str, str]:
    try:
        return {"url": OUTBOX.set_issues_url(request.url)}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/download/markdown")
def download_markdown() -> PlainTextResponse:
    run = _require_run()
    return PlainTextResponse(
        content=run.markdown(),
        media_type="text/markdown",
        headers={"Content-Disposition": 'attachment; filename="chorus-themes.md"'},
    )


@app.get("/download/labeled-csv")
def download_labeled_csv() -> PlainTextResponse:
    run = _require_run()
    return PlainTextResponse(
        content=run.labeled_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="chorus-labeled.csv"'},
    )
