from typing import Literal

from pydantic import BaseModel, Field

Level = Literal["Low", "Med", "High"]


class ThemeModel(BaseModel):
    title: str
    custom_title: str | None = None
    display_title: str
    summary: str
    quotes: list[str]
    impact: Level | None = None
    effort: Level | None = None


class MergeStatsModel(BaseModel):
    text_count: int = Field(..., ge=0)
    csv_count: int = Field(..., ge=0)
    unique_count: int = Field(..., ge=0)
    capped: bool
    total_before_cap: int = Field(..., ge=0)


class CSVPreviewResponse(BaseModel):
    filename: str
    delimiter: Literal[",", ";"]
    headers: list[str] | None = None
    column_index: int = Field(..., ge=0)
    auto_selected_column: str | None = None
    total_rows: int = Field(..., ge=0)
    non_empty_rows: int = Field(..., ge=0)
    text_lines: list[str]


class AnalyzeResponse(BaseModel):
    stats: MergeStatsModel
    theme_count: int = Field(..., ge=0)
    themes: list[ThemeModel]


class RenameRequest(BaseModel):
    title: str


class FeedbackRequest(BaseModel):
    message: str
    intent: str = "Analyze feedback"
    rating: int | None = Field(None, ge=1, le=5)
    email: str = ""
    page_url: str = ""
    user_agent: str = ""
    include_context: bool = False


class FeedbackResponse(BaseModel):
    title: str
    body: str
    issue_url: str
    mailto_url: str
    saved_count: int = Field(..., ge=1)


class IssuesURLRequest(BaseModel):
    url: str
