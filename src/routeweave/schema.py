from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, model_validator


class CompletionRequest(BaseModel):
    path: Optional[str] = None
    text: Optional[str] = None
    offset: int
    describe_items: Optional[bool] = None
    config_path: Optional[str] = None

    @model_validator(mode="after")
    def _require_source(self) -> "CompletionRequest":
        if self.path is None and self.text is None:
            raise ValueError("either path or text is required")
        if self.offset < 0:
            raise ValueError("offset must be non-negative")
        return self


class CompletionItemDTO(BaseModel):
    label: str
    detail: Optional[str] = None


class CompletionResponse(BaseModel):
    kind: str = "none"
    items: List[CompletionItemDTO] = []
    errors: List[str] = []


class CheckRequest(BaseModel):
    paths: List[str] = []
    text: Optional[str] = None
    config_path: Optional[str] = None


class PositionDTO(BaseModel):
    line: int
    character: int


class DiagnosticDTO(BaseModel):
    path: Optional[str] = None
    code: str
    message: str
    severity: str = "warning"
    start: PositionDTO
    end: PositionDTO


class CheckResponse(BaseModel):
    exit_code: int = 0
    diagnostics: List[DiagnosticDTO] = []
    errors: List[str] = []
