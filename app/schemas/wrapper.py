# app/schemas/wrapper.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WrapperOut(BaseModel):
    model_config = ConfigDict(extra="ignore")

    wrapperId: str
    wrapperName: str
    accountId: str
    version: int
    status: str
    stages: List[Dict[str, Any]]
    createdBy: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None


class CreateWrapperResponse(BaseModel):
    status: int = 201
    message: str = "Created Successfully!"
    data: WrapperOut


class GetWrapperResponse(BaseModel):
    success: bool = True
    data: WrapperOut


class IssueOut(BaseModel):
    code: str
    message: str
    path: str


class ErrorResponse(BaseModel):
    message: str
    issues: List[IssueOut] = Field(default_factory=list)
