"""Pydantic models for API request/response schemas."""

from typing import Any, Optional
from pydantic import BaseModel, Field


class JurisdictionModel(BaseModel):
    """Where the matter is being litigated."""
    state: str = Field(..., description="Indian State, e.g. 'Maharashtra'")
    city: Optional[str] = Field(None, description="City or district")
    country: str = Field("IN", description="ISO country code")


class HistoryTurn(BaseModel):
    """A prior chat turn supplied by the client."""
    role: str = Field(..., description="user, assistant or system")
    content: str


class ChatRequestModel(BaseModel):
    """Request for one chat turn."""
    message: str = Field(..., min_length=1, description="Counsel's message")
    caseId: Optional[str] = Field(None, description="Case id; ids starting with 'temp_' are guest sessions")
    sessionId: Optional[str] = Field(None, description="Chat session under the case")
    legalSide: Optional[str] = Field(None, description="PROSECUTION, DEFENSE, CORPORATE, FINANCIAL, CIVIL or GENERAL")
    history: list[HistoryTurn] = Field(default_factory=list, description="Prior turns, oldest first")

    class Config:
        json_schema_extra = {
            "example": {
                "message": "What is the punishment under Section 302?",
                "caseId": "case_abc123",
                "legalSide": "DEFENSE",
            }
        }


class ResearchRequestModel(BaseModel):
    """Request for grounded legal research."""
    query: str = Field(..., min_length=1, description="Research question")
    caseId: Optional[str] = Field(None, description="Case to record the research under")
    jurisdiction: Optional[JurisdictionModel] = Field(None, description="Overrides the case jurisdiction")


class AnalyzeRequestModel(BaseModel):
    """Request for tactical analysis or drafting."""
    text: str = Field(..., description="Text to analyze, or the drafting directive in draft mode")
    caseId: Optional[str] = None
    legalSide: Optional[str] = None
    mode: Optional[str] = Field(None, description="'draft' switches to drafting mode")
    currentDraft: Optional[str] = Field(None, description="Existing draft to update")
    docId: Optional[str] = Field(None, description="Case document the analysis belongs to")


class RedraftRequestModel(BaseModel):
    """Request to rewrite a document."""
    text: str
    instructions: Optional[str] = None
    caseId: Optional[str] = None
    legalSide: Optional[str] = None


class CompareRequestModel(BaseModel):
    """Request to compare document versions."""
    texts: list[str] = Field(..., description="Two or more document versions")
    legalSide: Optional[str] = None


class SuccessEnvelope(BaseModel):
    """Standard success response."""
    status: str = "success"
    data: Any


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str
    timestamp: str
    model_gateway_configured: bool
    primary_search_configured: bool
    pending_summaries: int


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    message: Optional[str] = None
