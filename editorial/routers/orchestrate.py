import logging
import uuid
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from editorial.auth.automation import require_automation_token
from editorial.deps import get_db
from editorial.services import orchestrator
from editorial.services.prompts import DEFAULT_INCLINATION, DEFAULT_STYLE, INCLINATIONS, STYLES

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/automation", tags=["automation"], dependencies=[Depends(require_automation_token)])


class OrchestrateIn(BaseModel):
    candidate_id: int = Field(..., ge=1)
    max_items: int = Field(1, ge=1, le=2)
    news_mode: Literal["grave", "viral", "any"] = "grave"
    editorial_inclination: str = DEFAULT_INCLINATION
    editorial_style: str = DEFAULT_STYLE
    news_links: Optional[List[str]] = Field(None, max_length=5)
    editorial_notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("editorial_inclination")
    @classmethod
    def _inclination(cls, v: str) -> str:
        if v not in INCLINATIONS:
            raise ValueError(f"editorial_inclination must be one of {sorted(INCLINATIONS)}")
        return v

    @field_validator("editorial_style")
    @classmethod
    def _style(cls, v: str) -> str:
        if v not in STYLES:
            raise ValueError(f"editorial_style must be one of {sorted(STYLES)}")
        return v


@router.post("/editorial-orchestrate")
def editorial_orchestrate(
    body: OrchestrateIn,
    test: bool = Query(False, description="Persist one labelled draft without external calls"),
    db: Session = Depends(get_db),
):
    request_id = uuid.uuid4().hex
    logger.info("[%s] orchestrate candidate=%s max_items=%s mode=%s test=%s",
                request_id, body.candidate_id, body.max_items, body.news_mode, test)
    options = orchestrator.RunOptions(
        candidate_id=body.candidate_id,
        max_items=body.max_items,
        news_mode=body.news_mode,
        inclination=body.editorial_inclination,
        style=body.editorial_style,
        news_links=body.news_links or [],
        notes=body.editorial_notes,
        test_mode=test,
    )
    try:
        result = orchestrator.orchestrate(db, options, request_id)
    except orchestrator.OrchestrationError as e:
        payload = {"ok": False, "error": e.error, "request_id": request_id, "engines": e.engines}
        if e.detail:
            payload["detail"] = e.detail
        return JSONResponse(status_code=e.status_code, content=payload)
    return JSONResponse(status_code=200, content=result)
