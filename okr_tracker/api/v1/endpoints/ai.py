import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from okr_tracker.core.security import AuthUser, get_current_user
from okr_tracker.schemas.aiSchema import SuggestCoursesRequest, SuggestKPIsRequest
from okr_tracker.services.AISuggestionService import AIServiceError, AISuggestionService
from okr_tracker.services.SuggestionCache import SuggestionCache, build_cache_key

router = APIRouter(prefix="/ai", tags=["ai"])
logger = logging.getLogger(__name__)

INVALID_KPI_REQUEST = "Ungültige Anfrage. Bitte OKR-Titel (min. 3 Zeichen) und Kategorie angeben."
INVALID_COURSE_REQUEST = "Ungültige Anfrage. Optionale Felder: craft_focus, department, okr_categories."


def get_suggestion_cache(request: Request) -> SuggestionCache:
    return request.app.state.suggestion_cache


def get_ai_service(request: Request) -> AISuggestionService:
    return request.app.state.ai_service


async def parse_body(request: Request, model, detail: str):
    """Validate the raw JSON body; any parse or schema error is one fixed 400."""
    try:
        raw = await request.json()
        return model.model_validate(raw)
    except (ValueError, ValidationError):
        raise HTTPException(status_code=400, detail=detail)


@router.post("/suggest-kpis")
async def suggest_kpis(
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    cache: SuggestionCache = Depends(get_suggestion_cache),
    service: AISuggestionService = Depends(get_ai_service)
):
    """Key-result suggestions for an OKR title, served from the cache when possible."""
    body = await parse_body(request, SuggestKPIsRequest, INVALID_KPI_REQUEST)

    cache_key = build_cache_key(body.okr_title, body.category.value, body.existing_krs)
    cached = cache.get(cache_key)
    if cached is not None:
        logger.info("Suggestion cache hit", extra={"user_id": current_user.id, "cached": True})
        return cached

    try:
        suggestions = await service.suggest_key_results(body)
    except AIServiceError as e:
        logger.error("KPI suggestion failed", extra={"user_id": current_user.id, "error": e.message})
        raise HTTPException(status_code=e.status_code, detail=e.message)

    response = suggestions.model_dump()
    cache.set(cache_key, response)
    return response


@router.post("/suggest-courses")
async def suggest_courses(
    request: Request,
    current_user: AuthUser = Depends(get_current_user),
    service: AISuggestionService = Depends(get_ai_service)
):
    """Course recommendations for a craft focus, department and OKR categories."""
    body = await parse_body(request, SuggestCoursesRequest, INVALID_COURSE_REQUEST)

    try:
        recommendations = await service.suggest_courses(body)
    except AIServiceError as e:
        logger.error("Course suggestion failed", extra={"user_id": current_user.id, "error": e.message})
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return recommendations.model_dump()
