import json

import pytest

from okr_tracker.main import app
from okr_tracker.schemas.aiSchema import SuggestKPIsResponse
from okr_tracker.services.AISuggestionService import (
    AIInvalidResponse,
    AISuggestionService,
    AIServiceUnavailable,
    parse_model_output,
)
from tests.helpers import auth_headers

KPI_ANSWER = {
    "suggestions": [
        {"title": "NPS steigern", "start_value": 20, "target_value": 40, "unit": "Punkte"},
        {"title": "Antwortzeit senken", "start_value": 0, "target_value": 24, "unit": "Stunden"},
    ]
}
COURSE_ANSWER = {
    "recommendations": [
        {"title": "UX Research Grundlagen", "category": "design", "reason": "Passt zum Craft-Fokus"},
    ]
}


class FakeAIService(AISuggestionService):
    def __init__(self, answer=None, error=None):
        super().__init__()
        self.answer = answer
        self.error = error
        self.prompts = []

    async def complete(self, system_prompt, user_prompt):
        self.prompts.append(user_prompt)
        if self.error:
            raise self.error
        return self.answer


@pytest.fixture
def use_service(monkeypatch):
    def _use(service):
        monkeypatch.setattr(app.state, "ai_service", service)
        return service

    return _use


async def test_suggest_kpis_uses_cache(client, member, use_service):
    service = use_service(FakeAIService("```json\n" + json.dumps(KPI_ANSWER) + "\n```"))
    body = {"okr_title": "Kundenzufriedenheit erhöhen", "category": "performance"}

    first = await client.post("/api/ai/suggest-kpis", json=body, headers=auth_headers(member.id))
    assert first.status_code == 200
    assert first.json() == KPI_ANSWER

    second = await client.post("/api/ai/suggest-kpis", json=body, headers=auth_headers(member.id))
    assert second.json() == KPI_ANSWER
    assert len(service.prompts) == 1


async def test_existing_key_results_change_the_cache_key(client, member, use_service):
    service = use_service(FakeAIService(json.dumps(KPI_ANSWER)))
    body = {"okr_title": "Kundenzufriedenheit erhöhen", "category": "performance"}

    await client.post("/api/ai/suggest-kpis", json=body, headers=auth_headers(member.id))
    await client.post(
        "/api/ai/suggest-kpis",
        json={**body, "existing_krs": ["NPS steigern"]},
        headers=auth_headers(member.id),
    )
    assert len(service.prompts) == 2
    assert "NPS steigern" in service.prompts[1]


@pytest.mark.parametrize("body", [
    {"okr_title": "ab", "category": "performance"},
    {"okr_title": "Kundenzufriedenheit erhöhen", "category": "sales"},
    {"category": "performance"},
])
async def test_suggest_kpis_rejects_invalid_body(client, member, use_service, body):
    service = use_service(FakeAIService(json.dumps(KPI_ANSWER)))
    response = await client.post("/api/ai/suggest-kpis", json=body, headers=auth_headers(member.id))
    assert response.status_code == 400
    assert response.json() == {
        "error": "Ungültige Anfrage. Bitte OKR-Titel (min. 3 Zeichen) und Kategorie angeben."
    }
    assert service.prompts == []


async def test_suggest_kpis_rejects_non_json_body(client, member, use_service):
    use_service(FakeAIService(json.dumps(KPI_ANSWER)))
    response = await client.post(
        "/api/ai/suggest-kpis",
        content=b"not json",
        headers={**auth_headers(member.id), "Content-Type": "application/json"},
    )
    assert response.status_code == 400


async def test_suggest_kpis_without_provider(client, member, use_service):
    use_service(AISuggestionService())
    response = await client.post(
        "/api/ai/suggest-kpis",
        json={"okr_title": "Kundenzufriedenheit erhöhen", "category": "performance"},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 503
    assert response.json() == {"error": "AI-Service nicht konfiguriert"}


async def test_suggest_kpis_invalid_model_output_is_not_cached(client, member, use_service):
    service = use_service(FakeAIService("Hier sind meine Vorschläge"))
    body = {"okr_title": "Kundenzufriedenheit erhöhen", "category": "performance"}

    response = await client.post("/api/ai/suggest-kpis", json=body, headers=auth_headers(member.id))
    assert response.status_code == 502
    assert response.json() == {"error": "Ungültige AI-Antwort. Bitte erneut versuchen."}

    service.answer = json.dumps(KPI_ANSWER)
    response = await client.post("/api/ai/suggest-kpis", json=body, headers=auth_headers(member.id))
    assert response.status_code == 200


async def test_suggest_kpis_provider_outage(client, member, use_service):
    use_service(FakeAIService(error=AIServiceUnavailable()))
    response = await client.post(
        "/api/ai/suggest-kpis",
        json={"okr_title": "Kundenzufriedenheit erhöhen", "category": "performance"},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 502
    assert response.json() == {"error": "AI-Service vorübergehend nicht verfügbar"}


async def test_suggest_courses(client, member, use_service):
    service = use_service(FakeAIService(json.dumps(COURSE_ANSWER)))
    body = {"craft_focus": "UX Research", "department": "Produkt", "okr_categories": ["skill"]}

    response = await client.post("/api/ai/suggest-courses", json=body, headers=auth_headers(member.id))
    assert response.status_code == 200
    assert response.json() == COURSE_ANSWER

    # not cached
    await client.post("/api/ai/suggest-courses", json=body, headers=auth_headers(member.id))
    assert len(service.prompts) == 2


async def test_suggest_courses_rejects_invalid_body(client, member, use_service):
    use_service(FakeAIService(json.dumps(COURSE_ANSWER)))
    response = await client.post(
        "/api/ai/suggest-courses", json={"okr_categories": "skill"}, headers=auth_headers(member.id)
    )
    assert response.status_code == 400
    assert response.json() == {
        "error": "Ungültige Anfrage. Optionale Felder: craft_focus, department, okr_categories."
    }


async def test_suggestions_require_authentication(client):
    response = await client.post(
        "/api/ai/suggest-kpis", json={"okr_title": "Kundenzufriedenheit", "category": "skill"}
    )
    assert response.status_code == 401


def test_parse_model_output_rejects_too_many_suggestions():
    answer = {"suggestions": KPI_ANSWER["suggestions"] * 3}
    with pytest.raises(AIInvalidResponse):
        parse_model_output(json.dumps(answer), SuggestKPIsResponse)
