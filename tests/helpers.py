from okr_tracker.core.security import create_jwt_token


def auth_headers(user_id: str, email: str = "anna.schmidt@example.com") -> dict:
    token = create_jwt_token({"sub": user_id, "email": email})
    return {"Authorization": f"Bearer {token}"}


COURSE = {
    "title": "Figma für Fortgeschrittene",
    "description": "Komponenten, Varianten und Auto-Layout",
    "provider": "Intern",
    "category": "design",
    "estimated_duration_minutes": 240,
    "difficulty": "intermediate",
    "external_url": "",
    "tags": ["figma", "ui"],
    "modules": [
        {"title": "Komponenten"},
        {"title": "Varianten"},
        {"title": "Auto-Layout"},
        {"title": "Prototyping"},
    ],
}


async def create_course(client, member, **overrides) -> dict:
    response = await client.post("/api/courses", json={**COURSE, **overrides}, headers=auth_headers(member.id))
    assert response.status_code == 201, response.text
    return response.json()
