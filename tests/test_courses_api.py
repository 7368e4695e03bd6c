import uuid

from okr_tracker.constants.constants import UserRole
from tests.helpers import COURSE, auth_headers, create_course


async def test_create_course_with_modules(client, member):
    data = await create_course(client, member)
    assert data["course"]["title"] == COURSE["title"]
    assert data["course"]["external_url"] is None
    assert [m["sort_order"] for m in data["modules"]] == [0, 1, 2, 3]


async def test_create_course_requires_a_module(client, member):
    response = await client.post(
        "/api/courses", json={**COURSE, "modules": []}, headers=auth_headers(member.id)
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Validierungsfehler"


async def test_list_courses_filters_and_counts_modules(client, member):
    await create_course(client, member)
    await create_course(client, member, title="SQL Basics", category="data", modules=[{"title": "SELECT"}])

    response = await client.get("/api/courses?category=data", headers=auth_headers(member.id))
    assert response.status_code == 200
    courses = response.json()["courses"]
    assert [c["title"] for c in courses] == ["SQL Basics"]
    assert courses[0]["module_count"] == 1

    response = await client.get("/api/courses?search=figma", headers=auth_headers(member.id))
    assert [c["title"] for c in response.json()["courses"]] == [COURSE["title"]]


async def test_get_course_with_invalid_id(client, member):
    response = await client.get("/api/courses/not-a-uuid", headers=auth_headers(member.id))
    assert response.status_code == 400
    assert response.json() == {"error": "Ungültige Kurs-ID"}


async def test_get_unknown_course(client, member):
    response = await client.get(f"/api/courses/{uuid.uuid4()}", headers=auth_headers(member.id))
    assert response.status_code == 404
    assert response.json() == {"error": "Kurs nicht gefunden"}


async def test_enroll_twice_conflicts(client, member):
    course_id = (await create_course(client, member))["course"]["id"]

    first = await client.post(
        f"/api/courses/{course_id}/enroll", json={"notes": "Für Q2"}, headers=auth_headers(member.id)
    )
    assert first.status_code == 201
    assert first.json()["enrollment"]["status"] == "in_progress"
    assert first.json()["enrollment"]["notes"] == "Für Q2"

    second = await client.post(f"/api/courses/{course_id}/enroll", headers=auth_headers(member.id))
    assert second.status_code == 409
    assert second.json() == {"error": "Sie sind bereits in diesen Kurs eingeschrieben"}


async def test_toggle_module_on_and_off(client, member):
    data = await create_course(client, member)
    course_id = data["course"]["id"]
    module_id = data["modules"][0]["id"]
    await client.post(f"/api/courses/{course_id}/enroll", headers=auth_headers(member.id))

    url = f"/api/courses/{course_id}/modules/{module_id}/complete"
    on = await client.post(url, headers=auth_headers(member.id))
    assert on.status_code == 200
    assert on.json() == {"completed": True, "progress": 25, "enrollment_status": "in_progress"}

    off = await client.post(url, headers=auth_headers(member.id))
    assert off.json() == {"completed": False, "progress": 0, "enrollment_status": "in_progress"}


async def test_completing_all_modules_and_reverting_one(client, member):
    data = await create_course(client, member)
    course_id = data["course"]["id"]
    module_ids = [m["id"] for m in data["modules"]]
    await client.post(f"/api/courses/{course_id}/enroll", headers=auth_headers(member.id))

    for module_id in module_ids:
        result = await client.post(
            f"/api/courses/{course_id}/modules/{module_id}/complete", headers=auth_headers(member.id)
        )
    assert result.json() == {"completed": True, "progress": 100, "enrollment_status": "completed"}

    detail = await client.get(f"/api/courses/{course_id}", headers=auth_headers(member.id))
    assert detail.json()["enrollment"]["status"] == "completed"
    assert detail.json()["enrollment"]["completed_at"] is not None
    assert detail.json()["enrollment"]["progress"] == 100

    reverted = await client.post(
        f"/api/courses/{course_id}/modules/{module_ids[1]}/complete", headers=auth_headers(member.id)
    )
    assert reverted.json() == {"completed": False, "progress": 75, "enrollment_status": "in_progress"}

    detail = await client.get(f"/api/courses/{course_id}", headers=auth_headers(member.id))
    assert detail.json()["enrollment"]["completed_at"] is None


async def test_toggle_without_enrollment(client, member):
    data = await create_course(client, member)
    course_id = data["course"]["id"]
    module_id = data["modules"][0]["id"]

    response = await client.post(
        f"/api/courses/{course_id}/modules/{module_id}/complete", headers=auth_headers(member.id)
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Einschreibung nicht gefunden"}


async def test_toggle_module_of_another_course(client, member):
    first = await create_course(client, member)
    second = await create_course(client, member, title="Andere")
    await client.post(f"/api/courses/{first['course']['id']}/enroll", headers=auth_headers(member.id))

    response = await client.post(
        f"/api/courses/{first['course']['id']}/modules/{second['modules'][0]['id']}/complete",
        headers=auth_headers(member.id),
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Modul nicht gefunden"}


async def test_toggle_with_malformed_ids(client, member):
    response = await client.post(
        f"/api/courses/nope/modules/{uuid.uuid4()}/complete", headers=auth_headers(member.id)
    )
    assert response.json() == {"error": "Ungültige Kurs-ID"}

    response = await client.post(
        f"/api/courses/{uuid.uuid4()}/modules/nope/complete", headers=auth_headers(member.id)
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Ungültige ID"}


async def test_only_owner_or_admin_may_edit(client, member, make_member):
    course_id = (await create_course(client, member))["course"]["id"]
    colleague = await make_member(name="Ben Weber")
    admin = await make_member(role=UserRole.admin, name="Clara Admin")

    denied = await client.patch(
        f"/api/courses/{course_id}", json={"title": "Neu"}, headers=auth_headers(colleague.id)
    )
    assert denied.status_code == 403
    assert denied.json() == {"error": "Keine Berechtigung zum Bearbeiten dieses Kurses"}

    allowed = await client.patch(
        f"/api/courses/{course_id}", json={"title": "Neu"}, headers=auth_headers(admin.id)
    )
    assert allowed.status_code == 200
    assert allowed.json()["course"]["title"] == "Neu"


async def test_delete_course_with_enrollments_conflicts(client, member):
    course_id = (await create_course(client, member))["course"]["id"]
    await client.post(f"/api/courses/{course_id}/enroll", headers=auth_headers(member.id))

    response = await client.delete(f"/api/courses/{course_id}", headers=auth_headers(member.id))
    assert response.status_code == 409


async def test_delete_course(client, member):
    course_id = (await create_course(client, member))["course"]["id"]

    response = await client.delete(f"/api/courses/{course_id}", headers=auth_headers(member.id))
    assert response.json() == {"success": True}

    response = await client.get(f"/api/courses/{course_id}", headers=auth_headers(member.id))
    assert response.status_code == 404
