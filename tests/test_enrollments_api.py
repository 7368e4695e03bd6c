import uuid

from botocore.exceptions import ClientError

from okr_tracker.services import S3Service
from tests.helpers import auth_headers, create_course


async def enroll(client, member, **course_overrides):
    data = await create_course(client, member, **course_overrides)
    response = await client.post(f"/api/courses/{data['course']['id']}/enroll", headers=auth_headers(member.id))
    return data, response.json()["enrollment"]


async def test_list_enrollments_with_progress(client, member):
    data, enrollment = await enroll(client, member)
    module_id = data["modules"][0]["id"]
    await client.post(
        f"/api/courses/{data['course']['id']}/modules/{module_id}/complete", headers=auth_headers(member.id)
    )

    response = await client.get("/api/enrollments", headers=auth_headers(member.id))
    assert response.status_code == 200
    [listed] = response.json()["enrollments"]
    assert listed["id"] == enrollment["id"]
    assert listed["progress"] == 25
    assert listed["completed_modules"] == 1
    assert listed["course"]["title"] == data["course"]["title"]


async def test_list_enrollments_filters_by_status(client, member):
    await enroll(client, member)

    response = await client.get("/api/enrollments?status=completed", headers=auth_headers(member.id))
    assert response.json() == {"enrollments": []}

    response = await client.get("/api/enrollments?status=in_progress", headers=auth_headers(member.id))
    assert len(response.json()["enrollments"]) == 1


async def test_update_enrollment_notes_only(client, member):
    _, enrollment = await enroll(client, member)

    response = await client.patch(
        f"/api/enrollments/{enrollment['id']}",
        json={"notes": "Kapitel 2 wiederholen", "status": "completed"},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 200
    assert response.json()["enrollment"]["notes"] == "Kapitel 2 wiederholen"
    assert response.json()["enrollment"]["status"] == "in_progress"


async def test_enrollments_of_others_are_not_found(client, member, make_member):
    _, enrollment = await enroll(client, member)
    other = await make_member(name="Ben Weber")

    response = await client.patch(
        f"/api/enrollments/{enrollment['id']}", json={"notes": "x"}, headers=auth_headers(other.id)
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Einschreibung nicht gefunden"}


async def test_delete_enrollment_allows_reenrolling(client, member):
    data, enrollment = await enroll(client, member)

    response = await client.delete(f"/api/enrollments/{enrollment['id']}", headers=auth_headers(member.id))
    assert response.json() == {"success": True}

    again = await client.post(f"/api/courses/{data['course']['id']}/enroll", headers=auth_headers(member.id))
    assert again.status_code == 201


async def test_upload_certificate(client, member, monkeypatch):
    _, enrollment = await enroll(client, member)
    uploaded = {}

    def fake_upload(fileobj, user_id, enrollment_id, filename, content_type):
        uploaded.update(body=fileobj.read(), user_id=user_id, content_type=content_type)
        return f"https://files.example.com/certificates/{user_id}/{enrollment_id}/zertifikat.pdf"

    monkeypatch.setattr(S3Service, "upload_certificate", fake_upload)

    response = await client.post(
        f"/api/enrollments/{enrollment['id']}/certificate",
        files={"file": ("Zertifikat.pdf", b"%PDF-1.4 test", "application/pdf")},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 201
    certificate = response.json()["certificate"]
    assert certificate["file_name"] == "Zertifikat.pdf"
    assert certificate["file_size"] == len(b"%PDF-1.4 test")
    assert certificate["mime_type"] == "application/pdf"
    assert certificate["file_url"].endswith("zertifikat.pdf")
    assert uploaded["body"] == b"%PDF-1.4 test"
    assert uploaded["user_id"] == member.id


async def test_upload_certificate_without_file(client, member):
    _, enrollment = await enroll(client, member)
    response = await client.post(
        f"/api/enrollments/{enrollment['id']}/certificate", headers=auth_headers(member.id)
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Keine Datei hochgeladen"}


async def test_upload_certificate_rejects_wrong_type(client, member):
    _, enrollment = await enroll(client, member)
    response = await client.post(
        f"/api/enrollments/{enrollment['id']}/certificate",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Ungültiger Dateityp. Erlaubt sind: PDF, PNG, JPG, JPEG, WebP"}


async def test_upload_certificate_rejects_large_file(client, member):
    _, enrollment = await enroll(client, member)
    response = await client.post(
        f"/api/enrollments/{enrollment['id']}/certificate",
        files={"file": ("scan.png", b"0" * (10 * 1024 * 1024 + 1), "image/png")},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Datei darf maximal 10 MB groß sein"}


async def test_upload_certificate_storage_failure(client, member, monkeypatch):
    _, enrollment = await enroll(client, member)

    def failing_upload(*args):
        raise ClientError({"Error": {"Code": "500", "Message": "boom"}}, "PutObject")

    monkeypatch.setattr(S3Service, "upload_certificate", failing_upload)
    response = await client.post(
        f"/api/enrollments/{enrollment['id']}/certificate",
        files={"file": ("scan.png", b"png", "image/png")},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 500
    assert response.json() == {"error": "Fehler beim Hochladen des Zertifikats"}


async def test_upload_certificate_for_invalid_enrollment_id(client, member):
    response = await client.post(
        "/api/enrollments/123/certificate",
        files={"file": ("scan.png", b"png", "image/png")},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Ungültige Einschreibungs-ID"}

    response = await client.post(
        f"/api/enrollments/{uuid.uuid4()}/certificate",
        files={"file": ("scan.png", b"png", "image/png")},
        headers=auth_headers(member.id),
    )
    assert response.status_code == 404
