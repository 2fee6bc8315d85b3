import uuid

from skillcourses.core.security import UserRole


def _create(client, headers, **extra):
    body = {"title": "Intro to Git", "short_description": "Version control basics", **extra}
    r = client.post("/skills/courses", json=body, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_students_cannot_author(client, student_headers):
    r = client.post("/skills/courses", json={"title": "Nope"}, headers=student_headers)
    assert r.status_code == 403
    assert r.json()["error_code"] == "forbidden"


def test_requires_token(client):
    r = client.get("/skills/courses")
    assert r.status_code == 401
    assert r.json()["ok"] is False


def test_new_course_is_draft_with_default_threshold(client, faculty_headers, faculty_id):
    course = _create(client, faculty_headers)
    assert course["status"] == "draft"
    assert course["pass_threshold"] == 70
    assert course["created_by"] == str(faculty_id)
    assert course["rounds_defined"] == []


def test_publish_requires_all_rounds(client, make_course, faculty_headers):
    course_id = make_course(faculty_headers, rounds=(1, 2, 3), publish=False)
    r = client.post(f"/skills/courses/{course_id}/publish", headers=faculty_headers)
    assert r.status_code == 400
    assert r.json()["error_code"] == "rounds_incomplete"

    r = client.get(f"/skills/courses/{course_id}", headers=faculty_headers)
    assert r.json()["status"] == "draft"
    assert r.json()["rounds_defined"] == [1, 2, 3]


def test_only_owner_can_modify(client, make_course, faculty_headers, auth_headers):
    course_id = make_course(faculty_headers, publish=False)
    other = auth_headers(UserRole.faculty)

    r = client.put(f"/skills/courses/{course_id}", json={"title": "Hijacked"}, headers=other)
    assert r.status_code == 403
    r = client.post(f"/skills/courses/{course_id}/publish", headers=other)
    assert r.status_code == 403

    admin = auth_headers(UserRole.admin)
    r = client.put(f"/skills/courses/{course_id}", json={"title": "Renamed by admin"}, headers=admin)
    assert r.status_code == 200
    assert r.json()["title"] == "Renamed by admin"


def test_invalid_round_definitions(client, faculty_headers):
    course_id = _create(client, faculty_headers)["id"]
    url = f"/skills/courses/{course_id}/rounds"

    bad = [
        {"round_number": 1, "title": "Empty lesson"},
        {"round_number": 2, "questions": []},
        {"round_number": 2, "questions": [{"prompt": "q", "options": ["a", "b"], "correct_index": 2}]},
        {"round_number": 3, "brief": ""},
        {"round_number": 5, "title": "Extra"},
    ]
    for payload in bad:
        r = client.post(url, json=payload, headers=faculty_headers)
        assert r.status_code == 400, payload
        assert r.json()["error_code"] == "invalid_round_definition"


def test_students_see_rounds_without_answer_keys(client, make_course, faculty_headers, student_headers):
    course_id = make_course(faculty_headers)

    r = client.get(f"/skills/courses/{course_id}/rounds", headers=student_headers)
    assert r.status_code == 200
    rounds = {item["round_number"]: item for item in r.json()}
    assert sorted(rounds) == [1, 2, 3, 4]
    for n in (2, 4):
        for question in rounds[n]["questions"]:
            assert "correct_index" not in question
    assert rounds[3]["brief"] == "Build a small thing"

    r = client.get(f"/skills/courses/{course_id}/rounds/authoring", headers=student_headers)
    assert r.status_code == 403

    r = client.get(f"/skills/courses/{course_id}/rounds/authoring", headers=faculty_headers)
    assert r.status_code == 200
    assert r.json()[1]["definition"]["questions"][0]["correct_index"] == 0


def test_students_only_see_published_courses(client, make_course, faculty_headers, student_headers):
    draft_id = make_course(faculty_headers, publish=False)
    published_id = make_course(faculty_headers)

    r = client.get("/skills/courses", headers=student_headers)
    ids = {c["id"] for c in r.json()}
    assert published_id in ids
    assert draft_id not in ids

    r = client.get(f"/skills/courses/{draft_id}", headers=student_headers)
    assert r.status_code == 404


def test_unknown_course(client, faculty_headers):
    r = client.get(f"/skills/courses/{uuid.uuid4()}", headers=faculty_headers)
    assert r.status_code == 404
    assert r.json()["error_code"] == "course_not_found"

    r = client.get("/skills/courses/not-a-uuid", headers=faculty_headers)
    assert r.status_code == 400


def test_quiz_questions_locked_after_scoring(client, enrolled, faculty_headers, quiz_key):
    course_id, student = enrolled
    client.post(f"/skills/courses/{course_id}/rounds/1/complete", headers=student)
    r = client.post(f"/skills/courses/{course_id}/rounds/2/quiz", json={"answers": quiz_key}, headers=student)
    assert r.status_code == 200

    changed = {
        "round_number": 2,
        "title": "Check",
        "questions": [{"prompt": "New", "options": ["x", "y"], "correct_index": 1}],
    }
    r = client.post(f"/skills/courses/{course_id}/rounds", json=changed, headers=faculty_headers)
    assert r.status_code == 409
    assert r.json()["error_code"] == "course_locked"

    # Questions untouched: a title-only change is still allowed.
    r = client.get(f"/skills/courses/{course_id}/rounds/authoring", headers=faculty_headers)
    unchanged = r.json()[1]["definition"]
    unchanged["title"] = "Checkpoint"
    r = client.post(f"/skills/courses/{course_id}/rounds", json=unchanged, headers=faculty_headers)
    assert r.status_code == 200


def test_delete_course_with_enrollments_is_refused(client, enrolled, faculty_headers, make_course):
    course_id, _ = enrolled
    r = client.delete(f"/skills/courses/{course_id}", headers=faculty_headers)
    assert r.status_code == 409
    assert r.json()["error_code"] == "course_locked"

    empty_id = make_course(faculty_headers, publish=False)
    r = client.delete(f"/skills/courses/{empty_id}", headers=faculty_headers)
    assert r.status_code == 200
    r = client.get(f"/skills/courses/{empty_id}", headers=faculty_headers)
    assert r.status_code == 404


def test_unpublish_blocks_new_enrollments(client, make_course, faculty_headers, student_headers):
    course_id = make_course(faculty_headers)
    r = client.post(f"/skills/courses/{course_id}/unpublish", headers=faculty_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "draft"

    r = client.post(f"/skills/courses/{course_id}/enroll", headers=student_headers)
    assert r.status_code == 409
    assert r.json()["error_code"] == "course_not_published"


def test_threshold_bounds(client, faculty_headers):
    r = client.post("/skills/courses", json={"title": "Bad", "pass_threshold": 101}, headers=faculty_headers)
    assert r.status_code == 422
