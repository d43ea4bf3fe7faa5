"""End-to-end tests through the HTTP API."""

from uuid import uuid4

from fastapi.testclient import TestClient

from coursegate.auth.permissions import Role
from coursegate.auth.schemas import Identity


def _answers(questions, correct: int | None = None) -> list[dict]:
    correct = len(questions) if correct is None else correct
    return [
        {
            "question_id": str(q.id),
            "selected_answer": q.correct_answer if i < correct else "alpha",
        }
        for i, q in enumerate(questions)
    ]


def _finish_chapter1_lessons(client, headers, sample) -> None:
    response = client.post(
        f"/v1/lessons/{sample.lesson1.id}/complete", headers=headers
    )
    assert response.status_code == 200
    response = client.post(
        f"/v1/lessons/{sample.lesson2.id}/submit-quiz",
        json={"answers": _answers(sample.quiz_questions)},
        headers=headers,
    )
    assert response.status_code == 200


class TestAuthentication:
    def test_missing_token(self, client: TestClient, sample) -> None:
        response = client.get(f"/v1/courses/{sample.id}/progress")

        assert response.status_code == 401
        body = response.json()
        assert body["error"] is True
        assert body["code"] == "http_error"
        assert body["message"] == "Access token not provided"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client: TestClient, sample) -> None:
        response = client.get(
            f"/v1/courses/{sample.id}/progress",
            headers={"Authorization": "Bearer not-a-token"},
        )
        assert response.status_code == 401

    def test_plain_user_is_forbidden(
        self, client: TestClient, auth_headers, sample
    ) -> None:
        user = Identity(user_id=uuid4(), role=Role.USER)

        response = client.get(
            f"/v1/courses/{sample.id}/progress", headers=auth_headers(user)
        )

        assert response.status_code == 403

    def test_verification_is_public(self, client: TestClient) -> None:
        response = client.get(
            "/v1/certificates/verify",
            params={
                "certificate_number": "MIC-2026-000001",
                "verification_code": "ABCDEF12",
            },
        )

        assert response.status_code == 200
        assert response.json()["valid"] is False


class TestErrorEnvelope:
    def test_access_denied(
        self, client: TestClient, auth_headers, student, sample
    ) -> None:
        response = client.post(
            f"/v1/lessons/{sample.lesson3.id}/complete",
            headers=auth_headers(student),
        )

        assert response.status_code == 403
        body = response.json()
        assert body["code"] == "access_denied"
        assert body["message"] == "Complete Lesson 2 of Chapter 1 first"
        assert body["retryable"] is False
        assert "request_id" in body
        assert "timestamp" in body

    def test_unknown_lesson(self, client: TestClient, auth_headers, student) -> None:
        response = client.post(
            f"/v1/lessons/{uuid4()}/complete", headers=auth_headers(student)
        )
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"

    def test_request_validation(
        self, client: TestClient, auth_headers, student, sample
    ) -> None:
        response = client.post(
            f"/v1/lessons/{sample.lesson2.id}/submit-quiz",
            json={"answers": "everything"},
            headers=auth_headers(student),
        )

        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "validation_error"
        assert body["context"]["details"]

    def test_cooldown_sets_retry_after(
        self, client: TestClient, auth_headers, student, sample
    ) -> None:
        headers = auth_headers(student)
        _finish_chapter1_lessons(client, headers, sample)
        started = client.post(
            f"/v1/chapters/{sample.chapter1.id}/test/start", headers=headers
        ).json()
        failed = client.post(
            f"/v1/chapters/{sample.chapter1.id}/test/submit",
            json={
                "session_id": started["session_id"],
                "answers": _answers(sample.test_questions, 1),
            },
            headers=headers,
        )
        assert failed.json()["passed"] is False

        response = client.post(
            f"/v1/chapters/{sample.chapter1.id}/test/start", headers=headers
        )

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "10800"
        assert response.json()["context"]["remaining_seconds"] == 10800

    def test_session_conflict(
        self, client: TestClient, auth_headers, admin, sample
    ) -> None:
        headers = auth_headers(admin)
        first = client.post(f"/v1/courses/{sample.id}/exam/start", headers=headers)

        response = client.post(f"/v1/courses/{sample.id}/exam/start", headers=headers)

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "session_conflict"
        assert body["context"]["session_id"] == first.json()["session_id"]

    def test_missing_service(self, auth_headers, student, sample) -> None:
        from coursegate.main import create_app

        client = TestClient(create_app(), raise_server_exceptions=False)
        response = client.get(
            f"/v1/courses/{sample.id}/progress", headers=auth_headers(student)
        )

        assert response.status_code == 503
        assert response.json()["message"] == "Progress service unavailable"


class TestLearnerJourney:
    def test_course_to_certificate(
        self, client: TestClient, auth_headers, student, sample
    ) -> None:
        headers = auth_headers(student)

        access = client.get(
            f"/v1/access/chapter-test/{sample.chapter1.id}", headers=headers
        ).json()
        assert access == {
            "allowed": False,
            "reason": "Complete all lessons of Chapter 1 first (0/2 completed)",
        }

        _finish_chapter1_lessons(client, headers, sample)

        started = client.post(
            f"/v1/chapters/{sample.chapter1.id}/test/start", headers=headers
        )
        assert started.status_code == 200
        session_id = started.json()["session_id"]
        assert "correct_answer" not in started.json()["questions"][0]

        session = client.get(f"/v1/sessions/{session_id}", headers=headers).json()
        assert session["status"] == "active"

        passed = client.post(
            f"/v1/chapters/{sample.chapter1.id}/test/submit",
            json={"session_id": session_id, "answers": _answers(sample.test_questions)},
            headers=headers,
        )
        assert passed.json()["test_passed"] is True

        client.post(f"/v1/lessons/{sample.lesson3.id}/complete", headers=headers)
        access = client.get(
            "/v1/access/final-exam",
            params={"course_id": str(sample.id)},
            headers=headers,
        ).json()
        assert access["allowed"] is True

        exam = client.post(
            f"/v1/courses/{sample.id}/submit-exam",
            json={"answers": _answers(sample.exam_questions)},
            headers=headers,
        )
        assert exam.status_code == 200
        result = exam.json()
        assert result["passed"] is True
        assert result["certificate_issued"] is True
        main = result["certificates"][0]
        assert main["certificate_number"] == "MIC-2026-000001"

        listing = client.get(
            f"/v1/courses/{sample.id}/certificates", headers=headers
        ).json()
        assert len(listing["certificates"]) == 2

        verified = client.get(
            "/v1/certificates/verify",
            params={
                "certificate_number": main["certificate_number"],
                "verification_code": main["verification_code"],
            },
        ).json()
        assert verified["valid"] is True
        assert "verification_code" not in verified

        progress = client.get("/v1/progress/me", headers=headers).json()
        assert progress["total"] == 1
        assert progress["items"][0]["course_completed"] is True

        detail = client.get(
            f"/v1/courses/{sample.id}/detailed-progress", headers=headers
        ).json()
        assert detail["next_action"]["type"] == "completed"

    def test_abandon_exam(
        self, client: TestClient, auth_headers, admin, sample
    ) -> None:
        headers = auth_headers(admin)
        started = client.post(
            f"/v1/courses/{sample.id}/exam/start", headers=headers
        ).json()

        response = client.post(
            f"/v1/courses/{sample.id}/exam/abandon",
            json={"session_id": started["session_id"]},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "abandoned"
        again = client.post(f"/v1/courses/{sample.id}/exam/start", headers=headers)
        assert again.status_code == 200
