"""
HTTP-level tests: routing, auth, error mapping and one full live game.
"""

from app.core.db.schemas.auth import UserRole


V = "/v1"


async def _make_session(client, headers, qids, **overrides):
    body = {
        "title": "Photosynthesis check",
        "timer_per_question_seconds": 20,
        "question_ids": qids,
        "shuffle": False,
    }
    body.update(overrides)
    return await client.post(f"{V}/quiz-sessions", json=body, headers=headers)


class TestAuth:
    async def test_root(self, client):
        resp = await client.get("/")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_register_login_and_profile(self, client):
        resp = await client.post(
            f"{V}/auth/register",
            json={
                "email": "guru@example.com",
                "password": "s3cret-pass",
                "username": "bu_guru",
                "role": "teacher",
            },
        )
        assert resp.status_code == 201, resp.text
        assert resp.json()["role"] == "teacher"

        resp = await client.post(
            "/login", json={"username": "bu_guru", "password": "s3cret-pass"}
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "teacher"
        headers = {"Authorization": f"Bearer {body['idToken']}"}

        resp = await client.get(f"{V}/profile", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["total_points"] == 0

        resp = await client.put(
            f"{V}/profile",
            json={"display_name": "Bu Guru", "class_name": "7B"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["display_name"] == "Bu Guru"

    async def test_wrong_password(self, client):
        resp = await client.post(
            f"{V}/auth/register",
            json={"email": "siswa@example.com", "password": "right-pass", "username": "siswa"},
        )
        assert resp.status_code == 201
        assert resp.json()["role"] == "student"
        resp = await client.post("/login", json={"username": "siswa", "password": "x"})
        assert resp.status_code == 401

    async def test_admin_cannot_self_register(self, client):
        resp = await client.post(
            f"{V}/auth/register",
            json={
                "email": "root@example.com",
                "password": "s3cret-pass",
                "username": "root",
                "role": "admin",
            },
        )
        assert resp.status_code == 422

    async def test_duplicate_username(self, client, seed):
        await seed.user(username="taken")
        resp = await client.post(
            f"{V}/auth/register",
            json={"email": "new@example.com", "password": "pw-123456", "username": "taken"},
        )
        assert resp.status_code == 400

    async def test_jwks(self, client):
        resp = await client.get("/.well-known/jwks.json")
        assert resp.status_code == 200
        assert resp.json()["keys"][0]["kid"] == "v1"

    async def test_requires_token(self, client):
        resp = await client.get(f"{V}/quiz-sessions/ABCDEF")
        assert resp.status_code == 401


class TestErrorMapping:
    async def test_unknown_code_is_404(self, client, seed, auth_headers):
        student = await seed.user()
        resp = await client.get(
            f"{V}/quiz-sessions/NOPE42", headers=await auth_headers(student)
        )
        assert resp.status_code == 404
        assert resp.json()["detail"]["code"] == "session_not_found"

    async def test_student_cannot_create(self, client, seed, auth_headers):
        student = await seed.user()
        qids = await seed.questions(2)
        resp = await _make_session(client, await auth_headers(student), qids)
        assert resp.status_code == 403
        assert resp.json()["detail"]["code"] == "not_a_host"

    async def test_invalid_timer_is_422(self, client, seed, auth_headers):
        teacher = await seed.teacher()
        qids = await seed.questions(1)
        resp = await _make_session(
            client, await auth_headers(teacher), qids, timer_per_question_seconds=3
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["code"] == "invalid_timer"

    async def test_empty_selection_is_422(self, client, seed, auth_headers):
        teacher = await seed.teacher()
        resp = await _make_session(client, await auth_headers(teacher), [])
        assert resp.status_code == 422
        assert resp.json()["detail"]["code"] == "empty_question_selection"

    async def test_negative_time_remaining_is_422(self, client, seed, auth_headers):
        teacher = await seed.teacher()
        student = await seed.user()
        qids = await seed.questions(1)
        t_headers, s_headers = await auth_headers(teacher), await auth_headers(student)
        code = (await _make_session(client, t_headers, qids)).json()["code"]
        await client.post(f"{V}/quiz-sessions/join", json={"code": code}, headers=s_headers)
        await client.post(f"{V}/quiz-sessions/{code}/start", headers=t_headers)
        resp = await client.post(
            f"{V}/quiz-sessions/{code}/submit",
            json={"question_id": qids[0], "answer": True, "time_remaining_seconds": -1},
            headers=s_headers,
        )
        assert resp.status_code == 422


class TestQuestionBank:
    async def test_teacher_manages_bank(self, client, seed, auth_headers):
        teacher = await seed.teacher()
        headers = await auth_headers(teacher)

        resp = await client.post(
            f"{V}/quiz-categories", json={"name": "Biology"}, headers=headers
        )
        assert resp.status_code == 201
        cat_id = resp.json()["id"]

        resp = await client.post(
            f"{V}/quiz-categories", json={"name": "Biology"}, headers=headers
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "category_exists"

        resp = await client.post(
            f"{V}/questions",
            json=[
                {"text": "Plants make oxygen", "correct_answer": True, "category_id": cat_id},
                {"text": "Fish are mammals", "correct_answer": False, "category_id": cat_id},
            ],
            headers=headers,
        )
        assert resp.status_code == 201
        assert [q["correct_answer"] for q in resp.json()] == [True, False]

        resp = await client.get(f"{V}/quiz-categories", headers=headers)
        assert resp.json()[0]["question_count"] == 2

        resp = await client.get(f"{V}/questions?category_id={cat_id}", headers=headers)
        assert len(resp.json()) == 2

    async def test_students_cannot_read_answer_key(self, client, seed, auth_headers):
        student = await seed.user()
        headers = await auth_headers(student)
        assert (await client.get(f"{V}/questions", headers=headers)).status_code == 403
        resp = await client.post(
            f"{V}/questions",
            json=[{"text": "x", "correct_answer": True}],
            headers=headers,
        )
        assert resp.status_code == 403

    async def test_generate_math_and_persist(self, client, seed, auth_headers):
        teacher = await seed.teacher()
        headers = await auth_headers(teacher)
        resp = await client.post(
            f"{V}/questions/generate",
            json={"mode": "math", "num_questions": 4, "persist": True},
            headers=headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert len(body["questions"]) == 4
        assert len(body["saved"]) == 4
        assert all(q["id"] for q in body["saved"])


class TestLiveGame:
    async def test_full_game(self, client, seed, auth_headers):
        teacher = await seed.teacher()
        ana = await seed.user(display_name="Ana")
        budi = await seed.user(display_name="Budi")
        late = await seed.user(display_name="Late")
        qids = await seed.questions(2, answers=[True, False])
        t_h = await auth_headers(teacher)
        a_h = await auth_headers(ana)
        b_h = await auth_headers(budi)

        resp = await _make_session(client, t_h, qids)
        assert resp.status_code == 201
        code = resp.json()["code"]
        assert resp.json()["status"] == "waiting"

        resp = await client.post(
            f"{V}/quiz-sessions/join", json={"code": code.lower()}, headers=a_h
        )
        assert resp.status_code == 200
        assert resp.json()["participant"]["display_name"] == "Ana"
        await client.post(f"{V}/quiz-sessions/join", json={"code": code}, headers=b_h)

        resp = await client.get(f"{V}/quiz-sessions/{code}/questions", headers=a_h)
        assert resp.status_code == 409

        resp = await client.post(f"{V}/quiz-sessions/{code}/start", headers=a_h)
        assert resp.status_code == 403
        resp = await client.post(f"{V}/quiz-sessions/{code}/start", headers=t_h)
        assert resp.status_code == 200
        assert resp.json()["status"] == "active"

        resp = await client.post(
            f"{V}/quiz-sessions/join",
            json={"code": code},
            headers=await auth_headers(late),
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "session_already_started"

        resp = await client.get(f"{V}/quiz-sessions/{code}/questions", headers=a_h)
        assert resp.status_code == 200
        assert "correct_answer" not in resp.text
        questions = resp.json()["questions"]
        assert [q["id"] for q in questions] == qids

        resp = await client.post(
            f"{V}/quiz-sessions/{code}/submit",
            json={"question_id": qids[0], "answer": True, "time_remaining_seconds": 10},
            headers=a_h,
        )
        assert resp.status_code == 200
        first = resp.json()
        assert first["is_correct"] is True
        assert first["points_awarded"] == 750

        resp = await client.post(
            f"{V}/quiz-sessions/{code}/submit",
            json={"question_id": qids[0], "answer": False, "time_remaining_seconds": 19},
            headers=a_h,
        )
        assert resp.status_code == 200
        assert resp.json()["already_answered"] is True
        assert resp.json()["score"] == 750

        resp = await client.post(
            f"{V}/quiz-sessions/{code}/submit",
            json={"question_id": qids[1], "answer": True, "time_remaining_seconds": 19},
            headers=b_h,
        )
        assert resp.json()["is_correct"] is False

        resp = await client.get(f"{V}/quiz-sessions/{code}/leaderboard", headers=b_h)
        board = resp.json()
        assert [e["display_name"] for e in board] == ["Ana", "Budi"]
        assert [e["score"] for e in board] == [750, 0]

        resp = await client.get(f"{V}/quiz-sessions/{code}/participants", headers=t_h)
        assert [p["display_name"] for p in resp.json()] == ["Ana", "Budi"]

        resp = await client.post(f"{V}/quiz-sessions/{code}/end", headers=t_h)
        assert resp.status_code == 200
        assert resp.json()["status"] == "ended"

        resp = await client.post(
            f"{V}/quiz-sessions/{code}/submit",
            json={"question_id": qids[1], "answer": False, "time_remaining_seconds": 5},
            headers=a_h,
        )
        assert resp.status_code == 409
        assert resp.json()["detail"]["code"] == "session_not_active"

        resp = await client.get(f"{V}/points/balance", headers=a_h)
        assert resp.json()["total_points"] == 750
        resp = await client.get(f"{V}/points/history", headers=a_h)
        history = resp.json()
        assert history["total"] == 1
        assert history["items"][0]["reference_type"] == "quiz_session"

        resp = await client.get(f"{V}/quiz-sessions", headers=t_h)
        listed = resp.json()
        assert listed[0]["code"] == code
        assert listed[0]["participant_count"] == 2

    async def test_leaderboard_stream_after_end(self, client, seed, auth_headers):
        teacher = await seed.teacher()
        student = await seed.user(display_name="Sari")
        qids = await seed.questions(1)
        t_h, s_h = await auth_headers(teacher), await auth_headers(student)
        code = (await _make_session(client, t_h, qids)).json()["code"]
        await client.post(f"{V}/quiz-sessions/join", json={"code": code}, headers=s_h)
        await client.post(f"{V}/quiz-sessions/{code}/start", headers=t_h)
        await client.post(f"{V}/quiz-sessions/{code}/end", headers=t_h)

        token = s_h["Authorization"].split(" ", 1)[1]
        resp = await client.get(
            f"{V}/quiz-sessions/{code}/leaderboard/events?access_token={token}"
        )
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert "event: leaderboard" in resp.text
        assert '"status": "ended"' in resp.text
        assert "Sari" in resp.text
        assert "event: end" in resp.text

    async def test_stream_unknown_code(self, client, seed, auth_headers):
        student = await seed.user()
        resp = await client.get(
            f"{V}/quiz-sessions/NOPE42/leaderboard/events",
            headers=await auth_headers(student),
        )
        assert resp.status_code == 404

    async def test_admin_can_start_any_session(self, client, seed, auth_headers):
        teacher = await seed.teacher()
        admin = await seed.user(UserRole.ADMIN)
        student = await seed.user()
        qids = await seed.questions(1)
        code = (await _make_session(client, await auth_headers(teacher), qids)).json()["code"]
        await client.post(
            f"{V}/quiz-sessions/join", json={"code": code}, headers=await auth_headers(student)
        )
        resp = await client.post(
            f"{V}/quiz-sessions/{code}/start", headers=await auth_headers(admin)
        )
        assert resp.status_code == 200
