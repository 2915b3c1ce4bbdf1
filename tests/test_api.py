"""HTTP-level tests against the FastAPI app with fake collaborators."""
from datetime import date, timedelta

URL_A = "https://www.youtube.com/watch?v=AAAAAAAAAAA"
URL_B = "https://youtu.be/BBBBBBBBBBB"


async def _create(client, headers, url=URL_A, content="Tried waking at 5am", **extra):
    return await client.post("/api/entries", json={"youtube_url": url, "content": content, **extra}, headers=headers)


class TestAuth:
    async def test_login_me_logout(self, client, login):
        headers = await login("bob@example.com")
        me = await client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.json()["email"] == "bob@example.com"
        assert me.json()["name"] == "bob"

        await client.post("/api/auth/logout", headers=headers)
        assert (await client.get("/api/auth/me", headers=headers)).status_code == 401

    async def test_same_email_is_same_user(self, client, login):
        first = await client.post("/api/auth/login", json={"email": "carol@example.com"})
        second = await client.post("/api/auth/login", json={"email": "carol@example.com"})
        assert first.json()["user_id"] == second.json()["user_id"]

    async def test_invalid_email(self, client):
        resp = await client.post("/api/auth/login", json={"email": "nope"})
        assert resp.status_code == 422
        assert resp.json()["field"] == "email"


class TestEntries:
    async def test_anonymous_cannot_create(self, client):
        resp = await _create(client, {})
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    async def test_create_returns_entry(self, client, login):
        headers = await login()
        resp = await _create(client, headers, thumbnail_key="user_thumbnails/1/fixed.png")
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["content"] == "Tried waking at 5am"
        assert body["achieved"] is False
        assert body["deadline"] == (date.today() + timedelta(days=7)).isoformat()
        assert body["deadline_status"] == "normal"
        assert body["thumbnail_url"] == "https://signed.example/user_thumbnails/1/fixed.png"

    async def test_second_pending_entry_is_rejected(self, client, login):
        headers = await login()
        assert (await _create(client, headers)).status_code == 201
        resp = await _create(client, headers, url=URL_B, content="Another one")
        assert resp.status_code == 422
        assert resp.json()["field"] == "base"
        assert "error" in resp.json()

    async def test_invalid_url_is_rejected(self, client, login):
        headers = await login()
        resp = await _create(client, headers, url="https://example.com/watch")
        assert resp.status_code == 422

    async def test_achieve_requires_result_photo(self, client, login):
        headers = await login()
        entry_id = (await _create(client, headers)).json()["id"]

        resp = await client.post(f"/api/entries/{entry_id}/achieve", json={"reflection": "Felt great"}, headers=headers)
        assert resp.status_code == 422
        assert resp.json()["field"] == "result_image_key"

        resp = await client.post(
            f"/api/entries/{entry_id}/achieve",
            json={"reflection": "Felt great", "result_image_key": "user_thumbnails/1/result.jpg"},
            headers=headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["achieved"] is True
        assert body["reflection"] == "Felt great"
        assert body["display_thumbnail_url"] == "https://signed.example/user_thumbnails/1/result.jpg"

        # a new pending entry is allowed once the previous one is achieved
        assert (await _create(client, headers, url=URL_B, content="Next")).status_code == 201

    async def test_toggle_achieve_round_trip(self, client, login):
        headers = await login()
        entry_id = (await _create(client, headers)).json()["id"]
        on = await client.post(f"/api/entries/{entry_id}/toggle_achieve", headers=headers)
        off = await client.post(f"/api/entries/{entry_id}/toggle_achieve", headers=headers)
        assert on.json()["achieved"] is True
        assert off.json()["achieved"] is False

    async def test_other_users_cannot_modify(self, client, login):
        owner = await login("owner@example.com")
        other = await login("other@example.com")
        entry_id = (await _create(client, owner)).json()["id"]

        assert (await client.post(f"/api/entries/{entry_id}/toggle_achieve", headers=other)).status_code == 403
        assert (await client.delete(f"/api/entries/{entry_id}", headers=other)).status_code == 403
        assert (await client.patch(f"/api/entries/{entry_id}", json={"content": "x"}, headers=other)).status_code == 403

    async def test_update_and_delete(self, client, login):
        headers = await login()
        entry_id = (await _create(client, headers)).json()["id"]

        resp = await client.patch(
            f"/api/entries/{entry_id}", json={"content": "Read for 10 minutes", "new_video_url": URL_B}, headers=headers
        )
        assert resp.status_code == 200
        assert resp.json()["content"] == "Read for 10 minutes"
        new_video_id = resp.json()["video_id"]

        assert (await client.delete(f"/api/entries/{entry_id}", headers=headers)).status_code == 204
        assert (await client.get(f"/api/entries/{entry_id}/achievement")).status_code == 404
        # the retargeted video lost its last entry and is gone too
        assert (await client.get(f"/api/videos/{new_video_id}")).status_code == 404

    async def test_like_and_achievement_view(self, client, login, dispatcher):
        owner = await login("owner@example.com")
        fan = await login("fan@example.com")
        entry_id = (await _create(client, owner)).json()["id"]

        liked = await client.post(f"/api/entries/{entry_id}/like", headers=fan)
        assert liked.json() == {"active": True, "count": 1}
        assert len(dispatcher.events) == 1

        view = await client.get(f"/api/entries/{entry_id}/achievement", headers=fan)
        assert view.status_code == 200
        body = view.json()
        assert body["can_edit"] is False
        assert body["video"]["youtube_video_id"] == "AAAAAAAAAAA"
        assert body["fallback_thumbnail_url"] == "https://i.ytimg.com/vi/AAAAAAAAAAA/mqdefault.jpg"

        unliked = await client.post(f"/api/entries/{entry_id}/like", headers=fan)
        assert unliked.json() == {"active": False, "count": 0}


class TestVideos:
    async def test_find_or_create_and_detail(self, client, login):
        headers = await login()
        resp = await client.post("/api/videos/find_or_create", json={"youtube_url": URL_A}, headers=headers)
        assert resp.status_code == 200
        video_id = resp.json()["id"]
        again = await client.post("/api/videos/find_or_create", json={"youtube_url": URL_A + "&t=30"}, headers=headers)
        assert again.json()["id"] == video_id

        detail = (await client.get(f"/api/videos/{video_id}")).json()
        assert detail["title"] == "How I wake up at 5am"
        assert detail["embed_url"] == "https://www.youtube.com/embed/AAAAAAAAAAA"
        assert detail["action_count_rank"] is None

    async def test_cheer_toggle(self, client, login):
        headers = await login()
        video_id = (await client.post("/api/videos/find_or_create", json={"youtube_url": URL_A}, headers=headers)).json()["id"]
        assert (await client.post(f"/api/videos/{video_id}/cheer", headers=headers)).json() == {"active": True, "count": 1}
        assert (await client.post(f"/api/videos/{video_id}/cheer", headers=headers)).json() == {"active": False, "count": 0}

    async def test_ranking_and_channels(self, client, login):
        headers = await login()
        entry_id = (await _create(client, headers)).json()["id"]
        await client.post(f"/api/entries/{entry_id}/toggle_achieve", headers=headers)

        ranking = (await client.get("/api/videos/ranking")).json()
        assert ranking[0]["action_count"] == 1
        assert ranking[0]["video"]["youtube_video_id"] == "AAAAAAAAAAA"

        channels = (await client.get("/api/videos/popular_channels")).json()
        assert channels[0]["channel_name"] == "Morning Channel"

    async def test_recent_search_and_autocomplete(self, client, login):
        headers = await login()
        entry_id = (await _create(client, headers)).json()["id"]
        assert (await client.get("/api/videos/recent")).json() == []

        await client.post(f"/api/entries/{entry_id}/toggle_achieve", headers=headers)
        recent = (await client.get("/api/videos/recent")).json()
        assert [v["youtube_video_id"] for v in recent] == ["AAAAAAAAAAA"]
        assert recent[0]["thumbnail_url"].endswith("/AAAAAAAAAAA/mqdefault.jpg")

        results = (await client.get("/api/videos/search", params={"q": "morning"})).json()
        assert results[0]["channel_name"] == "Morning Channel"
        assert results[0]["entry_count"] == 1
        assert (await client.get("/api/videos/search", params={"q": "m"})).json() == []

        suggested = (await client.get("/api/videos/autocomplete", params={"q": "wake"})).json()
        assert suggested == {"suggestions": ["How I wake up at 5am"]}

    async def test_entries_on_video(self, client, login):
        alice = await login("alice@example.com")
        bob = await login("bob@example.com")
        await _create(client, alice)
        video_id = (await _create(client, bob, content="Bob tries too")).json()["video_id"]

        everyone = (await client.get(f"/api/videos/{video_id}/entries")).json()
        assert sorted(e["content"] for e in everyone) == ["Bob tries too", "Tried waking at 5am"]

        mine = (await client.get(f"/api/videos/{video_id}/entries", params={"mine": "true"}, headers=bob)).json()
        assert [e["content"] for e in mine] == ["Bob tries too"]

        resp = await client.get(f"/api/videos/{video_id}/entries", params={"mine": "true"})
        assert resp.status_code == 401
        assert (await client.get("/api/videos/999/entries")).status_code == 404

    async def test_suggestions(self, client, suggestions):
        resp = await client.post("/api/videos/suggest_action_plans", json={"video_id": "AAAAAAAAAAA", "title": "t"})
        assert resp.status_code == 200
        assert resp.json()["action_plans"] == suggestions.plans

        title = await client.post("/api/videos/convert_to_title", json={"action_plan": "Wake at 5am"})
        assert title.json()["title"] == "[Tried it] Wake at 5am"

    async def test_suggestion_failure_is_bad_gateway(self, client, suggestions):
        suggestions.error = "busy"
        suggestions.retryable = True
        resp = await client.post("/api/videos/suggest_action_plans", json={"video_id": "AAAAAAAAAAA"})
        assert resp.status_code == 502
        assert resp.json()["retryable"] is True

        resp = await client.post("/api/videos/convert_to_title", json={"action_plan": "x"})
        assert resp.status_code == 502


class TestUploadsAndDashboard:
    async def test_presign(self, client, login):
        headers = await login()
        resp = await client.post("/api/uploads/presign", json={"content_type": "image/png"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["key"].endswith(".png")

        bad = await client.post("/api/uploads/presign", json={"content_type": "image/gif"}, headers=headers)
        assert bad.status_code == 422

    async def test_dashboard(self, client, login):
        headers = await login()
        await _create(client, headers)
        resp = await client.get("/api/me/dashboard", headers=headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["current"]["content"] == "Tried waking at 5am"
        assert len(body["upcoming"]) == 1
        assert body["total_entries"] == 1
        assert body["streak"] == 1
        assert body["activity"] == {date.today().isoformat(): 1}
