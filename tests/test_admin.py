"""
Tests for the admin surface: role gating, cross-school fan-out,
moderation and the activity stream.
"""

import asyncio

import pytest

from phrofs.core.exceptions import StorageUnavailable
from phrofs.services.activity_stream import ActivityBroadcaster, format_sse, stream_events
from phrofs.services.admin_service import AdminFanout, TenantResult, tenant_summary
from tests.helpers import ADMIN_HEADERS, MODERATOR_HEADERS, VIEWER_HEADERS, bearer


@pytest.fixture
def commented(client, seeded):
    """Three star ratings on professor 1 of dlsu; returns the comment ids."""
    for stars in (5, 3, 4):
        client.post("/professors/1/rate", json={"stars": stars, "comment": f"{stars} stars"})
    return [c["id"] for c in client.get("/professors/1").json()["comments"]]


class TestAdminAuth:

    def test_no_credentials(self, client):
        response = client.get("/admin/summary")
        assert response.status_code == 401

    def test_wrong_password(self, client):
        response = client.get("/admin/summary", headers={"X-Admin-Password": "nope"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid admin password"}

    @pytest.mark.parametrize(
        "password,role",
        [("admin-pw", "admin"), ("moderator-pw", "moderator"), ("viewer-pw", "viewer")],
    )
    def test_login_issues_role_token(self, client, password, role):
        response = client.post("/admin/login", json={"password": password})

        assert response.status_code == 200
        assert response.json()["role"] == role
        token = response.json()["token"]
        assert client.get("/admin/summary", headers=bearer(token)).status_code == 200

    def test_login_rejects_unknown_password(self, client):
        assert client.post("/admin/login", json={"password": "guess"}).status_code == 401

    def test_user_token_is_not_an_admin_token(self, client, sign_in):
        token = sign_in()
        assert client.get("/admin/summary", headers=bearer(token)).status_code == 401


class TestRoleGating:

    def test_viewer_can_read(self, client):
        assert client.get("/admin/users", headers=VIEWER_HEADERS).status_code == 200

    def test_viewer_cannot_flag(self, client, commented):
        response = client.post(
            f"/admin/comments/{commented[0]}/flag", json={"flagged": True}, headers=VIEWER_HEADERS
        )
        assert response.status_code == 403
        assert response.json() == {"error": "moderator role required"}

    def test_viewer_cannot_delete(self, client, commented):
        response = client.delete(f"/admin/comments/{commented[0]}", headers=VIEWER_HEADERS)
        assert response.status_code == 403

    def test_moderator_cannot_delete(self, client, commented):
        response = client.delete(f"/admin/comments/{commented[0]}", headers=MODERATOR_HEADERS)
        assert response.status_code == 403
        assert len(client.get("/professors/1").json()["comments"]) == 3

    def test_moderator_can_flag(self, client, commented):
        response = client.post(
            f"/admin/comments/{commented[0]}/flag",
            json={"flagged": True, "reason": "spam"},
            headers=MODERATOR_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["flagged"] is True

    def test_admin_can_delete(self, client, commented):
        five_star = next(
            c["id"] for c in client.get("/professors/1").json()["comments"] if c["stars"] == 5
        )

        response = client.delete(f"/admin/comments/{five_star}", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"ok": True, "school": "dlsu", "rating_avg": 3.5, "rating_count": 2}
        prof = client.get("/professors/1").json()["prof"]
        assert prof["rating_avg"] == 3.5
        assert prof["rating_count"] == 2


class TestModeration:

    def test_actions_are_logged(self, client, commented):
        client.post(f"/admin/comments/{commented[0]}/flag", json={}, headers=MODERATOR_HEADERS)
        client.delete(f"/admin/comments/{commented[1]}", headers=ADMIN_HEADERS)

        logs = client.get("/admin/logs", params={"school": "dlsu"}, headers=VIEWER_HEADERS).json()

        actions = {(row["action"], row["role"], row["school"]) for row in logs["items"]}
        assert actions == {("comment.flag", "moderator", "dlsu"), ("comment.delete", "admin", "dlsu")}

    def test_edit_stars_recomputes(self, client, commented):
        three_star = next(
            c["id"] for c in client.get("/professors/1").json()["comments"] if c["stars"] == 3
        )

        response = client.put(
            f"/admin/comments/{three_star}",
            json={"stars": 1, "comment": "edited"},
            headers=MODERATOR_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["comment"] == "edited"
        assert client.get("/professors/1").json()["prof"]["rating_avg"] == 3.33

    def test_edit_rejects_bad_stars(self, client, commented):
        response = client.put(
            f"/admin/comments/{commented[0]}", json={"stars": 9}, headers=MODERATOR_HEADERS
        )
        assert response.status_code == 400

    def test_missing_comment(self, client, seeded):
        response = client.delete("/admin/comments/999", headers=ADMIN_HEADERS)
        assert response.status_code == 404

    def test_moderation_targets_one_school(self, client, commented):
        response = client.delete(
            f"/admin/comments/{commented[0]}", params={"school": "ateneo"}, headers=ADMIN_HEADERS
        )

        assert response.status_code == 404
        assert len(client.get("/professors/1").json()["comments"]) == 3


class TestFanoutViews:

    def test_summary_lists_every_school(self, client, commented, seeded):
        seeded("up")

        body = client.get("/admin/summary", headers=VIEWER_HEADERS).json()

        assert [r["school"] for r in body["results"]] == ["dlsu", "ateneo", "up", "benilde"]
        assert all(r["ok"] for r in body["results"])
        assert body["totals"]["professors"] == 10
        assert body["totals"]["comments"] == 3

    def test_summary_for_one_school(self, client, seeded):
        body = client.get("/admin/summary", params={"school": "up"}, headers=VIEWER_HEADERS).json()

        assert [r["school"] for r in body["results"]] == ["up"]
        assert body["totals"]["subjects"] == 0

    def test_activity_is_tagged_with_school(self, client, seeded):
        seeded("ateneo")
        client.post("/professors/1/rate", json={"stars": 4})
        client.post("/professors/2/rate", params={"school": "ateneo"}, json={"stars": 2})

        items = client.get("/admin/activity", headers=VIEWER_HEADERS).json()["items"]

        assert {(i["type"], i["school"]) for i in items} == {("comment", "dlsu"), ("comment", "ateneo")}

    def test_users_extended_counts(self, client, seeded, sign_in):
        token = sign_in(code="vic")
        client.post("/professors/1/rate", json={"stars": 4}, headers=bearer(token))

        body = client.get(
            "/admin/users-extended", params={"school": "dlsu"}, headers=VIEWER_HEADERS
        ).json()

        users = body["results"][0]["result"]
        assert len(users) == 1
        assert users[0]["comment_count"] == 1
        assert users[0]["review_count"] == 0


class TestAdminFanout:
    """Per-school error isolation and result merging"""

    async def test_one_failing_school_does_not_sink_the_others(self, registry):
        async def operation(db, school):
            if school == "up":
                raise StorageUnavailable("Storage for 'up' is unavailable")
            return await tenant_summary(db, school)

        results = await AdminFanout(registry).query_all(registry.schools, operation)

        assert [r.school for r in results] == list(registry.schools)
        failed = [r for r in results if not r.ok]
        assert [(r.school, r.error) for r in failed] == [("up", "Storage for 'up' is unavailable")]
        assert all(r.result["users"] == 0 for r in results if r.ok)

    async def test_unexpected_errors_are_masked(self, registry):
        async def operation(db, school):
            raise RuntimeError("disk exploded at /var/secret")

        results = await AdminFanout(registry).query_all(["dlsu"], operation)

        assert results[0].ok is False
        assert results[0].error == "Query failed for this school"

    def test_targets(self, stores):
        fanout = AdminFanout(stores)

        assert fanout.targets(None) == ["dlsu", "ateneo", "up", "benilde"]
        assert fanout.targets("ALL") == ["dlsu", "ateneo", "up", "benilde"]
        assert fanout.targets("up") == ["up"]
        assert fanout.targets("mit") == ["dlsu"]

    def test_sum_numeric_skips_failures_and_non_numbers(self):
        results = [
            TenantResult("dlsu", True, {"users": 2, "reviews": 5, "name": "x", "flag": True}),
            TenantResult("up", True, {"users": 3}),
            TenantResult("ateneo", False, error="down"),
        ]

        assert AdminFanout.sum_numeric(results) == {"users": 5, "reviews": 5}

    def test_merge_rows_orders_newest_first(self):
        results = [
            TenantResult("dlsu", True, [{"id": 1, "created_at": "2024-01-01T10:00:00"}]),
            TenantResult("up", True, [{"id": 1, "created_at": "2024-01-02T10:00:00"}]),
            TenantResult("ateneo", False, error="down"),
            TenantResult("benilde", True, [{"id": 7, "created_at": "2024-01-01T10:00:00"}]),
        ]

        merged = AdminFanout.merge_rows(results)

        assert [(r["school"], r["id"]) for r in merged] == [("up", 1), ("benilde", 7), ("dlsu", 1)]

    def test_merge_rows_limit(self):
        results = [TenantResult("dlsu", True, [{"id": i, "created_at": f"2024-01-0{i}"} for i in range(1, 6)])]
        assert [r["id"] for r in AdminFanout.merge_rows(results, limit=2)] == [5, 4]


class TestActivityStream:

    def test_publish_reaches_every_subscriber(self):
        broadcaster = ActivityBroadcaster()
        first, second = broadcaster.subscribe(), broadcaster.subscribe()

        delivered = broadcaster.publish("comment.created", "dlsu", {"id": 1})

        assert delivered == 2
        assert first.get_nowait()["data"] == {"id": 1}
        assert second.get_nowait()["school"] == "dlsu"

    def test_full_queue_drops_for_that_subscriber_only(self):
        broadcaster = ActivityBroadcaster(max_queue_size=1)
        broadcaster.subscribe()

        assert broadcaster.publish("a", "dlsu", {}) == 1
        assert broadcaster.publish("b", "dlsu", {}) == 0

    def test_format_sse(self):
        frame = format_sse({"type": "review.created", "school": "up", "data": {}})

        assert frame.startswith("event: review.created\ndata: {")
        assert frame.endswith("\n\n")

    async def test_stream_yields_events_and_unsubscribes(self):
        broadcaster = ActivityBroadcaster()
        disconnected = asyncio.Event()

        async def is_disconnected():
            return disconnected.is_set()

        stream = stream_events(broadcaster, is_disconnected, keepalive=0.05)
        assert await stream.__anext__() == ": connected\n\n"
        assert broadcaster.subscriber_count == 1

        assert await stream.__anext__() == ": keepalive\n\n"
        broadcaster.publish("resource.created", "benilde", {"id": 3})
        frame = await stream.__anext__()
        assert frame.startswith("event: resource.created\n")

        disconnected.set()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()
        assert broadcaster.subscriber_count == 0
