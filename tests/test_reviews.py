"""
Tests for structured reviews, summaries and view counting.
"""

import pytest

from tests.helpers import bearer


@pytest.fixture
def reviewer(client, sign_in):
    """Token of a signed-in user with a filled-in profile."""
    token = sign_in(code="rhea")
    client.post(
        "/me",
        json={"college": "CCS", "batch_id": "122", "photo_path": "/img/rhea.png"},
        headers=bearer(token),
    )
    return token


def post_review(client, token, prof_id=1, **fields):
    payload = {"course_code": "CCPROG1", "review_text": "Solid class", **fields}
    return client.post(f"/professors/{prof_id}/reviews", json=payload, headers=bearer(token))


class TestCreateReview:

    def test_identity_is_copied(self, client, seeded, reviewer):
        response = post_review(client, reviewer, rating=4)

        assert response.status_code == 201
        review = response.json()["review"]
        assert review["display_name"] == "Rhea"
        assert review["college"] == "CCS"
        assert review["batch_id"] == "122"
        assert review["photo_path"] == "/img/rhea.png"

    def test_anonymous_nulls_identity(self, client, seeded, reviewer):
        response = post_review(client, reviewer, rating=4, anonymous=True)

        review = response.json()["review"]
        assert review["anonymous"] is True
        for field in ("display_name", "college", "batch_id", "photo_path"):
            assert review[field] is None

        stored = client.get("/professors/1/reviews").json()["reviews"][0]
        for field in ("display_name", "college", "batch_id", "photo_path"):
            assert stored[field] is None

    def test_course_code_is_uppercased(self, client, seeded, reviewer):
        review = post_review(client, reviewer, course_code=" ccprog2 ").json()["review"]
        assert review["course_code"] == "CCPROG2"

    def test_tags_are_joined(self, client, seeded, reviewer):
        review = post_review(client, reviewer, tags=["fair", " funny ", ""]).json()["review"]
        assert review["tags"] == "fair,funny"

    def test_requires_authentication(self, client, seeded):
        response = client.post("/professors/1/reviews", json={"course_code": "CCPROG1"})
        assert response.status_code == 401

    def test_course_code_required(self, client, seeded, reviewer):
        response = client.post(
            "/professors/1/reviews", json={"review_text": "x"}, headers=bearer(reviewer)
        )
        assert response.status_code == 400

    def test_unknown_enum_value(self, client, seeded, reviewer):
        response = post_review(client, reviewer, would_take_again="Maybe")
        assert response.status_code == 400

    def test_unknown_professor(self, client, seeded, reviewer):
        assert post_review(client, reviewer, prof_id=999).status_code == 404


class TestListReviews:

    def test_newest_first(self, client, seeded, reviewer):
        first = post_review(client, reviewer, title="first").json()["review"]["id"]
        second = post_review(client, reviewer, title="second").json()["review"]["id"]

        ids = [r["id"] for r in client.get("/professors/1/reviews").json()["reviews"]]

        assert ids == [second, first]

    def test_detail_includes_reviews(self, client, seeded, reviewer):
        post_review(client, reviewer)
        assert len(client.get("/professors/1").json()["reviews"]) == 1


class TestReviewSummary:

    def test_breakdown(self, client, seeded, reviewer):
        post_review(client, reviewer, rating=5, would_take_again="Yes", workload_rating="Low")
        post_review(client, reviewer, rating=3, would_take_again="Yes", workload_rating="High")
        post_review(client, reviewer, rating=0, would_take_again="No")

        summary = client.get("/professors/1/review-summary").json()

        assert summary["total_reviews"] == 3
        assert summary["rated_reviews"] == 2
        assert summary["average_rating"] == 4.0
        assert summary["would_take_again"] == {"Yes": 66.7, "No": 33.3}
        assert summary["workload_rating"] == {"Low": 50.0, "Medium": 0.0, "High": 50.0}
        assert summary["attainable_4"] == {"Easy": 0.0, "Moderate": 0.0, "Hard": 0.0}

    def test_empty(self, client, seeded):
        summary = client.get("/professors/1/review-summary").json()

        assert summary["total_reviews"] == 0
        assert summary["average_rating"] == 0.0


class TestViewCount:

    def test_views_increment(self, client, seeded, reviewer):
        review_id = post_review(client, reviewer).json()["review"]["id"]

        counts = [client.post(f"/reviews/{review_id}/view").json()["view_count"] for _ in range(3)]

        assert counts == [1, 2, 3]

    def test_missing_review(self, client, seeded):
        response = client.post("/reviews/999/view")
        assert response.status_code == 404
        assert response.json() == {"error": "Review not found"}
