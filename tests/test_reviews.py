# tests/test_reviews.py
import pytest

from helpers import auth_headers, make_fixed, make_user, register
from market.errors import (
    DuplicateReviewError,
    ForbiddenError,
    NotFoundError,
    SelfReviewForbiddenError,
)
from market.logic import ratings as RT
from market.models import Review


@pytest.mark.parametrize(
    "ratings, expected",
    [
        ([], 0.0),
        ([5], 5.0),
        ([4, 5, 3], 4.0),
        ([4, 5], 4.5),
        ([4, 4, 5], 4.3),   # 4.333..
        ([5, 5, 4], 4.7),   # 4.666..
        ([1, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2, 2], 2.0),  # 1.95 -> 2.0
    ],
)
def test_average_is_rounded_half_up_to_one_decimal(ratings, expected):
    assert RT.average_of(ratings) == expected


def test_average_over_three_reviewers(db):
    seller = make_user(db, "seller")
    item = make_fixed(db, seller.id)
    for name, rating in (("anna", 4), ("bora", 5), ("chul", 3)):
        reviewer = make_user(db, name)
        RT.add_review(db, reviewer_id=reviewer.id, item_id=item.id, rating=rating, comment="ok")

    assert RT.seller_rating(db, seller.id) == (3, 4.0)


def test_no_reviews_means_zero(db):
    seller = make_user(db, "seller")
    assert RT.seller_rating(db, seller.id) == (0, 0.0)


def test_duplicate_review_is_rejected_without_new_row(db):
    seller = make_user(db, "seller")
    buyer = make_user(db, "buyer")
    item = make_fixed(db, seller.id)

    RT.add_review(db, reviewer_id=buyer.id, item_id=item.id, rating=5, comment="great lamp")
    with pytest.raises(DuplicateReviewError):
        RT.add_review(db, reviewer_id=buyer.id, item_id=item.id, rating=1, comment="changed my mind")

    assert db.query(Review).count() == 1


def test_same_reviewer_different_items(db):
    seller = make_user(db, "seller")
    buyer = make_user(db, "buyer")
    for title, rating in (("Lamp", 4), ("Chair", 5), ("Clock", 3)):
        item = make_fixed(db, seller.id, title=title)
        RT.add_review(db, reviewer_id=buyer.id, item_id=item.id, rating=rating, comment=title)

    assert RT.seller_rating(db, seller.id) == (3, 4.0)


def test_seller_cannot_review_own_item(db):
    seller = make_user(db, "seller")
    item = make_fixed(db, seller.id)
    with pytest.raises(SelfReviewForbiddenError):
        RT.add_review(db, reviewer_id=seller.id, item_id=item.id, rating=5, comment="best seller ever")


def test_review_unknown_item(db):
    buyer = make_user(db, "buyer")
    with pytest.raises(NotFoundError):
        RT.add_review(db, reviewer_id=buyer.id, item_id=999, rating=5, comment="?")


def test_only_author_can_edit_or_delete(db):
    seller = make_user(db, "seller")
    buyer = make_user(db, "buyer")
    other = make_user(db, "other")
    item = make_fixed(db, seller.id)
    review = RT.add_review(db, reviewer_id=buyer.id, item_id=item.id, rating=3, comment="fine")

    with pytest.raises(ForbiddenError):
        RT.update_review(db, review_id=review.id, reviewer_id=other.id, rating=1)
    with pytest.raises(ForbiddenError):
        RT.delete_review(db, review_id=review.id, reviewer_id=other.id)

    updated = RT.update_review(db, review_id=review.id, reviewer_id=buyer.id, rating=5, comment="  better than expected ")
    assert updated.rating == 5
    assert updated.comment == "better than expected"

    RT.delete_review(db, review_id=review.id, reviewer_id=buyer.id)
    assert db.get(Review, review.id) is None
    with pytest.raises(NotFoundError):
        RT.delete_review(db, review_id=review.id, reviewer_id=buyer.id)


# ---------------- API ----------------
def _fixed(client, headers) -> int:
    r = client.post(
        "/items",
        headers=headers,
        json={
            "listingType": "fixed",
            "title": "Brass desk lamp",
            "description": "Working condition",
            "category": "lighting",
            "condition": "used",
            "location": "Busan",
            "price": 45000,
        },
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


def _setup(client, *names):
    ids, headers = {}, {}
    for n in names:
        ids[n] = register(client, n)["userId"]
        headers[n] = auth_headers(client, n)
    return ids, headers


def test_review_api_flow(client):
    ids, h = _setup(client, "seller", "anna", "bora")
    item_id = _fixed(client, h["seller"])

    r = client.post("/reviews", headers=h["anna"], json={"itemId": item_id, "rating": 4, "comment": "as described"})
    assert r.status_code == 201, r.text
    review = r.json()["review"]
    assert review["sellerId"] == ids["seller"]
    assert review["reviewer"]["name"] == "anna"
    assert review["item"] == {"id": item_id, "title": "Brass desk lamp"}

    client.post("/reviews", headers=h["bora"], json={"itemId": item_id, "rating": 5, "comment": "fast reply"})

    r = client.get(f"/reviews/seller/{ids['seller']}")
    assert r.status_code == 200
    body = r.json()
    assert body["totalReviews"] == 2
    assert body["averageRating"] == 4.5
    assert [rv["reviewer"]["name"] for rv in body["reviews"]] == ["bora", "anna"]

    r = client.get(f"/reviews/seller/{ids['seller']}/rating")
    assert r.json() == {"totalReviews": 2, "averageRating": 4.5}

    mine = client.get("/reviews/my-reviews", headers=h["anna"]).json()["reviews"]
    assert [rv["id"] for rv in mine] == [review["id"]]


def test_review_api_errors(client):
    ids, h = _setup(client, "seller", "anna")
    item_id = _fixed(client, h["seller"])

    assert client.post("/reviews", json={"itemId": item_id, "rating": 4, "comment": "x"}).status_code == 401
    assert client.post("/reviews", headers=h["anna"], json={"itemId": item_id, "rating": 6, "comment": "x"}).status_code == 422
    assert client.post("/reviews", headers=h["anna"], json={"itemId": item_id, "rating": 4, "comment": ""}).status_code == 422

    r = client.post("/reviews", headers=h["seller"], json={"itemId": item_id, "rating": 5, "comment": "me!"})
    assert r.status_code == 403

    assert client.post("/reviews", headers=h["anna"], json={"itemId": item_id, "rating": 4, "comment": "ok"}).status_code == 201
    r = client.post("/reviews", headers=h["anna"], json={"itemId": item_id, "rating": 2, "comment": "again"})
    assert r.status_code == 400
    assert client.get(f"/reviews/seller/{ids['seller']}/rating").json()["totalReviews"] == 1

    assert client.get("/reviews/seller/9999").status_code == 404


def test_review_edit_and_delete_api(client):
    ids, h = _setup(client, "seller", "anna", "bora")
    item_id = _fixed(client, h["seller"])
    review_id = client.post(
        "/reviews", headers=h["anna"], json={"itemId": item_id, "rating": 2, "comment": "slow"}
    ).json()["review"]["id"]

    assert client.put(f"/reviews/{review_id}", headers=h["bora"], json={"rating": 1}).status_code == 403

    r = client.put(f"/reviews/{review_id}", headers=h["anna"], json={"rating": 4})
    assert r.status_code == 200
    assert r.json()["review"]["rating"] == 4
    assert r.json()["review"]["comment"] == "slow"

    assert client.delete(f"/reviews/{review_id}", headers=h["bora"]).status_code == 403
    assert client.delete(f"/reviews/{review_id}", headers=h["anna"]).status_code == 200
    assert client.put(f"/reviews/{review_id}", headers=h["anna"], json={"rating": 4}).status_code == 404


def test_review_survives_item_deletion(client):
    ids, h = _setup(client, "seller", "anna")
    item_id = _fixed(client, h["seller"])
    client.post("/reviews", headers=h["anna"], json={"itemId": item_id, "rating": 5, "comment": "lovely"})

    assert client.delete(f"/items/{item_id}", headers=h["seller"]).status_code == 200

    body = client.get(f"/reviews/seller/{ids['seller']}").json()
    assert body["totalReviews"] == 1
    assert body["reviews"][0]["itemId"] is None
    assert body["reviews"][0]["item"] is None


def test_review_timestamps_are_utc_aware(client):
    ids, h = _setup(client, "seller", "anna")
    item_id = _fixed(client, h["seller"])

    review = client.post(
        "/reviews", headers=h["anna"], json={"itemId": item_id, "rating": 5, "comment": "lovely"}
    ).json()["review"]
    for key in ("createdAt", "updatedAt"):
        assert review[key].endswith("Z") or review[key].endswith("+00:00")

    listed = client.get(f"/reviews/seller/{ids['seller']}").json()["reviews"][0]
    assert listed["createdAt"].endswith("Z") or listed["createdAt"].endswith("+00:00")
