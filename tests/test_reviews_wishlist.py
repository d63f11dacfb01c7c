import pytest

from rewear.models import ItemStatus, Order, OrderStatus, PaymentMethod, User


@pytest.fixture
def make_order(db):
    def _make(buyer, seller, item, status=OrderStatus.delivered):
        order = Order(
            buyer_id=buyer.id,
            seller_id=seller.id,
            item_id=item.id,
            item_price=item.price,
            amount=item.price,
            payment_method=PaymentMethod.razorpay,
            status=status,
            shipping_address={"fullName": buyer.name, "city": "Delhi"},
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order
    return _make


@pytest.fixture
def delivered(make_user, make_item, make_order):
    seller = make_user(name="Seller")
    buyer = make_user(name="Buyer")
    item = make_item(seller, status=ItemStatus.sold)
    return make_order(buyer, seller, item), buyer, seller, item


def _review(client, auth, user, order, rating=5, **extra):
    payload = {
        "orderId": str(order.id),
        "rating": rating,
        "title": "Great seller",
        "comment": "Fast shipping and exactly as described.",
    }
    payload.update(extra)
    return client.post("/api/reviews", headers=auth(user), json=payload)


# =====================================================
# REVIEWS
# =====================================================

def test_buyer_reviews_seller_and_rating_updates(client, db, auth, delivered):
    order, buyer, seller, item = delivered

    res = _review(client, auth, buyer, order, rating=4, aspects={"communication": 5, "itemCondition": 4})
    assert res.status_code == 201

    review = res.json()["data"]["review"]
    assert review["type"] == "buyer_to_seller"
    assert review["reviewee"] == str(seller.id)
    assert review["isVerifiedPurchase"] is True
    assert review["aspects"] == {"communication": 5, "itemCondition": 4}

    db.expire_all()
    stored = db.get(User, seller.id)
    assert stored.rating_average == 4
    assert stored.rating_count == 1


def test_both_sides_review_once(client, auth, delivered):
    order, buyer, seller, _ = delivered

    assert _review(client, auth, buyer, order).status_code == 201
    res = _review(client, auth, seller, order, title="Prompt payment")
    assert res.status_code == 201
    assert res.json()["data"]["review"]["type"] == "seller_to_buyer"

    res = _review(client, auth, buyer, order)
    assert res.status_code == 400
    assert res.json()["message"] == "You already reviewed this order"


def test_review_requires_participant_and_delivery(client, auth, make_user, make_item, make_order):
    seller, buyer = make_user(), make_user()
    shipped = make_order(buyer, seller, make_item(seller, status=ItemStatus.sold), status=OrderStatus.shipped)

    res = _review(client, auth, make_user(), shipped)
    assert res.status_code == 403

    res = _review(client, auth, buyer, shipped)
    assert res.status_code == 400
    assert res.json()["message"] == "Only delivered orders can be reviewed"


def test_review_rating_bounds(client, auth, delivered):
    order, buyer, _, _ = delivered
    assert _review(client, auth, buyer, order, rating=6).status_code == 400
    assert _review(client, auth, buyer, order, rating=0).status_code == 400


def test_response_and_votes(client, auth, make_user, delivered):
    order, buyer, seller, _ = delivered
    review_id = _review(client, auth, buyer, order).json()["data"]["review"]["id"]

    res = client.post(f"/api/reviews/{review_id}/response", headers=auth(buyer), json={"comment": "Me again"})
    assert res.status_code == 403

    res = client.post(f"/api/reviews/{review_id}/response", headers=auth(seller), json={"comment": "Thank you!"})
    assert res.status_code == 200
    assert res.json()["data"]["review"]["response"]["comment"] == "Thank you!"

    res = client.post(f"/api/reviews/{review_id}/response", headers=auth(seller), json={"comment": "Again"})
    assert res.status_code == 400

    res = client.post(f"/api/reviews/{review_id}/vote", headers=auth(buyer), json={"helpful": True})
    assert res.status_code == 400

    voter = make_user()
    res = client.post(f"/api/reviews/{review_id}/vote", headers=auth(voter), json={"helpful": True})
    assert res.json()["data"]["helpfulCount"] == 1
    client.post(f"/api/reviews/{review_id}/vote", headers=auth(make_user()), json={"helpful": True})

    # changing a vote replaces it
    res = client.post(f"/api/reviews/{review_id}/vote", headers=auth(voter), json={"helpful": False})
    assert res.json()["data"]["helpfulCount"] == 1


def test_user_reviews_with_stats(client, auth, make_user, make_item, make_order):
    seller = make_user()
    for rating in (5, 3):
        buyer = make_user()
        order = make_order(buyer, seller, make_item(seller, status=ItemStatus.sold))
        _review(client, auth, buyer, order, rating=rating)

    res = client.get(f"/api/reviews/user/{seller.id}")
    data = res.json()["data"]
    assert len(data["reviews"]) == 2
    assert data["stats"]["averageRating"] == 4
    assert data["stats"]["totalReviews"] == 2
    assert data["stats"]["ratingDistribution"] == {"1": 0, "2": 0, "3": 1, "4": 0, "5": 1}


def test_hidden_review_drops_out_of_rating(client, db, auth, admin_user, make_user, make_item, make_order):
    seller = make_user()
    review_ids = []
    for rating in (5, 1):
        buyer = make_user()
        order = make_order(buyer, seller, make_item(seller, status=ItemStatus.sold))
        review_ids.append(_review(client, auth, buyer, order, rating=rating).json()["data"]["review"]["id"])

    res = client.put(
        f"/api/admin/reviews/{review_ids[1]}/status",
        headers=auth(admin_user),
        json={"status": "hidden", "reason": "Abusive language"},
    )
    assert res.status_code == 200

    db.expire_all()
    stored = db.get(User, seller.id)
    assert stored.rating_average == 5
    assert stored.rating_count == 1

    res = client.get(f"/api/reviews/item/{order.item_id}")
    assert res.json()["data"]["reviews"] == []


# =====================================================
# WISHLIST
# =====================================================

def test_wishlist_add_check_remove(client, auth, make_user, make_item):
    user = make_user()
    item = make_item(make_user())

    res = client.get(f"/api/wishlist/{item.id}/check", headers=auth(user))
    assert res.json()["data"] == {"inWishlist": False}

    res = client.post(f"/api/wishlist/{item.id}", headers=auth(user), json={"notes": "For the trip"})
    assert res.status_code == 201

    res = client.post(f"/api/wishlist/{item.id}", headers=auth(user))
    assert res.status_code == 400
    assert res.json()["message"] == "Item already in wishlist"

    res = client.get("/api/wishlist", headers=auth(user))
    data = res.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["notes"] == "For the trip"
    assert data["items"][0]["item"]["id"] == str(item.id)

    res = client.delete(f"/api/wishlist/{item.id}", headers=auth(user))
    assert res.status_code == 200

    res = client.get(f"/api/wishlist/{item.id}/check", headers=auth(user))
    assert res.json()["data"] == {"inWishlist": False}


def test_wishlist_unknown_item(client, auth, make_user):
    res = client.post("/api/wishlist/00000000-0000-0000-0000-000000000000", headers=auth(make_user()))
    assert res.status_code == 404


# =====================================================
# POINTS ROUTES
# =====================================================

def test_points_history_and_stats(client, auth, make_user, make_item, admin_user):
    seller = make_user()
    item = make_item(seller, status=ItemStatus.pending)
    client.post("/api/admin/items/approve", headers=auth(admin_user), json={"itemId": str(item.id)})

    res = client.get("/api/points/history", headers=auth(seller))
    data = res.json()["data"]
    assert data["pagination"]["total"] == 1
    txn = data["transactions"][0]
    assert txn["points"] == 10
    assert txn["balanceAfter"] == 10
    assert txn["relatedItem"] == str(item.id)

    res = client.get("/api/points/stats", headers=auth(seller))
    data = res.json()["data"]
    assert data["balance"] == 10
    assert data["ledgerBalance"] == 10
    assert data["levelInfo"]["nextLevel"] == "Explorer"
    assert data["byType"]["earned"] == {"totalPoints": 10, "count": 1}
