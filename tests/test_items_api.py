import cloudinary.uploader

from rewear.models import Item, ItemCategory, ItemCondition, ItemStatus


def _form(**overrides):
    data = {
        "title": "Linen summer dress",
        "description": "Breathable linen dress, worn twice, no stains or tears.",
        "category": "Dresses",
        "brand": "Zara",
        "size": "S",
        "color": "White",
        "condition": "Excellent",
        "price": "1200",
        "originalPrice": "2400",
        "tags": '["summer", "linen"]',
        "materials": "linen, cotton",
        "city": "Mumbai",
    }
    data.update(overrides)
    return data


def _images(n=2):
    return [("images", (f"photo{i}.jpg", b"\xff\xd8 fake jpeg", "image/jpeg")) for i in range(n)]


# =====================================================
# LISTING
# =====================================================

def test_list_shows_only_active_items(client, make_user, make_item):
    seller = make_user()
    make_item(seller, title="Visible jacket")
    make_item(seller, title="Pending jacket", status=ItemStatus.pending)
    make_item(seller, title="Sold jacket", status=ItemStatus.sold)

    res = client.get("/api/items")
    assert res.status_code == 200

    data = res.json()["data"]
    assert [i["title"] for i in data["items"]] == ["Visible jacket"]
    assert data["pagination"] == {"current": 1, "pages": 1, "total": 1, "limit": 12}


def test_list_filters_and_sorting(client, make_user, make_item):
    seller = make_user()
    make_item(seller, title="Cheap tee", price=300, category=ItemCategory.tops)
    make_item(seller, title="Wool coat", price=3500)
    make_item(seller, title="Rain coat", price=1800, condition=ItemCondition.like_new)

    res = client.get("/api/items", params={"minPrice": 1000, "sortBy": "price", "sortOrder": "asc"})
    assert [i["title"] for i in res.json()["data"]["items"]] == ["Rain coat", "Wool coat"]

    res = client.get("/api/items", params={"category": "Tops"})
    assert [i["title"] for i in res.json()["data"]["items"]] == ["Cheap tee"]

    res = client.get("/api/items", params={"search": "coat", "condition": "Like New"})
    assert [i["title"] for i in res.json()["data"]["items"]] == ["Rain coat"]


def test_list_pagination(client, make_user, make_item):
    seller = make_user()
    for n in range(5):
        make_item(seller, title=f"Jacket number {n}")

    res = client.get("/api/items", params={"page": 2, "limit": 2})
    data = res.json()["data"]
    assert len(data["items"]) == 2
    assert data["pagination"] == {"current": 2, "pages": 3, "total": 5, "limit": 2}


def test_list_rejects_bad_query(client):
    res = client.get("/api/items", params={"limit": 500})
    assert res.status_code == 400

    res = client.get("/api/items", params={"sortBy": "password"})
    assert res.status_code == 400


# =====================================================
# DETAIL
# =====================================================

def test_detail_counts_views_for_signed_in_visitors(client, db, make_user, make_item, auth):
    seller = make_user()
    item = make_item(seller)

    client.get(f"/api/items/{item.id}")
    client.get(f"/api/items/{item.id}", headers=auth(seller))
    res = client.get(f"/api/items/{item.id}", headers=auth(make_user()))

    data = res.json()["data"]["item"]
    assert data["views"] == 1
    assert data["isLiked"] is False
    assert data["canEdit"] is False
    assert data["seller"]["id"] == str(seller.id)


def test_pending_item_hidden_from_strangers(client, make_user, make_item, auth, admin_user):
    seller = make_user()
    item = make_item(seller, status=ItemStatus.pending)

    assert client.get(f"/api/items/{item.id}").status_code == 404
    assert client.get(f"/api/items/{item.id}", headers=auth(make_user())).status_code == 404

    res = client.get(f"/api/items/{item.id}", headers=auth(seller))
    assert res.status_code == 200
    assert res.json()["data"]["item"]["canEdit"] is True

    assert client.get(f"/api/items/{item.id}", headers=auth(admin_user)).status_code == 200


def test_unknown_item(client):
    res = client.get("/api/items/00000000-0000-0000-0000-000000000000")
    assert res.status_code == 404
    assert res.json()["message"] == "Item not found"


# =====================================================
# CREATE / UPDATE / DELETE
# =====================================================

def test_create_item_uploads_images_and_waits_for_review(client, db, make_user, auth, _external_services):
    seller = make_user()

    res = client.post("/api/items", headers=auth(seller), data=_form(), files=_images(2))
    assert res.status_code == 201

    data = res.json()["data"]["item"]
    assert data["status"] == "pending"
    assert data["qualityBadge"] == "high"
    assert data["pointsValue"] == 120
    assert data["discountPercentage"] == 50
    assert data["tags"] == ["summer", "linen"]
    assert data["materials"] == ["linen", "cotton"]
    assert data["location"]["city"] == "Mumbai"
    assert [img["isPrimary"] for img in data["images"]] == [True, False]

    assert len(_external_services) == 2
    assert all(u["folder"] == "rewear/items" for u in _external_services)


def test_create_item_requires_images(client, make_user, auth):
    res = client.post("/api/items", headers=auth(make_user()), data=_form())
    assert res.status_code == 400
    assert res.json()["message"] == "At least one image is required"


def test_create_item_validates_fields(client, make_user, auth):
    res = client.post(
        "/api/items",
        headers=auth(make_user()),
        data=_form(title="abc", category="Hats"),
        files=_images(1),
    )
    assert res.status_code == 400
    fields = {e["field"] for e in res.json()["errors"]}
    assert {"title", "category"} <= fields


def test_create_item_too_many_images(client, make_user, auth):
    res = client.post("/api/items", headers=auth(make_user()), data=_form(), files=_images(6))
    assert res.status_code == 400


def test_create_item_checks_every_image_before_uploading(client, db, make_user, auth, _external_services):
    files = _images(1) + [("images", ("notes.txt", b"not an image", "text/plain"))]

    res = client.post("/api/items", headers=auth(make_user()), data=_form(), files=files)
    assert res.status_code == 400
    assert "Unsupported file type" in res.json()["message"]

    assert _external_services == []
    assert db.query(Item).count() == 0


def test_create_item_cleans_up_when_an_upload_fails(client, db, make_user, auth, monkeypatch):
    stored = []
    destroyed = []

    def flaky_upload(file, **options):
        if stored:
            raise RuntimeError("connection reset")
        public_id = f"{options['folder']}/{options['public_id']}"
        stored.append(public_id)
        return {"secure_url": f"https://res.cloudinary.com/test/{public_id}.jpg", "public_id": public_id}

    def fake_destroy(public_id, **kw):
        destroyed.append(public_id)
        return {"result": "ok"}

    monkeypatch.setattr(cloudinary.uploader, "upload", flaky_upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", fake_destroy)

    res = client.post("/api/items", headers=auth(make_user()), data=_form(), files=_images(3))
    assert res.status_code == 400
    assert res.json()["message"] == "Image upload failed"

    assert destroyed == stored
    assert len(destroyed) == 1
    assert db.query(Item).count() == 0


def test_create_item_requires_login(client):
    res = client.post("/api/items", data=_form(), files=_images(1))
    assert res.status_code == 401


def test_update_item_owner_only(client, make_user, make_item, auth):
    seller = make_user()
    item = make_item(seller)

    res = client.put(f"/api/items/{item.id}", headers=auth(make_user()), json={"price": 900})
    assert res.status_code == 403
    assert res.json()["message"] == "Not authorized to update this item"

    res = client.put(f"/api/items/{item.id}", headers=auth(seller), json={"price": 900, "condition": "Fair"})
    assert res.status_code == 200
    data = res.json()["data"]["item"]
    assert data["price"] == 900
    assert data["qualityBadge"] == "basic"


def test_update_item_needs_fields(client, make_user, make_item, auth):
    seller = make_user()
    item = make_item(seller)
    res = client.put(f"/api/items/{item.id}", headers=auth(seller), json={})
    assert res.status_code == 400
    assert res.json()["message"] == "No fields to update"


def test_update_sold_item_refused(client, make_user, make_item, auth):
    seller = make_user()
    item = make_item(seller, status=ItemStatus.sold)
    res = client.put(f"/api/items/{item.id}", headers=auth(seller), json={"price": 900})
    assert res.status_code == 400


def test_delete_item(client, db, make_user, make_item, auth):
    seller = make_user()
    item = make_item(seller)
    sold = make_item(seller, status=ItemStatus.sold)

    res = client.delete(f"/api/items/{sold.id}", headers=auth(seller))
    assert res.status_code == 400
    assert res.json()["message"] == "Cannot delete sold items"

    res = client.delete(f"/api/items/{item.id}", headers=auth(make_user()))
    assert res.status_code == 403

    res = client.delete(f"/api/items/{item.id}", headers=auth(seller))
    assert res.status_code == 200
    db.expire_all()
    assert db.get(Item, item.id) is None


def test_my_items_filters_by_status(client, make_user, make_item, auth):
    seller = make_user()
    make_item(seller, title="Live jacket")
    make_item(seller, title="Waiting jacket", status=ItemStatus.pending)
    make_item(make_user(), title="Someone else's jacket")

    res = client.get("/api/items/user/my-items", headers=auth(seller))
    assert res.json()["data"]["pagination"]["total"] == 2

    res = client.get("/api/items/user/my-items", headers=auth(seller), params={"status": "pending"})
    assert [i["title"] for i in res.json()["data"]["items"]] == ["Waiting jacket"]


# =====================================================
# LIKE / FLAG
# =====================================================

def test_like_endpoint_toggles(client, make_user, make_item, auth):
    item = make_item(make_user())
    fan = make_user()

    res = client.post(f"/api/items/{item.id}/like", headers=auth(fan))
    assert res.json()["data"] == {"isLiked": True, "likes": 1}

    res = client.get(f"/api/items/{item.id}", headers=auth(fan))
    assert res.json()["data"]["item"]["isLiked"] is True

    res = client.post(f"/api/items/{item.id}/like", headers=auth(fan))
    assert res.json()["data"] == {"isLiked": False, "likes": 0}


def test_flag_endpoint(client, db, make_user, make_item, auth):
    seller = make_user()
    item = make_item(seller)
    reporter = make_user()

    res = client.post(f"/api/items/{item.id}/flag", headers=auth(reporter), json={"reason": "Counterfeit brand"})
    assert res.status_code == 200

    res = client.post(f"/api/items/{item.id}/flag", headers=auth(reporter), json={"reason": "Counterfeit brand"})
    assert res.status_code == 400
    assert res.json()["message"] == "You have already flagged this item"

    res = client.post(f"/api/items/{item.id}/flag", headers=auth(seller), json={"reason": "Testing my own"})
    assert res.status_code == 400

    for _ in range(2):
        client.post(f"/api/items/{item.id}/flag", headers=auth(make_user()), json={"reason": "Not as described"})

    db.expire_all()
    assert db.get(Item, item.id).status == ItemStatus.flagged
    assert client.get("/api/items").json()["data"]["items"] == []
