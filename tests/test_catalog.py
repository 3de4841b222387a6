"""Tests for browsing, searching and item visibility."""
from conftest import PACKAGING_IDEA, RECIPE


async def _approved(client, author, moderator, body=RECIPE, path="/api/v1/recipes"):
    item = (await client.post(path, headers=author["headers"], json=body)).json()
    resp = await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=moderator["headers"])
    assert resp.status_code == 200
    return item


async def test_browse_shows_only_approved(client, author, moderator):
    approved = await _approved(client, author, moderator)
    await client.post("/api/v1/recipes", headers=author["headers"], json={**RECIPE, "title": "Still Pending"})

    resp = await client.get("/api/v1/content")
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [i["id"] for i in items] == [approved["id"]]
    assert items[0]["author"]["username"] == "alice"


async def test_browse_newest_first_and_paginates(client, author, moderator):
    titles = ["Apple Crumble", "Banana Bread", "Cherry Pie"]
    for title in titles:
        await _approved(client, author, moderator, {**RECIPE, "title": title})

    resp = await client.get("/api/v1/content?limit=2")
    assert [i["payload"]["title"] for i in resp.json()["items"]] == ["Cherry Pie", "Banana Bread"]
    resp = await client.get("/api/v1/content?limit=2&offset=2")
    assert [i["payload"]["title"] for i in resp.json()["items"]] == ["Apple Crumble"]


async def test_browse_by_kind(client, author, moderator):
    await _approved(client, author, moderator)
    idea = await _approved(client, author, moderator, PACKAGING_IDEA, "/api/v1/packaging-ideas")

    resp = await client.get("/api/v1/content?kind=packaging_idea")
    assert [i["id"] for i in resp.json()["items"]] == [idea["id"]]


async def test_search_title_description_and_tags(client, author, moderator):
    soup = await _approved(client, author, moderator)
    bread = await _approved(client, author, moderator, {
        **RECIPE, "title": "Sourdough Loaf", "description": "Crusty bread", "tags": ["baking"],
    })

    resp = await client.get("/api/v1/content?q=LENTIL")
    assert [i["id"] for i in resp.json()["items"]] == [soup["id"]]
    resp = await client.get("/api/v1/content?q=crusty")
    assert [i["id"] for i in resp.json()["items"]] == [bread["id"]]
    resp = await client.get("/api/v1/content?q=baking")
    assert [i["id"] for i in resp.json()["items"]] == [bread["id"]]


async def test_search_treats_wildcards_literally(client, author, moderator):
    await _approved(client, author, moderator)
    resp = await client.get("/api/v1/content?q=%25")
    assert resp.json()["items"] == []


async def test_pending_item_hidden_from_strangers(client, author, signup):
    item = (await client.post("/api/v1/recipes", headers=author["headers"], json=RECIPE)).json()
    stranger = await signup("zed")

    assert (await client.get(f"/api/v1/content/{item['id']}")).status_code == 404
    assert (await client.get(f"/api/v1/content/{item['id']}", headers=stranger["headers"])).status_code == 404


async def test_pending_item_visible_to_author_and_moderator(client, author, moderator):
    item = (await client.post("/api/v1/recipes", headers=author["headers"], json=RECIPE)).json()

    resp = await client.get(f"/api/v1/content/{item['id']}", headers=author["headers"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"

    resp = await client.get(f"/api/v1/content/{item['id']}", headers=moderator["headers"])
    assert resp.status_code == 200


async def test_detail_reports_saved_flag(client, author, moderator, signup):
    item = await _approved(client, author, moderator)
    fan = await signup("gus")

    resp = await client.get(f"/api/v1/content/{item['id']}", headers=fan["headers"])
    assert resp.json()["is_saved"] is False
    await client.post(f"/api/v1/content/{item['id']}/save", headers=fan["headers"])
    resp = await client.get(f"/api/v1/content/{item['id']}", headers=fan["headers"])
    assert resp.json()["is_saved"] is True


async def test_my_content_lists_every_status(client, author, moderator, signup):
    approved = await _approved(client, author, moderator)
    rejected = (await client.post("/api/v1/recipes", headers=author["headers"], json={**RECIPE, "title": "Burnt Toast"})).json()
    await client.post(
        f"/api/v1/admin/content/{rejected['id']}/reject", headers=moderator["headers"], json={"notes": "blurry"},
    )
    pending = (await client.post("/api/v1/packaging-ideas", headers=author["headers"], json=PACKAGING_IDEA)).json()
    other = await signup("hal")
    await client.post("/api/v1/recipes", headers=other["headers"], json=RECIPE)

    resp = await client.get("/api/v1/content/mine", headers=author["headers"])
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [i["id"] for i in items] == [pending["id"], rejected["id"], approved["id"]]
    assert items[1]["moderator_notes"] == "blurry"

    resp = await client.get("/api/v1/content/mine?kind=recipe", headers=author["headers"])
    assert {i["id"] for i in resp.json()["items"]} == {rejected["id"], approved["id"]}


async def test_search_ignores_tag_list_punctuation(client, author, moderator):
    await _approved(client, author, moderator)
    await _approved(client, author, moderator, PACKAGING_IDEA, "/api/v1/packaging-ideas")

    for q in ("[", "]", '", "', '"'):
        resp = await client.get("/api/v1/content", params={"q": q})
        assert resp.json()["items"] == [], q


async def test_search_matches_non_ascii_tags(client, author, moderator):
    item = await _approved(client, author, moderator, {**RECIPE, "title": "Ratatouille", "tags": ["végétarien"]})

    resp = await client.get("/api/v1/content", params={"q": "végétarien"})
    assert [i["id"] for i in resp.json()["items"]] == [item["id"]]
    resp = await client.get("/api/v1/content", params={"q": "\"végé"})
    assert [i["id"] for i in resp.json()["items"]] == [item["id"]]
