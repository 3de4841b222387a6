"""Tests for the moderation state machine: submit, approve, reject, edit, queue."""
import pytest

from conftest import PACKAGING_IDEA, RECIPE, get_test_session
from src.errors import AuthorizationError, InvalidStateTransition, NotFoundError
from src.models import ContentStatus, Identity
from src.services import moderation, saved
from src.db.repository import ContentRepository, SavedItemRepository


async def _submit(client, who, body=RECIPE, path="/api/v1/recipes"):
    resp = await client.post(path, headers=who["headers"], json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_scenario_a_submit_then_approve(client, author, moderator):
    item = await _submit(client, author, {"title": "Soup", "ingredients": ["water"], "steps": ["boil"]})
    assert item["status"] == "pending"
    assert item["approved_at"] is None
    assert item["moderator_notes"] is None
    assert item["author_id"] == author["id"]

    resp = await client.post(
        f"/api/v1/admin/content/{item['id']}/approve",
        headers=moderator["headers"], json={"notes": "looks good"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "approved"
    assert data["approved_at"] is not None
    assert data["moderator_notes"] == "looks good"


async def test_scenario_b_reject_leaves_approved_at_empty(client, author, moderator):
    item = await _submit(client, author)
    resp = await client.post(
        f"/api/v1/admin/content/{item['id']}/reject",
        headers=moderator["headers"], json={"notes": "unsafe"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "rejected"
    assert data["approved_at"] is None
    assert data["moderator_notes"] == "unsafe"


async def test_approve_without_notes_stores_empty_string(client, author, moderator):
    item = await _submit(client, author)
    resp = await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=moderator["headers"])
    assert resp.status_code == 200
    assert resp.json()["moderator_notes"] == ""


async def test_scenario_c_edit_rejected_item_returns_to_queue(client, author, moderator):
    item = await _submit(client, author)
    await client.post(
        f"/api/v1/admin/content/{item['id']}/reject",
        headers=moderator["headers"], json={"notes": "needs quantities"},
    )

    edited = {**RECIPE, "ingredients": ["200g red lentils", "1 lemon"]}
    resp = await client.put(f"/api/v1/content/{item['id']}", headers=author["headers"], json=edited)
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "pending"
    assert data["approved_at"] is None
    # Notes survive the edit until the next decision
    assert data["moderator_notes"] == "needs quantities"
    assert data["payload"]["ingredients"] == ["200g red lentils", "1 lemon"]

    resp = await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=moderator["headers"])
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"


async def test_edit_approved_item_clears_approved_at(client, author, moderator):
    item = await _submit(client, author)
    await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=moderator["headers"])

    resp = await client.put(
        f"/api/v1/content/{item['id']}", headers=author["headers"], json={**RECIPE, "title": "Lentil Soup II"},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"
    assert resp.json()["approved_at"] is None


async def test_scenario_d_regular_user_cannot_approve(client, author, signup):
    item = await _submit(client, author)
    stranger = await signup("bob")

    resp = await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=stranger["headers"])
    assert resp.status_code == 403
    assert resp.json()["error"] == "forbidden"

    # Item unchanged
    resp = await client.get(f"/api/v1/content/{item['id']}", headers=author["headers"])
    assert resp.json()["status"] == "pending"


async def test_author_cannot_approve_own_item(client, author):
    item = await _submit(client, author)
    resp = await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=author["headers"])
    assert resp.status_code == 403


async def test_scenario_e_saved_item_hidden_after_rejection(client, author, moderator, signup):
    item = await _submit(client, author)
    await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=moderator["headers"])

    fan = await signup("carol")
    resp = await client.post(f"/api/v1/content/{item['id']}/save", headers=fan["headers"])
    assert resp.status_code == 200
    resp = await client.get("/api/v1/me/saved", headers=fan["headers"])
    assert [i["id"] for i in resp.json()["items"]] == [item["id"]]

    # Author edit sends it back to review, where it gets rejected
    await client.put(f"/api/v1/content/{item['id']}", headers=author["headers"], json=RECIPE)
    await client.post(f"/api/v1/admin/content/{item['id']}/reject", headers=moderator["headers"])

    resp = await client.get("/api/v1/me/saved", headers=fan["headers"])
    assert resp.json()["items"] == []

    async with get_test_session() as session:
        assert await SavedItemRepository(session).count_for_user(fan["id"]) == 1
        assert await saved.is_saved(session, fan["identity"], item["id"])


async def test_approve_twice_is_invalid_transition(client, author, moderator):
    item = await _submit(client, author)
    url = f"/api/v1/admin/content/{item['id']}/approve"
    assert (await client.post(url, headers=moderator["headers"])).status_code == 200

    resp = await client.post(url, headers=moderator["headers"])
    assert resp.status_code == 409
    assert resp.json()["error"] == "invalid_state"


async def test_reject_after_approve_is_invalid_transition(client, author, moderator):
    item = await _submit(client, author)
    await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=moderator["headers"])
    resp = await client.post(f"/api/v1/admin/content/{item['id']}/reject", headers=moderator["headers"])
    assert resp.status_code == 409

    resp = await client.get(f"/api/v1/content/{item['id']}")
    assert resp.json()["status"] == "approved"


async def test_approve_unknown_item_is_not_found(client, moderator):
    resp = await client.post("/api/v1/admin/content/does-not-exist/approve", headers=moderator["headers"])
    assert resp.status_code == 404


async def test_authorization_checked_before_state(client, author, moderator, signup):
    item = await _submit(client, author)
    await client.post(f"/api/v1/admin/content/{item['id']}/approve", headers=moderator["headers"])
    stranger = await signup("dave")

    resp = await client.post(f"/api/v1/admin/content/{item['id']}/reject", headers=stranger["headers"])
    assert resp.status_code == 403


async def test_stale_moderator_loses_race(client, author, signup):
    """Two moderators decide on the same item; the second one is told to refresh."""
    first = await signup("mod1", moderator=True)
    second = await signup("mod2", moderator=True)
    item = await _submit(client, author)

    async with get_test_session() as session:
        queue = await moderation.pending_queue(session, second["identity"])
        assert [i.id for i in queue] == [item["id"]]

    async with get_test_session() as session:
        await moderation.approve(session, first["identity"], item["id"], "ok")

    async with get_test_session() as session:
        with pytest.raises(InvalidStateTransition):
            await moderation.reject(session, second["identity"], item["id"], "no")

    async with get_test_session() as session:
        current = await ContentRepository(session).get(item["id"])
        assert current.status == ContentStatus.APPROVED
        assert current.moderator_notes == "ok"


async def test_service_rejects_unknown_actor():
    async with get_test_session() as session:
        with pytest.raises(AuthorizationError):
            await moderation.approve(session, Identity(user_id="nobody"), "x")


async def test_queue_is_oldest_first(client, author, moderator, signup):
    other = await signup("erin")
    first = await _submit(client, author, {**RECIPE, "title": "First"})
    second = await _submit(client, other, PACKAGING_IDEA, "/api/v1/packaging-ideas")
    third = await _submit(client, author, {**RECIPE, "title": "Third"})

    resp = await client.get("/api/v1/admin/queue", headers=moderator["headers"])
    assert resp.status_code == 200
    ids = [i["id"] for i in resp.json()["items"]]
    assert ids == [first["id"], second["id"], third["id"]]
    authors = [i["author"]["username"] for i in resp.json()["items"]]
    assert authors == ["alice", "erin", "alice"]


async def test_queue_filters_by_kind(client, author, moderator):
    await _submit(client, author)
    idea = await _submit(client, author, PACKAGING_IDEA, "/api/v1/packaging-ideas")

    resp = await client.get("/api/v1/admin/queue?kind=packaging_idea", headers=moderator["headers"])
    assert [i["id"] for i in resp.json()["items"]] == [idea["id"]]
    assert resp.json()["items"][0]["kind"] == "packaging_idea"


async def test_decided_items_leave_the_queue(client, author, moderator):
    a = await _submit(client, author)
    b = await _submit(client, author, {**RECIPE, "title": "Another"})
    await client.post(f"/api/v1/admin/content/{a['id']}/approve", headers=moderator["headers"])

    resp = await client.get("/api/v1/admin/queue", headers=moderator["headers"])
    assert [i["id"] for i in resp.json()["items"]] == [b["id"]]


async def test_queue_requires_moderator(client, author):
    resp = await client.get("/api/v1/admin/queue", headers=author["headers"])
    assert resp.status_code == 403


async def test_queue_requires_login(client):
    resp = await client.get("/api/v1/admin/queue")
    assert resp.status_code == 401


async def test_approved_at_only_set_while_approved(client, author, moderator):
    item = await _submit(client, author)
    for action, expected in (("reject", None), ("approve", "set")):
        await client.put(f"/api/v1/content/{item['id']}", headers=author["headers"], json=RECIPE)
        resp = await client.post(f"/api/v1/admin/content/{item['id']}/{action}", headers=moderator["headers"])
        data = resp.json()
        assert (data["approved_at"] is not None) == (expected == "set")
        assert (data["status"] == "approved") == (expected == "set")


async def test_service_approve_missing_item(moderator):
    async with get_test_session() as session:
        with pytest.raises(NotFoundError):
            await moderation.approve(session, moderator["identity"], "missing")
