from __future__ import annotations

from fastapi.testclient import TestClient

from conftest import make_form


def test_public_respondents_are_anonymous(default_app, local_owner, sample_fields):
    storage = default_app.state.storage
    form = make_form(storage, sample_fields, owner_id=local_owner["id"])
    client = TestClient(default_app)

    page = client.get(f"/form/{form['id']}")
    assert page.status_code == 200
    assert "anonymous responses" in page.text

    first = client.post(f"/form/{form['id']}", data={"field_name": "Ada"})
    second = client.post(f"/form/{form['id']}", data={"field_name": "Grace"})
    assert first.status_code == 200
    assert second.status_code == 200

    stored = storage.responses.list_responses(form["id"])
    assert len(stored) == 2
    assert all(item["user_id"] is None for item in stored)


def test_api_submissions_are_anonymous(default_app, local_owner, sample_fields):
    storage = default_app.state.storage
    form = make_form(storage, sample_fields, owner_id=local_owner["id"])
    client = TestClient(default_app)
    url = f"/api/public/forms/{form['id']}/responses"

    for name in ("Ada", "Grace"):
        assert client.post(url, json={"answers": {"field_name": name}}).status_code == 201
    assert not storage.responses.has_response_from(form["id"], local_owner["id"])
    assert storage.responses.count_responses(form["id"]) == 2


def test_identity_collected_in_local_mode(default_app, local_owner, sample_fields):
    storage = default_app.state.storage
    form = make_form(
        storage, sample_fields, owner_id=local_owner["id"], settings={"collect_identity": True}
    )
    client = TestClient(default_app)

    page = client.get(f"/form/{form['id']}")
    assert 'name="user_email"' in page.text
    assert "anonymous responses" not in page.text

    response = client.post(f"/form/{form['id']}", data={"field_name": "Ada"})
    assert response.status_code == 422
    response = client.post(
        f"/form/{form['id']}",
        data={"field_name": "Ada", "user_name": "Ada L", "user_email": "ada@example.com"},
    )
    assert response.status_code == 200
    stored = storage.responses.list_responses(form["id"])[0]
    assert stored["answers"]["user_name"] == "Ada L"
    assert stored["user_id"] is None


def test_owner_screens_keep_local_identity(default_app, local_owner, sample_fields):
    storage = default_app.state.storage
    form = make_form(storage, sample_fields, owner_id=local_owner["id"], title="Local survey")
    client = TestClient(default_app)
    client.post(f"/form/{form['id']}", data={"field_name": "Ada"})

    dashboard = client.get("/dashboard")
    assert dashboard.status_code == 200
    assert "Local survey" in dashboard.text
    assert "<strong>Total Responses</strong> 1" in dashboard.text
    assert client.get(f"/responses/{form['id']}").status_code == 200
