from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

from conftest import OTHER, OWNER, auth_headers, make_form
from formguard.utils import dumps_json

FIELD_ID = re.compile(r'name="(field_[0-9a-z]+)\.label"')


def _field(field_id: str, label: str = "") -> dict:
    return {"id": field_id, "type": "short_text", "label": label, "required": False, "placeholder": ""}


def test_add_field_action_renders_new_field(client, app_storage):
    response = client.post(
        "/create",
        data={"title": "Survey", "fields_json": "[]", "action": "add_field"},
        headers=auth_headers(OWNER),
    )
    assert response.status_code == 200
    assert len(FIELD_ID.findall(response.text)) == 1
    assert 'value="Survey"' in response.text


def test_type_change_seeds_options(client, app_storage):
    data = {
        "title": "Survey",
        "fields_json": dumps_json([_field("field_a")]),
        "field_a.label": "Colour",
        "field_a.type": "dropdown",
        "action": "refresh",
    }
    response = client.post("/create", data=data, headers=auth_headers(OWNER))
    assert response.status_code == 200
    assert 'name="field_a.options" value="Option 1"' in response.text
    assert 'name="field_a.options" value="Option 2"' in response.text
    assert 'name="field_a.placeholder"' not in response.text


def test_move_action_reorders(client, app_storage):
    data = {
        "title": "Survey",
        "fields_json": dumps_json([_field("field_a", "A"), _field("field_b", "B")]),
        "field_a.label": "A",
        "field_b.label": "B",
        "action": "move:field_b:up",
    }
    response = client.post("/create", data=data, headers=auth_headers(OWNER))
    assert FIELD_ID.findall(response.text) == ["field_b", "field_a"]


def test_save_without_title_is_rejected(client, app_storage):
    data = {"title": "  ", "fields_json": "[]", "action": "save"}
    response = client.post("/create", data=data, headers=auth_headers(OWNER))
    assert response.status_code == 422
    assert "Please enter a form title" in response.text
    assert app_storage.forms.list_forms(OWNER["id"]) == []


def test_save_creates_draft_and_redirects(client, app_storage):
    data = {
        "title": "Survey",
        "description": "Quarterly",
        "fields_json": dumps_json([_field("field_a")]),
        "field_a.label": "Name",
        "field_a.required": "on",
        "settings.collect_identity": "on",
        "action": "save",
    }
    response = client.post(
        "/create", data=data, headers=auth_headers(OWNER), follow_redirects=False
    )
    assert response.status_code == 303
    location = urlparse(response.headers["location"])
    assert parse_qs(location.query)["notice"] == ["Form created successfully!"]

    form_id = location.path.rsplit("/", 1)[-1]
    form = app_storage.forms.get_form(form_id)
    assert form["title"] == "Survey"
    assert form["is_published"] is False
    assert form["fields"][0]["label"] == "Name"
    assert form["fields"][0]["required"] is True
    assert form["settings"]["collect_identity"] is True
    assert form["settings"]["require_auth"] is False


def test_publish_existing_form(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields, is_published=False)
    data = {
        "title": "Feedback v2",
        "fields_json": dumps_json(sample_fields),
        "field_name.label": "Your name",
        "field_name.required": "on",
        "field_topics.label": "Topics",
        "field_topics.options": ["Speed", "Price"],
        "action": "publish",
    }
    response = client.post(
        f"/edit/{form['id']}", data=data, headers=auth_headers(OWNER), follow_redirects=False
    )
    assert response.status_code == 303
    assert "Form+updated+successfully" in response.headers["location"]
    stored = app_storage.forms.get_form(form["id"])
    assert stored["is_published"] is True
    assert stored["title"] == "Feedback v2"
    assert stored["fields"][1]["options"] == ["Speed", "Price"]


def test_edit_requires_ownership(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields)
    assert client.get(f"/edit/{form['id']}", headers=auth_headers(OWNER)).status_code == 200
    assert client.get(f"/edit/{form['id']}", headers=auth_headers(OTHER)).status_code == 403
    response = client.post(
        f"/edit/{form['id']}",
        data={"title": "Hijacked", "fields_json": "[]", "action": "save"},
        headers=auth_headers(OTHER),
    )
    assert response.status_code == 403
    assert app_storage.forms.get_form(form["id"])["title"] == "Feedback"
    assert client.get("/edit/missing", headers=auth_headers(OWNER)).status_code == 404


def test_malformed_builder_state(client, app_storage):
    data = {"title": "x", "fields_json": "{not json", "action": "save"}
    assert client.post("/create", data=data, headers=auth_headers(OWNER)).status_code == 400
