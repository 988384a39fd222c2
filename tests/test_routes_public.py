from __future__ import annotations

from conftest import OWNER, auth_headers, make_form


def test_published_form_renders_fields(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields)
    response = client.get(f"/form/{form['id']}")
    assert response.status_code == 200
    assert "Your name" in response.text
    assert 'name="field_topics" value="Price"' in response.text
    assert 'name="started_at"' in response.text
    assert 'name="user_email"' not in response.text


def test_unpublished_form_is_not_found_even_for_owner(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields, is_published=False)
    for headers in ({}, auth_headers(OWNER)):
        response = client.get(f"/form/{form['id']}", headers=headers)
        assert response.status_code == 404
        assert "Form Not Found" in response.text
    assert client.get("/form/does-not-exist").status_code == 404


def test_submission_to_unpublished_form_is_not_stored(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields, is_published=False)
    response = client.post(f"/form/{form['id']}", data={"field_name": "Ada"})
    assert response.status_code == 404
    assert app_storage.responses.count_responses(form["id"]) == 0


def test_anonymous_submission_is_stored(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields)
    response = client.post(
        f"/form/{form['id']}",
        data={"field_name": "Ada", "started_at": "2000-01-01T00:00:00+00:00", "tab_switches": "3"},
        headers={"User-Agent": "pytest-browser"},
    )
    assert response.status_code == 200
    assert "Thank You!" in response.text

    stored = app_storage.responses.list_responses(form["id"])
    assert len(stored) == 1
    assert stored[0]["answers"] == {"field_name": "Ada"}
    assert stored[0]["user_id"] is None
    assert stored[0]["metadata"]["user_agent"] == "pytest-browser"
    assert stored[0]["metadata"]["tab_switches"] == 3
    assert stored[0]["metadata"]["time_taken"] > 0


def test_missing_required_field_rerenders_with_error(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields)
    response = client.post(f"/form/{form['id']}", data={"field_topics": ["Price", "Speed"]})
    assert response.status_code == 422
    assert "This field is required" in response.text
    assert 'value="Price" checked' in response.text
    assert app_storage.responses.count_responses(form["id"]) == 0


def test_file_upload_stores_only_the_name(client, app_storage):
    fields = [{"id": "field_cv", "type": "file_upload", "label": "CV", "required": True}]
    form = make_form(app_storage, fields)
    response = client.post(
        f"/form/{form['id']}",
        files={"field_cv": ("resume.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert response.status_code == 200
    stored = app_storage.responses.list_responses(form["id"])
    assert stored[0]["answers"] == {"field_cv": "resume.pdf"}


def test_identity_is_collected_from_anonymous_respondents(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields, settings={"collect_identity": True})
    assert 'name="user_email"' in client.get(f"/form/{form['id']}").text

    response = client.post(f"/form/{form['id']}", data={"field_name": "Ada"})
    assert response.status_code == 422

    response = client.post(
        f"/form/{form['id']}",
        data={"field_name": "Ada", "user_name": "Ada L", "user_email": "ada@example.com"},
    )
    assert response.status_code == 200
    answers = app_storage.responses.list_responses(form["id"])[0]["answers"]
    assert answers["user_email"] == "ada@example.com"


def test_require_auth_blocks_anonymous(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields, settings={"require_auth": True})
    response = client.post(f"/form/{form['id']}", data={"field_name": "Ada"})
    assert response.status_code == 403
    assert "Please sign in" in response.text
    response = client.post(
        f"/form/{form['id']}", data={"field_name": "Ada"}, headers=auth_headers(OWNER)
    )
    assert response.status_code == 200
    assert app_storage.responses.list_responses(form["id"])[0]["user_id"] == OWNER["id"]
