from __future__ import annotations

from conftest import OTHER, OWNER, auth_headers, make_form
from formguard.submission import build_response


def test_dashboard_lists_own_forms_with_stats(client, app_storage, sample_fields):
    live = make_form(app_storage, sample_fields, title="Live one")
    make_form(app_storage, sample_fields, is_published=False, title="Draft one")
    make_form(app_storage, sample_fields, owner_id=OTHER["id"], title="Not mine")
    app_storage.responses.create_response(build_response(live, {"field_name": "Ada"}, None))

    response = client.get("/dashboard", headers=auth_headers(OWNER))
    assert response.status_code == 200
    assert "Live one" in response.text
    assert "Draft one" in response.text
    assert "Not mine" not in response.text
    assert f"/form/{live['id']}" in response.text
    assert "<strong>Total Responses</strong> 1" in response.text


def test_delete_form(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields)
    response = client.post(
        f"/forms/{form['id']}/delete", headers=auth_headers(OTHER), follow_redirects=False
    )
    assert response.status_code == 403
    response = client.post(
        f"/forms/{form['id']}/delete", headers=auth_headers(OWNER), follow_redirects=False
    )
    assert response.status_code == 303
    assert app_storage.forms.get_form(form["id"]) is None


def test_responses_page(client, app_storage, sample_fields):
    form = make_form(app_storage, sample_fields)
    app_storage.responses.create_response(
        build_response(form, {"field_topics": ["Speed", "Support"]}, None)
    )
    response = client.get(f"/responses/{form['id']}", headers=auth_headers(OWNER))
    assert response.status_code == 200
    assert "Form Responses (1)" in response.text
    assert "Speed, Support" in response.text
    assert "<td>N/A</td>" in response.text
    assert "<td>-</td>" in response.text
    assert client.get(f"/responses/{form['id']}", headers=auth_headers(OTHER)).status_code == 403


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}
