def test_default_timezone(system_config_client, auth_header, alice):
    response = system_config_client.get("/system-config/timezone", headers=auth_header(alice))

    assert response.status_code == 200
    assert response.json() == {"timezone": "America/Mexico_City"}


def test_admin_sets_timezone(system_config_client, auth_header, admin):
    headers = auth_header(admin)

    response = system_config_client.post(
        "/system-config/timezone", json={"timezone": "Europe/Madrid"}, headers=headers
    )

    assert response.status_code == 200
    assert response.json()["config_key"] == "system_timezone"
    assert response.json()["config_value"] == "Europe/Madrid"
    current = system_config_client.get("/system-config/timezone", headers=headers)
    assert current.json() == {"timezone": "Europe/Madrid"}


def test_invalid_timezone_rejected(system_config_client, auth_header, admin):
    response = system_config_client.post(
        "/system-config/timezone", json={"timezone": "Mars/Olympus_Mons"}, headers=auth_header(admin)
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_timezone"


def test_regular_user_cannot_change_timezone(system_config_client, auth_header, alice):
    response = system_config_client.post(
        "/system-config/timezone", json={"timezone": "Europe/Madrid"}, headers=auth_header(alice)
    )

    assert response.status_code == 403


def test_generic_config_entries(system_config_client, auth_header, admin):
    headers = auth_header(admin)

    created = system_config_client.post(
        "/system-config/config",
        json={"key": "office_name", "value": "HQ", "description": "Display name"},
        headers=headers,
    )
    assert created.status_code == 200

    listed = system_config_client.get("/system-config", headers=headers)
    assert listed.status_code == 200
    assert [(c["config_key"], c["config_value"]) for c in listed.json()] == [("office_name", "HQ")]


def test_timezone_key_is_validated_through_generic_endpoint(system_config_client, auth_header, admin):
    response = system_config_client.post(
        "/system-config/config",
        json={"key": "system_timezone", "value": "Nowhere/Land"},
        headers=auth_header(admin),
    )

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_timezone"


def test_listing_requires_admin(system_config_client, auth_header, alice):
    assert system_config_client.get("/system-config", headers=auth_header(alice)).status_code == 403
