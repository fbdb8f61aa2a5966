"""API integration tests: ingestion, vessels, telemetry pages and health."""
from fleettelemetry.api.rate_limit import limiter
from fleettelemetry.config import settings

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SHIP_INFO = [
    ["IMO", "Name", "Flag", "Latitude", "Longitude", "Timestamp"],
    ["9123456", "Nordic Star", "NO", 59.9, 10.7, "2024-03-01T08:00:00Z"],
]

ENGINES = [
    ["Engine No", "Timestamp", "RPM"],
    [1, "2024-03-01 08:00:00", 700],
    [1, "2024-03-01 08:05:00", 710],
    [1, "2024-03-01 08:10:00", 720],
    [2, "2024-03-01 08:10:00", 640],
]


def _post(client, data, **params):
    return client.post(
        "/api/v1/ingest/xlsx",
        params=params,
        files={"file": ("voyage.xlsx", data, XLSX_MIME)},
    )


def _ingest(client, build_xlsx, **params):
    data = build_xlsx({"Ship Info": SHIP_INFO, "Engines": ENGINES})
    params.setdefault("imo", "9123456")
    params.setdefault("period_start", "2024-03-01T12:00:00Z")
    response = _post(client, data, **params)
    assert response.status_code == 200, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

def test_ingest_xlsx(api_client, build_xlsx):
    body = _ingest(api_client, build_xlsx, note="first batch")
    assert body["status"] == "ingested"
    assert body["rows_inserted"] == {"location": 1, "engines": 4}
    assert body["warnings"] == []
    assert body["upload_id"] and body["vessel_id"]


def test_duplicate_file_returns_409(api_client, build_xlsx):
    data = build_xlsx({"Engines": ENGINES})
    first = _post(api_client, data, imo="9123456")
    assert first.status_code == 200

    second = _post(api_client, data, imo="9123456")
    assert second.status_code == 409
    assert second.json()["status"] == "already_ingested"
    assert second.json()["upload_id"] == first.json()["upload_id"]


def test_duplicate_file_allowed_by_setting(api_client, build_xlsx, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_UNSAFE_DUPLICATE_INGEST", True)
    data = build_xlsx({"Engines": ENGINES})
    _post(api_client, data, imo="9123456")

    second = _post(api_client, data, imo="9123456")
    assert second.status_code == 200
    assert second.json()["status"] == "already_ingested"


def test_ingest_requires_identifier(api_client, build_xlsx):
    response = _post(api_client, build_xlsx({"Engines": ENGINES}))
    assert response.status_code == 400
    assert "vessel_name" in response.json()["detail"]


def test_ingest_rejects_bad_period_start(api_client, build_xlsx):
    response = _post(api_client, build_xlsx({"Engines": ENGINES}), imo="9123456", period_start="yesterday")
    assert response.status_code == 400


def test_ingest_rejects_oversized_file(api_client, build_xlsx, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 0)
    response = _post(api_client, build_xlsx({"Engines": ENGINES}), imo="9123456")
    assert response.status_code == 413


def test_ingest_unreadable_workbook_is_422(api_client):
    response = _post(api_client, b"plain text, not xlsx", imo="9123456")
    assert response.status_code == 422
    assert "error opening XLSX" in response.json()["detail"]


def test_get_upload(api_client, build_xlsx):
    body = _ingest(api_client, build_xlsx, note="first batch")
    response = api_client.get(f"/api/v1/uploads/{body['upload_id']}")
    assert response.status_code == 200
    upload = response.json()
    assert upload["vessel_id"] == body["vessel_id"]
    assert upload["source_filename"] == "voyage.xlsx"
    assert upload["uploaded_at"] == "2024-03-01T12:00:00Z"
    assert upload["note"] == "first batch"


def test_get_upload_404(api_client):
    assert api_client.get("/api/v1/uploads/999").status_code == 404


# ---------------------------------------------------------------------------
# Vessels
# ---------------------------------------------------------------------------

def test_list_vessels_with_latest(api_client, build_xlsx):
    _ingest(api_client, build_xlsx)
    response = api_client.get("/api/v1/vessels")
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    vessel = body["items"][0]
    assert vessel["imo"] == "9123456"
    assert vessel["name"] == "Nordic Star"
    assert vessel["latest"] == {
        "engines": "2024-03-01T12:00:00Z",
        "location": "2024-03-01T12:00:00Z",
    }


def test_get_vessel(api_client, build_xlsx):
    body = _ingest(api_client, build_xlsx)
    response = api_client.get(f"/api/v1/vessels/{body['vessel_id']}")
    assert response.status_code == 200
    assert response.json()["flag"] == "NO"


def test_get_vessel_404(api_client):
    assert api_client.get("/api/v1/vessels/999").status_code == 404


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

def test_telemetry_pagination(api_client, build_xlsx):
    vessel_id = _ingest(api_client, build_xlsx)["vessel_id"]
    url = f"/api/v1/vessels/{vessel_id}/telemetry"

    first = api_client.get(url, params={"stream": "engines", "limit": 3}).json()
    assert [r["rpm"] for r in first["items"]] == [700.0, 710.0, 720.0]
    assert first["items"][0]["ts"] == "2024-03-01T08:00:00Z"
    assert first["next_cursor"]

    second = api_client.get(url, params={"stream": "engines", "limit": 3, "cursor": first["next_cursor"]}).json()
    assert [r["engine_no"] for r in second["items"]] == [2]
    assert second["next_cursor"] is None


def test_telemetry_filter_and_window(api_client, build_xlsx):
    vessel_id = _ingest(api_client, build_xlsx)["vessel_id"]
    response = api_client.get(
        f"/api/v1/vessels/{vessel_id}/telemetry",
        params={"stream": "engines", "engine_no": 1, "from": "2024-03-01T08:05:00Z", "to": "2024-03-01T08:10:00Z"},
    )
    assert response.status_code == 200
    assert [r["rpm"] for r in response.json()["items"]] == [710.0, 720.0]


def test_telemetry_location_stream(api_client, build_xlsx):
    vessel_id = _ingest(api_client, build_xlsx)["vessel_id"]
    items = api_client.get(f"/api/v1/vessels/{vessel_id}/telemetry", params={"stream": "location"}).json()["items"]
    assert len(items) == 1
    assert items[0]["latitude"] == 59.9
    assert items[0]["extra"] == {"Flag": "NO"}


def test_telemetry_invalid_stream_400(api_client, build_xlsx):
    vessel_id = _ingest(api_client, build_xlsx)["vessel_id"]
    response = api_client.get(f"/api/v1/vessels/{vessel_id}/telemetry", params={"stream": "radar"})
    assert response.status_code == 400


def test_telemetry_invalid_cursor_400(api_client, build_xlsx):
    vessel_id = _ingest(api_client, build_xlsx)["vessel_id"]
    response = api_client.get(
        f"/api/v1/vessels/{vessel_id}/telemetry", params={"stream": "engines", "cursor": "@@not-a-cursor@@"}
    )
    assert response.status_code == 400
    assert "cursor" in response.json()["detail"]


def test_latest_reading(api_client, build_xlsx):
    vessel_id = _ingest(api_client, build_xlsx)["vessel_id"]
    response = api_client.get(f"/api/v1/vessels/{vessel_id}/latest", params={"stream": "engines"})
    assert response.status_code == 200
    latest = response.json()
    # Two rows share the newest ts; the higher id wins
    assert latest["engine_no"] == 2
    assert latest["ts"] == "2024-03-01T08:10:00Z"


def test_latest_reading_404_when_empty(api_client, build_xlsx):
    vessel_id = _ingest(api_client, build_xlsx)["vessel_id"]
    response = api_client.get(f"/api/v1/vessels/{vessel_id}/latest", params={"stream": "fuel"})
    assert response.status_code == 404


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------

def test_healthz(api_client, build_xlsx):
    _ingest(api_client, build_xlsx)
    response = api_client.get("/healthz")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["vessels"] == 1


def test_api_key_required_when_configured(api_client, monkeypatch):
    monkeypatch.setattr(settings, "FLEETTELEMETRY_API_KEY", "s3cret")
    assert api_client.get("/api/v1/vessels").status_code == 401
    assert api_client.get("/api/v1/vessels", headers={"X-API-Key": "s3cret"}).status_code == 200
    assert api_client.get("/healthz").status_code == 200


def test_default_rate_limit_applies_to_every_route(api_client):
    limiter.reset()
    limiter.enabled = True
    try:
        limit = int(settings.DEFAULT_RATE_LIMIT.split("/")[0])
        for _ in range(limit):
            assert api_client.get("/api/v1/vessels").status_code == 200
        assert api_client.get("/api/v1/vessels").status_code == 429
    finally:
        limiter.enabled = False
        limiter.reset()
