"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.errors import (
    BackfillError,
    CacheOperationError,
    EnrichmentError,
    HomeHistoryException,
    MissingParameterError,
    PropertyNotFoundError,
    PropertyPersistenceError,
)
from app.services import backfill as backfill_service


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_property_not_found_error(self):
        err = PropertyNotFoundError(property_id="abc")
        assert err.http_status == 404
        assert err.code == "PROPERTY_NOT_FOUND"
        assert err.message == "Property not found"
        d = err.to_dict()
        assert d["success"] is False
        assert d["details"]["id"] == "abc"

    def test_missing_parameter_error(self):
        err = MissingParameterError("Address query parameter is required", parameter="address")
        assert err.http_status == 400
        assert err.code == "MISSING_PARAMETER"
        assert err.details == {"parameter": "address"}

    def test_persistence_error_with_cause(self):
        err = PropertyPersistenceError(message="Error creating property", error="disk I/O error")
        assert err.http_status == 400
        assert err.code == "PROPERTY_PERSISTENCE_ERROR"
        assert err.details["error"] == "disk I/O error"

    def test_persistence_error_without_cause(self):
        err = PropertyPersistenceError(message="Error creating property")
        assert "details" not in err.to_dict()

    def test_enrichment_error(self):
        err = EnrichmentError(error="boom")
        assert err.http_status == 500
        assert err.code == "ENRICHMENT_ERROR"
        assert err.message == "Failed to enrich address"

    def test_cache_operation_error(self):
        err = CacheOperationError("Failed to clear cache", error="locked")
        assert err.http_status == 500
        assert err.code == "CACHE_ERROR"

    def test_backfill_error(self):
        err = BackfillError("Backfill failed", error="connection lost")
        assert err.http_status == 500
        assert err.code == "BACKFILL_ERROR"

    def test_all_inherit_from_base(self):
        for cls in (
            PropertyNotFoundError, MissingParameterError, PropertyPersistenceError,
            EnrichmentError, CacheOperationError, BackfillError,
        ):
            assert issubclass(cls, HomeHistoryException)


# ---------------------------------------------------------------------------
# Integration: structured envelopes from the HTTP layer
# ---------------------------------------------------------------------------

class TestErrorResponses:
    def test_404_envelope(self, client):
        r = client.get("/properties/missing")
        assert r.status_code == 404
        body = r.json()
        assert set(body) == {"success", "code", "message", "details"}
        assert body["details"] == {"id": "missing"}

    def test_validation_envelope_lists_fields(self, client):
        r = client.post("/properties", json={"address": "x"})
        assert r.status_code == 400
        fields = {e["field"] for e in r.json()["details"]["errors"]}
        assert {"lat", "lng", "text", "submitter_name"} <= fields

    def test_lookup_failure_is_500(self, client, enricher, monkeypatch):
        async def broken_lookup(address):
            raise RuntimeError("event loop on fire")

        monkeypatch.setattr(enricher, "lookup", broken_lookup)
        r = client.get("/enrich-address", params={"address": "1 A St"})
        assert r.status_code == 500
        body = r.json()
        assert body["code"] == "ENRICHMENT_ERROR"
        assert body["details"]["error"] == "event loop on fire"

    def test_cache_stats_failure_is_500(self, client, enricher, monkeypatch):
        async def broken_stats():
            raise OperationalError("SELECT", {}, Exception("no such table"))

        monkeypatch.setattr(enricher, "cache_stats", broken_stats)
        r = client.get("/enrich-address/cache/stats")
        assert r.status_code == 500
        assert r.json()["code"] == "CACHE_ERROR"
        assert r.json()["message"] == "Failed to get cache stats"

    def test_clear_cache_failure_is_500(self, client, enricher, monkeypatch):
        async def broken_clear():
            raise OperationalError("DELETE", {}, Exception("database is locked"))

        monkeypatch.setattr(enricher, "clear_cache", broken_clear)
        r = client.delete("/enrich-address/cache")
        assert r.status_code == 500
        assert r.json()["message"] == "Failed to clear cache"

    def test_backfill_selection_failure_is_500(self, client, monkeypatch):
        def broken_select(db, limit=100, now=None):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(backfill_service, "select_candidates", broken_select)
        r = client.post("/admin/enrich/backfill")
        assert r.status_code == 500
        assert r.json()["code"] == "BACKFILL_ERROR"

    def test_persistence_failure_is_400(self, client, monkeypatch):
        def broken_commit(self):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(Session, "commit", broken_commit)
        r = client.post("/properties", json={
            "address": "1 A St", "lat": 1.0, "lng": 1.0,
            "text": "hello", "submitter_name": "me",
        })
        assert r.status_code == 400
        body = r.json()
        assert body["code"] == "PROPERTY_PERSISTENCE_ERROR"
        assert body["message"] == "Error creating property"

