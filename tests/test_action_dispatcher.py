"""Tests for AuditActionDispatcher operations against a scripted backend."""

import asyncio

import pytest

from audit_engine.core.exceptions import BackendConnectionError, BackendResponseError
from audit_engine.core.managers.normalizer import normalize_job
from audit_engine.core.models.action import ErrorKind
from audit_engine.core.models.job import AuditJob
from fakes import API, gated


# --- trigger-individual ---

@pytest.mark.asyncio
async def test_trigger_then_fetch_status_reconciles_job(http, dispatcher, registry):
    http.add("POST", "/partners/P1/audit", {"id": "J1", "status": "queued"})
    http.add("GET", "/partners/audit/J1", {"status": "queued"}, {"status": "completed", "result": {"ok": True}})

    triggered = await dispatcher.trigger_individual("P1")

    assert triggered.ok
    job = registry.get("J1")
    assert job.status == "queued"
    assert job.origin == "individual"
    assert job.partner_ids == ["P1"]

    refreshed = await dispatcher.fetch_status("J1")

    assert refreshed.ok
    job = registry.get("J1")
    assert job.status == "completed"
    assert job.result == {"ok": True}
    assert job.origin == "individual"
    assert job.partner_ids == ["P1"]
    assert registry.non_final() == []


@pytest.mark.asyncio
async def test_trigger_individual_sends_bearer_and_requester(http, dispatcher):
    http.add("POST", "/partners/P1/audit", {"jobId": "J1"})
    http.add("GET", "/partners/audit/J1", {"status": "queued"})

    result = await dispatcher.trigger_individual("  P1 ", requested_by="ana")

    call = http.calls_to("POST", "/partners/P1/audit")[0]
    assert call["headers"] == {"Authorization": "Bearer token-123"}
    assert call["json"] == {"requestedBy": "ana"}
    assert result.job.requested_by == "ana"


@pytest.mark.asyncio
async def test_trigger_individual_without_requester_sends_empty_body(http, dispatcher):
    http.add("POST", "/partners/P1/audit", {"jobId": "J1"})
    http.add("GET", "/partners/audit/J1", {"status": "queued"})

    await dispatcher.trigger_individual("P1")

    assert http.calls[0]["json"] == {}


@pytest.mark.asyncio
async def test_partner_id_is_url_encoded(http, dispatcher):
    http.add("POST", "/partners/A%2FB%20C/audit", {"jobId": "J1"})
    http.add("GET", "/partners/audit/J1", {"status": "queued"})

    result = await dispatcher.trigger_individual("A/B C")

    assert result.ok
    assert http.calls[0]["url"] == API + "/partners/A%2FB%20C/audit"


@pytest.mark.asyncio
async def test_blank_partner_fails_locally(http, dispatcher, registry):
    result = await dispatcher.trigger_individual("   ")

    assert not result.ok
    assert result.error.kind == ErrorKind.generic
    assert http.calls == []
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_trigger_response_without_job_id(http, dispatcher, registry):
    http.add("POST", "/partners/P1/audit", {"status": "queued"})

    result = await dispatcher.trigger_individual("P1")

    assert not result.ok
    assert result.error.kind == ErrorKind.missing_job_id
    assert len(registry) == 0


# --- trigger-bulk ---

@pytest.mark.asyncio
async def test_bulk_dedups_partner_ids(http, dispatcher, registry):
    http.add("POST", "/partners/audit", {"jobId": "B1", "status": "pending"})
    http.add("GET", "/partners/audit/B1", {"status": "pending"})

    result = await dispatcher.trigger_bulk(["A", "a ", "A", ""], requested_by="ana")

    assert result.ok
    assert result.message == "Bulk audit started for 2 partner(s)."
    assert http.calls[0]["json"] == {"partnerIds": ["A", "a"], "requestedBy": "ana"}
    job = registry.get("B1")
    assert job.origin == "bulk"
    assert job.partner_ids == ["A", "a"]


@pytest.mark.asyncio
async def test_bulk_with_only_blanks_fails_before_network(http, dispatcher):
    result = await dispatcher.trigger_bulk(["", "  ", "\n"])

    assert not result.ok
    assert result.message == "Provide at least one partner for the bulk audit."
    assert http.calls == []


# --- refresh after trigger ---

@pytest.mark.asyncio
async def test_pending_trigger_is_refreshed_immediately(http, dispatcher, registry):
    http.add("POST", "/partners/P1/audit", {"jobId": "J1", "status": "queued"})
    http.add("GET", "/partners/audit/J1", {"status": "running"})

    result = await dispatcher.trigger_individual("P1")

    assert result.ok
    assert result.message == "Individual audit requested successfully."
    assert [call["method"] for call in http.calls] == ["POST", "GET"]
    assert result.job.status == "running"
    assert registry.get("J1").origin == "individual"


@pytest.mark.asyncio
async def test_trigger_stays_successful_when_refresh_fails(http, dispatcher, registry):
    http.add("POST", "/partners/audit", {"jobId": "B1", "status": "queued"})
    http.add("GET", "/partners/audit/B1", BackendResponseError(500, {"message": "Upstream down"}))

    result = await dispatcher.trigger_bulk(["A", "B"])

    assert result.ok
    assert result.error is None
    assert result.message == "Bulk audit started for 2 partner(s)."
    assert registry.get("B1").status == "queued"


@pytest.mark.asyncio
async def test_final_trigger_response_is_not_refreshed(http, dispatcher):
    http.add("POST", "/partners/P1/audit", {"jobId": "J1", "status": "completed"})

    result = await dispatcher.trigger_individual("P1")

    assert result.ok
    assert http.calls_to("GET", "/partners/audit/J1") == []


# --- fetch-status ---

@pytest.mark.asyncio
async def test_fetch_status_for_unknown_job_defaults_to_bulk(http, dispatcher, registry):
    http.add("GET", "/partners/audit/J9", {"status": "running"})

    result = await dispatcher.fetch_status("J9")

    assert result.ok
    assert registry.get("J9").origin == "bulk"


@pytest.mark.asyncio
async def test_failed_fetch_leaves_record_unchanged(http, dispatcher, registry):
    before = registry.upsert(
        normalize_job({"jobId": "J1", "status": "running", "origin": "individual", "partnerIds": ["A", "B"]})
    )
    http.add("GET", "/partners/audit/J1", BackendResponseError(500, {"message": "Upstream down"}))

    result = await dispatcher.fetch_status("J1")

    assert not result.ok
    assert result.message == "Upstream down"
    assert registry.get("J1") is before
    assert not dispatcher.is_refreshing("J1")


@pytest.mark.asyncio
async def test_connection_failure_uses_fallback_message(http, dispatcher):
    http.add("GET", "/partners/audit/J1", BackendConnectionError("refused"))

    result = await dispatcher.fetch_status("J1")

    assert result.error.kind == ErrorKind.generic
    assert result.message == "Could not update the audit job status."


@pytest.mark.asyncio
async def test_empty_body_resolves_to_default_job(http, dispatcher, registry):
    http.add("GET", "/partners/audit/J1", None)

    result = await dispatcher.fetch_status("J1")

    assert result.ok
    assert registry.get("J1").status == "pending"


@pytest.mark.asyncio
async def test_refreshing_tracks_in_flight_fetch(http, dispatcher):
    release, respond = gated({"status": "running"})
    http.add("GET", "/partners/audit/J1", respond)

    task = asyncio.create_task(dispatcher.fetch_status("J1"))
    await asyncio.sleep(0)

    assert dispatcher.is_refreshing("J1")
    assert dispatcher.refreshing == frozenset({"J1"})

    release.set()
    await task

    assert not dispatcher.is_refreshing("J1")


# --- auth ---

@pytest.mark.asyncio
async def test_401_clears_token_and_requests_login(http, dispatcher, registry, session_store, navigator):
    http.add("POST", "/partners/P1/audit", BackendResponseError(401, {"message": "Unauthorized"}))

    result = await dispatcher.trigger_individual("P1")

    assert result.error.kind == ErrorKind.auth_expired
    assert session_store.get_token() is None
    assert navigator.login_requested
    assert len(registry) == 0


@pytest.mark.asyncio
async def test_missing_token_short_circuits(http, dispatcher, session_store):
    session_store.clear_token()

    result = await dispatcher.fetch_status("J1")

    assert result.error.kind == ErrorKind.auth_expired
    assert http.calls == []


@pytest.mark.asyncio
async def test_forbidden_message(http, dispatcher):
    http.add("POST", "/partners/audit", BackendResponseError(403, None))

    result = await dispatcher.trigger_bulk(["A"])

    assert result.error.kind == ErrorKind.forbidden


# --- reprocess ---

@pytest.mark.asyncio
async def test_reprocess_defaults_from_current_job(http, dispatcher, registry):
    registry.upsert(
        normalize_job(
            {"jobId": "J1", "status": "failed", "origin": "individual", "partnerIds": ["P1"], "requestedBy": "ana"}
        )
    )
    http.add("POST", "/partners/audit/J1/reprocess", {"status": "queued"})

    result = await dispatcher.reprocess("J1")

    assert result.ok
    assert http.calls[0]["json"] == {}
    job = registry.get("J1")
    assert job.status == "queued"
    assert job.origin == "individual"
    assert job.partner_ids == ["P1"]
    assert job.requested_by == "ana"


@pytest.mark.asyncio
async def test_reprocess_with_explicit_current_job(http, dispatcher, registry):
    current = AuditJob(job_id="J2", status="failed", origin="individual", partner_ids=["P5"])
    http.add("POST", "/partners/audit/J2/reprocess", {})

    result = await dispatcher.reprocess("J2", current)

    assert result.ok
    job = registry.get("J2")
    assert job.origin == "individual"
    assert job.partner_ids == ["P5"]
    assert job.status == "failed"


@pytest.mark.asyncio
async def test_reprocess_404_is_unsupported(http, dispatcher, registry):
    http.add("POST", "/partners/audit/J1/reprocess", BackendResponseError(404, None))

    result = await dispatcher.reprocess("J1")

    assert result.error.kind == ErrorKind.unsupported
    assert len(registry) == 0


# --- cancel ---

@pytest.mark.asyncio
async def test_cancel_follows_up_with_status_fetch(http, dispatcher, registry):
    registry.upsert(normalize_job({"jobId": "J1", "status": "running", "origin": "bulk", "partnerIds": ["A"]}))
    http.add("POST", "/partners/audit/J1/cancel", {"status": "cancelling"})
    http.add("GET", "/partners/audit/J1", {"status": "cancelled"})

    result = await dispatcher.cancel("J1")

    assert result.ok
    assert len(http.calls_to("GET", "/partners/audit/J1")) == 1
    assert result.job.status == "cancelled"
    assert registry.get("J1").status == "cancelled"
    assert registry.get("J1").partner_ids == ["A"]


@pytest.mark.asyncio
async def test_cancel_succeeds_even_if_follow_up_fails(http, dispatcher, registry):
    http.add("POST", "/partners/audit/J1/cancel", {"jobId": "J1", "status": "cancelling"})
    http.add("GET", "/partners/audit/J1", BackendConnectionError("refused"))

    result = await dispatcher.cancel("J1")

    assert result.ok
    assert registry.get("J1").status == "cancelling"


@pytest.mark.asyncio
async def test_failed_cancel_skips_follow_up(http, dispatcher):
    http.add("POST", "/partners/audit/J1/cancel", BackendResponseError(404, None))

    result = await dispatcher.cancel("J1")

    assert result.error.kind == ErrorKind.unsupported
    assert http.calls_to("GET", "/partners/audit/J1") == []


@pytest.mark.asyncio
async def test_repeated_calls_only_reupsert(http, dispatcher, registry):
    http.add("GET", "/partners/audit/J1", {"status": "running"})

    await dispatcher.fetch_status("J1")
    await dispatcher.fetch_status("J1")

    assert len(registry) == 1
    assert len(http.calls) == 2


@pytest.mark.asyncio
async def test_request_timeout_forwarded(http, registry, session_store, config):
    from audit_engine.core.managers.action_dispatcher import AuditActionDispatcher

    timed = AuditActionDispatcher(
        http_client=http,
        registry=registry,
        session=session_store,
        config=config.model_copy(update={"request_timeout": 2.5}),
    )
    http.add("GET", "/partners/audit/J1", {"status": "running"})

    await timed.fetch_status("J1")

    assert http.calls[0]["timeout"] == 2.5
