import pytest
from httpx import ASGITransport, AsyncClient

from backend.app.main import app
from backend.app.orchestration.classify import SemanticClassifier
from backend.app.services.audit import ModerationAuditLog
from backend.app.services.creator_settings import CreatorSettingsStore
from backend.app.services.ledger import WarningLedger
from backend.app.services.moderation import ModerationService, get_moderation_service


@pytest.fixture()
async def client(db, fake_llm):
    llm = fake_llm('{"allowed": true}')
    app.dependency_overrides[get_moderation_service] = lambda: ModerationService(
        classifier=SemanticClassifier(client=llm),
        ledger=WarningLedger(db),
        audit_log=ModerationAuditLog(db),
        creator_settings=CreatorSettingsStore(db),
    )
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
async def message_id(client):
    conv = (await client.post("/api/v1/conversations", json={"creatorName": "carol", "buyerName": "bob"})).json()
    res = await client.post(
        f"/api/v1/conversations/{conv['id']}/messages",
        json={"content": "send more or else", "senderType": "buyer", "senderName": "bob"},
    )
    assert res.status_code == 201, res.text
    return res.json()["id"]


def _report(reporter="carol", role="creator", reason="coercion"):
    return {"reason": reason, "details": "felt pressured", "reporterName": reporter, "reporterRole": role}


@pytest.mark.anyio
async def test_report_writes_user_report_audit_record(client, message_id):
    res = await client.post(f"/api/v1/messages/{message_id}/report", json=_report())
    assert res.status_code == 201, res.text
    record = res.json()
    assert record["category"] == "user_report"
    assert record["severity"] == "medium"
    assert record["action_taken"] == "reported"
    assert record["message_id"] == message_id
    assert record["sender_name"] == "bob"

    logs = (await client.get("/api/v1/moderation-logs")).json()
    assert logs[0]["category"] == "user_report"


@pytest.mark.anyio
async def test_same_reporter_twice_conflicts(client, message_id):
    first = await client.post(f"/api/v1/messages/{message_id}/report", json=_report())
    second = await client.post(f"/api/v1/messages/{message_id}/report", json=_report(reason="spam"))
    assert first.status_code == 201
    assert second.status_code == 409


@pytest.mark.anyio
async def test_two_reporters_both_succeed(client, message_id):
    by_creator = await client.post(f"/api/v1/messages/{message_id}/report", json=_report())
    by_buyer = await client.post(
        f"/api/v1/messages/{message_id}/report", json=_report(reporter="bob", role="buyer", reason="other")
    )
    assert by_creator.status_code == 201
    assert by_buyer.status_code == 201


@pytest.mark.anyio
async def test_outsider_cannot_report(client, message_id):
    res = await client.post(f"/api/v1/messages/{message_id}/report", json=_report(reporter="mallory"))
    assert res.status_code == 403


@pytest.mark.anyio
async def test_unknown_message(client):
    res = await client.post("/api/v1/messages/nope/report", json=_report())
    assert res.status_code == 404


@pytest.mark.anyio
async def test_unknown_reason_is_rejected(client, message_id):
    res = await client.post(f"/api/v1/messages/{message_id}/report", json=_report(reason="boring"))
    assert res.status_code == 422


@pytest.mark.anyio
async def test_reports_do_not_count_as_warnings(client, message_id):
    await client.post(f"/api/v1/messages/{message_id}/report", json=_report())
    data = (await client.get("/api/v1/moderation/users/bob/warnings")).json()
    assert data["warningCount"] == 0


@pytest.mark.anyio
async def test_reporter_role_must_match_their_side(client, message_id):
    res = await client.post(f"/api/v1/messages/{message_id}/report", json=_report(reporter="carol", role="buyer"))
    assert res.status_code == 403
