"""Score & Audit Routes — HTTP surface over the runner, verifier, and audit reads.

Invariants:
    - POST /scores/calculate records four events retrievable via /audit
    - Replay: 200 on match, 404 for unknown runs, 500 DETERMINISM_VIOLATION on tamper
    - Configuration errors map to 400 and still leave a failure event in the trail
"""

from uuid import uuid4

from sqlalchemy import select

from investscore.models.calculation_event import CalculationEventRecord

CRITERIA = [
    {"id": "c-yield", "name": "High yield", "metric": "dividend_yield",
     "operator": "gt", "value": "5.0", "points": 10},
    {"id": "c-pe", "name": "Fair P/E", "metric": "pe_ratio",
     "operator": "between", "value": "5", "value2": "15", "points": 5, "sort_order": 1},
]


def _request(assets=None, criteria=None, user_id="user-1"):
    return {
        "user_id": user_id,
        "criteria_version_id": "cv-1",
        "market": "BR",
        "criteria": CRITERIA if criteria is None else criteria,
        "assets": assets if assets is not None else [
            {"id": "a-1", "symbol": "ITSA4",
             "fundamentals": {"dividend_yield": "6.0", "pe_ratio": "8.2"}},
            {"id": "a-2", "symbol": "NEWCO", "fundamentals": {}},
        ],
    }


async def _calculate(client, **kw):
    res = await client.post("/api/v1/scores/calculate", json=_request(**kw))
    assert res.status_code == 200, res.text
    return res.json()


async def test_calculate_returns_string_scores(client):
    body = await _calculate(client)

    assert [s["score"] for s in body["scores"]] == ["15.0000", "0.0000"]
    assert body["max_possible_score"] == "15.0000"
    assert body["asset_count"] == 2
    assert body["missed_events"] == []
    skipped = body["scores"][1]["breakdown"][0]
    assert skipped["skipped_reason"] == "missing_fundamental"


async def test_calculate_records_audit_trail(client):
    body = await _calculate(client)

    res = await client.get(f"/api/v1/audit/calculations/{body['correlation_id']}")

    assert res.status_code == 200
    trail = res.json()
    assert trail["user_id"] == "user-1"
    assert [e["event_type"] for e in trail["events"]] == [
        "CALC_STARTED", "INPUTS_CAPTURED", "SCORES_COMPUTED", "CALC_COMPLETED",
    ]


async def test_captured_inputs_endpoint(client):
    body = await _calculate(client)

    res = await client.get(f"/api/v1/audit/calculations/{body['correlation_id']}/inputs")

    assert res.status_code == 200
    inputs = res.json()
    assert [c["id"] for c in inputs["criteria"]] == ["c-yield", "c-pe"]
    assert inputs["assets"][0]["fundamentals"] == {"dividend_yield": "6.0", "pe_ratio": "8.2"}


async def test_audit_of_unknown_run_is_404(client):
    res = await client.get(f"/api/v1/audit/calculations/{uuid4()}")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "EVENTS_NOT_FOUND"


async def test_replay_of_untouched_run_matches(client):
    body = await _calculate(client)

    res = await client.post(
        "/api/v1/scores/replay", json={"correlation_id": body["correlation_id"]},
    )

    assert res.status_code == 200
    replay = res.json()
    assert replay["verified"] is True
    assert replay["matches"] is True
    assert replay["discrepancies"] == []


async def test_replay_of_unknown_run_is_404(client):
    res = await client.post("/api/v1/scores/replay", json={"correlation_id": str(uuid4())})
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "EVENTS_NOT_FOUND"


async def test_replay_of_tampered_run_is_determinism_violation(client, test_db):
    body = await _calculate(client)
    record = (await test_db.execute(
        select(CalculationEventRecord).where(
            CalculationEventRecord.correlation_id == body["correlation_id"],
            CalculationEventRecord.event_type == "SCORES_COMPUTED",
        ),
    )).scalar_one()
    payload = dict(record.payload)
    payload["results"] = [dict(r) for r in payload["results"]]
    payload["results"][0]["score"] = "99.0000"
    record.payload = payload
    await test_db.commit()

    res = await client.post(
        "/api/v1/scores/replay", json={"correlation_id": body["correlation_id"]},
    )

    assert res.status_code == 500
    error = res.json()["error"]
    assert error["code"] == "DETERMINISM_VIOLATION"
    assert error["severity"] == "critical"
    assert error["discrepancies"] == [
        {"asset_id": "a-1", "original_score": "99.0000", "replay_score": "15.0000"},
    ]


async def test_batch_replay(client):
    body = await _calculate(client)

    res = await client.post(
        "/api/v1/scores/replay/batch",
        json={"correlation_ids": [body["correlation_id"], str(uuid4())]},
    )

    assert res.status_code == 200
    summary = res.json()
    assert (summary["total"], summary["successful"], summary["matching"]) == (2, 1, 1)


async def test_invalid_criterion_is_400_and_leaves_failure_event(client):
    broken = [{"id": "c-bad", "name": "Broken", "metric": "pe_ratio",
               "operator": "between", "value": "5", "points": 5}]

    res = await client.post("/api/v1/scores/calculate", json=_request(criteria=broken))

    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "INVALID_CRITERION"
    correlation_id = error["context"]["correlation_id"]

    trail = (await client.get(f"/api/v1/audit/calculations/{correlation_id}")).json()
    completed = trail["events"][-1]
    assert completed["event_type"] == "CALC_COMPLETED"
    assert completed["payload"]["status"] == "failure"
    assert completed["payload"]["error_code"] == "INVALID_CRITERION"


async def test_unknown_operator_is_rejected_at_the_boundary(client):
    bad = [{**CRITERIA[0], "operator": "approx"}]
    res = await client.post("/api/v1/scores/calculate", json=_request(criteria=bad))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_garbage_fundamental_is_invalid_decimal(client):
    assets = [{"id": "a-1", "symbol": "ITSA4", "fundamentals": {"pe_ratio": "abc"}}]
    res = await client.post("/api/v1/scores/calculate", json=_request(assets=assets))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_DECIMAL"


async def test_latest_scores(client):
    await _calculate(client)
    second = await _calculate(client, assets=[
        {"id": "a-1", "symbol": "ITSA4", "fundamentals": {"dividend_yield": "1.0"}},
    ])

    res = await client.get("/api/v1/scores/latest", params={"user_id": "user-1"})

    assert res.status_code == 200
    latest = res.json()
    assert latest["correlation_id"] == second["correlation_id"]
    assert [r["score"] for r in latest["results"]] == ["0.0000"]


async def test_latest_scores_unknown_user_is_404(client):
    res = await client.get("/api/v1/scores/latest", params={"user_id": "nobody"})
    assert res.status_code == 404


async def test_score_history_with_trend(client):
    await _calculate(client, assets=[
        {"id": "a-1", "symbol": "ITSA4", "fundamentals": {"dividend_yield": "6.0"}},
    ])
    await _calculate(client, assets=[
        {"id": "a-1", "symbol": "ITSA4", "fundamentals": {"dividend_yield": "6.0", "pe_ratio": "9"}},
    ])

    res = await client.get("/api/v1/scores/a-1/history", params={"user_id": "user-1"})

    assert res.status_code == 200
    history = res.json()
    assert [p["score"] for p in history["points"]] == ["10.0000", "15.0000"]
    assert history["trend"]["direction"] == "up"
    assert history["trend"]["change_percent"] == "50.00"
