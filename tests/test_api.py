"""Integration tests exercising the full API with the fake executor."""

from __future__ import annotations

import asyncio

import pytest

from bastion.models.executions import ExecResult
from tests.fake_executor import Hang

API = "/api/v1"


async def create_command(client, **overrides):
    body = {
        "name": "uptime",
        "description": "load average",
        "script": "uptime",
        "timeout_seconds": 5,
    }
    body.update(overrides)
    resp = await client.post(f"{API}/commands", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


# ── commands ──────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_and_list_commands(client):
    created = await create_command(client)
    assert created["id"].startswith("cmd-")
    assert created["created_at"]

    resp = await client.get(f"{API}/commands")
    assert resp.status_code == 200
    assert [c["id"] for c in resp.json()] == [created["id"]]

    resp = await client.get(f"{API}/commands/{created['id']}")
    assert resp.json() == created


@pytest.mark.asyncio
async def test_create_command_default_timeout(client):
    resp = await client.post(
        f"{API}/commands", json={"name": "df", "description": "", "script": "df -h"},
    )
    assert resp.status_code == 201
    assert resp.json()["timeout_seconds"] == 300


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [{"name": ""}, {"script": "  "}, {"timeout_seconds": 0}, {"timeout_seconds": -3}],
)
async def test_create_command_validation(client, overrides):
    body = {"name": "x", "description": "", "script": "true", **overrides}
    resp = await client.post(f"{API}/commands", json=body)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_command_name_conflict(client):
    await create_command(client)
    resp = await client.post(
        f"{API}/commands", json={"name": "uptime", "description": "", "script": "w"},
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_get_command_not_found(client):
    resp = await client.get(f"{API}/commands/cmd-nope")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_put_command(client):
    created = await create_command(client)
    resp = await client.put(
        f"{API}/commands/{created['id']}",
        json={"name": "load", "description": "d", "script": "cat /proc/loadavg"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "load"
    assert data["script"] == "cat /proc/loadavg"
    assert data["timeout_seconds"] == 5
    assert data["created_at"] == created["created_at"]


@pytest.mark.asyncio
async def test_patch_command_keeps_omitted_fields(client):
    created = await create_command(client)
    resp = await client.patch(
        f"{API}/commands/{created['id']}", json={"timeout_seconds": 9},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["timeout_seconds"] == 9
    assert data["name"] == "uptime"
    assert data["description"] == "load average"
    assert data["script"] == "uptime"


@pytest.mark.asyncio
async def test_update_command_errors(client):
    resp = await client.patch(f"{API}/commands/cmd-nope", json={"name": "x"})
    assert resp.status_code == 404

    created = await create_command(client)
    await create_command(client, name="other")
    resp = await client.patch(f"{API}/commands/{created['id']}", json={"name": "other"})
    assert resp.status_code == 409
    resp = await client.patch(f"{API}/commands/{created['id']}", json={"script": ""})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_delete_command(client):
    created = await create_command(client)
    resp = await client.delete(f"{API}/commands/{created['id']}")
    assert resp.status_code == 204
    resp = await client.delete(f"{API}/commands/{created['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_command_in_use_conflicts(client, fake_executor, coordinator):
    created = await create_command(client, script="sleep 100", timeout_seconds=30)
    fake_executor.add_response("sleep 100", Hang())

    resp = await client.post(
        f"{API}/execute",
        json={"command_id": created["id"], "node_id": "n1", "wait": False},
    )
    assert resp.status_code == 200
    execution = resp.json()
    assert execution["status"] == "pending"
    assert execution["exit_code"] is None

    resp = await client.delete(f"{API}/commands/{created['id']}")
    assert resp.status_code == 409

    await asyncio.sleep(0.05)
    coordinator.complete(execution["id"], ExecResult(exit_code=0))
    resp = await client.delete(f"{API}/commands/{created['id']}")
    assert resp.status_code == 204


# ── nodes ─────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_nodes(client):
    resp = await client.get(f"{API}/nodes")
    assert resp.status_code == 200
    assert [n["id"] for n in resp.json()] == ["n1", "n2"]


@pytest.mark.asyncio
async def test_get_node(client):
    assert (await client.get(f"{API}/nodes/n2")).json()["name"] == "gpu-02"
    assert (await client.get(f"{API}/nodes/n9")).status_code == 404


# ── execute / executions ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_execute_sync(client, fake_executor):
    created = await create_command(client)
    fake_executor.add_response(
        "uptime", ExecResult(stdout="up 3 days", stderr="", exit_code=0),
    )
    resp = await client.post(
        f"{API}/execute", json={"command_id": created["id"], "node_id": "n1"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "succeeded"
    assert data["exit_code"] == 0
    assert data["stdout"] == "up 3 days"
    assert data["duration_ms"] >= 0
    assert data["completed_at"] is not None

    resp = await client.get(f"{API}/executions/{data['id']}")
    assert resp.json() == data


@pytest.mark.asyncio
async def test_execute_failure_is_not_an_api_error(client, fake_executor):
    created = await create_command(client, script="exit 1")
    fake_executor.add_response("exit 1", ExecResult(stderr="boom", exit_code=1))
    resp = await client.post(
        f"{API}/execute", json={"command_id": created["id"], "node_id": "n1"},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "failed"
    assert resp.json()["exit_code"] == 1


@pytest.mark.asyncio
async def test_execute_unknown_ids(client):
    created = await create_command(client)
    resp = await client.post(
        f"{API}/execute", json={"command_id": "cmd-nope", "node_id": "n1"},
    )
    assert resp.status_code == 404
    resp = await client.post(
        f"{API}/execute", json={"command_id": created["id"], "node_id": "n9"},
    )
    assert resp.status_code == 404
    assert (await client.get(f"{API}/executions")).json() == []


@pytest.mark.asyncio
async def test_list_executions_recent_first_and_filtered(client, fake_executor):
    created = await create_command(client)
    ids = []
    for node in ["n1", "n2", "n1"]:
        resp = await client.post(
            f"{API}/execute", json={"command_id": created["id"], "node_id": node},
        )
        ids.append(resp.json()["id"])
        await asyncio.sleep(0.01)

    resp = await client.get(f"{API}/executions")
    assert [e["id"] for e in resp.json()] == ids[::-1]

    resp = await client.get(f"{API}/executions", params={"node_id": "n1"})
    assert [e["id"] for e in resp.json()] == [ids[2], ids[0]]

    resp = await client.get(f"{API}/executions", params={"status": "failed"})
    assert resp.json() == []

    resp = await client.get(f"{API}/executions", params={"limit": 2})
    assert len(resp.json()) == 2


@pytest.mark.asyncio
async def test_get_execution_not_found(client):
    assert (await client.get(f"{API}/executions/exec-nope")).status_code == 404


# ── gpu ───────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_gpu_ingest_and_query(client):
    sample = {"node_id": "n1", "timestamp": 1000, "utilization": 42, "memory_mb": 2048}
    for _ in range(2):
        resp = await client.post(f"{API}/gpu", json=sample)
        assert resp.status_code == 200
        assert resp.json() == {"ingested": 1}

    resp = await client.get(f"{API}/gpu")
    assert resp.json() == [{**sample, "utilization": 42.0}]


@pytest.mark.asyncio
async def test_gpu_batch_ingest_and_chart(client):
    batch = [
        {"node_id": "n1", "timestamp": 1000, "utilization": 150, "memory_mb": 10},
        {"node_id": "n2", "timestamp": 1005, "utilization": 20, "memory_mb": 20},
    ]
    resp = await client.post(f"{API}/gpu", json=batch)
    assert resp.json() == {"ingested": 2}

    resp = await client.get(f"{API}/gpu/chart")
    assert resp.json() == [
        {"timestamp": 1000, "n1_util": 100.0, "n1_mem": 10},
        {"timestamp": 1005, "n2_util": 20.0, "n2_mem": 20},
    ]

    resp = await client.get(f"{API}/gpu", params={"since": 1001})
    assert [s["node_id"] for s in resp.json()] == ["n2"]


@pytest.mark.asyncio
async def test_gpu_negative_memory_rejected(client):
    resp = await client.post(
        f"{API}/gpu",
        json={"node_id": "n1", "timestamp": 1, "utilization": 1, "memory_mb": -5},
    )
    assert resp.status_code == 422
    assert (await client.get(f"{API}/gpu")).json() == []


@pytest.mark.asyncio
async def test_gpu_nan_utilization_rejected(client):
    resp = await client.post(
        f"{API}/gpu",
        content='{"node_id": "n1", "timestamp": 1, "utilization": NaN, "memory_mb": 5}',
        headers={"Content-Type": "application/json"},
    )
    assert resp.status_code == 422
    assert (await client.get(f"{API}/gpu")).json() == []
