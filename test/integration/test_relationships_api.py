from __future__ import annotations

import asyncio

from fastapi.testclient import TestClient

from support.factories import AGENT, make_context, seed_ticket
from ticket_relations.app.server import create_app

_ACTOR_HEADERS = {"X-User-Id": AGENT.user_id, "X-User-Name": AGENT.user_name}


def _client_with(*seeds: tuple[str, dict]) -> TestClient:
    ctx = make_context()

    async def _seed() -> None:
        for ticket_id, fields in seeds:
            await seed_ticket(ctx, ticket_id, **fields)

    asyncio.run(_seed())
    return TestClient(create_app(context=ctx))


def test_create_list_and_remove_related_to() -> None:
    client = _client_with(("A", {}), ("B", {}))

    created = client.post(
        "/tickets/A/relationships",
        json={"targetTicketId": "B", "relationshipType": "related_to", "description": "same user"},
        headers=_ACTOR_HEADERS,
    )
    assert created.status_code == 201
    relationship_id = created.json()["relationshipId"]

    listed = client.get("/tickets/A/relationships", headers=_ACTOR_HEADERS).json()
    assert listed["count"] == 1
    item = listed["items"][0]
    assert item["id"] == relationship_id
    assert item["origin"] == "manual"
    assert item["createdBy"] == AGENT.user_id
    # related_to is self-inverse and kept as a single row.
    assert client.get("/tickets/B/relationships", headers=_ACTOR_HEADERS).json()["count"] == 0

    related = client.get("/tickets/A/related", headers=_ACTOR_HEADERS).json()
    assert [entry["ticket"]["id"] for entry in related["related"]] == ["B"]

    removed = client.delete(f"/relationships/{relationship_id}", headers=_ACTOR_HEADERS)
    assert removed.status_code == 204
    assert client.get("/tickets/A/relationships", headers=_ACTOR_HEADERS).json()["count"] == 0


def test_self_reference_is_rejected() -> None:
    client = _client_with(("A", {}))

    resp = client.post(
        "/tickets/A/relationships",
        json={"targetTicketId": "A", "relationshipType": "related_to"},
        headers=_ACTOR_HEADERS,
    )

    assert resp.status_code == 422
    assert resp.json()["code"] == "E_SELF_REFERENCE"


def test_unknown_relationship_type_is_rejected() -> None:
    client = _client_with(("A", {}), ("B", {}))

    resp = client.post(
        "/tickets/A/relationships",
        json={"targetTicketId": "B", "relationshipType": "supersedes"},
        headers=_ACTOR_HEADERS,
    )

    assert resp.status_code == 422


def test_cross_tenant_relationship_is_forbidden() -> None:
    client = _client_with(("A", {}), ("X", {"tenantId": "tenant-b"}))

    resp = client.post(
        "/tickets/A/relationships",
        json={"targetTicketId": "X", "relationshipType": "related_to"},
        headers=_ACTOR_HEADERS,
    )

    assert resp.status_code == 403
    body = resp.json()
    assert body["code"] == "E_TENANT_MISMATCH"
    assert body["hint"]


def test_circular_parent_child_is_rejected_with_rule() -> None:
    client = _client_with(("P", {}), ("C", {"parentTicketId": "P"}))

    resp = client.post(
        "/tickets/C/relationships",
        json={"targetTicketId": "P", "relationshipType": "parent_of"},
        headers=_ACTOR_HEADERS,
    )

    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "E_CIRCULAR"
    assert body["rule"] == "parent_child_forest"


def test_system_generated_split_edge_cannot_be_removed() -> None:
    client = _client_with(("T", {}))
    split = client.post(
        "/tickets/T/split",
        json={
            "reason": "two issues",
            "newTickets": [
                {"title": "A", "description": "first"},
                {"title": "B", "description": "second"},
            ],
        },
        headers=_ACTOR_HEADERS,
    )
    assert split.status_code == 201

    edges = client.get("/tickets/T/relationships", headers=_ACTOR_HEADERS).json()["items"]
    assert len(edges) == 2
    assert {edge["origin"] for edge in edges} == {"system"}

    resp = client.delete(f"/relationships/{edges[0]['id']}", headers=_ACTOR_HEADERS)
    assert resp.status_code == 409
    assert resp.json()["code"] == "E_SYSTEM_GENERATED"


def test_removing_unknown_relationship_is_404() -> None:
    client = _client_with()

    resp = client.delete("/relationships/missing", headers=_ACTOR_HEADERS)

    assert resp.status_code == 404
    assert resp.json()["code"] == "E_NOT_FOUND"


def test_request_id_is_echoed_and_generated() -> None:
    client = _client_with(("A", {}))

    echoed = client.get(
        "/tickets/A/relationships",
        headers={**_ACTOR_HEADERS, "X-Request-Id": "req-123"},
    )
    assert echoed.headers["X-Request-Id"] == "req-123"

    generated = client.get(
        "/tickets/A/relationships",
        headers={**_ACTOR_HEADERS, "X-Request-Id": "not valid!"},
    )
    assert generated.headers["X-Request-Id"] != "not valid!"
    assert generated.headers["X-Request-Id"]
