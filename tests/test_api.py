"""HTTP surface: routing, status codes and error bodies."""
import httpx
import pytest

from clinicbook.db import get_db
from clinicbook.main import app


@pytest.fixture
async def client(sessionmaker):
    async def override_get_db():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _doctor_and_slot(client):
    r = await client.post("/doctors", json={"id": "D1", "name": "Dr. One", "speciality": "GP"})
    assert r.status_code == 201
    r = await client.post("/slots", json={"doctor_id": "D1", "date": "2024-01-10", "time": "09:00"})
    assert r.status_code == 201
    return r.json()


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


async def test_booking_flow(client):
    slot = await _doctor_and_slot(client)

    r = await client.post("/appointments", json={"slot_id": slot["id"], "patient_name": "Alice"})
    assert r.status_code == 201
    alice = r.json()
    assert alice["status"] == "Confirmed"

    r = await client.post("/appointments", json={"slot_id": slot["id"], "patient_name": "Bob"})
    assert r.status_code == 409
    assert r.json() == {"error": "Slot already booked"}

    r = await client.get("/slots", params={"doctor_id": "D1", "date": "2024-01-10"})
    assert [(s["id"], s["status"], s["doctor_name"]) for s in r.json()] == [(slot["id"], "booked", "Dr. One")]

    r = await client.get(f"/appointments/{alice['id']}")
    assert r.status_code == 200
    assert r.json()["doctor_name"] == "Dr. One"
    assert r.json()["time"] == "09:00"

    assert (await client.delete(f"/appointments/{alice['id']}")).status_code == 204
    assert (await client.delete(f"/appointments/{alice['id']}")).status_code == 404

    r = await client.post("/appointments", json={"slot_id": slot["id"], "patient_name": "Bob"})
    assert r.status_code == 201
    assert r.json()["id"] != alice["id"]


async def test_error_mapping(client):
    slot = await _doctor_and_slot(client)

    r = await client.post("/doctors", json={"id": "D1", "name": "Dup"})
    assert r.status_code == 409

    r = await client.post("/slots", json={"doctor_id": "D9", "date": "2024-01-10", "time": "09:00"})
    assert r.status_code == 404
    assert r.json() == {"error": "Doctor not found"}

    r = await client.post("/slots", json={"doctor_id": "D1", "date": "2024-01-10", "time": "9am"})
    assert r.status_code == 422

    r = await client.post("/appointments", json={"slot_id": "missing", "patient_name": "Alice"})
    assert r.status_code == 404

    r = await client.post("/appointments", json={"slot_id": slot["id"], "patient_name": "   "})
    assert r.status_code == 400

    r = await client.put("/doctors/D9", json={"name": "Nobody"})
    assert r.status_code == 404


async def test_slot_edit_locked_once_booked(client):
    slot = await _doctor_and_slot(client)

    r = await client.put(f"/slots/{slot['id']}", json={"time": "10:00"})
    assert r.status_code == 200
    assert r.json()["time"] == "10:00"

    await client.post("/appointments", json={"slot_id": slot["id"], "patient_name": "Alice"})
    r = await client.put(f"/slots/{slot['id']}", json={"time": "11:00"})
    assert r.status_code == 409


async def test_delete_doctor_cascades(client):
    slot = await _doctor_and_slot(client)
    await client.post("/appointments", json={"slot_id": slot["id"], "patient_name": "Alice"})

    assert (await client.delete("/doctors/D1")).status_code == 204

    assert (await client.get("/doctors")).json() == []
    assert (await client.get("/slots")).json() == []
    assert (await client.get("/appointments")).json() == []
    assert (await client.delete("/doctors/D1")).status_code == 404
    assert (await client.delete(f"/slots/{slot['id']}")).status_code == 404


async def test_update_doctor_and_dashboard(client):
    await _doctor_and_slot(client)

    r = await client.put("/doctors/D1", json={"room": "12"})
    assert r.json() == {"id": "D1", "name": "Dr. One", "speciality": "GP", "room": "12"}

    r = await client.get("/dashboard")
    assert r.status_code == 200
    assert r.json()["doctors"] == 1
    assert r.json()["slots"] == 1
