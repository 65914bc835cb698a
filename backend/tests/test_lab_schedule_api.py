def test_regenerate_assigns_every_batch(client, catalog):
    response = client.post("/api/lab-schedules/regenerate", json={"timing_id": "timing-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert body["collisions"] == 0
    assert [(row["batch_id"], row["time_slot_id"], row["day"]) for row in body["schedules"]] == [
        ("batch-a1", "slot-0", 0),
        ("batch-a2", "slot-1", 0),
    ]
    # One lab room and one slot per batch: the teacher alternates.
    assert [row["teacher_id"] for row in body["schedules"]] == ["teacher-1", "teacher-2"]


def test_regenerate_without_body_and_read_back(client, catalog):
    assert client.post("/api/lab-schedules/regenerate").status_code == 200
    client.post("/api/lab-schedules/regenerate")

    stored = client.get("/api/lab-schedules/")
    assert stored.status_code == 200
    assert [(row["batch_id"], row["sequence"]) for row in stored.json()] == [("batch-a1", 0), ("batch-a2", 1)]

    filtered = client.get("/api/lab-schedules/", params={"class_id": "class-a", "batch_id": "batch-a2"})
    assert [row["batch_id"] for row in filtered.json()] == ["batch-a2"]


def test_regenerate_without_lab_rooms_clears_schedule(client, catalog):
    client.post("/api/lab-schedules/regenerate")
    assert client.delete("/api/rooms/room-lab").status_code == 200

    response = client.post("/api/lab-schedules/regenerate")

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 0
    assert any("No lab rooms" in warning for warning in body["warnings"])
    assert client.get("/api/lab-schedules/").json() == []
