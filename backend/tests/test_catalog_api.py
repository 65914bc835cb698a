def test_timings_and_time_slots(client):
    timing = client.post("/api/timings", json={"name": "Morning"})
    assert timing.status_code == 201
    timing_id = timing.json()["id"]
    assert client.post("/api/timings", json={"name": "Morning"}).status_code == 409

    second = client.post(
        "/api/time-slots",
        json={"start_time": "09:00", "end_time": "10:00", "slot_order": 1, "timing_id": timing_id},
    )
    first = client.post(
        "/api/time-slots",
        json={"start_time": "08:00", "end_time": "09:00", "slot_order": 0, "timing_id": timing_id},
    )
    assert second.status_code == first.status_code == 201

    listed = client.get("/api/time-slots", params={"timing_id": timing_id}).json()
    assert [slot["slot_order"] for slot in listed] == [0, 1]

    assert client.delete(f"/api/time-slots/{first.json()['id']}").status_code == 200
    assert len(client.get("/api/time-slots").json()) == 1


def test_time_slot_validation(client):
    backwards = client.post("/api/time-slots", json={"start_time": "10:00", "end_time": "09:00", "slot_order": 0})
    assert backwards.status_code == 422
    bad_format = client.post("/api/time-slots", json={"start_time": "9am", "end_time": "10:00", "slot_order": 0})
    assert bad_format.status_code == 422
    orphan = client.post(
        "/api/time-slots",
        json={"start_time": "09:00", "end_time": "10:00", "slot_order": 0, "timing_id": "missing"},
    )
    assert orphan.status_code == 404


def test_subjects_reject_three_slot_labs(client):
    created = client.post(
        "/api/subjects/",
        json={"name": "Physics Lab", "code": "PHYL", "is_lab": True, "lab_duration_slots": 2},
    )
    assert created.status_code == 201
    assert created.json()["lab_duration_slots"] == 2

    too_long = client.post(
        "/api/subjects/",
        json={"name": "Marathon Lab", "code": "MARL", "is_lab": True, "lab_duration_slots": 3},
    )
    assert too_long.status_code == 422
    assert client.post("/api/subjects/", json={"name": "Again", "code": "PHYL"}).status_code == 409


def test_classes_batches_and_subject_assignments(client):
    school_class = client.post("/api/classes/", json={"name": "Grade 10 A", "year": 10}).json()
    subject = client.post("/api/subjects/", json={"name": "Biology Lab", "code": "BIOL", "is_lab": True}).json()

    batch = client.post(f"/api/classes/{school_class['id']}/batches", json={"name": "B1", "strength": 20})
    assert batch.status_code == 201
    assert client.post(f"/api/classes/{school_class['id']}/batches", json={"name": "B1"}).status_code == 409
    assert [item["name"] for item in client.get(f"/api/classes/{school_class['id']}/batches").json()] == ["B1"]

    assigned = client.post(f"/api/classes/{school_class['id']}/subjects", json={"subject_id": subject["id"]})
    assert assigned.status_code == 201
    duplicate = client.post(f"/api/classes/{school_class['id']}/subjects", json={"subject_id": subject["id"]})
    assert duplicate.status_code == 409
    listed = client.get(f"/api/classes/{school_class['id']}/subjects").json()
    assert [item["subject_id"] for item in listed] == [subject["id"]]

    removed = client.delete(f"/api/classes/{school_class['id']}/subjects/{subject['id']}")
    assert removed.status_code == 200
    assert client.get(f"/api/classes/{school_class['id']}/subjects").json() == []
    assert client.get("/api/classes/missing/batches").status_code == 404


def test_teachers(client):
    created = client.post("/api/teachers/", json={"name": "Ada", "email": "ada@example.com"})
    assert created.status_code == 201
    assert client.post("/api/teachers/", json={"name": "Ada 2", "email": "ada@example.com"}).status_code == 409
    assert client.post("/api/teachers/", json={"name": "No Mail"}).status_code == 201
    assert client.post("/api/teachers/", json={"name": "Bad", "email": "not-an-email"}).status_code == 422
    assert [item["name"] for item in client.get("/api/teachers/").json()] == ["Ada", "No Mail"]


def test_rooms_crud_and_type_filter(client):
    lab = client.post("/api/rooms/", json={"name": "Lab 1", "capacity": 30, "type": "lab"})
    lecture = client.post("/api/rooms/", json={"name": "Hall", "capacity": 120, "type": "lecture"})
    assert lab.status_code == lecture.status_code == 201
    assert client.post("/api/rooms/", json={"name": "Hall", "capacity": 10, "type": "seminar"}).status_code == 409

    labs = client.get("/api/rooms/", params={"room_type": "lab"}).json()
    assert [room["name"] for room in labs] == ["Lab 1"]

    updated = client.put(f"/api/rooms/{lab.json()['id']}", json={"capacity": 35})
    assert updated.status_code == 200
    assert updated.json()["capacity"] == 35
    assert client.put(f"/api/rooms/{lab.json()['id']}", json={"name": "Hall"}).status_code == 409

    assert client.delete(f"/api/rooms/{lecture.json()['id']}").status_code == 200
    assert client.delete(f"/api/rooms/{lecture.json()['id']}").status_code == 404


def test_teacher_subject_qualifications(client):
    teacher = client.post("/api/teachers/", json={"name": "Ada"}).json()
    subject = client.post("/api/subjects/", json={"name": "Physics", "code": "PHY"}).json()

    qualified = client.post(f"/api/teachers/{teacher['id']}/subjects", json={"subject_id": subject["id"]})
    assert qualified.status_code == 201
    assert client.post(f"/api/teachers/{teacher['id']}/subjects", json={"subject_id": subject["id"]}).status_code == 409
    assert client.post(f"/api/teachers/{teacher['id']}/subjects", json={"subject_id": "ghost"}).status_code == 404
    assert client.get("/api/teachers/missing/subjects").status_code == 404

    listed = client.get(f"/api/teachers/{teacher['id']}/subjects").json()
    assert [item["subject_id"] for item in listed] == [subject["id"]]

    assert client.delete(f"/api/teachers/{teacher['id']}/subjects/{subject['id']}").status_code == 200
    assert client.delete(f"/api/teachers/{teacher['id']}/subjects/{subject['id']}").status_code == 404
    assert client.get(f"/api/teachers/{teacher['id']}/subjects").json() == []


def test_class_home_room(client):
    school_class = client.post("/api/classes/", json={"name": "Grade 9"}).json()
    first = client.post("/api/rooms/", json={"name": "101", "capacity": 40, "type": "lecture"}).json()
    second = client.post("/api/rooms/", json={"name": "102", "capacity": 40, "type": "lecture"}).json()
    url = f"/api/classes/{school_class['id']}/room"

    assert client.get(url).status_code == 404
    assert client.put(url, json={"room_id": "ghost"}).status_code == 404

    assert client.put(url, json={"room_id": first["id"]}).json()["room_id"] == first["id"]
    moved = client.put(url, json={"room_id": second["id"]})
    assert moved.status_code == 200
    assert client.get(url).json()["room_id"] == second["id"]

    assert client.delete(url).status_code == 200
    assert client.delete(url).status_code == 404
