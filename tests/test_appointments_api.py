from app.core.config import DoctorMatchPolicy
from app.core import permissions


def book(client, user, doctor, auth_headers, booking_payload, **kwargs):
    return client.post("/api/appointments", headers=auth_headers(user), json=booking_payload(doctor.id, **kwargs))


def test_booking_returns_joined_record(client, patient, doctor, auth_headers, booking_payload):
    response = book(client, patient, doctor, auth_headers, booking_payload)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["amount"] == 150.0
    assert body["appointment_date"] == "2024-01-10"
    assert body["duration"] == 30
    assert body["patient"] == {"id": patient.id, "name": "Pat Patient", "email": "pat@example.com", "phone": "555-0100"}
    assert body["doctor"]["id"] == doctor.id
    assert body["doctor"]["user"]["name"] == "Dana House"
    assert body["payment_status"] == "pending"
    assert body["appointment_type"] == "in-person"


def test_booking_requires_authentication(client, doctor, booking_payload):
    response = client.post("/api/appointments", json=booking_payload(doctor.id))
    assert response.status_code == 401


def test_booking_validation(client, patient, doctor, auth_headers, booking_payload):
    payload = booking_payload(doctor.id)
    del payload["reason"]
    response = client.post("/api/appointments", headers=auth_headers(patient), json=payload)
    assert response.status_code == 400
    assert "reason" in response.json()["message"]

    response = client.post(
        "/api/appointments", headers=auth_headers(patient), json=booking_payload(doctor.id, start_time="25:00")
    )
    assert response.status_code == 400


def test_booking_unknown_and_unavailable_doctor(client, db, patient, doctor, auth_headers, booking_payload):
    payload = booking_payload(doctor.id)
    payload["doctor_id"] = 999
    response = client.post("/api/appointments", headers=auth_headers(patient), json=payload)
    assert response.status_code == 404
    assert response.json() == {"message": "Doctor not found"}

    doctor.is_available = False
    db.commit()
    response = book(client, patient, doctor, auth_headers, booking_payload)
    assert response.status_code == 400
    assert response.json() == {"message": "Doctor is not available"}


def test_checkup_scenario(client, patient, other_patient, doctor, auth_headers, booking_payload):
    first = book(client, patient, doctor, auth_headers, booking_payload)
    assert first.status_code == 201
    appointment_id = first.json()["id"]

    second = book(client, other_patient, doctor, auth_headers, booking_payload)
    assert second.status_code == 400
    assert second.json() == {"message": "Time slot is already booked"}

    completed = client.put(
        f"/api/appointments/{appointment_id}/complete",
        headers=auth_headers(doctor.user),
        json={"prescription": {"medications": [], "instructions": "rest"}, "notes": "Hydrate"},
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"
    assert completed.json()["prescription"] == {"medications": [], "instructions": "rest"}

    cancel = client.put(f"/api/appointments/{appointment_id}/cancel", headers=auth_headers(patient), json={})
    assert cancel.status_code == 400
    assert cancel.json() == {"message": "Appointment cannot be cancelled"}


def test_cancel_then_cancel_again(client, patient, doctor, auth_headers, booking_payload):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]

    first = client.put(
        f"/api/appointments/{appointment_id}/cancel",
        headers=auth_headers(patient),
        json={"cancellation_reason": "feeling better"},
    )
    assert first.status_code == 200
    assert first.json()["cancelled_by"] == "patient"
    assert first.json()["cancellation_reason"] == "feeling better"

    second = client.put(f"/api/appointments/{appointment_id}/cancel", headers=auth_headers(patient))
    assert second.status_code == 400


def test_patient_cannot_complete(client, patient, doctor, auth_headers, booking_payload):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]

    response = client.put(f"/api/appointments/{appointment_id}/complete", headers=auth_headers(patient), json={})
    assert response.status_code == 403


def test_confirm_and_no_show(client, patient, doctor, auth_headers, booking_payload):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]

    confirmed = client.put(f"/api/appointments/{appointment_id}/confirm", headers=auth_headers(doctor.user))
    assert confirmed.json()["status"] == "confirmed"

    no_show = client.put(f"/api/appointments/{appointment_id}/no-show", headers=auth_headers(doctor.user))
    assert no_show.json()["status"] == "no-show"

    again = client.put(f"/api/appointments/{appointment_id}/confirm", headers=auth_headers(doctor.user))
    assert again.status_code == 400


def test_view_rules(client, patient, other_patient, doctor, other_doctor, admin, auth_headers, booking_payload):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]
    url = f"/api/appointments/{appointment_id}"

    assert client.get(url, headers=auth_headers(patient)).status_code == 200
    assert client.get(url, headers=auth_headers(doctor.user)).status_code == 200
    assert client.get(url, headers=auth_headers(admin)).status_code == 200
    assert client.get(url, headers=auth_headers(other_patient)).status_code == 403
    assert client.get(url, headers=auth_headers(other_doctor.user)).status_code == 403
    assert client.get("/api/appointments/999", headers=auth_headers(admin)).status_code == 404


def test_update_appointment(client, patient, doctor, auth_headers, booking_payload):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]

    response = client.put(
        f"/api/appointments/{appointment_id}",
        headers=auth_headers(patient),
        json={"reason": "annual physical", "appointment_type": "video", "start_time": "10:00", "end_time": "10:30"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["reason"] == "annual physical"
    assert body["appointment_type"] == "video"
    assert body["start_time"] == "10:00"
    assert body["amount"] == 150.0


def test_update_ignores_amount_and_status_fields(client, patient, doctor, auth_headers, booking_payload):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]

    response = client.put(
        f"/api/appointments/{appointment_id}",
        headers=auth_headers(patient),
        json={"amount": 1, "status": "completed"},
    )
    assert response.status_code == 200
    assert response.json()["amount"] == 150.0
    assert response.json()["status"] == "pending"


def test_doctor_policy_switch(client, patient, doctor, auth_headers, booking_payload, monkeypatch):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]
    assert doctor.id != doctor.user.id

    monkeypatch.setattr(permissions.settings, "DOCTOR_MATCH_POLICY", DoctorMatchPolicy.PROFILE_ID)
    response = client.put(f"/api/appointments/{appointment_id}/cancel", headers=auth_headers(doctor.user))
    assert response.status_code == 403

    monkeypatch.setattr(permissions.settings, "DOCTOR_MATCH_POLICY", DoctorMatchPolicy.OWNING_USER)
    response = client.put(f"/api/appointments/{appointment_id}/cancel", headers=auth_headers(doctor.user))
    assert response.status_code == 200
    assert response.json()["cancelled_by"] == "doctor"


def test_list_for_patient(client, patient, other_patient, doctor, other_doctor, admin, auth_headers, booking_payload):
    late = book(client, patient, other_doctor, auth_headers, booking_payload, start_time="11:00", end_time="11:30").json()
    early = book(client, patient, doctor, auth_headers, booking_payload).json()
    client.put(f"/api/appointments/{late['id']}/cancel", headers=auth_headers(patient))

    url = f"/api/appointments/user/{patient.id}"
    everything = client.get(url, headers=auth_headers(patient)).json()
    assert [a["id"] for a in everything] == [early["id"], late["id"]]

    cancelled = client.get(url, headers=auth_headers(patient), params={"status": "cancelled"}).json()
    assert [a["id"] for a in cancelled] == [late["id"]]

    other_day = client.get(url, headers=auth_headers(patient), params={"date": "2024-01-11"}).json()
    assert other_day == []

    assert client.get(url, headers=auth_headers(admin)).status_code == 200
    assert client.get(url, headers=auth_headers(other_patient)).status_code == 403


def test_list_for_doctor(client, patient, doctor, other_doctor, auth_headers, booking_payload):
    booked = book(client, patient, doctor, auth_headers, booking_payload).json()
    url = f"/api/appointments/doctor/{doctor.id}"

    listed = client.get(url, headers=auth_headers(doctor.user), params={"date": "2024-01-10"}).json()
    assert [a["id"] for a in listed] == [booked["id"]]

    # Patients are not doctors; other doctors do not own this profile
    assert client.get(url, headers=auth_headers(patient)).status_code == 403
    assert client.get(url, headers=auth_headers(other_doctor.user)).status_code == 403


def test_qr_code_and_prescription_pdf(client, patient, other_patient, doctor, auth_headers, booking_payload):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]

    qr = client.get(f"/api/appointments/{appointment_id}/qr-code", headers=auth_headers(patient))
    assert qr.status_code == 200
    assert qr.headers["content-type"] == "image/png"
    assert qr.content.startswith(b"\x89PNG")

    missing = client.get(f"/api/appointments/{appointment_id}/prescription/pdf", headers=auth_headers(patient))
    assert missing.status_code == 404

    client.put(
        f"/api/appointments/{appointment_id}/complete",
        headers=auth_headers(doctor.user),
        json={
            "prescription": {
                "medications": [{"name": "Ibuprofen", "dosage": "200mg", "frequency": "2x daily", "duration": "5 days"}],
                "instructions": "Take with food",
            },
        },
    )
    pdf = client.get(f"/api/appointments/{appointment_id}/prescription/pdf", headers=auth_headers(patient))
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    stranger = client.get(f"/api/appointments/{appointment_id}/prescription/pdf", headers=auth_headers(other_patient))
    assert stranger.status_code == 403


def test_notifications_follow_the_lifecycle(client, patient, doctor, auth_headers, booking_payload):
    appointment_id = book(client, patient, doctor, auth_headers, booking_payload).json()["id"]
    client.put(f"/api/appointments/{appointment_id}/cancel", headers=auth_headers(patient))

    patient_inbox = client.get("/api/notifications", headers=auth_headers(patient)).json()
    titles = {n["title"] for n in patient_inbox}
    assert titles == {"Appointment Requested", "Appointment Cancelled"}
    assert all(n["appointment_id"] == appointment_id for n in patient_inbox)

    doctor_inbox = client.get("/api/notifications", headers=auth_headers(doctor.user)).json()
    assert [n["title"] for n in doctor_inbox] == ["Appointment Cancelled"]

    first = patient_inbox[0]["id"]
    assert client.put(f"/api/notifications/{first}/read", headers=auth_headers(patient)).status_code == 200
    assert client.put(f"/api/notifications/{first}/read", headers=auth_headers(doctor.user)).status_code == 404

    client.put("/api/notifications/read-all", headers=auth_headers(patient))
    assert all(n["is_read"] for n in client.get("/api/notifications", headers=auth_headers(patient)).json())


def test_health_and_unknown_route(client):
    health = client.get("/api/health").json()
    assert health["status"] == "OK"
    assert health["storage"] == "memory"

    response = client.get("/api/nowhere")
    assert response.status_code == 404
    assert response.json() == {"message": "Route not found"}
