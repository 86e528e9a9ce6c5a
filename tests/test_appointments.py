import pytest

from medvision.models import Appointment, AppointmentStatus
from tests.conftest import count_rows, fetch

API = "/v1"


def appointment_payload(patient, doctor, when="2030-03-10T13:00:00Z", reason="Consulta de rotina"):
    return {
        "patient_id": patient.id,
        "doctor_id": doctor.id,
        "appointment_date": when,
        "reason": reason,
    }


@pytest.fixture
def book(client, admin):
    def _book(patient, doctor, when="2030-03-10T13:00:00Z", reason="Consulta de rotina"):
        return client.post(
            f"{API}/appointment",
            json=appointment_payload(patient, doctor, when, reason),
            headers=admin.headers,
        )
    return _book


class TestCreateAppointment:

    def test_create_and_read_back(self, client, admin, patient, doctor, book, video_provider):
        """A booked appointment is scheduled, has a room and reads back unchanged."""
        response = book(patient, doctor)
        assert response.status_code == 201

        created = response.json()["data"]
        assert created["status"] == "scheduled"
        assert created["room_name"] == f"medvision-{created['id']}"
        assert created["room_url"].endswith(created["room_name"])
        assert video_provider.created == [created["room_name"]]

        response = client.get(f"{API}/appointment/{created['id']}", headers=admin.headers)
        assert response.status_code == 200
        found = response.json()["data"]
        for field in ("id", "patient_id", "doctor_id", "reason", "status", "room_name"):
            assert found[field] == created[field]
        assert found["patient"]["id"] == patient.id
        assert found["doctor"]["id"] == doctor.id

    def test_appointment_date_is_stored_in_utc(self, client, admin, patient, doctor, book):
        response = book(patient, doctor, when="2030-03-10T10:00:00-03:00")
        assert response.status_code == 201

        stored = fetch(Appointment, response.json()["data"]["id"])
        assert stored.appointment_date.utcoffset().total_seconds() == 0
        assert stored.appointment_date.hour == 13

    def test_doctor_is_notified(self, patient, doctor, book, email_sender):
        book(patient, doctor)
        assert email_sender.outbox[-1]["to"] == doctor.email
        assert "10/03/2030 10:00" in email_sender.outbox[-1]["html"]

    def test_quota_scenario(self, make_doctor, patient, book):
        """A doctor with one monthly slot takes exactly one booking that month."""
        doctor = make_doctor(crm="11111/SP", monthly_slots=1)

        first = book(patient, doctor, when="2030-05-02T12:00:00Z")
        assert first.status_code == 201

        second = book(patient, doctor, when="2030-05-20T12:00:00Z")
        assert second.status_code == 409
        assert second.json()["message"] == "Horário indisponível para agendamento"

        next_month = book(patient, doctor, when="2030-06-03T12:00:00Z")
        assert next_month.status_code == 201

    def test_exact_double_booking(self, make_patient, doctor, book):
        """The same doctor cannot be booked twice at the same instant."""
        first = book(make_patient(), doctor)
        second = book(make_patient(), doctor)

        assert first.status_code == 201
        assert second.status_code == 409
        assert count_rows(Appointment, Appointment.doctor_id == doctor.id) == 1

    def test_overlapping_slot_is_refused(self, make_patient, doctor, book):
        book(make_patient(), doctor, when="2030-03-10T13:00:00Z")
        response = book(make_patient(), doctor, when="2030-03-10T13:15:00Z")
        assert response.status_code == 409

        response = book(make_patient(), doctor, when="2030-03-10T13:30:00Z")
        assert response.status_code == 201

    def test_patient_cannot_create(self, client, patient, doctor):
        """Only admins book appointments."""
        response = client.post(
            f"{API}/appointment",
            json=appointment_payload(patient, doctor),
            headers=patient.headers,
        )
        assert response.status_code == 403
        assert count_rows(Appointment) == 0

    def test_doctor_cannot_create(self, client, patient, doctor):
        response = client.post(
            f"{API}/appointment",
            json=appointment_payload(patient, doctor),
            headers=doctor.headers,
        )
        assert response.status_code == 403

    def test_unauthenticated(self, client, patient, doctor):
        response = client.post(f"{API}/appointment", json=appointment_payload(patient, doctor))
        assert response.status_code == 401

    def test_unknown_patient(self, client, admin, doctor):
        response = client.post(f"{API}/appointment", json={
            "patient_id": "missing",
            "doctor_id": doctor.id,
            "appointment_date": "2030-03-10T13:00:00Z",
            "reason": "Consulta de rotina",
        }, headers=admin.headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Paciente não encontrado"

    def test_unknown_doctor(self, client, admin, patient):
        response = client.post(f"{API}/appointment", json={
            "patient_id": patient.id,
            "doctor_id": "missing",
            "appointment_date": "2030-03-10T13:00:00Z",
            "reason": "Consulta de rotina",
        }, headers=admin.headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Médico não encontrado"

    def test_patient_checked_before_doctor(self, client, admin):
        response = client.post(f"{API}/appointment", json={
            "patient_id": "missing",
            "doctor_id": "missing",
            "appointment_date": "2030-03-10T13:00:00Z",
            "reason": "Consulta de rotina",
        }, headers=admin.headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Paciente não encontrado"

    def test_naive_date_is_rejected(self, patient, doctor, book):
        response = book(patient, doctor, when="2030-03-10T13:00:00")
        assert response.status_code == 400

    def test_short_reason_is_rejected(self, patient, doctor, book):
        response = book(patient, doctor, reason="ok")
        assert response.status_code == 400

    def test_room_failure_leaves_nothing_behind(self, patient, doctor, book, video_provider):
        """When the video room cannot be created no appointment is stored."""
        video_provider.fail_create = True

        response = book(patient, doctor)
        assert response.status_code == 502
        assert count_rows(Appointment) == 0

        video_provider.fail_create = False
        assert book(patient, doctor).status_code == 201

    def test_cancelled_slot_can_be_rebooked(self, client, admin, make_patient, doctor, book):
        first = book(make_patient(), doctor).json()["data"]
        client.patch(
            f"{API}/appointment/{first['id']}",
            json={"status": "cancelled"},
            headers=admin.headers,
        )

        response = book(make_patient(), doctor)
        assert response.status_code == 201


class TestUpdateAppointment:

    def test_doctor_moves_through_states(self, client, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        url = f"{API}/appointment/{appointment['id']}"

        response = client.patch(url, json={"status": "in_progress"}, headers=doctor.headers)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "in_progress"

        response = client.patch(url, json={"status": "completed", "notes": "Retorno em 30 dias"}, headers=doctor.headers)
        assert response.status_code == 200
        assert response.json()["data"]["notes"] == "Retorno em 30 dias"

        response = client.patch(url, json={"status": "scheduled"}, headers=doctor.headers)
        assert response.status_code == 409

    def test_canceled_spelling_is_accepted(self, client, admin, patient, doctor, book, email_sender):
        appointment = book(patient, doctor).json()["data"]

        response = client.patch(
            f"{API}/appointment/{appointment['id']}",
            json={"status": "canceled"},
            headers=admin.headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "cancelled"
        assert email_sender.outbox[-1]["subject"].startswith("Consulta cancelada")

    def test_unknown_status(self, client, admin, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        response = client.patch(
            f"{API}/appointment/{appointment['id']}",
            json={"status": "postponed"},
            headers=admin.headers,
        )
        assert response.status_code == 400

    def test_patient_cannot_update(self, client, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        response = client.patch(
            f"{API}/appointment/{appointment['id']}",
            json={"notes": "Quero remarcar"},
            headers=patient.headers,
        )
        assert response.status_code == 403

    def test_doctor_limited_to_own_appointments(self, client, patient, make_doctor, book):
        owner = make_doctor()
        other = make_doctor()
        appointment = book(patient, owner).json()["data"]

        response = client.patch(
            f"{API}/appointment/{appointment['id']}",
            json={"notes": "Observação"},
            headers=other.headers,
        )
        assert response.status_code == 403

    def test_doctor_limited_to_status_and_notes(self, client, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        response = client.patch(
            f"{API}/appointment/{appointment['id']}",
            json={"reason": "Outro motivo"},
            headers=doctor.headers,
        )
        assert response.status_code == 403

    def test_admin_reschedules(self, client, admin, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        response = client.patch(
            f"{API}/appointment/{appointment['id']}",
            json={"appointment_date": "2030-03-11T13:00:00Z"},
            headers=admin.headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["appointment_date"].startswith("2030-03-11T13:00:00")

    def test_reschedule_within_own_slot(self, client, admin, patient, doctor, book):
        """Moving an appointment by a few minutes does not clash with itself."""
        appointment = book(patient, doctor).json()["data"]
        response = client.patch(
            f"{API}/appointment/{appointment['id']}",
            json={"appointment_date": "2030-03-10T13:10:00Z"},
            headers=admin.headers,
        )
        assert response.status_code == 200

    def test_reschedule_into_taken_slot(self, client, admin, make_patient, doctor, book):
        book(make_patient(), doctor, when="2030-03-10T13:00:00Z")
        second = book(make_patient(), doctor, when="2030-03-10T15:00:00Z").json()["data"]

        response = client.patch(
            f"{API}/appointment/{second['id']}",
            json={"appointment_date": "2030-03-10T13:00:00Z"},
            headers=admin.headers,
        )
        assert response.status_code == 409

    def test_reschedule_terminal_appointment(self, client, admin, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        url = f"{API}/appointment/{appointment['id']}"
        client.patch(url, json={"status": "cancelled"}, headers=admin.headers)

        response = client.patch(url, json={"appointment_date": "2030-03-12T13:00:00Z"}, headers=admin.headers)
        assert response.status_code == 409

    def test_update_missing_appointment(self, client, admin, test_db):
        response = client.patch(f"{API}/appointment/missing", json={"notes": "x"}, headers=admin.headers)
        assert response.status_code == 404


class TestDeleteAppointment:

    def test_delete_twice(self, client, admin, patient, doctor, book, video_provider):
        """The second delete of the same appointment is NotFound."""
        appointment = book(patient, doctor).json()["data"]
        url = f"{API}/appointment/{appointment['id']}"

        assert client.delete(url, headers=admin.headers).status_code == 200
        assert video_provider.deleted == [appointment["room_name"]]
        assert client.delete(url, headers=admin.headers).status_code == 404

    def test_room_deletion_failure_still_deletes(self, client, admin, patient, doctor, book, video_provider):
        appointment = book(patient, doctor).json()["data"]
        video_provider.fail_delete = True

        response = client.delete(f"{API}/appointment/{appointment['id']}", headers=admin.headers)
        assert response.status_code == 200
        assert fetch(Appointment, appointment["id"]) is None

    def test_only_admin_deletes(self, client, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        response = client.delete(f"{API}/appointment/{appointment['id']}", headers=doctor.headers)
        assert response.status_code == 403


class TestRoomAccess:

    def test_parties_get_tokens(self, client, admin, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        url = f"{API}/appointment/{appointment['id']}/token"

        for account in (patient, doctor, admin):
            response = client.get(url, headers=account.headers)
            assert response.status_code == 200
            data = response.json()["data"]
            assert data["room_name"] == appointment["room_name"]
            assert data["token"].endswith(f":{account.id}:{account.role.value}")

    def test_outsiders_are_refused(self, client, make_patient, make_doctor, book):
        appointment = book(make_patient(), make_doctor()).json()["data"]
        url = f"{API}/appointment/{appointment['id']}/token"

        assert client.get(url, headers=make_patient().headers).status_code == 403
        assert client.get(url, headers=make_doctor().headers).status_code == 403

    def test_no_token_for_finished_appointments(self, client, admin, patient, doctor, book):
        appointment = book(patient, doctor).json()["data"]
        client.patch(
            f"{API}/appointment/{appointment['id']}",
            json={"status": "completed"},
            headers=admin.headers,
        )

        response = client.get(f"{API}/appointment/{appointment['id']}/token", headers=patient.headers)
        assert response.status_code == 409

    def test_token_for_missing_appointment(self, client, admin, test_db):
        response = client.get(f"{API}/appointment/missing/token", headers=admin.headers)
        assert response.status_code == 404


class TestListAppointments:

    def test_scoped_to_caller(self, client, admin, make_patient, make_doctor, book):
        first_patient, second_patient = make_patient(), make_patient()
        first_doctor, second_doctor = make_doctor(), make_doctor()
        book(first_patient, first_doctor, when="2030-03-10T13:00:00Z")
        book(second_patient, second_doctor, when="2030-03-10T13:00:00Z")
        book(first_patient, second_doctor, when="2030-03-11T13:00:00Z")

        mine = client.get(f"{API}/appointment", headers=first_patient.headers).json()["data"]
        assert {a["patient_id"] for a in mine} == {first_patient.id}
        assert len(mine) == 2

        # Filters naming someone else are overridden for patients
        response = client.get(
            f"{API}/appointment",
            params={"patient_id": second_patient.id},
            headers=first_patient.headers,
        )
        assert {a["patient_id"] for a in response.json()["data"]} == {first_patient.id}

        theirs = client.get(f"{API}/appointment", headers=second_doctor.headers).json()["data"]
        assert {a["doctor_id"] for a in theirs} == {second_doctor.id}
        assert len(theirs) == 2

        everything = client.get(f"{API}/appointment", headers=admin.headers).json()["data"]
        assert len(everything) == 3

    def test_filters_and_pagination(self, client, admin, make_patient, doctor, book):
        for day in (10, 11, 12):
            book(make_patient(), doctor, when=f"2030-03-{day}T13:00:00Z")

        response = client.get(f"{API}/appointment", params={
            "start_date": "2030-03-11T00:00:00Z",
            "end_date": "2030-03-12T23:59:59Z",
        }, headers=admin.headers)
        assert len(response.json()["data"]) == 2

        response = client.get(f"{API}/appointment", params={"limit": 2, "page": 2}, headers=admin.headers)
        assert len(response.json()["data"]) == 1

        response = client.get(f"{API}/appointment", params={"status": "cancelled"}, headers=admin.headers)
        assert response.json()["data"] == []

    def test_limit_is_capped(self, client, admin, test_db):
        response = client.get(f"{API}/appointment", params={"limit": 500}, headers=admin.headers)
        assert response.status_code == 400

    def test_listing_includes_names(self, client, admin, patient, doctor, book):
        book(patient, doctor)
        item = client.get(f"{API}/appointment", headers=admin.headers).json()["data"][0]
        assert item["patient"]["name"].startswith("Paciente")
        assert item["doctor"]["crm"]


class TestAvailabilityEndpoint:

    def test_reports_availability(self, client, admin, patient, doctor, book):
        book(patient, doctor)

        taken = client.get(f"{API}/appointment/availability", params={
            "doctor_id": doctor.id,
            "date": "2030-03-10T13:00:00Z",
        }, headers=admin.headers)
        assert taken.status_code == 200
        assert taken.json()["data"]["available"] is False

        free = client.get(f"{API}/appointment/availability", params={
            "doctor_id": doctor.id,
            "date": "2030-03-10T16:00:00Z",
        }, headers=doctor.headers)
        assert free.json()["data"]["available"] is True

    def test_patients_cannot_probe(self, client, patient, doctor):
        response = client.get(f"{API}/appointment/availability", params={
            "doctor_id": doctor.id,
            "date": "2030-03-10T16:00:00Z",
        }, headers=patient.headers)
        assert response.status_code == 403

    def test_status_enum_values(self):
        assert [s.value for s in AppointmentStatus] == ["scheduled", "in_progress", "completed", "cancelled"]
