API = "/v1"


def book(client, admin, patient, doctor):
    return client.post(f"{API}/appointment", json={
        "patient_id": patient.id,
        "doctor_id": doctor.id,
        "appointment_date": "2030-03-10T13:00:00Z",
        "reason": "Consulta de rotina",
    }, headers=admin.headers)


class TestAdminManagement:

    def test_list_doctors(self, client, admin, make_doctor):
        for _ in range(3):
            make_doctor()

        response = client.get(f"{API}/admin/doctors", params={"limit": 2}, headers=admin.headers)
        assert response.status_code == 200
        assert len(response.json()["data"]) == 2

    def test_non_admins_are_refused(self, client, doctor, patient):
        assert client.get(f"{API}/admin/doctors", headers=doctor.headers).status_code == 403
        assert client.get(f"{API}/admin/patients", headers=patient.headers).status_code == 403

    def test_update_doctor_quota(self, client, admin, doctor):
        response = client.patch(f"{API}/admin/doctors/{doctor.id}", json={"monthly_slots": 40}, headers=admin.headers)
        assert response.status_code == 200
        assert response.json()["data"]["monthly_slots"] == 40

    def test_empty_update(self, client, admin, doctor):
        response = client.patch(f"{API}/admin/doctors/{doctor.id}", json={}, headers=admin.headers)
        assert response.status_code == 400

    def test_get_missing_patient(self, client, admin, test_db):
        response = client.get(f"{API}/admin/patients/missing", headers=admin.headers)
        assert response.status_code == 404
        assert response.json()["message"] == "Paciente não encontrado"

    def test_delete_doctor_without_appointments(self, client, admin, doctor):
        assert client.delete(f"{API}/admin/doctors/{doctor.id}", headers=admin.headers).status_code == 200
        assert client.get(f"{API}/admin/doctors/{doctor.id}", headers=admin.headers).status_code == 404

    def test_delete_with_appointments_is_refused(self, client, admin, patient, doctor):
        book(client, admin, patient, doctor)

        assert client.delete(f"{API}/admin/doctors/{doctor.id}", headers=admin.headers).status_code == 409
        assert client.delete(f"{API}/admin/patients/{patient.id}", headers=admin.headers).status_code == 409

    def test_deleted_account_loses_session(self, client, admin, patient):
        client.delete(f"{API}/admin/patients/{patient.id}", headers=admin.headers)
        assert client.get(f"{API}/auth/me", headers=patient.headers).status_code == 401


class TestOwnProfile:

    def test_doctor_profile(self, client, doctor):
        response = client.get(f"{API}/doctor/me", headers=doctor.headers)
        assert response.status_code == 200
        assert response.json()["data"]["id"] == doctor.id

        response = client.patch(f"{API}/doctor/me", json={"specialty": "Dermatologia"}, headers=doctor.headers)
        assert response.status_code == 200
        assert response.json()["data"]["specialty"] == "Dermatologia"

    def test_doctor_cannot_raise_own_quota(self, client, doctor):
        response = client.patch(f"{API}/doctor/me", json={"monthly_slots": 999}, headers=doctor.headers)
        # monthly_slots is not a profile field, so nothing is left to update
        assert response.status_code == 400

    def test_patient_profile(self, client, patient):
        response = client.patch(f"{API}/patient/me", json={
            "address": {
                "street": "Rua Augusta",
                "number": "50",
                "neighborhood": "Consolação",
                "city": "São Paulo",
                "zipcode": "01305-000",
            },
        }, headers=patient.headers)
        assert response.status_code == 200
        assert response.json()["data"]["address"]["street"] == "Rua Augusta"

    def test_wrong_role_for_profile(self, client, patient, doctor):
        assert client.get(f"{API}/doctor/me", headers=patient.headers).status_code == 403
        assert client.get(f"{API}/patient/me", headers=doctor.headers).status_code == 403


class TestServiceEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Process-Time" in response.headers

    def test_info(self, client):
        response = client.get(f"{API}/info")
        assert response.json()["endpoints"]["appointments"] == "/v1/appointment"

    def test_unknown_route(self, client):
        response = client.get(f"{API}/nothing-here")
        assert response.status_code == 404
        assert response.json()["ok"] is False
