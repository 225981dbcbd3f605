"""
Patient notes are always scoped by the owning patient.
"""


class TestNotes:

    def test_create_and_list_newest_first(self, auth_client, patient, user):
        url = f"/api/patients/{patient['id']}/notes"
        first = auth_client.post(url, json={'title': 'Intake', 'content': 'Mild fever'})
        auth_client.post(url, json={'title': 'Follow up'})

        assert first.status_code == 201
        assert first.get_json()['data']['author_user_id'] == user.id

        titles = [n['title'] for n in auth_client.get(url).get_json()['data']]
        assert titles == ['Follow up', 'Intake']

    def test_create_for_missing_patient_is_404(self, auth_client):
        response = auth_client.post('/api/patients/999/notes', json={'title': 'Orphan'})
        assert response.status_code == 404

    def test_title_is_required(self, auth_client, patient):
        response = auth_client.post(f"/api/patients/{patient['id']}/notes", json={'content': 'x'})
        assert response.status_code == 400

    def test_partial_update(self, auth_client, patient):
        url = f"/api/patients/{patient['id']}/notes"
        note = auth_client.post(url, json={'title': 'Intake', 'content': 'Mild fever'}).get_json()['data']

        response = auth_client.put(f"{url}/{note['id']}", json={'content': 'Recovered'})
        data = response.get_json()['data']

        assert response.status_code == 200
        assert data['title'] == 'Intake'
        assert data['content'] == 'Recovered'

    def test_note_is_not_reachable_through_another_patient(self, auth_client, patient, patient_without_email):
        url = f"/api/patients/{patient['id']}/notes"
        note = auth_client.post(url, json={'title': 'Private'}).get_json()['data']
        other = f"/api/patients/{patient_without_email['id']}/notes/{note['id']}"

        assert auth_client.put(other, json={'title': 'Hijack'}).status_code == 404
        assert auth_client.delete(other).status_code == 404
        assert auth_client.get(f"/api/patients/{patient_without_email['id']}/notes").get_json()['data'] == []

    def test_delete(self, auth_client, patient):
        url = f"/api/patients/{patient['id']}/notes"
        note = auth_client.post(url, json={'title': 'Temp'}).get_json()['data']

        assert auth_client.delete(f"{url}/{note['id']}").status_code == 200
        assert auth_client.get(url).get_json()['data'] == []
