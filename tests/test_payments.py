"""
Payments: creation, linking rules, refunds and the CSV export.
"""

from unittest.mock import patch

import pytest

from clinic_api.extensions import db
from clinic_api.models import Payment


def create_payment(client, **overrides):
    payload = {'amount': '125.50', 'method': 'card', 'last4': '4242'}
    payload.update(overrides)
    return client.post('/api/payments', json=payload)


class TestCreatePayment:

    def test_create_with_receipt(self, auth_client, patient, mailer):
        response = create_payment(auth_client, patient_code=patient['patient_code'], transaction_ref='tx_1')
        body = response.get_json()
        data = body['data']

        assert response.status_code == 201
        assert data['payment_code'] == 'PAY-000001'
        assert data['amount'] == 125.5
        assert data['currency'] == 'LKR'
        assert data['status'] == 'paid'
        assert body['email_sent'] is True

        to_email, msg = mailer.sent[0]
        assert to_email == 'jane@example.com'
        assert msg['Subject'] == f"Test Clinic - Payment Receipt #{data['id']}"

    def test_no_email_no_network(self, app, auth_client, patient_without_email):
        with patch('smtplib.SMTP') as smtp, patch('smtplib.SMTP_SSL') as smtp_ssl, \
                patch('stripe.Customer.list') as customers:
            response = create_payment(auth_client, patient_id=patient_without_email['id'])

        assert response.status_code == 201
        assert response.get_json()['email_sent'] is False
        smtp.assert_not_called()
        smtp_ssl.assert_not_called()
        customers.assert_not_called()
        assert Payment.query.count() == 1

    def test_currency_is_uppercased(self, auth_client, patient):
        data = create_payment(auth_client, patient_id=patient['id'], currency='usd').get_json()['data']
        assert data['currency'] == 'USD'

    @pytest.mark.parametrize('overrides', [
        {'amount': -1},
        {'method': 'cheque'},
        {'status': 'lost'},
        {'last4': '42'},
        {'currency': 'DOLLARS'},
    ])
    def test_invalid_fields_are_400(self, auth_client, patient, overrides):
        response = create_payment(auth_client, patient_id=patient['id'], **overrides)
        assert response.status_code == 400

    def test_appointment_must_exist(self, auth_client, patient):
        response = create_payment(auth_client, patient_id=patient['id'], appointment_id=999)
        assert response.status_code == 404

    def test_appointment_must_belong_to_patient(self, auth_client, patient, patient_without_email):
        appt = auth_client.post('/api/appointments', json={
            'patient_id': patient['id'], 'date': '2025-08-30', 'time': '09:00',
        }).get_json()['data']

        response = create_payment(auth_client, patient_id=patient_without_email['id'], appointment_id=appt['id'])
        assert response.status_code == 400
        assert Payment.query.count() == 0


class TestUpdateAndRefund:

    def test_partial_update(self, auth_client, patient):
        payment = create_payment(auth_client, patient_id=patient['id'], description='Visit').get_json()['data']

        response = auth_client.put(f"/api/payments/{payment['id']}", json={'amount': 99, 'last4': None})
        data = response.get_json()['data']

        assert response.status_code == 200
        assert data['amount'] == 99
        assert data['last4'] is None
        assert data['description'] == 'Visit'
        assert data['method'] == 'card'

    def test_empty_update_is_400(self, auth_client, patient):
        payment = create_payment(auth_client, patient_id=patient['id']).get_json()['data']
        assert auth_client.put(f"/api/payments/{payment['id']}", json={}).status_code == 400

    def test_refund_is_idempotent(self, auth_client, patient):
        payment = create_payment(auth_client, patient_id=patient['id']).get_json()['data']
        url = f"/api/payments/{payment['id']}/refund"

        first = auth_client.patch(url)
        second = auth_client.patch(url)

        assert first.status_code == second.status_code == 200
        assert first.get_json()['data']['status'] == 'refunded'
        assert second.get_json()['data']['status'] == 'refunded'

    def test_refund_missing_payment_is_404(self, auth_client):
        assert auth_client.patch('/api/payments/999/refund').status_code == 404

    def test_delete(self, auth_client, patient):
        payment = create_payment(auth_client, patient_id=patient['id']).get_json()['data']
        assert auth_client.delete(f"/api/payments/{payment['id']}").status_code == 200
        assert auth_client.get(f"/api/payments/{payment['id']}").status_code == 404


class TestListAndExport:

    @pytest.fixture
    def payments(self, auth_client, patient, patient_without_email):
        appt = auth_client.post('/api/appointments', json={
            'patient_id': patient['id'], 'date': '2025-08-30', 'time': '09:00', 'fee': 200,
        }).get_json()['data']
        first = create_payment(auth_client, patient_id=patient['id'], appointment_id=appt['id'],
                               description='Line one\nline "two"').get_json()['data']
        second = create_payment(auth_client, patient_id=patient_without_email['id'], amount=10,
                                method='cash', status='pending').get_json()['data']
        return appt, first, second

    def test_list_filters(self, auth_client, payments):
        _, first, second = payments

        rows = auth_client.get('/api/payments').get_json()['data']
        assert [p['id'] for p in rows] == [second['id'], first['id']]

        cash = auth_client.get('/api/payments?method=cash').get_json()['data']
        assert [p['id'] for p in cash] == [second['id']]

        paid = auth_client.get('/api/payments?status=paid').get_json()['data']
        assert [p['id'] for p in paid] == [first['id']]

        by_name = auth_client.get('/api/payments?search=jane').get_json()['data']
        assert [p['id'] for p in by_name] == [first['id']]

        by_code = auth_client.get(f"/api/payments?search={second['payment_code']}").get_json()['data']
        assert [p['id'] for p in by_code] == [second['id']]

    def test_csv_export(self, auth_client, payments):
        appt, first, _ = payments

        response = auth_client.get('/api/payments/export/csv?status=paid')

        assert response.status_code == 200
        assert response.headers['Content-Type'] == 'text/csv; charset=utf-8'
        assert 'filename="payments.csv"' in response.headers['Content-Disposition']

        text = response.get_data(as_text=True)
        lines = text.split('\r\n')
        assert text.endswith('\r\n')
        assert lines[0] == (
            '"Payment Code","Patient","Patient Code","Appointment Code","Date",'
            '"Amount","Currency","Method","Status","Description"'
        )
        assert len(lines) == 3
        row = lines[1]
        assert row.startswith(f'"{first["payment_code"]}","Jane Doe","{first["patient_code"]}","{appt["appt_code"]}",')
        assert '"125.50","LKR","card","paid","Line one line ""two"""' in row

    def test_csv_export_ignores_list_limit(self, app, auth_client, patient):
        with patch('clinic_api.routes.payment.LIST_LIMIT', 1):
            create_payment(auth_client, patient_id=patient['id'])
            create_payment(auth_client, patient_id=patient['id'])

            assert len(auth_client.get('/api/payments').get_json()['data']) == 1
            text = auth_client.get('/api/payments/export/csv').get_data(as_text=True)

        assert len(text.split('\r\n')) == 4
