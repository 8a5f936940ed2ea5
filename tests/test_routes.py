"""
HTTP endpoint tests
"""
import json
import logging

from app import db
from app.middleware import RequestIdFilter


class TestAuth:

    def test_missing_api_key(self, client, company):
        response = client.get(f'/api/review-automation/{company.id}')
        assert response.status_code == 401

    def test_wrong_api_key(self, client, company):
        response = client.get(f'/api/review-automation/{company.id}', headers={'X-API-Key': 'nope'})
        assert response.status_code == 401

    def test_health_is_public(self, client):
        response = client.get('/health')
        assert response.status_code == 200


class TestSettingsEndpoints:

    def test_get_creates_defaults(self, client, api_headers, company):
        response = client.get(f'/api/review-automation/{company.id}', headers=api_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['company_id'] == company.id
        assert data['first_follow_up_delay'] == 3
        assert data['smart_timing_preferences']['preferred_days'] == [1, 2, 3, 4, 5]

    def test_get_unknown_company(self, client, api_headers):
        response = client.get('/api/review-automation/missing', headers=api_headers)
        assert response.status_code == 404

    def test_put_updates(self, client, api_headers, company):
        response = client.put(
            f'/api/review-automation/{company.id}',
            headers=api_headers,
            json={'first_follow_up_delay': 4, 'enable_sms_requests': True},
        )

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['first_follow_up_delay'] == 4
        assert data['enable_sms_requests'] is True

    def test_put_invalid_returns_details(self, client, api_headers, company):
        response = client.put(
            f'/api/review-automation/{company.id}',
            headers=api_headers,
            json={'first_follow_up_delay': -1, 'preferred_send_time': '25:00'},
        )

        assert response.status_code == 400
        data = json.loads(response.data)
        assert set(data['details']) == {'first_follow_up_delay', 'preferred_send_time'}

    def test_put_without_body(self, client, api_headers, company):
        response = client.put(f'/api/review-automation/{company.id}', headers=api_headers)
        assert response.status_code == 400

    def test_stats(self, client, api_headers, company, review_factory):
        review_factory()

        response = client.get(f'/api/review-automation/{company.id}/stats', headers=api_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['total_requests'] == 1
        assert data['by_follow_up_step']['initial'] == 0


class TestTriggerRequest:

    def test_trigger_creates_request(self, client, api_headers, check_in_factory):
        check_in = check_in_factory()

        response = client.post(f'/api/review-automation/trigger-request/{check_in.id}', headers=api_headers)

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['success'] is True
        assert data['review_status']['check_in_id'] == check_in.id
        assert data['review_status']['status'] == 'pending'

    def test_trigger_not_qualifying(self, client, api_headers, check_in_factory):
        check_in = check_in_factory(customer_email=None, customer_phone=None)

        response = client.post(f'/api/review-automation/trigger-request/{check_in.id}', headers=api_headers)

        assert response.status_code == 400

    def test_trigger_unknown_check_in(self, client, api_headers):
        response = client.post('/api/review-automation/trigger-request/missing', headers=api_headers)
        assert response.status_code == 404


class TestReviewLinks:

    def test_track_click_redirects(self, client, tracker, review_factory):
        review_request, status = review_factory()

        response = client.get(f'/review/track/{review_request.token}')

        assert response.status_code == 302
        assert response.headers['Location'] == f'https://reviews.test/review/{review_request.token}'
        db.session.expire_all()
        assert tracker.get_status(status.id).link_clicked is True

    def test_click_event(self, client, review_factory):
        review_request, _ = review_factory()

        response = client.post(f'/api/review-links/{review_request.token}/click')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['link_clicked'] is True
        assert data['review_submitted'] is False

    def test_submission_is_idempotent(self, client, tracker, review_factory):
        review_request, status = review_factory()

        first = client.post(f'/api/review-links/{review_request.token}/submitted')
        db.session.expire_all()
        submitted_at = tracker.get_status(status.id).review_submitted_at
        second = client.post(f'/api/review-links/{review_request.token}/submitted')

        assert first.status_code == 200
        assert second.status_code == 200
        assert json.loads(second.data)['status'] == 'completed'
        db.session.expire_all()
        assert tracker.get_status(status.id).review_submitted_at == submitted_at

    def test_unsubscribe_link(self, client, review_factory):
        review_request, _ = review_factory()

        response = client.get(f'/review/unsubscribe/{review_request.token}')

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'unsubscribed'
        assert data['unsubscribed'] is True

    def test_unsubscribe_event(self, client, review_factory):
        review_request, _ = review_factory()
        response = client.post(f'/api/review-links/{review_request.token}/unsubscribe')
        assert json.loads(response.data)['unsubscribed'] is True

    def test_unknown_token(self, client):
        assert client.get('/review/track/not-a-token').status_code == 404
        assert client.post('/api/review-links/not-a-token/click').status_code == 404


class TestRequestId:

    def test_response_carries_request_id(self, client):
        response = client.get('/health')
        assert response.headers.get('X-Request-ID')

    def test_incoming_request_id_is_kept(self, client):
        response = client.get('/health', headers={'X-Request-ID': 'abc-123'})
        assert response.headers['X-Request-ID'] == 'abc-123'

    def test_malformed_request_id_is_replaced(self, client):
        response = client.get('/health', headers={'X-Request-ID': 'x' * 200})

        request_id = response.headers['X-Request-ID']
        assert request_id != 'x' * 200
        assert len(request_id) == 32

    def test_log_records_carry_request_id(self, app):
        record = logging.LogRecord('app', logging.INFO, __file__, 1, 'hello', None, None)

        with app.test_request_context('/health', headers={'X-Request-ID': 'abc-123'}):
            app.preprocess_request()
            RequestIdFilter().filter(record)

        assert record.request_id == 'abc-123'

    def test_log_records_outside_request(self):
        record = logging.LogRecord('app', logging.INFO, __file__, 1, 'hello', None, None)
        RequestIdFilter().filter(record)
        assert record.request_id == '-'
