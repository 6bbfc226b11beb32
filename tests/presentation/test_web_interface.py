# tests/presentation/test_web_interface.py
import pytest
from datetime import datetime, timezone
from unittest.mock import patch

from application.interfaces import StatusApi
from tests.factories import make_incident, make_service, BASE_TIME
from domain import (
    ApiError,
    ChangeAction,
    EventServiceChange,
    EventStatus,
    EventUpdate,
    ServiceGroup,
    ServiceStatus,
)
from infrastructure.config import Settings
from presentation.web.app import create_app


class FakeStatusApi(StatusApi):
    """In-memory backend with one incident touching the core group."""

    def __init__(self):
        super().__init__()
        self.services = [
            make_service('api', group_ids=['core'], name='API'),
            make_service('db', group_ids=['core'], name='Database'),
            make_service('cdn', name='CDN'),
        ]
        self.groups = [ServiceGroup(id='core', name='Core Services')]
        self.incident = make_incident(services=[('api', ServiceStatus.DEGRADED)])
        self.posted = []

    def fetch_services(self):
        return self.services

    def fetch_groups(self):
        return self.groups

    def fetch_active_events(self):
        return [self.incident]

    def fetch_history(self):
        return []

    def fetch_event(self, event_id):
        if event_id != self.incident.id:
            raise ApiError(404, "Event not found")
        return self.incident

    def fetch_event_updates(self, event_id):
        return [EventUpdate(id='u1', event_id=event_id, status=EventStatus.INVESTIGATING,
                            message='Looking into it', created_at=BASE_TIME)]

    def fetch_event_changes(self, event_id):
        return [EventServiceChange(id='c1', event_id=event_id, action=ChangeAction.ADDED,
                                   created_at=BASE_TIME.replace(minute=5), service_id='db',
                                   batch_id='b-1', reason='Replication lag')]

    def post_event_update(self, event_id, payload):
        self.posted.append((event_id, payload))
        return {'id': 'u2', 'event_id': event_id, 'status': payload['status']}


@pytest.fixture
def api():
    return FakeStatusApi()


@pytest.fixture
def app(api):
    """Create test Flask application."""
    test_app = create_app(api=api, settings=Settings())
    test_app.config['TESTING'] = True
    return test_app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def mock_status_data():
    """Mock status data for testing."""
    return {
        'overall': {'status': 'degraded', 'label': 'Degraded System Performance'},
        'groups': [],
        'active_incidents': [],
        'maintenance': [],
        'history': {},
        'last_updated': datetime.now(timezone.utc).isoformat(),
        'error': None
    }


class TestStatusEndpoints:
    """Test suite for status page endpoints."""

    def test_status_returns_cached_page(self, client, mock_status_data):
        with patch('infrastructure.scheduler.scheduler.get_latest_data', return_value=mock_status_data):
            response = client.get('/api/status')

        assert response.status_code == 200
        assert response.get_json()['overall']['status'] == 'degraded'

    def test_refresh_recomputes_page(self, client):
        response = client.post('/api/status/refresh')

        data = response.get_json()
        assert response.status_code == 200
        assert data['error'] is None
        assert data['overall']['status'] == 'degraded'
        assert [s['id'] for s in data['groups'][0]['services']] == ['api', 'db']

    def test_health_check(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()['status'] == 'healthy'

    def test_stream_headers(self, client, mock_status_data):
        with patch('infrastructure.scheduler.scheduler.get_latest_data', return_value=mock_status_data):
            response = client.get('/api/status/stream', buffered=False)
            first_chunk = next(iter(response.response))
            response.close()

        assert response.mimetype == 'text/event-stream'
        assert response.headers['Cache-Control'] == 'no-cache'
        chunk = first_chunk.decode() if isinstance(first_chunk, bytes) else first_chunk
        assert chunk.startswith('data: ')


class TestEventEndpoints:
    """Test suite for event timeline and update endpoints."""

    def test_timeline(self, client):
        response = client.get('/api/events/inc-1/timeline')

        entries = response.get_json()['data']
        assert response.status_code == 200
        assert [e['type'] for e in entries] == ['service_change_group', 'status_update', 'event_created']
        assert entries[0]['title'] == 'Added service "Database"'
        assert entries[0]['reason'] == 'Replication lag'

    def test_timeline_unknown_event(self, client):
        response = client.get('/api/events/missing/timeline')

        assert response.status_code == 404
        assert response.get_json()['error']['message'] == 'Event not found'

    def test_preview_update(self, client, api):
        response = client.post('/api/events/inc-1/updates/preview', json={
            'status': 'identified',
            'message': 'Core services affected',
            'add_groups': [{'group_id': 'core', 'status': 'partial_outage'}],
            'reason': 'Broader impact',
        })

        data = response.get_json()['data']
        assert response.status_code == 200
        assert data['add_services'] == [{'service_id': 'db', 'status': 'partial_outage'}]
        assert data['add_groups'] == [{'group_id': 'core', 'status': 'partial_outage'}]
        assert data['reason'] == 'Broader impact'
        assert api.posted == []

    def test_post_update(self, client, api):
        response = client.post('/api/events/inc-1/updates', json={
            'status': 'monitoring',
            'message': 'Fix deployed',
            'service_updates': [{'service_id': 'api', 'status': 'major_outage'}],
        })

        assert response.status_code == 201
        assert response.get_json()['data']['id'] == 'u2'
        event_id, payload = api.posted[0]
        assert event_id == 'inc-1'
        assert payload['service_updates'] == [{'service_id': 'api', 'status': 'major_outage'}]
        assert 'reason' not in payload

    def test_conflicting_update_is_rejected(self, client, api):
        response = client.post('/api/events/inc-1/updates', json={
            'status': 'identified',
            'message': 'Shuffling services',
            'remove_service_ids': ['api'],
            'add_services': [{'service_id': 'api', 'status': 'degraded'}],
        })

        assert response.status_code == 400
        assert api.posted == []

    def test_missing_message_is_rejected(self, client):
        response = client.post('/api/events/inc-1/updates', json={'status': 'identified'})

        assert response.status_code == 400
        assert 'Message' in response.get_json()['error']['message']

    def test_wrong_status_for_type_is_rejected(self, client):
        response = client.post('/api/events/inc-1/updates/preview', json={
            'status': 'completed',
            'message': 'Done',
        })

        assert response.status_code == 400

    def test_non_json_body_is_rejected(self, client):
        response = client.post('/api/events/inc-1/updates', data='status=identified')

        assert response.status_code == 400

    def test_conflict_on_service_not_on_event(self, client, api):
        response = client.post('/api/events/inc-1/updates', json={
            'status': 'identified',
            'message': 'Shuffling services',
            'remove_service_ids': ['cdn'],
            'add_services': [{'service_id': 'cdn', 'status': 'degraded'}],
        })

        assert response.status_code == 400
        assert 'both added and removed' in response.get_json()['error']['message']
        assert api.posted == []

    def test_non_string_message_is_rejected(self, client, api):
        response = client.post('/api/events/inc-1/updates', json={'status': 'identified', 'message': 5})

        assert response.status_code == 400
        assert api.posted == []

    def test_string_notify_flag_is_rejected(self, client, api):
        response = client.post('/api/events/inc-1/updates', json={
            'status': 'identified',
            'message': 'Root cause found',
            'notify_subscribers': 'false',
        })

        assert response.status_code == 400
        assert api.posted == []
