from flask import Flask, jsonify, request, Response
import json
import time
from typing import Iterator, Optional
import logging
from datetime import datetime, timezone

from application.interfaces import StatusApi
from application.services.event_service_differ import (
    EventUpdatePayload,
    ServiceSetEditState,
    apply_edits,
    to_mutation_payload,
)
from application.services.timeline_merger import merge_timeline
from domain import ApiError, StatusPageError
from infrastructure.api import RestStatusApi
from infrastructure.api.codec import edits_from_request, timeline_entry_to_dict
from infrastructure.config import Settings
from infrastructure.scheduler import scheduler

# Don't shutdown scheduler on every request teardown
# Instead, register a shutdown handler for when the app itself shuts down
import atexit
atexit.register(lambda: scheduler.shutdown())

logger = logging.getLogger(__name__)

SSE_INTERVAL_SECONDS = 10


def _error(message: str, status_code: int, details: Optional[str] = None):
    body = {'error': {'message': message}}
    if details:
        body['error']['details'] = details
    return jsonify(body), status_code


def create_app(api: Optional[StatusApi] = None, settings: Optional[Settings] = None) -> Flask:
    """Create and configure the Flask application instance.

    Args:
        api: Backend client; built from settings when omitted
        settings: Runtime configuration; read from the environment when omitted
    """
    app = Flask(__name__)

    settings = settings or Settings.from_env()
    api = api or RestStatusApi.from_settings(settings)

    scheduler.set_api(api)

    @app.before_request
    def ensure_scheduler_running():
        """Ensure the scheduler is running before handling requests."""
        if app.testing or getattr(app, 'scheduler_started', False):
            return
        try:
            scheduler.start(refresh_interval=settings.refresh_interval)
            app.scheduler_started = True
            logger.info("Scheduler started successfully")
        except Exception as e:
            logger.error(f"Failed to start scheduler: {str(e)}")

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        return _error(error.message, error.status_code, error.details)

    @app.errorhandler(StatusPageError)
    def handle_domain_error(error: StatusPageError):
        return _error(str(error), 400)

    @app.errorhandler(ConnectionError)
    def handle_connection_error(error: ConnectionError):
        return _error("Status backend unavailable", 502, str(error))

    def build_payload(event_id: str) -> EventUpdatePayload:
        """Reconcile the request's edits against the event's current services."""
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise StatusPageError("Request body must be a JSON object")

        event = api.fetch_event(event_id)
        services = api.fetch_services()

        state = apply_edits(ServiceSetEditState.for_event(event, services), edits_from_request(body))
        return to_mutation_payload(
            state,
            status=body.get('status', event.status),
            message=body.get('message', ''),
            notify_subscribers=body.get('notify_subscribers', False),
            reason=body.get('reason'),
            event=event,
        )

    @app.route('/api/status')
    def get_status():
        """API endpoint for the computed status page."""
        return jsonify(scheduler.get_latest_data())

    @app.route('/api/status/refresh', methods=['POST'])
    def refresh_status():
        """API endpoint to force a status refresh."""
        return jsonify(scheduler.force_update())

    @app.route('/api/status/stream')
    def stream_status():
        """Server-Sent Events endpoint for real-time status updates."""
        def event_stream() -> Iterator[str]:
            """Generator for SSE events."""
            while True:
                data = scheduler.get_latest_data()
                yield f"data: {json.dumps(data)}\n\n"
                time.sleep(SSE_INTERVAL_SECONDS)

        return Response(
            event_stream(),
            mimetype='text/event-stream',
            headers={
                'Cache-Control': 'no-cache',
                'Connection': 'keep-alive'
            }
        )

    @app.route('/api/events/<event_id>/timeline')
    def event_timeline(event_id: str):
        """Unified timeline of an event, newest first."""
        event = api.fetch_event(event_id)
        updates = api.fetch_event_updates(event_id)
        changes = api.fetch_event_changes(event_id)
        service_names = {s.id: s.name for s in api.fetch_services()}
        group_names = {g.id: g.name for g in api.fetch_groups()}

        entries = merge_timeline(event, updates, changes, service_names, group_names)
        return jsonify({'data': [timeline_entry_to_dict(entry) for entry in entries]})

    @app.route('/api/events/<event_id>/updates/preview', methods=['POST'])
    def preview_event_update(event_id: str):
        """Return the request that posting these edits would send, without sending it."""
        payload = build_payload(event_id)
        return jsonify({'data': payload.to_dict()})

    @app.route('/api/events/<event_id>/updates', methods=['POST'])
    def post_event_update(event_id: str):
        """Reconcile the edits and post the update to the backend."""
        payload = build_payload(event_id)
        result = api.post_event_update(event_id, payload.to_dict())
        logger.info(f"Posted update to event {event_id}")
        return jsonify({'data': result}), 201

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        return {'status': 'healthy', 'timestamp': datetime.now(timezone.utc).isoformat()}

    return app
