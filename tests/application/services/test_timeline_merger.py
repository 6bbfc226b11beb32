from datetime import timedelta

import pytest

from application.services.timeline_merger import (
    EventCreatedEntry,
    ServiceChangeGroupEntry,
    StatusUpdateEntry,
    batch_key,
    group_service_changes,
    legacy_batch_key,
    merge_timeline,
)
from tests.factories import make_incident
from domain import ChangeAction, EventServiceChange, EventStatus, EventUpdate


def update(update_id, status, at, message='msg'):
    return EventUpdate(id=update_id, event_id='inc-1', status=status, message=message, created_at=at)


def change(change_id, at, service_id=None, group_id=None, action=ChangeAction.ADDED, batch_id=None, reason=None):
    return EventServiceChange(
        id=change_id,
        event_id='inc-1',
        action=action,
        created_at=at,
        service_id=service_id,
        group_id=group_id,
        reason=reason,
        batch_id=batch_id,
    )


SERVICE_NAMES = {'api': 'API', 'db': 'Database'}
GROUP_NAMES = {'core': 'Core Services'}


class TestGrouping:
    """Test suite for collapsing change rows into batches."""

    def test_batch_id_is_the_key(self, minutes):
        assert batch_key(change('c1', minutes(1), service_id='api', batch_id='b-1')) == 'b-1'

    def test_legacy_key_truncates_to_seconds(self, minutes):
        first = change('c1', minutes(1).replace(microsecond=120000), service_id='api')
        second = change('c2', minutes(1).replace(microsecond=870000), service_id='db')

        assert legacy_batch_key(first) == legacy_batch_key(second)
        assert batch_key(first).startswith('legacy-added-')

    def test_legacy_key_separates_actions(self, minutes):
        added = change('c1', minutes(1), service_id='api')
        removed = change('c2', minutes(1), service_id='api', action=ChangeAction.REMOVED)

        assert batch_key(added) != batch_key(removed)

    def test_shared_batch_collapses_to_plural_entry(self, minutes):
        changes = [
            change('c1', minutes(1), service_id='api', batch_id='b-1', reason='Scope grew'),
            change('c2', minutes(1), service_id='db', batch_id='b-1', reason='Scope grew'),
        ]

        grouped = group_service_changes(changes, SERVICE_NAMES, GROUP_NAMES)

        assert len(grouped) == 1
        assert grouped[0].target_label == 'services'
        assert [item.name for item in grouped[0].items] == ['API', 'Database']
        assert grouped[0].reason == 'Scope grew'
        assert grouped[0].title == 'Added services'

    def test_single_group_member_label(self, minutes):
        grouped = group_service_changes(
            [change('c1', minutes(1), group_id='core', batch_id='b-1', action=ChangeAction.REMOVED)],
            SERVICE_NAMES, GROUP_NAMES,
        )

        assert grouped[0].target_label == 'group'
        assert grouped[0].title == 'Removed group "Core Services"'

    def test_mixed_batch_uses_items_label(self, minutes):
        grouped = group_service_changes([
            change('c1', minutes(1), group_id='core', batch_id='b-1'),
            change('c2', minutes(1), service_id='api', batch_id='b-1'),
        ], SERVICE_NAMES, GROUP_NAMES)

        assert grouped[0].target_label == 'items'

    def test_missing_names_fall_back_to_id(self, minutes):
        grouped = group_service_changes([change('c1', minutes(1), service_id='ghost')], {}, {})

        assert grouped[0].items[0].name == 'ghost'

    def test_legacy_rows_never_raise(self, minutes):
        changes = [change(f'c{i}', minutes(i), service_id='api') for i in range(3)]

        grouped = group_service_changes(changes, SERVICE_NAMES, GROUP_NAMES)

        assert len(grouped) == 3


class TestMergeTimeline:
    """Test suite for the unified timeline."""

    @pytest.fixture
    def event(self, base_time):
        return make_incident(status=EventStatus.MONITORING, created_at=base_time)

    def test_length_and_origin_entry(self, event, minutes):
        updates = [
            update('u1', EventStatus.INVESTIGATING, minutes(1)),
            update('u2', EventStatus.IDENTIFIED, minutes(10)),
        ]
        changes = [
            change('c1', minutes(5), service_id='api', batch_id='b-1'),
            change('c2', minutes(5), service_id='db', batch_id='b-1'),
            change('c3', minutes(7), group_id='core', batch_id='b-2'),
        ]

        timeline = merge_timeline(event, updates, changes, SERVICE_NAMES, GROUP_NAMES)

        assert len(timeline) == 2 + 2 + 1
        assert isinstance(timeline[-1], EventCreatedEntry)
        assert timeline[-1].created_at == event.created_at

    def test_newest_first(self, event, minutes):
        updates = [
            update('u1', EventStatus.INVESTIGATING, minutes(1)),
            update('u2', EventStatus.IDENTIFIED, minutes(10)),
        ]
        changes = [change('c1', minutes(5), service_id='api', batch_id='b-1')]

        timeline = merge_timeline(event, updates, changes)

        assert [e.created_at for e in timeline[:-1]] == [minutes(10), minutes(5), minutes(1)]
        assert isinstance(timeline[0], StatusUpdateEntry)
        assert isinstance(timeline[1], ServiceChangeGroupEntry)

    def test_equal_timestamps_keep_input_order(self, event, minutes):
        updates = [
            update('u1', EventStatus.IDENTIFIED, minutes(3)),
            update('u2', EventStatus.MONITORING, minutes(3)),
        ]
        changes = [change('c1', minutes(3), service_id='api', batch_id='b-1')]

        timeline = merge_timeline(event, updates, changes)

        assert [e.update.id for e in timeline[:2]] == ['u1', 'u2']
        assert isinstance(timeline[2], ServiceChangeGroupEntry)

    def test_initial_status_from_earliest_update(self, event, minutes):
        updates = [
            update('u2', EventStatus.MONITORING, minutes(20)),
            update('u1', EventStatus.INVESTIGATING, minutes(2)),
        ]

        timeline = merge_timeline(event, updates, [])

        assert timeline[-1].initial_status == EventStatus.INVESTIGATING

    def test_initial_status_without_updates_is_event_status(self, event):
        timeline = merge_timeline(event, [], [])

        assert len(timeline) == 1
        assert timeline[0].initial_status == EventStatus.MONITORING
        assert timeline[0].severity == event.severity

    def test_idempotent(self, event, minutes):
        updates = [update('u1', EventStatus.IDENTIFIED, minutes(1))]
        changes = [change('c1', minutes(1) + timedelta(seconds=1), service_id='api')]

        first = merge_timeline(event, updates, changes, SERVICE_NAMES, GROUP_NAMES)
        second = merge_timeline(event, updates, changes, SERVICE_NAMES, GROUP_NAMES)

        assert first == second
