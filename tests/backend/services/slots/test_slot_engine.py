from datetime import datetime, timedelta, timezone

import pytest

from appointments.errors import InvalidRequest, NotFound, OutOfWindow, StorageError
from appointments.services.slots import BookingConfig, calculate_service_availability
from appointments.services.slots.availability import slot_eligibility

SATURDAY = '2024-06-01'  # ISO weekday 6
NOW = datetime(2024, 5, 30, 8, 0, tzinfo=timezone.utc)
CONFIG = BookingConfig(slot_step_minutes=30, min_advance_minutes=60, max_days_in_future=90)


def compute(repo, business, service, target_date=SATURDAY, tz='UTC', config=CONFIG, **kwargs):
    kwargs.setdefault('now', NOW)
    return calculate_service_availability(
        repo,
        business.id,
        service.id if service is not None else None,
        target_date,
        tz,
        config=config,
        **kwargs,
    )


def local_starts(result) -> list[str]:
    return [slot.start_local.strftime('%H:%M') for slot in result.slots]


def test_two_half_hour_slots_in_one_hour_window(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '10:00')

    result = compute(repo, business, service)

    assert [(s.start_local.strftime('%H:%M'), s.end_local.strftime('%H:%M')) for s in result.slots] == [
        ('09:00', '09:30'),
        ('09:30', '10:00'),
    ]
    assert all(slot.is_bookable for slot in result.slots)
    assert [slot.label for slot in result.slots] == ['Morning', 'Morning']
    assert result.slot_labels == ['Morning']
    assert result.next_available_slot == result.slots[0]
    assert result.slot_duration == 30
    assert result.buffer == 0
    assert result.timezone == 'UTC'


def test_finer_granularity_allows_overlapping_candidates(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '10:00')

    result = compute(repo, business, service, config=BookingConfig(slot_step_minutes=15))

    assert local_starts(result) == ['09:00', '09:15', '09:30']


def test_every_slot_spans_exactly_the_service_duration(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=45, buffer_minutes=10)
    add_weekly(6, '08:00', '18:00')

    result = compute(repo, business, service, config=BookingConfig(slot_step_minutes=20))

    assert result.slots
    for slot in result.slots:
        assert slot.end_local - slot.start_local == timedelta(minutes=45)
        assert slot.end_utc - slot.start_utc == timedelta(minutes=45)


def test_buffer_must_fit_before_window_end(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30, buffer_minutes=15)
    add_weekly(6, '09:00', '10:00')

    result = compute(repo, business, service, config=BookingConfig(slot_step_minutes=15))

    assert local_starts(result) == ['09:00', '09:15']


def test_labels_follow_local_start_hour(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=60)
    add_weekly(6, '11:00', '13:00')
    add_weekly(6, '16:00', '18:00')

    result = compute(repo, business, service, config=BookingConfig(slot_step_minutes=60))

    assert [(s.start_local.hour, s.label) for s in result.slots] == [
        (11, 'Morning'),
        (12, 'Afternoon'),
        (16, 'Afternoon'),
        (17, 'Evening'),
    ]
    assert result.slot_labels == ['Morning', 'Afternoon', 'Evening']


def test_partially_booked_group_slot(repo, business, make_service, add_weekly, add_booking) -> None:
    service = make_service(duration_minutes=30, group_size=3)
    add_weekly(6, '09:00', '10:00')
    add_booking(service.id, 1, SATURDAY, '09:00', '09:30', group_count=2)

    result = compute(repo, business, service)
    first, second = result.slots

    assert first.booked_count == 2
    assert first.reason == 'Partially booked (2/3)'
    assert first.is_bookable
    assert second.booked_count == 0
    assert second.reason == ''


def test_exclusive_slot_with_booking_is_fully_booked(repo, business, make_service, add_weekly, add_booking) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '10:00')
    add_booking(service.id, 1, SATURDAY, '09:00', '09:30')

    result = compute(repo, business, service)

    assert [(s.is_bookable, s.reason, s.booked_count) for s in result.slots] == [
        (False, 'Fully booked', 1),
        (True, '', 0),
    ]
    assert result.next_available_slot == result.slots[1]


@pytest.mark.parametrize(('booked', 'bookable'), [(0, True), (1, True), (2, True), (3, False), (4, False)])
def test_capacity_is_bookable_iff_below_group_size(booked: int, bookable: bool) -> None:
    is_bookable, _ = slot_eligibility(booked, 3)

    assert is_bookable is bookable


def test_deleted_and_cancelled_bookings_free_the_slot(repo, business, make_service, add_weekly, add_booking) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '10:00')
    add_booking(service.id, 1, SATURDAY, '09:00', '09:30', deleted_at='2024-05-29 10:00:00')
    add_booking(service.id, 2, SATURDAY, '09:30', '10:00', status='cancelled')

    result = compute(repo, business, service)

    assert all(slot.is_bookable and slot.booked_count == 0 for slot in result.slots)


def test_buffer_is_enforced_around_existing_bookings(repo, business, make_service, add_weekly, add_booking) -> None:
    service = make_service(duration_minutes=30, buffer_minutes=15)
    add_weekly(6, '09:00', '11:00')
    add_booking(service.id, 1, SATURDAY, '09:00', '09:30')

    result = compute(repo, business, service, config=BookingConfig(slot_step_minutes=15))
    by_start = {slot.start_local.strftime('%H:%M'): slot for slot in result.slots}

    assert not by_start['09:30'].is_bookable
    assert by_start['09:45'].is_bookable


def test_blackout_periods_are_skipped(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30, blackout_periods=[{'startTime': '12:00', 'endTime': '13:00'}])
    add_weekly(6, '11:00', '14:00')

    result = compute(repo, business, service)

    assert local_starts(result) == ['11:00', '11:30', '13:00', '13:30']
    for slot in result.slots:
        assert not (slot.start_local.hour * 60 + slot.start_local.minute < 13 * 60
                    and slot.end_local.hour * 60 + slot.end_local.minute > 12 * 60)


def test_slots_ending_before_advance_notice_are_dropped(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '11:00')
    now = datetime(2024, 6, 1, 9, 10, tzinfo=timezone.utc)
    config = BookingConfig(slot_step_minutes=30, min_advance_minutes=30)

    result = compute(repo, business, service, config=config, now=now)

    assert local_starts(result) == ['09:30', '10:00', '10:30']
    earliest = now + timedelta(minutes=30)
    assert all(slot.end_utc >= earliest for slot in result.slots)


def test_date_before_advance_day_is_rejected(repo, business, make_service) -> None:
    service = make_service()

    with pytest.raises(OutOfWindow) as exception_info:
        compute(repo, business, service, target_date='2024-05-29')

    assert exception_info.value.detail == 'Cannot book with insufficient advance notice'


def test_date_beyond_horizon_is_rejected(repo, business, make_service) -> None:
    service = make_service()

    with pytest.raises(OutOfWindow) as exception_info:
        compute(repo, business, service, target_date='2024-09-30')

    assert exception_info.value.detail == 'Cannot book this far in advance'


def test_available_exception_replaces_weekly_windows(repo, business, make_service, add_weekly, add_exception) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '17:00')
    add_exception(SATURDAY, True, '13:00', '14:00')

    result = compute(repo, business, service)

    assert local_starts(result) == ['13:00', '13:30']
    assert result.all_day_events == []


def test_all_day_closure_yields_no_slots_and_one_event(repo, business, make_service, add_weekly, add_exception) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '17:00')
    add_exception(SATURDAY, False)

    result = compute(repo, business, service)

    assert result.slots == []
    assert len(result.all_day_events) == 1
    event = result.all_day_events[0]
    assert event.type == 'all-day'
    assert event.reason == 'Business closed'
    assert not event.is_bookable
    assert result.next_available_slot is None


def test_unavailable_exception_with_hours_still_closes_the_day(repo, business, make_service, add_weekly, add_exception) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '17:00')
    add_exception(SATURDAY, False, '12:00', '13:00')

    result = compute(repo, business, service)

    assert result.slots == []
    assert result.all_day_events == []


def test_day_without_weekly_windows_is_empty_not_an_error(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(1, '09:00', '17:00')

    result = compute(repo, business, service)

    assert result.slots == []


def test_user_daily_limit_blocks_open_slots(repo, business, make_service, add_weekly, add_booking) -> None:
    service = make_service(duration_minutes=30, max_bookings_per_user_per_day=1)
    other_service = make_service(name='Other', duration_minutes=30)
    add_weekly(6, '09:00', '11:00')
    add_booking(other_service.id, 7, SATURDAY, '15:00', '15:30')

    limited = compute(repo, business, service, user_id=7)
    other_user = compute(repo, business, service, user_id=8)

    assert limited.slots
    assert all(not slot.is_bookable for slot in limited.slots)
    assert {slot.reason for slot in limited.slots} == {'User booking limit reached for this day'}
    assert limited.next_available_slot is None
    assert all(slot.is_bookable for slot in other_user.slots)


def test_user_limit_does_not_override_fully_booked_reason(repo, business, make_service, add_weekly, add_booking) -> None:
    service = make_service(duration_minutes=30, max_bookings_per_user_per_day=1)
    add_weekly(6, '09:00', '10:00')
    add_booking(service.id, 7, SATURDAY, '09:00', '09:30')

    result = compute(repo, business, service, user_id=7)

    assert [slot.reason for slot in result.slots] == [
        'Fully booked',
        'User booking limit reached for this day',
    ]


def test_user_count_is_read_once_per_request(repo, business, make_service, add_weekly, monkeypatch) -> None:
    service = make_service(duration_minutes=30, max_bookings_per_user_per_day=2)
    add_weekly(6, '08:00', '18:00')
    calls = []
    original = repo.count_user_bookings

    def counting(*args):
        calls.append(args)
        return original(*args)

    monkeypatch.setattr(repo, 'count_user_bookings', counting)

    result = compute(repo, business, service, user_id=7)

    assert len(result.slots) == 20
    assert len(calls) == 1


def test_overlapping_windows_are_not_deduplicated(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '10:00')
    add_weekly(6, '09:30', '10:30')

    result = compute(repo, business, service)

    assert local_starts(result) == ['09:00', '09:30', '09:30', '10:00']


def test_local_and_utc_endpoints_in_named_zone(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '10:00')

    result = compute(repo, business, service, tz='America/New_York')
    first = result.slots[0]

    assert first.start_local.isoformat() == '2024-06-01T09:00:00-04:00'
    assert first.start_utc.isoformat() == '2024-06-01T13:00:00+00:00'
    assert first.end_utc.isoformat() == '2024-06-01T13:30:00+00:00'
    assert result.timezone == 'America/New_York'


def test_spring_forward_skips_nonexistent_starts(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(7, '01:00', '04:00')  # 2024-03-10 is a Sunday
    now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    result = compute(repo, business, service, target_date='2024-03-10', tz='America/New_York', now=now)

    assert local_starts(result) == ['01:00', '01:30', '03:00', '03:30']
    assert [slot.start_utc.strftime('%H:%M') for slot in result.slots] == ['06:00', '06:30', '07:00', '07:30']
    for slot in result.slots:
        assert slot.end_local - slot.start_local == timedelta(minutes=30)


def test_fall_back_walks_wall_clock_without_duplicate_boundaries(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=60)
    add_weekly(7, '00:00', '03:00')  # 2024-11-03 is a Sunday
    now = datetime(2024, 10, 25, 12, 0, tzinfo=timezone.utc)

    result = compute(
        repo, business, service,
        target_date='2024-11-03', tz='America/New_York', now=now,
        config=BookingConfig(slot_step_minutes=60),
    )

    assert local_starts(result) == ['00:00', '01:00', '02:00']
    assert [slot.start_utc.strftime('%H:%M') for slot in result.slots] == ['04:00', '05:00', '07:00']
    starts_utc = [slot.start_utc for slot in result.slots]
    assert starts_utc == sorted(set(starts_utc))


def test_missing_inputs_are_invalid(repo, business, make_service) -> None:
    service = make_service()

    with pytest.raises(InvalidRequest):
        compute(repo, business, None)
    with pytest.raises(InvalidRequest):
        compute(repo, business, service, target_date=None)


def test_malformed_date_and_zone_are_invalid(repo, business, make_service) -> None:
    service = make_service()

    with pytest.raises(InvalidRequest):
        compute(repo, business, service, target_date='2024-13-40')
    with pytest.raises(InvalidRequest):
        compute(repo, business, service, tz='Nowhere/Land')


def test_service_must_belong_to_business_and_be_active(repo, business, make_service, db) -> None:
    from appointments.models.generated import Businesses

    other = Businesses(name='Elsewhere')
    db.add(other)
    db.commit()
    foreign = make_service(business_id=other.id)
    inactive = make_service(is_active=0)

    with pytest.raises(NotFound):
        compute(repo, business, foreign)
    with pytest.raises(NotFound):
        compute(repo, business, inactive)


def test_storage_failure_propagates_without_partial_result(repo, business, make_service, add_weekly, monkeypatch) -> None:
    service = make_service(duration_minutes=30)
    add_weekly(6, '09:00', '10:00')

    def failing(*_args):
        raise StorageError('Storage failure while loading bookings')

    monkeypatch.setattr(repo, 'get_bookings', failing)

    with pytest.raises(StorageError):
        compute(repo, business, service)


def test_business_timezone_is_the_default_zone(repo, db, make_service, add_weekly) -> None:
    from appointments.models.generated import Businesses

    studio = Businesses(name='Brooklyn studio', timezone='America/New_York')
    db.add(studio)
    db.commit()
    service = make_service(business_id=studio.id, duration_minutes=30)
    add_weekly(6, '09:00', '10:00', business_id=studio.id)

    implicit = compute(repo, studio, service, tz=None)
    explicit = compute(repo, studio, service, tz='UTC')

    assert implicit.timezone == 'America/New_York'
    assert implicit.slots[0].start_utc.isoformat() == '2024-06-01T13:00:00+00:00'
    assert explicit.timezone == 'UTC'
    assert explicit.slots[0].start_utc.isoformat() == '2024-06-01T09:00:00+00:00'


def test_unreadable_blackout_entries_are_skipped(repo, business, make_service, add_weekly) -> None:
    service = make_service(
        duration_minutes=30,
        blackout_periods=[
            {'startTime': '25:99', 'endTime': '13:00'},
            'lunch',
            ['noon', '13:00'],
            {'startTime': '12:00', 'endTime': '13:00'},
        ],
    )
    add_weekly(6, '11:00', '14:00')

    result = compute(repo, business, service)

    assert local_starts(result) == ['11:00', '11:30', '13:00', '13:30']


def test_blackout_json_that_is_not_a_list_is_ignored(repo, business, make_service, add_weekly) -> None:
    service = make_service(duration_minutes=30, blackout_periods='{"startTime": "12:00"}')
    add_weekly(6, '11:00', '13:00')

    result = compute(repo, business, service)

    assert local_starts(result) == ['11:00', '11:30', '12:00', '12:30']
