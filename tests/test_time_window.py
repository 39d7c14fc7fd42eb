from datetime import datetime, timezone

import pytest

from qrlock.services.errors import MalformedPayload
from qrlock.services.time_window import is_within, local_now, normalize_day, parse_window

MONDAY = datetime(2024, 3, 4)


def at(hh, mm):
    return MONDAY.replace(hour=hh, minute=mm)


def test_lead_in_opens_window_ten_minutes_early():
    assert is_within(at(8, 51), '09:00', '10:00').valid
    assert is_within(at(8, 50), '09:00', '10:00').valid
    check = is_within(at(8, 49), '09:00', '10:00')
    assert not check.valid
    assert 'outside the allowed schedule' in check.reason
    assert '09:00~10:00' in check.reason


def test_end_is_inclusive():
    assert is_within(at(10, 0), '09:00', '10:00').valid
    assert not is_within(at(10, 1), '09:00', '10:00').valid


def test_window_wrapping_midnight():
    assert is_within(at(23, 30), '23:00', '01:00').valid
    assert is_within(at(0, 30), '23:00', '01:00').valid
    assert not is_within(at(12, 0), '23:00', '01:00').valid


def test_all_day_window():
    assert is_within(at(12, 0), '00:00', '23:59').valid
    assert is_within(at(0, 0), '00:00', '23:59').valid
    assert is_within(at(23, 59), '00:00', '23:59').valid


def test_lead_in_near_midnight_does_not_shrink_window():
    assert is_within(at(0, 30), '00:05', '18:00').valid
    assert is_within(at(17, 0), '00:05', '18:00').valid
    assert not is_within(at(23, 55), '00:05', '18:00').valid


def test_zero_lead():
    assert not is_within(at(8, 59), '09:00', '10:00', lead_minutes=0).valid


def test_day_check_comes_first():
    check = is_within(at(9, 30), '09:00', '10:00', ['Tue', 'Thu'])
    assert not check.valid
    assert check.reason.startswith('not an allowed day')
    assert is_within(at(9, 30), '09:00', '10:00', ['Mon']).valid
    assert is_within(at(9, 30), '09:00', '10:00', ['월']).valid


def test_normalize_day():
    assert normalize_day('수') == 'Wed'
    assert normalize_day('monday') == 'Mon'
    with pytest.raises(MalformedPayload):
        normalize_day('Funday')


def test_parse_window_forms():
    assert parse_window('09:00-10:00') == ('09:00-10:00', None)
    assert parse_window('09:00-10:00|Mon,수') == ('09:00-10:00', ['Mon', 'Wed'])
    assert parse_window('09:00-10:00', ['fri']) == ('09:00-10:00', ['Fri'])
    assert parse_window(None) == (None, None)


@pytest.mark.parametrize('bad', ['0900-1000', '25:00-26:00', '09:00-', 'nine-ten'])
def test_parse_window_rejects_bad_times(bad):
    with pytest.raises(MalformedPayload):
        parse_window(bad)


def test_days_without_window_are_rejected():
    with pytest.raises(MalformedPayload):
        parse_window(None, ['Mon'])


def test_local_now_uses_configured_zone():
    local = local_now(datetime(2024, 3, 4, 0, 0, tzinfo=timezone.utc), 'Asia/Seoul')
    assert (local.hour, local.minute) == (9, 0)
