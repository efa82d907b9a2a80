from datetime import date

from app.availability.ical_parser import parse_ical, parse_ical_date


FEED = "\r\n".join([
    "BEGIN:VCALENDAR",
    "VERSION:2.0",
    "PRODID:-//Airbnb Inc//Hosting Calendar//EN",
    "BEGIN:VEVENT",
    "DTSTART;VALUE=DATE:20260215",
    "DTEND;VALUE=DATE:20260222",
    "SUMMARY:Reserved",
    "UID:abc@airbnb.com",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "DTSTART:20260301T150000Z",
    "DTEND:20260305T110000Z",
    "SUMMARY:Owner\\, blocked",
    "END:VEVENT",
    "END:VCALENDAR",
])


def test_parses_date_and_datetime_events():
    ranges = parse_ical(FEED)
    assert len(ranges) == 2
    assert ranges[0].start == date(2026, 2, 15)
    assert ranges[0].end == date(2026, 2, 22)
    assert ranges[0].label == "Reserved"
    assert ranges[1].start == date(2026, 3, 1)
    assert ranges[1].end == date(2026, 3, 5)
    assert ranges[1].label == "Owner, blocked"


def test_block_missing_dtend_is_dropped():
    feed = "\n".join([
        "BEGIN:VCALENDAR",
        "BEGIN:VEVENT",
        "DTSTART;VALUE=DATE:20260101",
        "END:VEVENT",
        "BEGIN:VEVENT",
        "DTSTART;VALUE=DATE:20260110",
        "DTEND;VALUE=DATE:20260112",
        "END:VEVENT",
        "END:VCALENDAR",
    ])
    ranges = parse_ical(feed)
    assert [(r.start, r.end) for r in ranges] == [(date(2026, 1, 10), date(2026, 1, 12))]


def test_reversed_dates_are_swapped():
    feed = "BEGIN:VEVENT\nDTSTART:20260220\nDTEND:20260215\nEND:VEVENT\n"
    (rng,) = parse_ical(feed)
    assert rng.start == date(2026, 2, 15)
    assert rng.end == date(2026, 2, 20)


def test_nested_alarm_does_not_leak_properties():
    feed = "\n".join([
        "BEGIN:VEVENT",
        "DTSTART:20260401",
        "BEGIN:VALARM",
        "DTEND:20260402",
        "END:VALARM",
        "DTEND:20260405",
        "END:VEVENT",
    ])
    (rng,) = parse_ical(feed)
    assert rng.end == date(2026, 4, 5)


def test_folded_lines_are_joined():
    feed = "BEGIN:VEVENT\nDTSTART:20260401\nDTEND:20260403\nSUMMARY:Long\n  stay\nEND:VEVENT"
    (rng,) = parse_ical(feed)
    assert rng.label == "Long stay"


def test_unclosed_event_is_dropped():
    feed = "BEGIN:VEVENT\nDTSTART:20260401\nDTEND:20260403\n"
    assert parse_ical(feed) == []


def test_garbage_never_raises():
    assert parse_ical("") == []
    assert parse_ical(None) == []
    assert parse_ical("not a calendar at all") == []
    assert parse_ical("BEGIN:VEVENT\nDTSTART:2026XX01\nDTEND:20260403\nEND:VEVENT") == []


def test_parse_ical_date():
    assert parse_ical_date("20260215") == date(2026, 2, 15)
    assert parse_ical_date("20260215T120000Z") == date(2026, 2, 15)
    assert parse_ical_date("20261345") is None
    assert parse_ical_date("") is None


def test_parsing_is_idempotent():
    assert set(parse_ical(FEED)) == set(parse_ical(FEED))


def test_event_without_summary_has_no_label():
    feed = "BEGIN:VCALENDAR\nBEGIN:VEVENT\nDTSTART:20260215\nDTEND:20260222\nEND:VEVENT\nEND:VCALENDAR\n"
    (rng,) = parse_ical(feed)
    assert (rng.start, rng.end) == (date(2026, 2, 15), date(2026, 2, 22))
    assert rng.label is None
    assert "summary" not in rng.to_dict()
