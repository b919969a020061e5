from app.services.ics import escape_ics, generate_ics

from factories import at


def test_escape_ics():
    assert escape_ics("Cut, wash; style\nthen\\go") == "Cut\\, wash\\; style\\nthen\\\\go"


def test_generate_ics_event():
    body = generate_ics(
        title="Haircut, Beard at Sharp Cuts",
        description="Haircut with Alex",
        location="Sharp Cuts",
        start=at(15),
        duration_minutes=45,
        now=at(9),
        uid="booking-7@sharp-cuts",
    )
    lines = body.split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert lines[-1] == "END:VCALENDAR"
    assert "UID:booking-7@sharp-cuts" in lines
    assert "DTSTAMP:20300304T090000Z" in lines
    assert "DTSTART:20300304T150000Z" in lines
    assert "DTEND:20300304T154500Z" in lines
    assert "SUMMARY:Haircut\\, Beard at Sharp Cuts" in lines
    assert "TRIGGER:-PT1H" in lines
