# Overview: Read-only daily reading status per station.

from __future__ import annotations

from .. import repositories
from ..time_utils import to_utc_z
from ..validation import parse_date, parse_id


def get_daily_status(station_id, status_date) -> dict:
    """
    Which active pumps have opening/closing readings for a day.

    Reads straight from the reading table on every call; nothing is cached.
    """
    station_id = parse_id(station_id, "station_id")
    status_date = parse_date(status_date, "date")

    pumps = [p for p in repositories.pumps.list_for_station(station_id) if p.is_active]
    by_pump: dict[int, dict] = {}
    for reading in repositories.readings.for_station_day(station_id, status_date):
        by_pump.setdefault(reading.pump_id, {})[reading.reading_type] = reading

    rows = []
    for pump in pumps:
        day = by_pump.get(pump.id, {})
        opening = day.get("opening")
        closing = day.get("closing")
        rows.append({
            "pump_id": pump.id,
            "pump_number": pump.pump_number,
            "has_opening": opening is not None,
            "has_closing": closing is not None,
            "opening_value": str(opening.meter_value) if opening is not None else None,
            "closing_value": str(closing.meter_value) if closing is not None else None,
            "opening_recorded_at": to_utc_z(opening.created_at) if opening is not None else None,
            "closing_recorded_at": to_utc_z(closing.created_at) if closing is not None else None,
        })

    return {
        "station_id": station_id,
        "date": status_date.isoformat(),
        "pumps": rows,
        "summary": {
            "pump_count": len(rows),
            "opening_count": sum(1 for r in rows if r["has_opening"]),
            "closing_count": sum(1 for r in rows if r["has_closing"]),
            "complete": bool(rows) and all(r["has_opening"] and r["has_closing"] for r in rows),
        },
    }
