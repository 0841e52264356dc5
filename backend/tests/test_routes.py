# Overview: Pytest coverage for the JSON API (envelope, status codes, identity).

"""
API Route Tests

Every response uses the same envelope:
    success: {"is_success": true, "data": ...}
    failure: {"is_success": false, "error": ..., "code": ..., "field": ...}
"""

from datetime import timedelta

from conftest import DAY, OTHER_STATION_ID, PRODUCT_ID, STATION_ID, USER, auth_headers, get_reading, record_day


class TestIdentity:

    def test_missing_identity_is_401(self, client, db_session):
        response = client.get(f'/api/pump-configurations?station_id={STATION_ID}')
        assert response.status_code == 401
        assert response.json == {
            "is_success": False,
            "error": "Authentication required",
            "code": "UNAUTHORIZED",
        }

    def test_health_needs_no_identity(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json["status"] == "ok"
        assert response.json["checks"]["database"]["status"] == "healthy"


class TestPumpRoutes:

    def _create(self, client, **overrides):
        payload = {
            "station_id": STATION_ID,
            "pms_product_id": PRODUCT_ID,
            "pump_number": "P1",
            "meter_capacity": 999999.9,
            "install_date": "2024-01-01",
        }
        payload.update(overrides)
        return client.post('/api/pump-configurations', json=payload, headers=auth_headers())

    def test_create_and_get(self, client, db_session):
        response = self._create(client)
        assert response.status_code == 201
        body = response.json
        assert body["is_success"] is True
        assert body["data"]["pump_number"] == "P1"
        assert body["data"]["meter_capacity"] == "999999.9"
        assert body["data"]["is_active"] is True

        pump_id = body["data"]["id"]
        response = client.get(f'/api/pump-configurations/{pump_id}', headers=auth_headers())
        assert response.status_code == 200
        assert response.json["data"]["id"] == pump_id

    def test_duplicate_number_is_400(self, client, db_session):
        self._create(client)
        response = self._create(client)
        assert response.status_code == 400
        assert response.json["is_success"] is False
        assert response.json["code"] == "DUPLICATE_PUMP_NUMBER"
        assert response.json["field"] == "pump_number"

    def test_invalid_payload_is_400(self, client, db_session):
        response = self._create(client, meter_capacity="lots")
        assert response.status_code == 400
        assert response.json["code"] == "VALIDATION_ERROR"
        assert response.json["field"] == "meter_capacity"

    def test_unknown_pump_is_404(self, client, db_session):
        response = client.get('/api/pump-configurations/424242', headers=auth_headers())
        assert response.status_code == 404
        assert response.json["code"] == "PUMP_NOT_FOUND"

    def test_status_and_soft_delete(self, client, db_session):
        pump_id = self._create(client).json["data"]["id"]

        response = client.patch(
            f'/api/pump-configurations/{pump_id}/status',
            json={"status": "calibration", "notes": "Annual check"},
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert response.json["data"]["is_active"] is False

        response = client.get(
            f'/api/pump-configurations?station_id={STATION_ID}&active_only=true', headers=auth_headers()
        )
        assert response.json["data"] == []

        response = client.delete(f'/api/pump-configurations/{pump_id}', headers=auth_headers())
        assert response.status_code == 200
        assert response.json["data"]["status"] == "repair"

        response = client.get(f'/api/pump-configurations?station_id={STATION_ID}', headers=auth_headers())
        assert len(response.json["data"]) == 1

    def test_list_requires_station(self, client, db_session):
        response = client.get('/api/pump-configurations', headers=auth_headers())
        assert response.status_code == 400
        assert response.json["field"] == "station_id"


class TestReadingRoutes:

    def _record(self, client, pump_id, reading_type="opening", value=1000.0):
        return client.post('/api/meter-readings', json={
            "pump_id": pump_id,
            "reading_date": DAY.isoformat(),
            "reading_type": reading_type,
            "meter_value": value,
        }, headers=auth_headers())

    def test_record_is_201_and_duplicate_is_400(self, client, db_session, pump):
        response = self._record(client, pump.id)
        assert response.status_code == 201
        assert response.json["data"]["recorded_by"] == USER
        assert response.json["data"]["meter_value"] == "1000.0"

        response = self._record(client, pump.id, value=2000.0)
        assert response.status_code == 400
        assert response.json["code"] == "DUPLICATE_READING"

    def test_missing_field_is_400(self, client, db_session, pump):
        response = client.post('/api/meter-readings', json={"pump_id": pump.id}, headers=auth_headers())
        assert response.status_code == 400
        assert response.json["field"] == "reading_date"

    def test_expired_window_is_403(self, client, db_session, pump):
        record_day(pump, DAY, opening="1000.0")
        reading = get_reading(pump.id, DAY, "opening")

        response = client.put(
            f'/api/meter-readings/{reading.id}', json={"meter_value": 1001.0}, headers=auth_headers()
        )
        assert response.status_code == 403
        assert response.json["code"] == "MODIFICATION_WINDOW_EXPIRED"
        assert "deadline" in response.json["details"]

    def test_unknown_reading_is_404(self, client, db_session):
        response = client.put('/api/meter-readings/424242', json={"meter_value": 1.0}, headers=auth_headers())
        assert response.status_code == 404

    def test_bulk(self, client, db_session, pump, second_pump):
        response = client.post('/api/meter-readings/bulk', json={
            "station_id": STATION_ID,
            "reading_date": DAY.isoformat(),
            "reading_type": "opening",
            "readings": [
                {"pump_id": pump.id, "meter_value": 10.0},
                {"pump_id": second_pump.id, "meter_value": 20.0},
                {"pump_id": 424242, "meter_value": 30.0},
            ],
        }, headers=auth_headers())

        assert response.status_code == 201
        assert response.json["data"]["recorded_count"] == 2
        assert response.json["data"]["errors"][0]["pump_id"] == 424242

    def test_daily_status(self, client, db_session, pump):
        self._record(client, pump.id)
        response = client.get(
            f'/api/meter-readings/daily-status?station_id={STATION_ID}&date={DAY.isoformat()}',
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert response.json["data"]["summary"]["opening_count"] == 1

    def test_list(self, client, db_session, pump):
        record_day(pump, DAY, opening="1000.0", closing="1100.0")
        response = client.get(
            f'/api/meter-readings?station_id={STATION_ID}&start_date={DAY.isoformat()}&end_date={DAY.isoformat()}',
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert [row["reading_type"] for row in response.json["data"]] == ["opening", "closing"]

    def test_list_bad_date_is_400(self, client, db_session, pump):
        response = client.get(
            f'/api/meter-readings?station_id={STATION_ID}&start_date=yesterday&end_date=today',
            headers=auth_headers(),
        )
        assert response.status_code == 400
        assert response.json["field"] == "start_date"


class TestCalculationRoutes:

    def test_calculate_and_list(self, client, db_session, pump):
        record_day(pump, DAY, opening="500000.0", closing="500150.0")

        response = client.post('/api/pms-calculations', json={
            "station_id": STATION_ID,
            "calculation_date": DAY.isoformat(),
            "force_recalculate": True,
        }, headers=auth_headers("manager-1"))

        assert response.status_code == 201
        data = response.json["data"]
        assert data["calculated_count"] == 1
        assert data["calculations"][0]["volume_dispensed"] == "150.0"
        assert data["calculations"][0]["calculated_by"] == "manager-1"

        response = client.get(
            f'/api/pms-calculations?station_id={STATION_ID}'
            f'&start_date={DAY.isoformat()}&end_date={(DAY + timedelta(days=1)).isoformat()}',
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert len(response.json["data"]) == 1

    def test_calculate_station_without_pumps_is_404(self, client, db_session):
        response = client.post('/api/pms-calculations', json={
            "station_id": OTHER_STATION_ID,
            "calculation_date": DAY.isoformat(),
        }, headers=auth_headers())
        assert response.status_code == 404

    def test_rollover_and_approval(self, client, db_session, pump):
        record_day(pump, DAY, opening="999950.0", closing="100.0")

        response = client.post('/api/pms-calculations/rollover', json={
            "pump_id": pump.id,
            "calculation_date": DAY.isoformat(),
            "rollover_value": 999999.9,
            "new_reading": 100.0,
        }, headers=auth_headers("manager-1"))
        assert response.status_code == 200
        calc = response.json["data"]
        assert calc["has_rollover"] is True
        assert calc["volume_dispensed"] == "149.9"

        response = client.post(
            f'/api/pms-calculations/{calc["id"]}/approve', json={"approved": True}, headers=auth_headers()
        )
        assert response.status_code == 409
        assert response.json["code"] == "INVALID_STATE_TRANSITION"

    def test_rollover_over_capacity_is_400(self, client, db_session, pump):
        record_day(pump, DAY, opening="999950.0", closing="100.0")
        response = client.post('/api/pms-calculations/rollover', json={
            "pump_id": pump.id,
            "calculation_date": DAY.isoformat(),
            "rollover_value": 1000000.0,
            "new_reading": 100.0,
        }, headers=auth_headers())
        assert response.status_code == 400
        assert response.json["code"] == "ROLLOVER_VALUE_OUT_OF_RANGE"

    def test_approve_requires_flag(self, client, db_session, pump):
        response = client.post('/api/pms-calculations/1/approve', json={}, headers=auth_headers())
        assert response.status_code == 400
        assert response.json["field"] == "approved"

    def test_reject_pending(self, client, db_session, pump):
        record_day(pump, DAY, closing="5000.0")
        calc = client.post('/api/pms-calculations', json={
            "station_id": STATION_ID,
            "calculation_date": DAY.isoformat(),
        }, headers=auth_headers()).json["data"]["calculations"][0]
        assert calc["state"] == "pending_approval"

        response = client.post(
            f'/api/pms-calculations/{calc["id"]}/approve',
            json={"approved": False, "notes": "Reading photo unreadable"},
            headers=auth_headers("manager-1"),
        )
        assert response.status_code == 200
        assert response.json["data"]["approval_state"] == "rejected"
        assert response.json["data"]["approved_by"] == "manager-1"

    def test_deviations(self, client, db_session, pump):
        response = client.get(
            f'/api/pms-calculations/deviations?station_id={STATION_ID}&as_of={DAY.isoformat()}',
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert response.json["data"] == []
