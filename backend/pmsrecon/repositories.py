# Overview: Query access per entity. Services never build queries themselves.

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from .extensions import db
from .models import FuelPrice, MeterReading, PmsCalculation, PmsSalesRecord, PumpConfiguration
from .services.concurrency import insert_or_fail, lock_for_update


class PumpRepository:

    def get(self, pump_id: int, *, for_update: bool = False) -> PumpConfiguration | None:
        query = db.session.query(PumpConfiguration).filter_by(id=pump_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def find_by_number(self, station_id: int, pump_number: str) -> PumpConfiguration | None:
        return (
            db.session.query(PumpConfiguration)
            .filter_by(station_id=station_id, pump_number=pump_number)
            .first()
        )

    def list_for_station(self, station_id: int, *, active_only: bool = False) -> list[PumpConfiguration]:
        query = db.session.query(PumpConfiguration).filter_by(station_id=station_id)
        if active_only:
            query = query.filter_by(is_active=True, status="active")
        return query.order_by(PumpConfiguration.pump_number).all()

    def add(self, pump: PumpConfiguration) -> bool:
        return insert_or_fail(pump)


class ReadingRepository:

    def get(self, reading_id: int, *, for_update: bool = False) -> MeterReading | None:
        query = db.session.query(MeterReading).filter_by(id=reading_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def find(self, pump_id: int, reading_date: date, reading_type: str) -> MeterReading | None:
        return (
            db.session.query(MeterReading)
            .filter_by(pump_id=pump_id, reading_date=reading_date, reading_type=reading_type)
            .first()
        )

    def exists_for_pump(self, pump_id: int) -> bool:
        return db.session.query(MeterReading.id).filter_by(pump_id=pump_id).first() is not None

    def for_pump_day(self, pump_id: int, reading_date: date) -> dict[str, MeterReading]:
        rows = db.session.query(MeterReading).filter_by(pump_id=pump_id, reading_date=reading_date).all()
        return {r.reading_type: r for r in rows}

    def for_station_day(self, station_id: int, reading_date: date) -> list[MeterReading]:
        return (
            db.session.query(MeterReading)
            .join(PumpConfiguration, MeterReading.pump_id == PumpConfiguration.id)
            .filter(PumpConfiguration.station_id == station_id)
            .filter(MeterReading.reading_date == reading_date)
            .all()
        )

    def list_range(
        self,
        station_id: int,
        start_date: date,
        end_date: date,
        pump_id: int | None = None,
    ) -> list[tuple[MeterReading, str]]:
        query = (
            db.session.query(MeterReading, PumpConfiguration.pump_number)
            .join(PumpConfiguration, MeterReading.pump_id == PumpConfiguration.id)
            .filter(PumpConfiguration.station_id == station_id)
            .filter(MeterReading.reading_date >= start_date)
            .filter(MeterReading.reading_date <= end_date)
        )
        if pump_id is not None:
            query = query.filter(MeterReading.pump_id == pump_id)
        return query.order_by(
            MeterReading.reading_date,
            PumpConfiguration.pump_number,
            MeterReading.reading_type.desc(),
        ).all()

    def add(self, reading: MeterReading) -> bool:
        return insert_or_fail(reading)


class CalculationRepository:

    def get(self, calculation_id: int, *, for_update: bool = False) -> PmsCalculation | None:
        query = db.session.query(PmsCalculation).filter_by(id=calculation_id)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def find(self, pump_id: int, calculation_date: date, *, for_update: bool = False) -> PmsCalculation | None:
        query = db.session.query(PmsCalculation).filter_by(pump_id=pump_id, calculation_date=calculation_date)
        if for_update:
            query = lock_for_update(query)
        return query.first()

    def add(self, calculation: PmsCalculation) -> bool:
        return insert_or_fail(calculation)

    def trailing_volumes(self, pump_id: int, before: date, days: int) -> list[Decimal]:
        """
        Non-estimated, non-rejected volumes from the `days` days strictly
        before `before`.
        """
        start = before - timedelta(days=days)
        rows = (
            db.session.query(PmsCalculation.volume_dispensed)
            .filter(PmsCalculation.pump_id == pump_id)
            .filter(PmsCalculation.calculation_date >= start)
            .filter(PmsCalculation.calculation_date < before)
            .filter(PmsCalculation.is_estimated.is_(False))
            .filter(PmsCalculation.approval_state != "rejected")
            .all()
        )
        return [Decimal(v) for (v,) in rows]

    def list_range(self, station_id: int, start_date: date, end_date: date) -> list[tuple[PmsCalculation, str]]:
        return (
            db.session.query(PmsCalculation, PumpConfiguration.pump_number)
            .join(PumpConfiguration, PmsCalculation.pump_id == PumpConfiguration.id)
            .filter(PumpConfiguration.station_id == station_id)
            .filter(PmsCalculation.calculation_date >= start_date)
            .filter(PmsCalculation.calculation_date <= end_date)
            .order_by(PmsCalculation.calculation_date, PumpConfiguration.pump_number)
            .all()
        )

    def for_station_day(self, station_id: int, calculation_date: date) -> list[tuple[PmsCalculation, str]]:
        return self.list_range(station_id, calculation_date, calculation_date)

    def find_sales_record(self, station_id: int, record_date: date) -> PmsSalesRecord | None:
        return (
            lock_for_update(
                db.session.query(PmsSalesRecord).filter_by(station_id=station_id, record_date=record_date)
            ).first()
        )

    def add_sales_record(self, record: PmsSalesRecord) -> bool:
        return insert_or_fail(record)


class PriceRepository:

    def price_as_of(self, product_id: int, as_of: date) -> FuelPrice | None:
        return (
            db.session.query(FuelPrice)
            .filter(FuelPrice.product_id == product_id)
            .filter(FuelPrice.effective_from <= as_of)
            .order_by(FuelPrice.effective_from.desc())
            .first()
        )

    def list_for_product(self, product_id: int | None = None) -> list[FuelPrice]:
        query = db.session.query(FuelPrice)
        if product_id is not None:
            query = query.filter_by(product_id=product_id)
        return query.order_by(FuelPrice.product_id, FuelPrice.effective_from).all()

    def find(self, product_id: int, effective_from: date) -> FuelPrice | None:
        return db.session.query(FuelPrice).filter_by(product_id=product_id, effective_from=effective_from).first()

    def add(self, price: FuelPrice) -> bool:
        return insert_or_fail(price)


pumps = PumpRepository()
readings = ReadingRepository()
calculations = CalculationRepository()
prices = PriceRepository()
