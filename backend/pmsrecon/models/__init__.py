from .pumps import PumpConfiguration, PUMP_STATUSES
from .readings import MeterReading
from .calculations import PmsCalculation, PmsSalesRecord, CALCULATION_METHODS, APPROVAL_STATES
from .pricing import FuelPrice

__all__ = [
    'PumpConfiguration', 'PUMP_STATUSES',
    'MeterReading',
    'PmsCalculation', 'PmsSalesRecord', 'CALCULATION_METHODS', 'APPROVAL_STATES',
    'FuelPrice',
]
