"""Value and pattern generators.

Pure functions that turn a device type, a timestamp and a
:class:`GenerationConfig` into one synthetic value.  Every value is the sum
of a per-type base, a linear trend, an hour/day/month seasonal cycle, uniform
noise and an occasional outlier, floored at zero.

The prediction-dataset helpers at the bottom derive environmental and
operational drivers (temperature, occupancy, traffic, ...) from the calendar
and combine them linearly into a carbon-emission value.

All randomness comes from the ``rng`` argument so callers can seed runs.
"""

from __future__ import annotations

import math
import random
from datetime import datetime

from pydantic import BaseModel

from mock_iot.models import DeviceType, GenerationConfig, SampleComponents

__all__ = [
    "PredictionFactors",
    "base_value_for",
    "compute_components",
    "daily_factor",
    "data_type_for",
    "emission_from_factors",
    "hourly_factor",
    "monthly_factor",
    "prediction_factors",
]

_BASE_VALUES: dict[str, float] = {
    DeviceType.CARBON_SENSOR: 75.0,  # kg CO2/h
    DeviceType.ENERGY_METER: 120.0,  # kWh
    DeviceType.AIR_QUALITY_MONITOR: 50.0,  # AQI
    DeviceType.EMISSIONS_ANALYZER: 65.0,
}
_DEFAULT_BASE_VALUE = 100.0

_DATA_TYPES: dict[str, str] = {
    DeviceType.CARBON_SENSOR: "carbon_emission",
    DeviceType.ENERGY_METER: "power_consumption",
    DeviceType.AIR_QUALITY_MONITOR: "air_quality_index",
    DeviceType.EMISSIONS_ANALYZER: "emission_analysis",
}
_DEFAULT_DATA_TYPE = "measurement"

# Amplitude of trend/seasonal/noise contributions, relative to the base.
RANGE_FACTOR = 0.6


def base_value_for(device_type: str) -> float:
    """Steady-state value for a device type (100 for unknown types)."""
    return _BASE_VALUES.get(device_type, _DEFAULT_BASE_VALUE)


def data_type_for(device_type: str) -> str:
    """Telemetry data type emitted by a device type."""
    return _DATA_TYPES.get(device_type, _DEFAULT_DATA_TYPE)


# -----------------------------------------------------------------------
# Seasonal factors
# -----------------------------------------------------------------------


def _is_working_hour(hour: int, last: int = 18) -> bool:
    return 8 <= hour <= last


def _is_weekday(ts: datetime) -> bool:
    return ts.weekday() < 5


def hourly_factor(ts: datetime) -> float:
    """Rising-sine profile during working hours (8-18), flat 0.3 otherwise."""
    if _is_working_hour(ts.hour):
        return 0.3 + 0.7 * math.sin(math.pi * (ts.hour - 8) / 10)
    return 0.3


def daily_factor(ts: datetime) -> float:
    """1.0 Monday to Friday, 0.6 on weekends."""
    return 1.0 if _is_weekday(ts) else 0.6


def monthly_factor(ts: datetime) -> float:
    """Yearly cycle, ``0.8 + 0.4*sin(pi*m/6)`` with a zero-based month."""
    return 0.8 + 0.4 * math.sin(math.pi * (ts.month - 1) / 6)


def compute_components(
    base: float,
    ts: datetime,
    index: int,
    total_points: int,
    config: GenerationConfig,
    rng: random.Random,
) -> SampleComponents:
    """Compute the additive components of the sample at position *index*.

    ``SampleComponents.value`` gives the final, zero-floored value.
    """
    value_range = base * RANGE_FACTOR

    fraction = index / total_points if total_points > 0 else 0.0
    trend = config.trend * fraction * base

    seasonal = config.seasonality * value_range * hourly_factor(ts) * daily_factor(ts) * monthly_factor(ts)

    noise = rng.uniform(-1.0, 1.0) * config.noise * value_range

    is_outlier = config.outlier_rate > 0 and rng.random() < config.outlier_rate
    outlier = rng.uniform(-1.0, 1.0) * value_range * 2 if is_outlier else 0.0

    return SampleComponents(
        base=base,
        trend=trend,
        seasonal=seasonal,
        noise=noise,
        outlier=outlier,
        is_outlier=is_outlier,
    )


# -----------------------------------------------------------------------
# Prediction dataset drivers
# -----------------------------------------------------------------------


class PredictionFactors(BaseModel):
    """Environmental and operational drivers for one prediction-dataset point."""

    temperature: float
    humidity: float
    occupancy: float
    traffic: int
    production: float


def prediction_factors(ts: datetime, index: int, rng: random.Random) -> PredictionFactors:
    """Derive the drivers for the point at *ts* (the *index*-th of the run)."""
    hour = ts.hour
    month = ts.month - 1
    weekday = _is_weekday(ts)

    # Warm afternoons, warm summers.
    day_temp = 15 + 10 * math.sin(math.pi * (hour - 8) / 10) if _is_working_hour(hour) else 15.0
    season_temp = 5 * math.sin(math.pi * (month - 2) / 6)
    temperature = day_temp + season_temp + rng.uniform(-2.5, 2.5)

    # Humidity falls as temperature rises.
    humidity = 60 - (temperature - 15) * 1.5 + rng.uniform(-5.0, 5.0)
    humidity = max(30.0, min(90.0, humidity))

    time_occupancy = 0.4 + 0.6 * math.sin(math.pi * (hour - 8) / 10) if _is_working_hour(hour) else 0.1
    day_occupancy = 1.0 if weekday else 0.3
    occupancy = 100 * time_occupancy * day_occupancy * rng.uniform(0.9, 1.1)

    # Morning and evening rush hours.
    if 7 <= hour <= 9 or 17 <= hour <= 19:
        traffic_factor = rng.uniform(0.8, 1.2)
    elif 10 <= hour <= 16:
        traffic_factor = rng.uniform(0.5, 0.8)
    else:
        traffic_factor = 0.2
    traffic_factor *= 1.0 if weekday else 0.4
    traffic = round(50 * traffic_factor)

    time_production = 0.5 + 0.5 * math.sin(math.pi * (hour - 8) / 12) if _is_working_hour(hour, last=20) else 0.3
    growth = 1 + 0.002 * index
    production = (
        80
        * time_production
        * (0.8 + 0.4 * math.sin(math.pi * month / 6))
        * growth
        * rng.uniform(0.95, 1.05)
    )

    return PredictionFactors(
        temperature=temperature,
        humidity=humidity,
        occupancy=occupancy,
        traffic=traffic,
        production=production,
    )


def emission_from_factors(factors: PredictionFactors, rng: random.Random) -> float:
    """Linear emission model over the drivers, rounded to 0.1 and floored at 10."""
    emission = (
        50.0
        + 0.5 * (factors.temperature - 15)
        + 0.2 * factors.occupancy
        + 0.8 * factors.traffic
        + 0.3 * factors.production
        + rng.uniform(-10.0, 10.0)
    )
    return max(10.0, round(emission * 10) / 10)
