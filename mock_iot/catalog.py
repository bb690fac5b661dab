"""Device catalog abstraction and the adapter the engines use to find devices.

Provides:
- ``DeviceCatalog``         - abstract interface to the external device registry.
- ``InMemoryDeviceCatalog`` - process-local catalog, seeded from code or YAML.
- ``DeviceCatalogAdapter``  - resolves type tags or explicit ids into
                              :class:`DeviceHandle` lists for a run.

An empty result is never an error here; the engines decide whether a run
can proceed without devices.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from mock_iot.models import DeviceHandle, DeviceType, GenerationConfig

__all__ = [
    "DeviceCatalog",
    "DeviceCatalogAdapter",
    "InMemoryDeviceCatalog",
    "infer_device_type",
    "make_device_code",
]

logger = logging.getLogger("mock_iot.catalog")

# Device code prefixes, e.g. DEV-FLT-A001 for a forklift.
_CODE_PREFIXES: dict[str, str] = {
    DeviceType.TRUCK: "TRK",
    DeviceType.FORKLIFT: "FLT",
    DeviceType.PACKAGING: "PKG",
    DeviceType.REFRIGERATION: "RF",
    DeviceType.LIGHTING: "LT",
    DeviceType.CONVEYOR: "CNV",
    DeviceType.HVAC: "HVAC",
    DeviceType.LOADER: "LDR",
    DeviceType.GATE: "GATE",
    DeviceType.WEIGHT_SCALE: "WS",
    DeviceType.CAMERA: "CAM",
    DeviceType.CARBON_SENSOR: "CO2",
    DeviceType.ENERGY_METER: "EM",
    DeviceType.AIR_QUALITY_MONITOR: "AQM",
    DeviceType.EMISSIONS_ANALYZER: "EA",
    DeviceType.SOLAR_PANEL: "PV",
    DeviceType.SMART_GRID: "GRID",
    DeviceType.CHARGING_STATION: "CHG",
    DeviceType.SECURITY: "SEC",
    DeviceType.OTHER: "OTH",
}


def make_device_code(device_type: str, series: str, number: str | int) -> str:
    """Build a standard device code, e.g. ``make_device_code("forklift", "A", 1)``
    returns ``"DEV-FLT-A001"``.
    """
    prefix = _CODE_PREFIXES.get(device_type, _CODE_PREFIXES[DeviceType.OTHER])
    return f"DEV-{prefix}-{series}{str(number).zfill(3)}"


def infer_device_type(code: str) -> str:
    """Guess the device type from a device code built by :func:`make_device_code`."""
    parts = code.upper().split("-")
    if len(parts) >= 3 and parts[0] == "DEV":
        for device_type, prefix in _CODE_PREFIXES.items():
            if parts[1] == prefix:
                return str(device_type)
    return DeviceType.OTHER.value


# -----------------------------------------------------------------------
# Catalog interface
# -----------------------------------------------------------------------


class DeviceCatalog(ABC):
    """Read-only access to the external device registry."""

    @abstractmethod
    async def find_by_type(self, device_type: str) -> list[DeviceHandle]:
        """Return every device of *device_type* (empty list when none)."""

    @abstractmethod
    async def find_by_id(self, device_id: str) -> DeviceHandle | None:
        """Return the device with registry id *device_id*, or ``None``."""


class InMemoryDeviceCatalog(DeviceCatalog):
    """Catalog backed by a plain list, in registration order.

    ``find_by_id`` matches either the registry id or the device code.
    """

    def __init__(self, devices: Iterable[DeviceHandle] | None = None) -> None:
        self._devices: list[DeviceHandle] = list(devices or [])

    def add(self, device: DeviceHandle) -> None:
        self._devices.append(device)

    def add_device(
        self,
        device_type: str,
        *,
        name: str | None = None,
        device_id: str | None = None,
        id: str | None = None,
    ) -> DeviceHandle:
        """Register a device, filling in a uuid and a device code when absent."""
        same_type = sum(1 for d in self._devices if d.type == device_type)
        code = device_id or make_device_code(device_type, "A", same_type + 1)
        device = DeviceHandle(
            id=id or str(uuid.uuid4()),
            device_id=code,
            name=name or code,
            type=device_type,
        )
        self._devices.append(device)
        return device

    @classmethod
    def from_dicts(cls, entries: Iterable[dict]) -> InMemoryDeviceCatalog:
        """Build a catalog from ``{"id", "device_id", "name", "type"}`` dicts.

        A missing ``type`` is inferred from the device code.
        """
        catalog = cls()
        for entry in entries:
            entry = dict(entry)
            code = str(entry.get("device_id", ""))
            device_type = entry.get("type") or infer_device_type(code)
            catalog.add_device(
                str(device_type).lower().strip(),
                name=entry.get("name"),
                device_id=code or None,
                id=str(entry["id"]) if entry.get("id") is not None else None,
            )
        return catalog

    @classmethod
    def demo(cls, per_type: int = 2) -> InMemoryDeviceCatalog:
        """Catalog holding *per_type* devices of every known type except ``other``."""
        catalog = cls()
        for device_type in DeviceType:
            if device_type is DeviceType.OTHER:
                continue
            for n in range(1, per_type + 1):
                label = device_type.value.replace("_", " ").title()
                catalog.add_device(device_type.value, name=f"{label} {n}")
        return catalog

    @property
    def devices(self) -> list[DeviceHandle]:
        return list(self._devices)

    async def find_by_type(self, device_type: str) -> list[DeviceHandle]:
        return [d for d in self._devices if d.type == device_type]

    async def find_by_id(self, device_id: str) -> DeviceHandle | None:
        for device in self._devices:
            if device.id == device_id or device.device_id == device_id:
                return device
        return None


# -----------------------------------------------------------------------
# Adapter used by the engines
# -----------------------------------------------------------------------


class DeviceCatalogAdapter:
    """Translates device-type queries and id lists into device handles."""

    def __init__(self, catalog: DeviceCatalog) -> None:
        self.catalog = catalog

    async def resolve(self, device_types: Sequence[str]) -> list[DeviceHandle]:
        """All devices of the given types, concatenated in the order given."""
        devices: list[DeviceHandle] = []
        for device_type in device_types:
            found = await self.catalog.find_by_type(device_type)
            logger.debug("Catalog returned %d devices of type '%s'", len(found), device_type)
            devices.extend(found)
        return devices

    async def resolve_by_type(self, device_types: Sequence[str]) -> dict[str, list[DeviceHandle]]:
        """Devices grouped per requested type (every type present as a key)."""
        return {t: await self.catalog.find_by_type(t) for t in device_types}

    async def find(self, device_id: str) -> DeviceHandle | None:
        """One device by registry id or device code."""
        return await self.catalog.find_by_id(device_id)

    async def resolve_ids(self, device_ids: Sequence[str]) -> list[DeviceHandle]:
        """Look up explicit ids, skipping (and logging) unknown ones."""
        devices: list[DeviceHandle] = []
        for device_id in device_ids:
            device = await self.catalog.find_by_id(device_id)
            if device is None:
                logger.warning("Device '%s' not found in catalog - skipping", device_id)
                continue
            devices.append(device)
        return devices

    async def resolve_for(self, config: GenerationConfig, device_types: Sequence[str]) -> list[DeviceHandle]:
        """Devices targeted by *config*: its explicit ids, else every device of *device_types*."""
        if config.device_ids:
            return await self.resolve_ids(config.device_ids)
        return await self.resolve(device_types)
