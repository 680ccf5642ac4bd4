"""Canned weather used when the upstream API cannot answer."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass
from types import MappingProxyType


@dataclass(frozen=True, slots=True)
class MockWeatherEntry:
    municipio: str
    provincia: str
    temperatura: str
    descripcion: str
    humedad: str
    viento: str
    presion: str

    def fields(self) -> dict[str, str]:
        return asdict(self)


class MockWeatherTable(Mapping[str, MockWeatherEntry]):
    """Read-only postal code -> canned weather mapping."""

    def __init__(self, entries: Mapping[str, MockWeatherEntry]) -> None:
        self._entries = MappingProxyType(dict(entries))

    def __getitem__(self, postal_code: str) -> MockWeatherEntry:
        return self._entries[postal_code]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def codes(self) -> list[str]:
        return list(self._entries)


DEFAULT_MOCK_TABLE = MockWeatherTable(
    {
        "39001": MockWeatherEntry(
            municipio="Alfoz de Lloredo",
            provincia="Cantabria",
            temperatura="18°C",
            descripcion="Parcialmente nublado",
            humedad="75%",
            viento="15 km/h NE",
            presion="1015 hPa",
        ),
        "39002": MockWeatherEntry(
            municipio="Santander",
            provincia="Cantabria",
            temperatura="17°C",
            descripcion="Nublado",
            humedad="80%",
            viento="12 km/h N",
            presion="1012 hPa",
        ),
        "39003": MockWeatherEntry(
            municipio="Castro-Urdiales",
            provincia="Cantabria",
            temperatura="19°C",
            descripcion="Soleado",
            humedad="65%",
            viento="8 km/h E",
            presion="1018 hPa",
        ),
    }
)
