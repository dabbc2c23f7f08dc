"""Latest telemetry values reported by the drone."""

from dataclasses import dataclass
from typing import Optional

from ..protocol.messages import (
    AltitudeLimit,
    FlightData,
    LightInfo,
    PayloadData,
    VersionInfo,
    WifiInfo,
)


@dataclass
class DroneMeta:
    """Most recent value of each telemetry payload kind."""

    flight_data: Optional[FlightData] = None
    wifi: Optional[WifiInfo] = None
    light: Optional[LightInfo] = None
    version: Optional[str] = None
    alt_limit: Optional[int] = None  # meters

    def update(self, data: Optional[PayloadData]) -> None:
        """
        Store a decoded payload.

        Args:
            data: Payload from a DataMessage. Kinds that are not cached
                are ignored.
        """
        if isinstance(data, FlightData):
            self.flight_data = data
        elif isinstance(data, WifiInfo):
            self.wifi = data
        elif isinstance(data, LightInfo):
            self.light = data
        elif isinstance(data, VersionInfo):
            self.version = data.version
        elif isinstance(data, AltitudeLimit):
            self.alt_limit = data.height

    @property
    def battery_percentage(self) -> Optional[int]:
        return self.flight_data.battery_percentage if self.flight_data else None

    @property
    def wifi_strength(self) -> Optional[int]:
        return self.wifi.strength if self.wifi else None
