"""Driver aggregate — availability for delivery assignment.

State Machine:
    OFFLINE ⇄ ONLINE → BUSY → ONLINE
    OFFLINE/ONLINE → INACTIVE → OFFLINE

BUSY is entered and left only through order assignment, delivery and
cancellation; drivers cannot set it themselves.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering
from ordering.driver.events import DriverLocationUpdated, DriverRegistered, DriverStatusChanged
from ordering.errors import InvalidTransition


class DriverStatus(Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"
    INACTIVE = "inactive"


_VALID_TRANSITIONS = {
    DriverStatus.OFFLINE: {DriverStatus.ONLINE, DriverStatus.INACTIVE},
    DriverStatus.ONLINE: {DriverStatus.OFFLINE, DriverStatus.BUSY, DriverStatus.INACTIVE},
    DriverStatus.BUSY: {DriverStatus.ONLINE},
    DriverStatus.INACTIVE: {DriverStatus.OFFLINE},
}

# Statuses a driver (or an admin) may request directly
SELF_SERVICE_STATUSES = {DriverStatus.ONLINE, DriverStatus.OFFLINE, DriverStatus.INACTIVE}


@ordering.aggregate
class Driver:
    full_name = String(max_length=255, required=True)
    email = String(max_length=254, required=True)
    phone = String(max_length=50, required=True)
    license_number = String(max_length=50)
    vehicle_type = String(max_length=50)
    vehicle_plate = String(max_length=20)
    status = String(choices=DriverStatus, default=DriverStatus.OFFLINE.value)
    current_order_id = Identifier()
    latitude = Float()
    longitude = Float()
    location_updated_at = DateTime()
    rating = Float(default=0.0, min_value=0.0, max_value=5.0)
    total_deliveries = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, full_name, email, phone, license_number=None, vehicle_type=None, vehicle_plate=None):
        now = datetime.now(UTC)
        driver = cls(
            full_name=full_name,
            email=email,
            phone=phone,
            license_number=license_number,
            vehicle_type=vehicle_type,
            vehicle_plate=vehicle_plate,
            status=DriverStatus.OFFLINE.value,
            created_at=now,
            updated_at=now,
        )
        driver.raise_(
            DriverRegistered(
                driver_id=str(driver.id),
                full_name=full_name,
                vehicle_type=vehicle_type,
                registered_at=now,
            )
        )
        return driver

    @property
    def is_available(self) -> bool:
        return DriverStatus(self.status) == DriverStatus.ONLINE

    @property
    def workload(self) -> float:
        """Deliveries per rating point; unrated drivers count as rated 1."""
        return (self.total_deliveries or 0) / (self.rating or 1)

    def _change_status(self, target: DriverStatus, order_id=None) -> None:
        current = DriverStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(
                current.value,
                target.value,
                reason=f"Driver cannot go from {current.value} to {target.value}",
            )

        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        self.raise_(
            DriverStatusChanged(
                driver_id=str(self.id),
                previous_status=current.value,
                status=target.value,
                order_id=order_id,
                changed_at=now,
            )
        )

    def set_status(self, status: str) -> None:
        try:
            target = DriverStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown driver status: {status}"]}) from None
        if target not in SELF_SERVICE_STATUSES:
            raise ValidationError({"status": ["Busy is set by order assignment only"]})
        if target == DriverStatus(self.status):
            return
        self._change_status(target)

    def mark_busy(self, order_id) -> None:
        self._change_status(DriverStatus.BUSY, order_id=str(order_id))
        self.current_order_id = order_id

    def release(self, completed: bool) -> None:
        """Free the driver after a delivery ends or its order is cancelled."""
        order_id = self.current_order_id
        self._change_status(DriverStatus.ONLINE, order_id=str(order_id) if order_id else None)
        self.current_order_id = None
        if completed:
            self.total_deliveries = (self.total_deliveries or 0) + 1

    def update_location(self, latitude: float, longitude: float) -> None:
        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise ValidationError({"location": ["Latitude or longitude out of range"]})

        now = datetime.now(UTC)
        self.latitude = latitude
        self.longitude = longitude
        self.location_updated_at = now
        self.updated_at = now
        self.raise_(
            DriverLocationUpdated(
                driver_id=str(self.id),
                latitude=latitude,
                longitude=longitude,
                updated_at=now,
            )
        )
