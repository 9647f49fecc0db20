"""Domain events for the Driver aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="Driver")
class DriverRegistered:
    __version__ = 1

    driver_id = Identifier(required=True)
    full_name = String(max_length=255, required=True)
    vehicle_type = String(max_length=50)
    registered_at = DateTime(required=True)


@ordering.event(part_of="Driver")
class DriverStatusChanged:
    __version__ = 1

    driver_id = Identifier(required=True)
    previous_status = String(max_length=20, required=True)
    status = String(max_length=20, required=True)
    order_id = Identifier()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Driver")
class DriverLocationUpdated:
    __version__ = 1

    driver_id = Identifier(required=True)
    latitude = Float(required=True)
    longitude = Float(required=True)
    updated_at = DateTime(required=True)
