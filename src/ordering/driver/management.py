"""Driver management — commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.driver.driver import Driver


@ordering.command(part_of="Driver")
class RegisterDriver:
    full_name = String(max_length=255, required=True)
    email = String(max_length=254, required=True)
    phone = String(max_length=50, required=True)
    license_number = String(max_length=50)
    vehicle_type = String(max_length=50)
    vehicle_plate = String(max_length=20)


@ordering.command(part_of="Driver")
class SetDriverStatus:
    driver_id = Identifier(required=True)
    status = String(max_length=20, required=True)


@ordering.command(part_of="Driver")
class UpdateDriverLocation:
    driver_id = Identifier(required=True)
    latitude = Float(required=True)
    longitude = Float(required=True)


@ordering.command_handler(part_of=Driver)
class ManageDriverHandler:
    @handle(RegisterDriver)
    def register_driver(self, command: RegisterDriver) -> str:
        repo = current_domain.repository_for(Driver)
        if repo._dao.query.filter(email=command.email).all().items:
            raise ValidationError({"email": ["A driver with this email already exists"]})

        driver = Driver.register(
            full_name=command.full_name,
            email=command.email,
            phone=command.phone,
            license_number=command.license_number,
            vehicle_type=command.vehicle_type,
            vehicle_plate=command.vehicle_plate,
        )
        repo.add(driver)
        return str(driver.id)

    @handle(SetDriverStatus)
    def set_status(self, command: SetDriverStatus) -> str:
        repo = current_domain.repository_for(Driver)
        driver = repo.get(command.driver_id)
        driver.set_status(command.status)
        repo.add(driver)
        return driver.status

    @handle(UpdateDriverLocation)
    def update_location(self, command: UpdateDriverLocation) -> None:
        repo = current_domain.repository_for(Driver)
        driver = repo.get(command.driver_id)
        driver.update_location(command.latitude, command.longitude)
        repo.add(driver)
