"""Tests for the Driver aggregate — availability, busy/release and location."""

import pytest
from ordering.driver.driver import Driver, DriverStatus
from ordering.driver.events import DriverLocationUpdated, DriverRegistered, DriverStatusChanged
from ordering.errors import InvalidTransition
from ordering.order.delivery import pick_driver
from protean.exceptions import ValidationError


def _driver(status=DriverStatus.OFFLINE, rating=0.0, deliveries=0, name="Otieno"):
    driver = Driver.register(full_name=name, email=f"{name.lower()}@example.com", phone="+254711000000")
    driver.status = status.value
    driver.rating = rating
    driver.total_deliveries = deliveries
    driver._events.clear()
    return driver


class TestRegistration:
    def test_registers_offline(self):
        driver = Driver.register(full_name="Otieno", email="otieno@example.com", phone="+254711000000")

        assert DriverStatus(driver.status) == DriverStatus.OFFLINE
        assert not driver.is_available
        assert isinstance(driver._events[-1], DriverRegistered)


class TestSelfServiceStatus:
    def test_go_online(self):
        driver = _driver()
        driver.set_status("online")

        assert driver.is_available
        event = driver._events[-1]
        assert isinstance(event, DriverStatusChanged)
        assert event.previous_status == "offline"

    def test_same_status_is_noop(self):
        driver = _driver(DriverStatus.ONLINE)
        driver.set_status("online")
        assert driver._events == []

    def test_cannot_choose_busy(self):
        with pytest.raises(ValidationError):
            _driver(DriverStatus.ONLINE).set_status("busy")

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            _driver().set_status("sleeping")

    def test_busy_driver_cannot_go_offline(self):
        with pytest.raises(InvalidTransition):
            _driver(DriverStatus.BUSY).set_status("offline")

    def test_inactive_returns_via_offline(self):
        driver = _driver(DriverStatus.INACTIVE)
        with pytest.raises(InvalidTransition):
            driver.set_status("online")
        driver.set_status("offline")
        assert DriverStatus(driver.status) == DriverStatus.OFFLINE


class TestBusyAndRelease:
    def test_mark_busy_records_order(self):
        driver = _driver(DriverStatus.ONLINE)
        driver.mark_busy("order-1")

        assert DriverStatus(driver.status) == DriverStatus.BUSY
        assert str(driver.current_order_id) == "order-1"

    def test_offline_driver_cannot_be_marked_busy(self):
        with pytest.raises(InvalidTransition):
            _driver(DriverStatus.OFFLINE).mark_busy("order-1")

    def test_release_after_delivery_counts(self):
        driver = _driver(DriverStatus.ONLINE, deliveries=4)
        driver.mark_busy("order-1")
        driver.release(completed=True)

        assert driver.is_available
        assert driver.current_order_id is None
        assert driver.total_deliveries == 5

    def test_release_after_cancellation_does_not_count(self):
        driver = _driver(DriverStatus.ONLINE, deliveries=4)
        driver.mark_busy("order-1")
        driver.release(completed=False)

        assert driver.is_available
        assert driver.total_deliveries == 4


class TestLocation:
    def test_update_location(self):
        driver = _driver(DriverStatus.ONLINE)
        driver.update_location(-1.2921, 36.8219)

        assert driver.latitude == -1.2921
        assert driver.location_updated_at is not None
        assert isinstance(driver._events[-1], DriverLocationUpdated)

    @pytest.mark.parametrize("latitude,longitude", [(91, 0), (-91, 0), (0, 181), (0, -181)])
    def test_out_of_range(self, latitude, longitude):
        with pytest.raises(ValidationError):
            _driver().update_location(latitude, longitude)


class TestPickDriver:
    def test_only_online_drivers_qualify(self):
        assert pick_driver([_driver(DriverStatus.OFFLINE), _driver(DriverStatus.BUSY)]) is None

    def test_prefers_fewer_deliveries_per_rating_point(self):
        busy_veteran = _driver(DriverStatus.ONLINE, rating=2.0, deliveries=10, name="Wanjiku")
        fresh = _driver(DriverStatus.ONLINE, rating=4.0, deliveries=8, name="Kamau")

        assert pick_driver([busy_veteran, fresh]) is fresh

    def test_unrated_driver_counts_as_rated_one(self):
        unrated = _driver(DriverStatus.ONLINE, rating=0.0, deliveries=3, name="Achieng")
        rated = _driver(DriverStatus.ONLINE, rating=5.0, deliveries=10, name="Mutua")

        assert pick_driver([unrated, rated]) is rated
