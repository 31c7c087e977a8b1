"""Working-hours validation and the built-in providers."""
from datetime import date

import httpx
import pytest

from conftest import FakeHoursProvider
from parkbook.core.errors import InconsistentHours, OutsideWorkingHours, ParkClosed, ValidationError
from parkbook.services.scheduling.hours_validator import validate_working_hours
from parkbook.services.working_hours import get_provider, list_providers
from parkbook.services.working_hours.http_provider import HttpWorkingHoursProvider
from parkbook.services.working_hours.park_table_provider import ParkTableWorkingHoursProvider
from parkbook.services.working_hours.types import WorkingHours

ANCHOR = date(2030, 1, 1)  # Tuesday


def _hours(open_from, open_to):
    return WorkingHours(closed=False, open_from=open_from, open_to=open_to)


class TestValidateWorkingHours:
    def test_window_inside_hours_returns_common_hours(self):
        provider = FakeHoursProvider(default=_hours("09:00", "18:00"))
        hours = validate_working_hours(provider, 1, "10:00", "12:00", [1, 3], anchor=ANCHOR)
        assert hours.to_dict() == {"from": "09:00", "to": "18:00", "closed": False}

    def test_end_of_day_window_fits_hours_until_2359(self):
        """09:00-00:00 is accepted against 09:00-23:59."""
        provider = FakeHoursProvider(default=_hours("09:00", "23:59"))
        validate_working_hours(provider, 1, "09:00", "00:00", [5], anchor=ANCHOR)

    def test_reference_dates_follow_the_anchor(self):
        """Each weekday is checked on its first occurrence on/after the validity start."""
        provider = FakeHoursProvider()
        validate_working_hours(provider, 7, "10:00", "11:00", [1, 3], anchor=ANCHOR)
        assert provider.calls == [(7, date(2030, 1, 7)), (7, date(2030, 1, 2))]

    def test_closed_day_raises_park_closed(self):
        provider = FakeHoursProvider(by_weekday={3: WorkingHours(closed=True)})
        with pytest.raises(ParkClosed) as exc:
            validate_working_hours(provider, 1, "10:00", "12:00", [1, 3], anchor=ANCHOR)
        assert exc.value.details["day"] == "Wednesday"
        assert exc.value.details["date"] == "2030-01-02"

    def test_unknown_hours_count_as_closed(self):
        class Nothing:
            def get_working_hours(self, park_id, on_date):
                return None

        with pytest.raises(ParkClosed):
            validate_working_hours(Nothing(), 1, "10:00", "12:00", [1], anchor=ANCHOR)

    def test_window_outside_hours(self):
        provider = FakeHoursProvider(default=_hours("09:00", "18:00"))
        with pytest.raises(OutsideWorkingHours) as exc:
            validate_working_hours(provider, 1, "08:00", "10:00", [1], anchor=ANCHOR)
        assert exc.value.details["workingHours"] == {"from": "09:00", "to": "18:00", "closed": False}
        with pytest.raises(OutsideWorkingHours):
            validate_working_hours(provider, 1, "17:00", "19:00", [1], anchor=ANCHOR)

    def test_days_with_different_hours_are_inconsistent(self):
        provider = FakeHoursProvider(by_weekday={3: _hours("10:00", "18:00")}, default=_hours("09:00", "18:00"))
        with pytest.raises(InconsistentHours) as exc:
            validate_working_hours(provider, 1, "11:00", "12:00", [1, 3], anchor=ANCHOR)
        assert exc.value.details["expected"]["from"] == "09:00"
        assert exc.value.details["found"]["from"] == "10:00"

    def test_empty_days_rejected(self):
        with pytest.raises(ValidationError):
            validate_working_hours(FakeHoursProvider(), 1, "10:00", "12:00", [], anchor=ANCHOR)


class TestParkTableProvider:
    def test_reads_weekday_entry(self, db, park):
        hours = ParkTableWorkingHoursProvider(db).get_working_hours(park.id, date(2030, 1, 7))
        assert hours.open_from == "09:00" and hours.open_to == "23:59"

    def test_missing_weekday_is_unknown(self, db, park):
        park.working_hours = {"Monday": {"from": "10:00", "to": "17:00"}}
        db.commit()
        provider = ParkTableWorkingHoursProvider(db)
        assert provider.get_working_hours(park.id, date(2030, 1, 8)) is None
        assert provider.get_working_hours(999, date(2030, 1, 7)) is None

    def test_registry_default(self, db):
        assert set(list_providers()) >= {"park_table", "http"}
        assert isinstance(get_provider(db), ParkTableWorkingHoursProvider)
        with pytest.raises(KeyError):
            get_provider(db, "ldap")


class TestHttpProvider:
    def _provider(self, monkeypatch, handler):
        transport = httpx.MockTransport(handler)
        real_client = httpx.Client

        def client_factory(*args, **kwargs):
            kwargs["transport"] = transport
            return real_client(*args, **kwargs)

        monkeypatch.setattr(httpx, "Client", client_factory)
        return HttpWorkingHoursProvider(base_url="http://parks.test/api")

    def test_parses_working_hours(self, monkeypatch):
        def handler(request):
            assert request.url.path == "/api/parks/3/working-hours"
            assert request.url.params["date"] == "2030-01-07"
            return httpx.Response(200, json={"workingHours": {"from": "08:00", "to": "20:00", "closed": False}})

        hours = self._provider(monkeypatch, handler).get_working_hours(3, date(2030, 1, 7))
        assert (hours.open_from, hours.open_to, hours.closed) == ("08:00", "20:00", False)

    def test_http_error_is_unknown(self, monkeypatch):
        provider = self._provider(monkeypatch, lambda request: httpx.Response(503, text="down"))
        assert provider.get_working_hours(3, date(2030, 1, 7)) is None

    def test_unreachable_is_unknown(self, monkeypatch):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert self._provider(monkeypatch, handler).get_working_hours(3, date(2030, 1, 7)) is None
