"""Overlap detection between a candidate slot and a park's existing templates/instances."""
from datetime import date

from parkbook.services.scheduling.overlap import find_overlaps, validity_intersects


def _check(db, park, pricing_ids, *, start="09:00", end="11:00", days=(1,), valid_from="2030-01-01",
           valid_until="2030-01-31", exclude=None):
    return find_overlaps(
        db, park.id, start, end, list(days), valid_from, valid_until, pricing_ids, exclude_template_id=exclude
    )


class TestFindOverlaps:
    def test_partial_overlap_same_day_and_pricing(self, db, park, pricing, make_template):
        """09:00-11:00 Mon/A overlaps an existing 10:00-12:00 Mon/A template and its instances."""
        existing = make_template(start_time="10:00", end_time="12:00", days_of_week=[1])
        conflicts = _check(db, park, [pricing[0].id])
        kinds = {c["type"] for c in conflicts}
        assert kinds == {"template", "instance"}
        template_conflict = next(c for c in conflicts if c["type"] == "template")
        assert template_conflict["id"] == existing.id
        assert template_conflict["time"] == "10:00-12:00"
        instance_dates = [c["date"] for c in conflicts if c["type"] == "instance"]
        assert instance_dates == ["2030-01-07", "2030-01-14", "2030-01-21", "2030-01-28"]

    def test_different_day_does_not_overlap(self, db, park, pricing, make_template):
        make_template(start_time="10:00", end_time="12:00", days_of_week=[2])
        assert _check(db, park, [pricing[0].id]) == []

    def test_disjoint_pricing_does_not_overlap(self, db, park, pricing, make_template):
        make_template(start_time="10:00", end_time="12:00", days_of_week=[1], pricing_ids=[pricing[1].id])
        assert _check(db, park, [pricing[0].id]) == []

    def test_containment_counts_as_overlap(self, db, park, pricing, make_template):
        make_template(start_time="09:30", end_time="10:30", days_of_week=[1])
        assert any(c["type"] == "template" for c in _check(db, park, [pricing[0].id], start="09:00", end="12:00"))

    def test_touching_windows_do_not_overlap(self, db, park, pricing, make_template):
        make_template(start_time="11:00", end_time="12:00", days_of_week=[1])
        assert _check(db, park, [pricing[0].id]) == []

    def test_disjoint_validity_does_not_overlap(self, db, park, pricing, make_template):
        make_template(start_time="10:00", end_time="12:00", days_of_week=[1])
        conflicts = _check(db, park, [pricing[0].id], valid_from="2030-02-01", valid_until="2030-02-28")
        assert conflicts == []

    def test_open_ended_candidate_reaches_later_templates(self, db, park, pricing, make_template):
        make_template(valid_from="2031-06-01", valid_until="2031-06-30", days_of_week=[1])
        conflicts = _check(db, park, [pricing[0].id], valid_until=None)
        assert any(c["type"] == "template" for c in conflicts)

    def test_other_parks_are_ignored(self, db, park, other_park, pricing, make_template):
        make_template(start_time="10:00", end_time="12:00", days_of_week=[1])
        assert _check(db, other_park, [pricing[0].id]) == []

    def test_exclude_template_for_updates(self, db, park, pricing, make_template):
        """An update checks the new shape against everything except itself."""
        existing = make_template(start_time="10:00", end_time="12:00", days_of_week=[1])
        assert _check(db, park, [pricing[0].id], exclude=existing.id) == []


class TestValidityIntersects:
    def test_open_ended_ranges(self):
        assert validity_intersects(date(2030, 1, 1), None, date(2040, 1, 1), None)
        assert validity_intersects(date(2030, 1, 1), date(2030, 1, 31), date(2030, 1, 31), None)
        assert not validity_intersects(date(2030, 1, 1), date(2030, 1, 31), date(2030, 2, 1), None)
