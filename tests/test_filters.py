from datetime import date, timedelta

from filters import StaffFilter, expiry_bucket, filter_staff, staff_stats
from schemas import Staff

TODAY = date(2025, 6, 1)


def person(name, **kwargs):
    kwargs.setdefault("status", "Working")
    return Staff(name=name, **kwargs)


def names(staff):
    return [s.name for s in staff]


ROSTER = [
    person("Alice", batch_no="A1", hotel="H1", visa_type="Employment", phone="+971501111111",
           designation="Chef", department="Kitchen", card_no="EMP001", salary=4000,
           expire_date=TODAY + timedelta(days=10), passport_expire_date=date(2027, 1, 1)),
    person("Bob", batch_no="B7", hotel="H2", visa_type="Visit", phone="+971502222222",
           designation="Waiter", department="Front Office", card_no="VIS002", salary=2500,
           expire_date=TODAY - timedelta(days=3)),
    person("Carla", batch_no="C3", hotel="H1", status="Exited", salary=3000,
           expire_date=TODAY + timedelta(days=90)),
    person("Dina", batch_no="", hotel="H1", status="Jobless", visa_type="Employment",
           designation="Housekeeper", salary=1800, expire_date=TODAY + timedelta(days=45)),
]


def test_empty_criteria_returns_active_in_order():
    assert names(filter_staff(ROSTER, StaffFilter(), today=TODAY)) == ["Alice", "Bob", "Dina"]


def test_archive_view_only_exited():
    assert names(filter_staff(ROSTER, StaffFilter(view="archive"), today=TODAY)) == ["Carla"]


def test_all_view_keeps_everything():
    assert names(filter_staff(ROSTER, StaffFilter(view="all"), today=TODAY)) == ["Alice", "Bob", "Carla", "Dina"]


def test_expiring_and_expired_scenario():
    alice = [person("Alice", batch_no="A1", hotel="H1", expire_date=TODAY + timedelta(days=10))]
    assert names(filter_staff(alice, StaffFilter(expire_bucket="expiring"), today=TODAY)) == ["Alice"]
    assert filter_staff(alice, StaffFilter(expire_bucket="expired"), today=TODAY) == []


def test_expire_bucket_ignores_missing_dates():
    undated = [person("Eve")]
    for bucket in ("expired", "expiring", "valid"):
        assert filter_staff(undated, StaffFilter(expire_bucket=bucket), today=TODAY) == []


def test_expiry_bucket_boundaries():
    assert expiry_bucket(None, TODAY) is None
    assert expiry_bucket(TODAY - timedelta(days=1), TODAY) == "expired"
    assert expiry_bucket(TODAY, TODAY) == "expired"
    assert expiry_bucket(TODAY + timedelta(days=1), TODAY) == "expiring"
    assert expiry_bucket(TODAY + timedelta(days=30), TODAY) == "expiring"
    assert expiry_bucket(TODAY + timedelta(days=31), TODAY) == "valid"


def test_search_matches_any_of_four_fields_case_insensitive():
    assert names(filter_staff(ROSTER, StaffFilter(search="alice"), today=TODAY)) == ["Alice"]
    assert names(filter_staff(ROSTER, StaffFilter(search="50222"), today=TODAY)) == ["Bob"]
    assert names(filter_staff(ROSTER, StaffFilter(search="HOUSE"), today=TODAY)) == ["Dina"]
    assert names(filter_staff(ROSTER, StaffFilter(search="b7"), today=TODAY)) == ["Bob"]
    # department is an advanced filter, not part of free-text search
    assert filter_staff(ROSTER, StaffFilter(search="kitchen"), today=TODAY) == []


def test_categorical_filters_are_exact():
    assert names(filter_staff(ROSTER, StaffFilter(hotel="H1"), today=TODAY)) == ["Alice", "Dina"]
    assert names(filter_staff(ROSTER, StaffFilter(visa_type="Visit"), today=TODAY)) == ["Bob"]
    assert filter_staff(ROSTER, StaffFilter(hotel="h1"), today=TODAY) == []


def test_advanced_filters():
    assert names(filter_staff(ROSTER, StaffFilter(department="front"), today=TODAY)) == ["Bob"]
    assert names(filter_staff(ROSTER, StaffFilter(card_no="emp"), today=TODAY)) == ["Alice"]
    assert names(filter_staff(ROSTER, StaffFilter(salary_min=2500, salary_max=4000), today=TODAY)) == ["Alice", "Bob"]
    assert names(filter_staff(ROSTER, StaffFilter(salary_max=2000), today=TODAY)) == ["Dina"]
    criteria = StaffFilter(passport_expire_date=date(2027, 1, 1))
    assert names(filter_staff(ROSTER, criteria, today=TODAY)) == ["Alice"]


def test_predicates_combine_with_and():
    criteria = StaffFilter(hotel="H1", visa_type="Employment", expire_bucket="valid")
    assert names(filter_staff(ROSTER, criteria, today=TODAY)) == ["Dina"]


def test_result_is_ordered_subset():
    criteria = StaffFilter(view="all", salary_min=2000)
    result = filter_staff(ROSTER, criteria, today=TODAY)
    positions = [ROSTER.index(s) for s in result]
    assert positions == sorted(positions)
    assert all(s in ROSTER for s in result)


def test_staff_stats():
    assert staff_stats(ROSTER) == {
        "totalStaff": 3,
        "workingStaff": 2,
        "joblessStaff": 1,
        "exitedStaff": 1,
        "employmentVisa": 2,
        "visitVisa": 1,
    }


def test_blank_form_inputs_mean_no_constraint():
    criteria = StaffFilter(salary_min="", salary_max=" ", passport_expire_date="")
    assert (criteria.salary_min, criteria.salary_max, criteria.passport_expire_date) == (None, None, None)
    assert names(filter_staff(ROSTER, criteria, today=TODAY)) == ["Alice", "Bob", "Dina"]
