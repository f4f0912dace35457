from pdxcamps.services.helpers import (
    calculate_age,
    calculate_distance,
    child_fits_requirements,
    count_overlapping_weekdays,
    do_date_ranges_overlap,
    format_price,
    generate_summer_weeks,
    is_default_coordinates,
    slugify,
)


def test_calculate_age_before_and_after_birthday():
    assert calculate_age("2015-03-01", "2025-02-28") == 9
    assert calculate_age("2015-03-01", "2025-03-01") == 10


def test_summer_weeks_2025():
    weeks = generate_summer_weeks(2025)
    assert weeks[0]["start_date"] == "2025-06-02"
    assert weeks[0]["end_date"] == "2025-06-06"
    assert weeks[-1]["start_date"] == "2025-08-25"
    assert len(weeks) == 13
    # week crossing a month boundary keeps only the day number for Friday
    crossing = next(w for w in weeks if w["start_date"] == "2025-06-30")
    assert crossing["label"] == "Jun 30-4"
    assert crossing["month_name"] == "June"
    assert [w["week_number"] for w in weeks] == list(range(1, 14))


def test_grade_bounds_take_precedence_over_age():
    child = {"birthdate": "2015-03-01", "current_grade": 4}
    assert child_fits_requirements(child, {"min_grade": 3, "max_grade": 5, "min_age": 12}, "2025-07-01")
    assert not child_fits_requirements(child, {"min_grade": 6}, "2025-07-01")


def test_age_bounds_use_session_date():
    child = {"birthdate": "2017-07-15"}
    reqs = {"min_age": 8, "max_age": 10}
    assert not child_fits_requirements(child, reqs, "2025-07-07")
    assert child_fits_requirements(child, reqs, "2025-07-21")


def test_grade_estimated_from_age_when_child_has_no_grade():
    child = {"birthdate": "2016-01-01"}  # age 9 in summer 2025 -> grade 4
    assert child_fits_requirements(child, {"min_grade": 3, "max_grade": 5}, "2025-07-01")
    assert not child_fits_requirements(child, {"min_grade": 5}, "2025-07-01")


def test_no_requirements_always_fit():
    assert child_fits_requirements({"first_name": "Sam"}, None, "2025-07-01")


def test_date_overlap_and_weekday_counts():
    assert do_date_ranges_overlap("2025-07-07", "2025-07-11", "2025-07-11", "2025-07-18")
    assert not do_date_ranges_overlap("2025-07-07", "2025-07-11", "2025-07-12", "2025-07-18")
    # Sat/Sun are not counted
    assert count_overlapping_weekdays("2025-07-07", "2025-07-13", "2025-07-10", "2025-07-20") == 2
    assert count_overlapping_weekdays("2025-07-07", "2025-07-08", "2025-07-10", "2025-07-11") == 0


def test_default_coordinates_and_distance():
    assert is_default_coordinates(45.5152, -122.6784)
    assert is_default_coordinates(None, -122.6)
    assert not is_default_coordinates(45.508, -122.665)
    # Portland to Seattle, roughly 145 miles
    assert 140 < calculate_distance(45.5152, -122.6784, 47.6062, -122.3321) < 150


def test_slugify_and_price_format():
    assert slugify("  Oregon Museum of Science & Industry ") == "oregon-museum-of-science-industry"
    assert format_price(35000) == "$350.00"
    assert format_price(123456) == "$1,234.56"
