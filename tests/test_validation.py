from pdxcamps.services.validation_service import (
    calculate_source_quality,
    determine_session_status,
    parse_age_range,
    parse_date_range,
    parse_price,
    parse_time_range,
    validate_session,
)


COMPLETE = {
    "name": "Robotics Camp",
    "start_date": "2025-07-07",
    "end_date": "2025-07-11",
    "drop_off_hour": 9,
    "drop_off_minute": 0,
    "pick_up_hour": 15,
    "pick_up_minute": 0,
    "location": "OMSI, 1945 SE Water Ave, Portland",
    "min_age": 8,
    "max_age": 12,
    "price_in_cents": 35000,
    "registration_url": "https://omsi.edu/camps/robotics",
}


def test_complete_session_scores_100():
    res = validate_session(COMPLETE)
    assert res["is_complete"] is True
    assert res["completeness_score"] == 100
    assert res["missing_fields"] == []
    assert res["errors"] == []


def test_missing_fields_lower_score_and_keep_raw_text():
    partial = {"name": "Art Camp", "date_raw": "Summer 2025", "price_raw": "Call us", "location": "OMSI, 1945 SE Water Ave"}
    res = validate_session(partial)
    # only location present: 1 of 7
    assert res["completeness_score"] == 14
    assert set(res["missing_fields"]) == {
        "start_date", "end_date", "drop_off_time", "pick_up_time", "age_requirements", "price",
    }
    fields = {e["field"]: e for e in res["errors"]}
    assert fields["start_date"]["value"] == "Summer 2025"
    assert fields["price"]["value"] == "Call us"


def test_zero_price_is_present_not_missing():
    res = validate_session(dict(COMPLETE, price_in_cents=0))
    assert "price" not in res["missing_fields"]


def test_placeholder_and_bad_formats():
    res = validate_session(dict(COMPLETE, start_date="<UNKNOWN>", end_date="07/11/2025", drop_off_hour=25))
    assert "start_date" in res["missing_fields"]
    errors = {e["field"] for e in res["errors"]}
    assert {"end_date", "drop_off_time"} <= errors
    assert res["is_complete"] is False


def test_date_range_checks():
    backwards = validate_session(dict(COMPLETE, start_date="2025-07-11", end_date="2025-07-07"))
    assert any("before start" in e["error"] for e in backwards["errors"])
    overview = validate_session(dict(COMPLETE, start_date="2025-06-16", end_date="2025-08-22"))
    assert any("program overview" in e["error"] for e in overview["errors"])


def test_generic_location_and_bad_url():
    res = validate_session(dict(COMPLETE, location="Main Location", registration_url="javascript:void(0)"))
    errors = {e["field"] for e in res["errors"]}
    assert errors == {"location", "registration_url"}
    # a generic location still counts as present
    assert res["completeness_score"] == 100


def test_location_lists_are_flagged():
    venues = ", ".join(f"{n} Some Long Venue Name Community Center" for n in range(1, 5))
    res = validate_session(dict(COMPLETE, location=venues))
    assert any("list of 4 venues" in e["error"] for e in res["errors"])


def test_determine_session_status():
    assert determine_session_status(100, 35000, "$350") == "active"
    assert determine_session_status(86, 35000, "$350") == "draft"
    assert determine_session_status(40, 35000, "$350") == "pending_review"
    # $0 without "free" looks like a parse failure
    assert determine_session_status(100, 0, "$0") == "draft"
    assert determine_session_status(100, 0, "Free for families") == "active"


def test_source_quality_tiers():
    assert calculate_source_quality([])["tier"] == "low"
    rows = [
        {"completeness_score": 100, "missing_fields": []},
        {"completeness_score": 71, "missing_fields": ["price", "location"]},
        {"completeness_score": 57, "missing_fields": ["price"]},
    ]
    q = calculate_source_quality(rows)
    assert q["score"] == 76
    assert q["tier"] == "medium"
    assert q["complete_sessions"] == 1
    assert q["common_missing_fields"][0] == {"field": "price", "count": 2}


def test_parse_date_range_formats():
    assert parse_date_range("June 10-14, 2025") == {"start_date": "2025-06-10", "end_date": "2025-06-14"}
    assert parse_date_range("June 30 - July 3, 2025") == {"start_date": "2025-06-30", "end_date": "2025-07-03"}
    assert parse_date_range("6/9/2025 - 6/13/2025") == {"start_date": "2025-06-09", "end_date": "2025-06-13"}
    assert parse_date_range("All summer long") is None
    assert parse_date_range("") is None


def test_parse_time_range_formats():
    assert parse_time_range("9:00 AM - 3:00 PM") == {
        "drop_off_hour": 9, "drop_off_minute": 0, "pick_up_hour": 15, "pick_up_minute": 0,
    }
    assert parse_time_range("8:30am-12:30pm")["drop_off_minute"] == 30
    assert parse_time_range("8:30am-12:30pm")["pick_up_hour"] == 12
    # bare hours: early pick-up means afternoon
    assert parse_time_range("9-3")["pick_up_hour"] == 15
    assert parse_time_range("Full day") is None


def test_parse_price():
    assert parse_price("$350") == 35000
    assert parse_price("$1,250.50 per week") == 125050
    assert parse_price("FREE") == 0
    assert parse_price("$0") == 0
    assert parse_price("Call for pricing") is None


def test_parse_age_range():
    assert parse_age_range("Grades K-5") == {"min_grade": 0, "max_grade": 5}
    assert parse_age_range("1st-5th grade") == {"min_grade": 1, "max_grade": 5}
    assert parse_age_range("Ages 6-10") == {"min_age": 6, "max_age": 10}
    assert parse_age_range("Ages 8 to 12") == {"min_age": 8, "max_age": 12}
    assert parse_age_range("Age 5+") == {"min_age": 5, "max_age": 18}
    assert parse_age_range("Everyone welcome") is None
