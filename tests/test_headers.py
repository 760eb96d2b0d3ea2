import pytest

from logbook_metrics.headers import canonical_key, canonicalize_row, clean_header


@pytest.mark.parametrize("header, expected", [
    ("\ufeffPilot Full Name", "pilotName"),
    ("Pilot Name", "pilotName"),
    ("Flight Date", "date"),
    ("DEPT_DATE", "date"),
    ("Date of Birth", "dateOfBirth"),
    ("License Issue Date", "licenseIssueDate"),
    ("License Expiry Date", "licenseExpiryDate"),
    ("Licence Number", "licenseNumber"),
    ("Total Flight Time (HH:MM)", "hours"),
    ("Duration", "hours"),
    ("BLK_HRS", "hours"),
    ("Aircraft Make/Model", "aircraft"),
    ("EQUIP", "aircraft"),
    ("Aircraft Registration", "aircraftReg"),
    ("TAIL", "aircraftReg"),
    ("Aircraft Multi-Engine", "aircraftMultiEngine"),
    ("Aircraft Ultralight Non-Motorized", "aircraftUltralightNonMotorized"),
    ("Simulator Time", "simulatorTime"),
    ("Simulator Device/Type", "simulatorType"),
    ("Route From (ICAO)", "routeFrom"),
    ("Route To (ICAO)", "routeTo"),
    ("ORG", "routeFrom"),
    ("DEST", "routeTo"),
    ("Day Landings", "landingsDay"),
    ("Night Landings", "landingsNight"),
    ("Night Flight", "night"),
    ("Night Time (HH:MM)", "nightTime"),
    ("Night", "nightTime"),
    ("Act Inst", "ifrTime"),
    ("PIC", "picTime"),
    ("SIC Time", "sicTime"),
    ("Dual Received", "dualReceived"),
    ("XC", "crossCountryTime"),
    ("Approaches", "approachCount"),
    ("Approach Type", "approachType"),
    ("OFF", "offTime"),
    ("ON", "onTime"),
    ("Remarks", "remarks"),
])
def test_canonical_key(header, expected):
    assert canonical_key(header) == expected


def test_canonical_keys_map_to_themselves():
    for key in ("picTime", "aircraftReg", "landingsNight", "dateOfBirth", "categories"):
        assert canonical_key(key) == key


def test_unknown_header_falls_back_to_slug():
    assert canonical_key("Favorite Color!") == "favoritecolor"


def test_clean_header():
    assert clean_header("\ufeff  Total_Flight   TIME ") == "total flight time"


def test_canonicalize_row_first_non_empty_wins():
    fields, _ = canonicalize_row({"Total Time": "", "Duration": "1.5", "Block": "2.0"})
    assert fields["hours"] == "1.5"

    fields, _ = canonicalize_row({"Total Time": "1.0", "Duration": "2.0"})
    assert fields["hours"] == "1.0"


def test_canonicalize_row_keeps_unknown_columns_as_extras():
    fields, extras = canonicalize_row({"Pilot Name": "Jane", "Favorite Color": "blue"})
    assert fields == {"pilotName": "Jane"}
    assert extras == {"favoritecolor": "blue"}


@pytest.mark.parametrize("header", ["night", "Night", "NIGHT"])
def test_night_header_is_the_night_time_bucket_in_any_case(header):
    assert canonical_key(header) == "nightTime"
