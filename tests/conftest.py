from datetime import datetime, timezone

import pytest

LOGBOOK_CSV = """\ufeffPilot Full Name,Flight Date,Aircraft Make/Model,Aircraft Registration,Route From (ICAO),Route To (ICAO),Total Flight Time (HH:MM),PIC Time,SIC Time,Night Time,IFR Time,Day Landings,Night Landings
Jane Doe,4/9/2024,C172,N12345,KPAO,KSQL,1:30,1:30,,,,2,0
Jane Doe,2024-04-10,C172,N12345,KSQL,KPAO,01:00,,1:00,0:30,,1,1
John Smith,4-1-24,PA28,N54321,KSJC,,2.0,,,,0.5,1,
,2024-04-11,C172,N1,KPAO,KSQL,1.0,,,,,,
Bad Row,2024-04-12,C172,N1,KPAO,KSQL,-1,,,,,,
"""


@pytest.fixture
def logbook_csv():
    return LOGBOOK_CSV


@pytest.fixture
def now():
    return datetime(2024, 4, 15, 12, 0, tzinfo=timezone.utc)
