"""
Header normalization for logbook CSV exports.

Exports from different logbook tools name the same column in many ways
("Total Flight Time (HH:MM)", "Duration", "BLK_HRS", ...). HEADER_PATTERNS maps
them onto one set of canonical keys. The table is ordered and the first
matching pattern wins, so specific patterns must stay above generic ones.
"""
import re

# Aircraft class flag columns -> category label shown on the dashboard
CATEGORY_LABELS = {
    'aircraftLsa': 'LSA',
    'aircraftSingleEngine': 'Single',
    'aircraftMultiEngine': 'Multi',
    'aircraftTurboprop': 'Turboprop',
    'aircraftTurbojet': 'Turbojet',
    'aircraftHelicopter': 'Helicopter',
    'aircraftGlider': 'Glider',
    'aircraftUltralightMotorized': 'Ultralight M',
    'aircraftUltralightNonMotorized': 'Ultralight NM',
}

BOM = '\ufeff'

# Optional unit suffix such as "(HH:MM)" or "(ICAO)"
_UNIT = r'( \(.*\))?$'


def _p(pattern):
    return re.compile(pattern)


HEADER_PATTERNS = (
    # Pilot identity
    (_p(r'^(pilot( full)? name|pilot|full name|name)$'), 'pilotName'),
    (_p(r'^licen[cs]e (number|no\.?|#)'), 'licenseNumber'),
    (_p(r'^nationality'), 'nationality'),
    (_p(r'^(date of birth|dob|birth ?date)'), 'dateOfBirth'),
    (_p(r'^licen[cs]e type'), 'licenseType'),
    (_p(r'^(issuing authority|licen[cs]e authority)'), 'issuingAuthority'),
    (_p(r'^licen[cs]e issue'), 'licenseIssueDate'),
    (_p(r'^licen[cs]e (expiry|expiration|valid until)'), 'licenseExpiryDate'),

    # Flight date, after every other "... date" column above
    (_p(r'^((flight|dept?|departure) ?date|date)' + _UNIT), 'date'),
    (_p(r'^flight ?(number|no\.?|#)$|^flight$'), 'flightNumber'),

    # Aircraft class flags before the generic aircraft column
    (_p(r'^aircraft lsa$'), 'aircraftLsa'),
    (_p(r'^aircraft single[ -]engine$'), 'aircraftSingleEngine'),
    (_p(r'^aircraft multi[ -]engine$'), 'aircraftMultiEngine'),
    (_p(r'^aircraft turboprop$'), 'aircraftTurboprop'),
    (_p(r'^aircraft turbojet$'), 'aircraftTurbojet'),
    (_p(r'^aircraft helicopter$'), 'aircraftHelicopter'),
    (_p(r'^aircraft glider$'), 'aircraftGlider'),
    (_p(r'^aircraft ultralight non[ -]motori[sz]ed$'), 'aircraftUltralightNonMotorized'),
    (_p(r'^aircraft ultralight motori[sz]ed$'), 'aircraftUltralightMotorized'),

    (_p(r'^(aircraft )?(registration|reg\.?|tail( ?number)?|ident\.?)$'), 'aircraftReg'),
    (_p(r'^(aircraft( make/model| type| model)?|aircraftmodel|equip(ment)?|type)$'), 'aircraft'),

    # Simulator time before simulator device/type
    (_p(r'^simulator time' + _UNIT), 'simulatorTime'),
    (_p(r'^simulator( device)?( ?/ ?type| type)?$'), 'simulatorType'),

    # Route
    (_p(r'^route from' + _UNIT + r'|^(from|origin|org|dep|departure( airfield| airport)?)$'), 'routeFrom'),
    (_p(r'^route to' + _UNIT + r'|^(to|destination|dest|arr|arrival( airfield| airport)?)$'), 'routeTo'),
    (_p(r'^route$'), 'route'),

    # Landings and the explicit night flag before the night time bucket
    (_p(r'^(day landings|landings( \(?day\)?)?)$'), 'landingsDay'),
    (_p(r'^(night landings|landings \(?night\)?)$'), 'landingsNight'),
    (_p(r'^night (flight|flag)$'), 'night'),

    # Time buckets
    (_p(r'^(total( flight)? time|total|duration|hours|block( time)?|blk hrs|flt hrs)' + _UNIT), 'hours'),
    (_p(r'^day( time)?' + _UNIT), 'dayTime'),
    (_p(r'^night( time)?' + _UNIT), 'nightTime'),
    (_p(r'^(ifr|instrument|actual instrument|act inst)( time)?' + _UNIT), 'ifrTime'),
    (_p(r'^approach type$'), 'approachType'),
    (_p(r'^(approach(es)?( count)?|appr)$'), 'approachCount'),
    (_p(r'^(cross[ -]?country|xc)( time)?' + _UNIT), 'crossCountryTime'),
    (_p(r'^solo( time)?' + _UNIT), 'soloTime'),
    (_p(r'^(pic|pilot in command|command)( time)?' + _UNIT), 'picTime'),
    (_p(r'^(sic|co-?pilot|second in command)( time)?' + _UNIT), 'sicTime'),
    (_p(r'^(dual( received)?|instruction)' + _UNIT), 'dualReceived'),
    (_p(r'^instructor( time)?' + _UNIT), 'instructorTime'),

    # Takeoff/landing clock times, used for night estimation
    (_p(r'^(off|takeoff time)' + _UNIT), 'offTime'),
    (_p(r'^(on|landing time)' + _UNIT), 'onTime'),

    (_p(r'^(remarks|notes|comments)$'), 'remarks'),
    (_p(r'^role$'), 'role'),
    (_p(r'^(flight )?rules$'), 'rules'),
)

# 'categories' only appears in already-normalized input
CANONICAL_KEYS = frozenset(key for _, key in HEADER_PATTERNS) | {'categories'}


def clean_header(header):
    """Drop a UTF-8 BOM, lowercase, turn underscores into spaces and collapse whitespace."""
    text = str(header).replace(BOM, '').replace('_', ' ').strip().lower()
    return re.sub(r'\s+', ' ', text)


def slug_header(header):
    """Best-effort key for a column no pattern recognizes."""
    return re.sub(r'[^a-z0-9]+', '', str(header).lower())


def canonical_key(header):
    """
    Canonical field key for one raw header.

    The pattern table runs first and is case-insensitive, so "night" and
    "NIGHT" land on the same key. A camelCase canonical key, or one no pattern
    recognizes, maps to itself; that lets a previously normalized document
    flow through the same code path.
    """
    stripped = str(header).replace(BOM, '').strip()
    cleaned = clean_header(stripped)
    matched = None
    for pattern, key in HEADER_PATTERNS:
        if pattern.search(cleaned):
            matched = key
            break

    if stripped in CANONICAL_KEYS and (matched is None or stripped != stripped.lower()):
        return stripped
    return matched or slug_header(cleaned)


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def canonicalize_row(raw):
    """
    Split one raw row into canonical fields and unrecognized extras.

    When several headers map to the same key the first non-empty value wins.
    """
    fields = {}
    extras = {}
    for header, value in raw.items():
        key = canonical_key(header)
        target = fields if key in CANONICAL_KEYS else extras
        if key in target and (not _is_blank(target[key]) or _is_blank(value)):
            continue
        target[key] = value
    return fields, extras
