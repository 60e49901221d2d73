# parish_analytics/reports/constants.py

# Service types the dashboards know about, in display order.
DIVINE_SERVICE = "divine_service"
SERVICE_TYPES = ["divine_service", "midweek_lent", "midweek_advent", "festival"]
OTHER_SERVICE = "other"

SERVICE_TYPE_LABELS = {
    "divine_service": "Divine Service",
    "midweek_lent":   "Midweek Lent",
    "midweek_advent": "Midweek Advent",
    "festival":       "Festival",
    "other":          "Other",
}

def service_type_label(service_type: str) -> str:
    # custom types are shown as stored
    return SERVICE_TYPE_LABELS.get(service_type, service_type)

# Attendees whose member row carries this code are counted as guests.
GUEST_MEMBERSHIP_CODE = "GUEST"

# Age at or above this is an adult (children counts, baptism/confirmation splits).
ADULT_AGE = 18

# (label, min_age, max_age) inclusive; None = open ended.
AGE_GROUPS = [
    ("under 15", None, 14),
    ("15-18",    15,   18),
    ("19-34",    19,   34),
    ("35-49",    35,   49),
    ("50-64",    50,   64),
    ("65+",      65,   None),
]
UNKNOWN = "Unknown"

HOUSEHOLD_TYPES = ["family", "single", "other"]

PARTICIPATION_STATUSES = ["active", "deceased", "homebound", "military", "inactive", "school"]

SEXES = ["male", "female", "other"]

# Giving categories in display order. Flat "amount" rows are the general
# fund, which is the Current category.
DEFAULT_CATEGORIES = ["Current", "Mission", "Memorials", "Debt", "School", "Miscellaneous"]
FLAT_AMOUNT_CATEGORY = "Current"

# Column name -> category, for the column-per-category giving table.
CATEGORY_COLUMNS = {
    "current_amount":       "Current",
    "mission_amount":       "Mission",
    "memorials_amount":     "Memorials",
    "debt_amount":          "Debt",
    "school_amount":        "School",
    "miscellaneous_amount": "Miscellaneous",
    # names used before the categories were expanded
    "general_fund_amount":   "Current",
    "district_synod_amount": "Mission",
}

# ─── CSV headers ────────────────────────────────────────────────────────────────
GIVING_EXPORT_ID_COLUMNS = ["Household Name", "Envelope Number", "Member Name", "Date Given"]
ATTENDANCE_REPORT_COLUMNS = [
    "Service Date",
    "Service Type",
    "Total Attendance",
    "Total Members",
    "Total Guests",
    "Total Communion",
]
GIVING_BY_SERVICE_ID_COLUMNS = ["Service Date", "Service Type", "Service Time"]
METRIC_COLUMNS = ["Metric", "Value"]

NOT_AVAILABLE = "N/A"
TOTAL_LABEL = "TOTAL"
GRAND_TOTAL_LABEL = "GRAND TOTAL"
OTHER_SERVICE_DISPLAY = "Other (not at a service)"

REPORT_FORMATS = ("csv", "json")
