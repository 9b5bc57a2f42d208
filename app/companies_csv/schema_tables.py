"""
Companies House Schema Tables

Fixed configuration shared by the interactive cleaner and the storage-triggered
ingestion: header mapping, column kinds, sentinel values and the special
column rules used by the value normalizer.
"""

from enum import Enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Tuple


class ColumnKind(str, Enum):
    """Semantic kind of a canonical column."""
    DATE = "date"
    INTEGER = "integer"
    TEXT = "text"


# =============================================================================
# HEADER MAPPING
# =============================================================================

_HEADER_PAIRS: Tuple[Tuple[str, str], ...] = (
    ("CompanyName", "company_name"),
    ("CompanyNumber", "company_number"),
    ("RegAddress.CareOf", "reg_address_care_of"),
    ("RegAddress.POBox", "reg_address_po_box"),
    ("RegAddress.AddressLine1", "reg_address_address_line1"),
    ("RegAddress.AddressLine2", "reg_address_address_line2"),
    ("RegAddress.PostTown", "reg_address_post_town"),
    ("RegAddress.County", "reg_address_county"),
    ("RegAddress.Country", "reg_address_country"),
    ("RegAddress.PostCode", "reg_address_post_code"),
    ("CompanyCategory", "company_category"),
    ("CompanyStatus", "company_status"),
    ("CountryOfOrigin", "country_of_origin"),
    ("DissolutionDate", "dissolution_date"),
    ("IncorporationDate", "incorporation_date"),
    ("Accounts.AccountRefDay", "accounts_account_ref_day"),
    ("Accounts.AccountRefMonth", "accounts_account_ref_month"),
    ("Accounts.NextDueDate", "accounts_next_due_date"),
    ("Accounts.LastMadeUpDate", "accounts_last_made_up_date"),
    ("Accounts.AccountCategory", "accounts_account_category"),
    ("Returns.NextDueDate", "returns_next_due_date"),
    ("Returns.LastMadeUpDate", "returns_last_made_up_date"),
    ("Mortgages.NumMortCharges", "mortgages_num_mort_charges"),
    ("Mortgages.NumMortOutstanding", "mortgages_num_mort_outstanding"),
    ("Mortgages.NumMortPartSatisfied", "mortgages_num_mort_part_satisfied"),
    ("Mortgages.NumMortSatisfied", "mortgages_num_mort_satisfied"),
    ("SICCode.SicText_1", "sic_code_sic_text_1"),
    ("SICCode.SicText_2", "sic_code_sic_text_2"),
    ("SICCode.SicText_3", "sic_code_sic_text_3"),
    ("SICCode.SicText_4", "sic_code_sic_text_4"),
    ("LimitedPartnerships.NumGenPartners", "limited_partnerships_num_gen_partners"),
    ("LimitedPartnerships.NumLimPartners", "limited_partnerships_num_lim_partners"),
    ("URI", "uri"),
) + tuple(
    pair
    for n in range(1, 11)
    for pair in (
        (f"PreviousName_{n}.CONDATE", f"previous_name_{n}_condate"),
        (f"PreviousName_{n}.CompanyName", f"previous_name_{n}_company_name"),
    )
) + (
    ("ConfStmtNextDueDate", "conf_stmt_next_due_date"),
    ("ConfStmtLastMadeUpDate", "conf_stmt_last_made_up_date"),
)

HEADER_MAPPING: Mapping[str, str] = MappingProxyType(dict(_HEADER_PAIRS))

# Destination column order of the companies_house_data table
CANONICAL_COLUMNS: Tuple[str, ...] = tuple(target for _, target in _HEADER_PAIRS)

PRIMARY_KEY_COLUMN = "company_number"
STATUS_COLUMN = "company_status"
EXCLUDED_STATUSES: FrozenSet[str] = frozenset({"liquidation"})


# =============================================================================
# HEADER FILTERING & DETECTION
# =============================================================================

PLACEHOLDER_HEADERS: FrozenSet[str] = frozenset({"_1"})
UNNAMED_HEADER_PREFIX = "Unnamed:"

# A line is the header row when it contains all of these cells
HEADER_DETECTION_SAMPLE: Tuple[str, ...] = ("CompanyName", "CompanyNumber", "RegAddress.PostCode")


# =============================================================================
# COLUMN KINDS
# =============================================================================

_COLUMN_KINDS: Dict[str, ColumnKind] = {name: ColumnKind.TEXT for name in CANONICAL_COLUMNS}
_COLUMN_KINDS.update({
    "incorporation_date": ColumnKind.DATE,
    "accounts_next_due_date": ColumnKind.DATE,
    "accounts_last_made_up_date": ColumnKind.DATE,
    "returns_next_due_date": ColumnKind.DATE,
    "returns_last_made_up_date": ColumnKind.DATE,
    "conf_stmt_next_due_date": ColumnKind.DATE,
    "conf_stmt_last_made_up_date": ColumnKind.DATE,
    "accounts_account_ref_month": ColumnKind.INTEGER,
})

COLUMN_KINDS: Mapping[str, ColumnKind] = MappingProxyType(_COLUMN_KINDS)


# Upper-cased text values seen in date columns that mean "no date"
NON_DATE_SENTINELS: FrozenSet[str] = frozenset({
    "NO ACCOUNTS FILED",
    "FULL",
    "UNITED KINGDOM",
    "DORMANT",
    "TOTAL EXEMPTION FULL",
    "GROUP",
    "ACCOUNTS TYPE NOT AVAILABLE",
    "SMALL",
})


# =============================================================================
# SPECIAL COLUMN RULES
# =============================================================================

# Text columns holding dates that keep their original value when unparseable
LENIENT_DATE_COLUMNS: FrozenSet[str] = frozenset({"dissolution_date"})
LENIENT_DATE_SUFFIX = "_condate"
LENIENT_DATE_SENTINELS: FrozenSet[str] = frozenset({"NO ACCOUNTS FILED"})

# Legacy exports put a full DD/MM/YYYY date in the accounting reference
# columns; the value is the date part at this index.
EMBEDDED_DATE_PARTS: Mapping[str, int] = MappingProxyType({
    "accounts_account_ref_day": 0,
    "accounts_account_ref_month": 1,
})

COUNT_COLUMN_PREFIXES: Tuple[str, ...] = ("mortgages_num_", "limited_partnerships_num_")


def column_kind(column: str) -> ColumnKind:
    """Kind of a canonical column; unknown columns are text."""
    return COLUMN_KINDS.get(column, ColumnKind.TEXT)


def is_lenient_date_column(column: str) -> bool:
    return column in LENIENT_DATE_COLUMNS or LENIENT_DATE_SUFFIX in column


def is_count_column(column: str) -> bool:
    return column.startswith(COUNT_COLUMN_PREFIXES)
