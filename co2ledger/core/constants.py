"""
Emission dataset constants: year bounds, units, provenance labels and the
country-validity exclusion lists.
"""

# Observations outside this range are dropped during ingestion
MIN_YEAR = 1900
MAX_YEAR = 2025

# OWID reports CO2 in million tonnes, records store kilotons
MEGATONNES_TO_KILOTONS = 1000.0

# Fallback for the latest-year statistic when neither store nor snapshot knows
DEFAULT_LATEST_YEAR = 2023

# Provenance labels
LIVE_DATA_SOURCE = "Our World in Data API (Live)"
IMPORT_DATA_SOURCE = "Our World in Data CO₂ Database"
UPLOAD_DATA_SOURCE_PREFIX = "Contributor upload - "

# Synthetic uploader identities for remote-derived records
LIVE_UPLOADER = "API_IMPORT"
IMPORT_UPLOADER = "DB_IMPORT"

# Regions, economic groups and statistical aggregates
EXCLUDED_REGIONS = frozenset({
    "World", "High income", "Low income", "Middle income",
    "Upper middle income", "Lower middle income",
    "Europe & Central Asia", "East Asia & Pacific",
    "Latin America & Caribbean", "Sub-Saharan Africa",
    "North America", "South Asia", "Arab World",
    "European Union", "OECD", "Asia", "Europe", "Africa",
    "International transport", "Global", "Antarctica",
    "Europe (excl. EU-27)", "Europe (excl. EU-28)",
    "Asia (excl. China & India)", "Non-OECD (IIASA)",
    "OECD (IIASA)", "Bunkers", "Statistical differences",
    "International aviation", "International shipping",
    "G20", "G7",
})

# Dependent territories and special administrative regions
EXCLUDED_TERRITORIES = frozenset({
    "Anguilla", "Aruba", "Bermuda", "British Virgin Islands",
    "Bonaire Sint Eustatius and Saba", "Christmas Island",
    "Cook Islands", "Curacao", "Faroe Islands", "French Polynesia",
    "Greenland", "Hong Kong", "Macao", "Montserrat",
    "New Caledonia", "Niue", "Saint Helena", "Saint Pierre and Miquelon",
    "Turks and Caicos Islands", "Wallis and Futuna",
})

EXCLUDED_NAME_FRAGMENTS = ("income", "bunker", "excl", "transport")
