"""
Geographic region resolution for MSAs.
Regions follow the Bureau of Economic Analysis (BEA) groupings.
"""
import math
import re

# ============================================================================
# State -> Region
# ============================================================================

STATE_TO_REGION = {
    # New England
    'CT': 'New England', 'ME': 'New England', 'MA': 'New England',
    'NH': 'New England', 'RI': 'New England', 'VT': 'New England',
    # Mideast
    'DE': 'Mideast', 'DC': 'Mideast', 'MD': 'Mideast',
    'NJ': 'Mideast', 'NY': 'Mideast', 'PA': 'Mideast',
    # Great Lakes
    'IL': 'Great Lakes', 'IN': 'Great Lakes', 'MI': 'Great Lakes',
    'OH': 'Great Lakes', 'WI': 'Great Lakes',
    # Plains
    'IA': 'Plains', 'KS': 'Plains', 'MN': 'Plains', 'MO': 'Plains',
    'NE': 'Plains', 'ND': 'Plains', 'SD': 'Plains',
    # Southeast
    'AL': 'Southeast', 'AR': 'Southeast', 'FL': 'Southeast', 'GA': 'Southeast',
    'KY': 'Southeast', 'LA': 'Southeast', 'MS': 'Southeast', 'NC': 'Southeast',
    'SC': 'Southeast', 'TN': 'Southeast', 'VA': 'Southeast', 'WV': 'Southeast',
    # Southwest
    'AZ': 'Southwest', 'NM': 'Southwest', 'OK': 'Southwest', 'TX': 'Southwest',
    # Rocky Mountain
    'CO': 'Rocky Mountain', 'ID': 'Rocky Mountain', 'MT': 'Rocky Mountain',
    'UT': 'Rocky Mountain', 'WY': 'Rocky Mountain',
    # Far West
    'AK': 'Far West', 'CA': 'Far West', 'HI': 'Far West',
    'NV': 'Far West', 'OR': 'Far West', 'WA': 'Far West',
}

REGIONS = [
    "New England",
    "Mideast",
    "Great Lakes",
    "Plains",
    "Southeast",
    "Southwest",
    "Rocky Mountain",
    "Far West",
]

OTHER_REGION = "Other"

# Leading run of 2-letter state codes: "PA-NJ-DE-MD-Philadelphia-..." -> PA, NJ, DE, MD
_STATE_PREFIX = re.compile(r"^([A-Z]{2}(?:-[A-Z]{2})*)-")


def extract_state_codes(market_id: str | None) -> list[str]:
    """Extract the state codes prefixed to an MSA name ("NC-SC-Charlotte" -> ["NC", "SC"])."""
    if not market_id:
        return []
    match = _STATE_PREFIX.match(market_id)
    if not match:
        return []
    return match.group(1).split("-")


def region_from_state_codes(market_id: str | None) -> str:
    """Region of the MSA's primary (first) state, or "Other"."""
    codes = extract_state_codes(market_id)
    if not codes:
        return OTHER_REGION
    return STATE_TO_REGION.get(codes[0], OTHER_REGION)


def regions_for_market(market_id: str | None) -> list[str]:
    """All distinct regions an MSA spans, in state order."""
    regions: list[str] = []
    for code in extract_state_codes(market_id):
        region = STATE_TO_REGION.get(code)
        if region and region not in regions:
            regions.append(region)
    return regions


def is_cross_regional(market_id: str | None) -> bool:
    return len(regions_for_market(market_id)) > 1


def region_from_coordinates(lat: float | None, lon: float | None) -> str:
    """
    Approximate region from a latitude/longitude pair.
    Used only when the MSA name carries no usable state codes.
    """
    if lat is None or lon is None or math.isnan(lat) or math.isnan(lon):
        return OTHER_REGION

    # Alaska and Hawaii
    if lat > 50 or (19 <= lat <= 22 and -160 <= lon <= -154):
        return "Far West"
    if lon < -114 and lat > 32:
        return "Far West"
    # Arizona and New Mexico
    if -115 <= lon < -103 and 31 <= lat < 37:
        return "Southwest"
    if -114 <= lon < -102 and lat > 31:
        return "Rocky Mountain"
    if -107 <= lon < -88 and 25.5 <= lat < 37:
        return "Southwest"
    if -104 <= lon < -89 and 37 <= lat < 49:
        return "Plains"
    if -92 <= lon < -80 and 37 <= lat <= 48:
        return "Great Lakes"
    if -92 <= lon < -81 and 30 <= lat < 37:
        return "Southeast"
    # South Atlantic
    if -83 <= lon <= -75 and 24 <= lat <= 40:
        return "Southeast"
    if -73.5 <= lon <= -66.5 and 41 <= lat <= 48:
        return "New England"
    if -80 <= lon <= -73.5 and 39 <= lat <= 45:
        return "Mideast"
    return OTHER_REGION


def region_for_market(
    market_id: str | None,
    lat: float | None = None,
    lon: float | None = None,
) -> str:
    """
    Resolve an MSA's region: state codes in the name first, coordinates as fallback.
    """
    if market_id:
        region = region_from_state_codes(market_id)
        if region != OTHER_REGION:
            return region
    return region_from_coordinates(lat, lon)
