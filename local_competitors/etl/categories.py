"""Category families: coarse business groupings used to decide who competes with whom.

Two kinds of table live here:

* label/type -> ``CategoryFamily`` lookups, used to pick the keyword vocabulary
  for a business;
* competitor type groups, which expand a provider primary type (``cafe``) into
  every provider type that counts as the same line of business
  (``restaurant``, ``bakery``, ``bar``...).
"""

import re
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


class CategoryFamily(str, Enum):
    DENTAL_ORTHO = "dental_ortho"
    DENTAL_GENERAL = "dental_general"
    RESTAURANT = "restaurant"
    CAFE = "cafe"
    PLUMBER = "plumber"
    LAW_FIRM = "law_firm"
    REAL_ESTATE = "real_estate"
    GYM = "gym"
    SALON = "salon"
    RETAIL = "retail"
    AUTOMOTIVE = "automotive"
    HEALTHCARE = "healthcare"
    HOSPITALITY = "hospitality"
    PROFESSIONAL_SERVICES = "professional_services"
    GENERIC_LOCAL_BUSINESS = "generic_local_business"


F = CategoryFamily

_LABEL_TO_FAMILY: Mapping[str, CategoryFamily] = {
    "Dentist": F.DENTAL_GENERAL,
    "Orthodontist": F.DENTAL_ORTHO,
    "Restaurant": F.RESTAURANT,
    "Bar": F.RESTAURANT,
    "Nightclub": F.RESTAURANT,
    "Cafe": F.CAFE,
    "Bakery": F.CAFE,
    "Law Firm": F.LAW_FIRM,
    "Accounting Firm": F.PROFESSIONAL_SERVICES,
    "Financial Planner": F.PROFESSIONAL_SERVICES,
    "Insurance Agency": F.PROFESSIONAL_SERVICES,
    "Marketing Agency": F.PROFESSIONAL_SERVICES,
    "Employment Agency": F.PROFESSIONAL_SERVICES,
    "Travel Agency": F.PROFESSIONAL_SERVICES,
    "Real Estate Agency": F.REAL_ESTATE,
    # Trades share one family.
    "Plumber": F.PLUMBER,
    "Electrician": F.PLUMBER,
    "Contractor": F.PLUMBER,
    "Roofing Contractor": F.PLUMBER,
    "Locksmith": F.PLUMBER,
    "Painter": F.PLUMBER,
    "Moving Company": F.PLUMBER,
    "Pest Control": F.PLUMBER,
    "Gym": F.GYM,
    "Beauty Salon": F.SALON,
    "Hair Salon": F.SALON,
    "Spa": F.SALON,
    "Store": F.RETAIL,
    "Clothing Store": F.RETAIL,
    "Shoe Store": F.RETAIL,
    "Jewelry Store": F.RETAIL,
    "Furniture Store": F.RETAIL,
    "Home Goods Store": F.RETAIL,
    "Hardware Store": F.RETAIL,
    "Electronics Store": F.RETAIL,
    "Pet Store": F.RETAIL,
    "Book Store": F.RETAIL,
    "Bicycle Store": F.RETAIL,
    "Convenience Store": F.RETAIL,
    "Department Store": F.RETAIL,
    "Liquor Store": F.RETAIL,
    "Sporting Goods Store": F.RETAIL,
    "Gift Shop": F.RETAIL,
    "Florist": F.RETAIL,
    "Supermarket": F.RETAIL,
    "Shopping Mall": F.RETAIL,
    "Car Dealership": F.AUTOMOTIVE,
    "Auto Repair": F.AUTOMOTIVE,
    "Car Wash": F.AUTOMOTIVE,
    "Car Rental": F.AUTOMOTIVE,
    "Gas Station": F.AUTOMOTIVE,
    "Medical Practice": F.HEALTHCARE,
    "Hospital": F.HEALTHCARE,
    "Pharmacy": F.HEALTHCARE,
    "Physiotherapist": F.HEALTHCARE,
    "Veterinary Clinic": F.HEALTHCARE,
    "Chiropractor": F.HEALTHCARE,
    "Optician": F.HEALTHCARE,
    "Hotel": F.HOSPITALITY,
    "Bed & Breakfast": F.HOSPITALITY,
    "Campground": F.HOSPITALITY,
}

_TYPE_TO_FAMILY: Mapping[str, CategoryFamily] = {
    "dentist": F.DENTAL_GENERAL,
    "orthodontist": F.DENTAL_ORTHO,
    "restaurant": F.RESTAURANT,
    "bar": F.RESTAURANT,
    "night_club": F.RESTAURANT,
    "meal_delivery": F.RESTAURANT,
    "meal_takeaway": F.RESTAURANT,
    "cafe": F.CAFE,
    "bakery": F.CAFE,
    "lawyer": F.LAW_FIRM,
    "accounting": F.PROFESSIONAL_SERVICES,
    "insurance_agency": F.PROFESSIONAL_SERVICES,
    "travel_agency": F.PROFESSIONAL_SERVICES,
    "real_estate_agency": F.REAL_ESTATE,
    "plumber": F.PLUMBER,
    "electrician": F.PLUMBER,
    "general_contractor": F.PLUMBER,
    "roofing_contractor": F.PLUMBER,
    "locksmith": F.PLUMBER,
    "painter": F.PLUMBER,
    "moving_company": F.PLUMBER,
    "gym": F.GYM,
    "beauty_salon": F.SALON,
    "hair_care": F.SALON,
    "spa": F.SALON,
    "store": F.RETAIL,
    "clothing_store": F.RETAIL,
    "shoe_store": F.RETAIL,
    "jewelry_store": F.RETAIL,
    "furniture_store": F.RETAIL,
    "home_goods_store": F.RETAIL,
    "hardware_store": F.RETAIL,
    "electronics_store": F.RETAIL,
    "pet_store": F.RETAIL,
    "book_store": F.RETAIL,
    "bicycle_store": F.RETAIL,
    "convenience_store": F.RETAIL,
    "department_store": F.RETAIL,
    "liquor_store": F.RETAIL,
    "sporting_goods_store": F.RETAIL,
    "gift_shop": F.RETAIL,
    "florist": F.RETAIL,
    "supermarket": F.RETAIL,
    "grocery_or_supermarket": F.RETAIL,
    "shopping_mall": F.RETAIL,
    "car_dealer": F.AUTOMOTIVE,
    "car_repair": F.AUTOMOTIVE,
    "car_wash": F.AUTOMOTIVE,
    "car_rental": F.AUTOMOTIVE,
    "gas_station": F.AUTOMOTIVE,
    "doctor": F.HEALTHCARE,
    "hospital": F.HEALTHCARE,
    "pharmacy": F.HEALTHCARE,
    "physiotherapist": F.HEALTHCARE,
    "veterinary_care": F.HEALTHCARE,
    "chiropractor": F.HEALTHCARE,
    "lodging": F.HOSPITALITY,
    "hotel": F.HOSPITALITY,
}

_KEYWORDS_BY_FAMILY: Mapping[CategoryFamily, Tuple[str, ...]] = {
    F.DENTAL_ORTHO: (
        "orthodontist",
        "orthodontics",
        "braces",
        "invisalign",
        "clear aligners",
        "aligners",
        "teeth straightening",
        "retainers",
        "orthodontic treatment",
        "metal braces",
        "ceramic braces",
        "lingual braces",
    ),
    F.DENTAL_GENERAL: (
        "dentist",
        "dental",
        "teeth cleaning",
        "dental checkup",
        "dental exam",
        "fillings",
        "root canal",
        "dental implants",
        "oral hygiene",
    ),
    F.RESTAURANT: ("restaurant", "dining", "food", "cuisine", "menu", "dinner", "lunch", "brunch", "breakfast"),
    F.CAFE: ("cafe", "coffee", "espresso", "latte", "cappuccino", "pastries", "bakery", "breakfast", "brunch"),
    F.PLUMBER: (
        "plumber",
        "plumbing",
        "pipe repair",
        "leak repair",
        "drain cleaning",
        "water heater",
        "bathroom installation",
        "kitchen plumbing",
    ),
    F.LAW_FIRM: (
        "lawyer",
        "attorney",
        "legal services",
        "legal advice",
        "law firm",
        "litigation",
        "legal representation",
    ),
    F.REAL_ESTATE: (
        "real estate",
        "property",
        "real estate agent",
        "home sales",
        "property listings",
        "real estate agency",
    ),
    F.GYM: ("gym", "fitness", "workout", "personal training", "fitness center", "exercise", "training"),
    F.SALON: (
        "salon",
        "hair salon",
        "beauty salon",
        "haircut",
        "styling",
        "hair color",
        "manicure",
        "pedicure",
        "facial",
    ),
    F.RETAIL: ("store", "shop", "shopping"),
    F.AUTOMOTIVE: ("auto", "car", "vehicle", "automotive", "mechanic"),
    F.HEALTHCARE: ("doctor", "medical", "health", "clinic", "healthcare"),
    F.HOSPITALITY: ("hotel", "accommodation", "lodging", "stay", "guest house"),
    F.PROFESSIONAL_SERVICES: ("consulting", "advisory", "professional"),
    F.GENERIC_LOCAL_BUSINESS: ("business", "local business"),
}

BLOCKED_TERMS = frozenset(
    {
        "consultation",
        "services",
        "solutions",
        "service",
        "solution",
        "best services",
        "best solution",
        "best consultation",
        "contact",
        "about",
        "home",
        "welcome",
        "page",
        "site",
        "website",
    }
)

# Provider types that compete with each other. A type missing from every group
# only competes with itself.
_COMPETITOR_GROUPS: Tuple[Tuple[str, ...], ...] = (
    ("restaurant", "cafe", "bakery", "bar", "meal_takeaway", "meal_delivery", "food"),
    ("movie_theater",),
    ("gym",),
    ("hair_care", "beauty_salon", "spa"),
    ("car_repair", "car_dealer", "car_wash"),
    ("dentist", "doctor", "hospital", "pharmacy"),
    ("clothing_store", "electronics_store", "store"),
)

_TYPE_TO_GROUP: Dict[str, Tuple[str, ...]] = {
    place_type: group for group in _COMPETITOR_GROUPS for place_type in group
}

# Business labels that map directly onto a single provider type.
_LABEL_TO_TYPE: Mapping[str, str] = {
    "Restaurant": "restaurant",
    "Bar": "bar",
    "Cafe": "cafe",
    "Bakery": "bakery",
    "Hotel": "lodging",
    "Nightclub": "night_club",
    "Dentist": "dentist",
    "Law Firm": "lawyer",
    "Gym": "gym",
    "Spa": "spa",
    "Beauty Salon": "beauty_salon",
    "Hair Salon": "hair_care",
}

_WHITESPACE = re.compile(r"\s+")


def resolve_family(category_label: Optional[str], provider_types: Optional[Iterable[str]] = None) -> CategoryFamily:
    """Label first, then the first recognized provider type, then the generic family."""
    if category_label and category_label in _LABEL_TO_FAMILY:
        return _LABEL_TO_FAMILY[category_label]
    for place_type in provider_types or []:
        family = _TYPE_TO_FAMILY.get(place_type)
        if family is not None:
            return family
    return CategoryFamily.GENERIC_LOCAL_BUSINESS


def allowed_keywords(family: CategoryFamily) -> Tuple[str, ...]:
    return _KEYWORDS_BY_FAMILY.get(family, _KEYWORDS_BY_FAMILY[CategoryFamily.GENERIC_LOCAL_BUSINESS])


def is_blocked(term: str) -> bool:
    lowered = term.lower().strip()
    if lowered in BLOCKED_TERMS:
        return True
    return any(word in BLOCKED_TERMS for word in _WHITESPACE.split(lowered) if word)


def expanded_types(primary_type: Optional[str]) -> Tuple[str, ...]:
    if not primary_type:
        return ()
    return _TYPE_TO_GROUP.get(primary_type, (primary_type,))


def matches_family(candidate_types: Sequence[str], target_primary_type: Optional[str]) -> bool:
    if not target_primary_type:
        return True
    allowed = expanded_types(target_primary_type)
    return any(place_type in allowed for place_type in candidate_types or [])


def category_label_to_type(category_label: Optional[str]) -> Optional[str]:
    if not category_label:
        return None
    return _LABEL_TO_TYPE.get(category_label)


def filter_keywords_by_family(keywords: Iterable[str], family: CategoryFamily) -> Tuple[List[str], List[str]]:
    """Split keywords into those usable for ``family`` and rejected ones (with the reason)."""
    vocabulary = [term.lower() for term in allowed_keywords(family)]
    allowed: List[str] = []
    rejected: List[str] = []
    for keyword in keywords:
        lowered = keyword.lower().strip()
        if not lowered:
            continue
        if is_blocked(lowered):
            rejected.append(f"{keyword} (blocked term)")
            continue
        if any(lowered == term or term in lowered or lowered in term for term in vocabulary):
            allowed.append(keyword)
        else:
            rejected.append(f"{keyword} (not in family allowed list)")
    return allowed, rejected
