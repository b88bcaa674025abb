"""Rule-based transaction categorization.

Categorization is a pure, total function: every transaction maps to exactly
one label from :data:`expense_analysis.categories.CATEGORIES`, with
``"Other"`` as the guaranteed fallback.

Rules live in the ordered tuple :data:`RULES` and the first rule that returns
a category wins. The order matters:

1. a manual override always wins;
2. crypto exchanges are matched on booking text before the sector table,
   because exchanges often report a misleading generic sector;
3. the exact sector table is the most trustworthy signal when present;
4. food-delivery and travel-booking brands are matched on booking text before
   generic sector substrings (``UBER EATS`` must not end up as transport);
5. generic sector substrings, entertainment before the broad shop/retail
   bucket;
6. booking-text keywords as a last resort;
7. placeholder sectors (QR payments, ``A``, blank) map to Other explicitly.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .categories import OTHER, is_category, resolve_category
from .models import Transaction

DINING = "Restaurants & Dining"
GROCERIES = "Groceries"
TRANSPORTATION = "Transportation"
TRAVEL = "Travel & Accommodation"
SHOPPING = "Shopping"
HEALTH = "Health & Beauty"
DIGITAL = "Digital Services"
FINANCIAL = "Insurance & Financial"
ENTERTAINMENT = "Entertainment"
FUEL = "Fuel"
FITNESS = "Fitness & Sports"
TELECOM = "Utilities & Telecom"
PROFESSIONAL = "Professional Services"
GOVERNMENT = "Government & Taxes"
CRYPTO = "Crypto & Investments"

# Exact (case-sensitive, trimmed) sector label -> category
SECTOR_CATEGORY_MAP: Mapping[str, str] = {
    # Dining
    "Restaurants": DINING,
    "Fast-Food Restaurants": DINING,
    "Fast Food Restaurant": DINING,
    "Bakeries": DINING,
    "Delivery": DINING,
    "Caterers": DINING,
    # Travel
    "Hotels": TRAVEL,
    "Hotel Indigo": TRAVEL,
    "Travel agencies": TRAVEL,
    "Surcharge abroad": TRAVEL,
    "Airlines": TRAVEL,
    "Cathay": TRAVEL,
    "Swiss International Air Lines": TRAVEL,
    "United": TRAVEL,
    "Rent-a-car": TRAVEL,
    "Car Rental Company": TRAVEL,
    "Duty free shop": TRAVEL,
    # Groceries
    "Grocery stores": GROCERIES,
    "Supermarkets": GROCERIES,
    # Transportation
    "Commuter transportation": TRANSPORTATION,
    "Public transport": TRANSPORTATION,
    "Taxi services": TRANSPORTATION,
    "Taxicabs": TRANSPORTATION,
    "Parking": TRANSPORTATION,
    "UBER": TRANSPORTATION,
    "Passenger railways": TRANSPORTATION,
    "Gasoline service stations": FUEL,
    # Shopping
    "Clothing store": SHOPPING,
    "Clothing - sports": SHOPPING,
    "Cosmetic stores": SHOPPING,
    "Department stores": SHOPPING,
    "Retail stores": SHOPPING,
    "Retail business": SHOPPING,
    "Catalog Merchant": SHOPPING,
    "Bike": SHOPPING,
    "Books": SHOPPING,
    "Book stores": SHOPPING,
    "Electronics Stores": SHOPPING,
    "Leather goods": SHOPPING,
    "Shoe stores": SHOPPING,
    "Florists": SHOPPING,
    "Precious metals, Metals, Watches and Jewelry (B2B)": SHOPPING,
    # Health & Beauty
    "Pharmacies": HEALTH,
    "Barber or beauty shops": HEALTH,
    "Healthcare": HEALTH,
    "Medical services": HEALTH,
    "Doctors and Physicians": HEALTH,
    "Optician": HEALTH,
    "Wellness": HEALTH,
    # Digital
    "Digital goods": DIGITAL,
    "Subscriptions": DIGITAL,
    "Online services": DIGITAL,
    "Software": DIGITAL,
    "Computer software stores": DIGITAL,
    "Telegraph services": DIGITAL,
    "Data processing services": DIGITAL,
    # Insurance & Financial
    "Direct marketing insurance services": FINANCIAL,
    "Insurance": FINANCIAL,
    "Financial services": FINANCIAL,
    "Banking fees": FINANCIAL,
    "Bank interest": FINANCIAL,
    # Entertainment
    "Cinema": ENTERTAINMENT,
    # Professional / Government
    "Repair Shops": PROFESSIONAL,
    "Government Services": GOVERNMENT,
    "Advertising services": PROFESSIONAL,
    "Business services": PROFESSIONAL,
    "Professional Services - Not Elsewhere Classified": PROFESSIONAL,
}

CRYPTO_EXCHANGES: tuple[str, ...] = ("COINBASE", "KRAKEN", "BINANCE")

FALLBACK_RULE = "fallback"


@dataclass(frozen=True, slots=True)
class RuleInput:
    """Pre-normalized views of a transaction shared by every rule."""

    text: str  # booking text, lower-cased
    upper_text: str
    sector: str  # trimmed, original case
    upper_sector: str
    override: str | None

    @classmethod
    def from_transaction(cls, tx: Transaction, override: str | None = None) -> RuleInput:
        sector = tx.sector.strip()
        return cls(
            text=tx.booking_text.lower(),
            upper_text=tx.booking_text.upper(),
            sector=sector,
            upper_sector=sector.upper(),
            override=override if override is not None else tx.manual_category,
        )


@dataclass(frozen=True, slots=True)
class Rule:
    name: str
    apply: Callable[[RuleInput], str | None]

    def __call__(self, fields: RuleInput) -> str | None:
        return self.apply(fields)


# ---------------------------------------------------------------------------
# Rule builders
# ---------------------------------------------------------------------------


def _text_contains(category: str, *needles: str) -> Callable[[RuleInput], str | None]:
    lowered = tuple(n.lower() for n in needles)
    return lambda f: category if any(n in f.text for n in lowered) else None


def _sector_contains(category: str, *needles: str) -> Callable[[RuleInput], str | None]:
    uppered = tuple(n.upper() for n in needles)
    return lambda f: category if any(n in f.upper_sector for n in uppered) else None


def _manual_override(f: RuleInput) -> str | None:
    # Overrides outside the vocabulary are ignored so the result stays closed
    if not f.override:
        return None
    if is_category(f.override):
        return f.override
    return resolve_category(f.override)


def _crypto_exchange(f: RuleInput) -> str | None:
    return CRYPTO if any(x in f.upper_text for x in CRYPTO_EXCHANGES) else None


def _sector_table(f: RuleInput) -> str | None:
    return SECTOR_CATEGORY_MAP.get(f.sector)


def _placeholder_sector(f: RuleInput) -> str | None:
    if "QR PAYMENT" in f.upper_sector or f.sector in {"A", ""}:
        return OTHER
    return None


RULES: tuple[Rule, ...] = (
    Rule("manual_override", _manual_override),
    Rule("crypto_exchange", _crypto_exchange),
    Rule("sector_table", _sector_table),
    Rule("food_delivery_text", _text_contains(DINING, "uber eats", "ubereats")),
    Rule(
        "food_delivery_brand_text",
        _text_contains(DINING, "deliveroo", "just eat", "doordash", "eat.ch"),
    ),
    Rule(
        "travel_booking_text",
        _text_contains(TRAVEL, "booking.com", "airbnb", "hotels.com", "expedia"),
    ),
    Rule("sector_abroad_surcharge", _sector_contains(TRAVEL, "SURCHARGE ABROAD")),
    Rule("sector_app_store", _sector_contains(DIGITAL, "COM/BILL", "APPLE", "ITUNES")),
    Rule("sector_dining", _sector_contains(DINING, "RESTAURANT", "FOOD")),
    Rule("sector_groceries", _sector_contains(GROCERIES, "GROCERY", "SUPERMARKET")),
    Rule("sector_transport", _sector_contains(TRANSPORTATION, "TRANSPORT", "TAXI")),
    Rule("sector_travel", _sector_contains(TRAVEL, "HOTEL", "AIRLINE")),
    Rule(
        "sector_entertainment",
        _sector_contains(
            ENTERTAINMENT,
            "ENTERTAINMENT",
            "CINEMA",
            "THEATER",
            "CONCERT",
            "STREAMING",
            "GAMING",
            "MOVIE",
        ),
    ),
    Rule("sector_shopping", _sector_contains(SHOPPING, "SHOP", "RETAIL", "STORE")),
    Rule("sector_health", _sector_contains(HEALTH, "HEALTH", "MEDICAL", "PHARMA")),
    Rule("sector_insurance", _sector_contains(FINANCIAL, "INSURANCE")),
    Rule("telecom_text", _text_contains(TELECOM, "swisscom", "sunrise", "salt")),
    Rule(
        "entertainment_text",
        _text_contains(
            ENTERTAINMENT,
            "cinema",
            "movie",
            "theatre",
            "theater",
            "concert",
            "festival",
            "event",
            "ticket",
            "show",
            "game store",
            "steam",
            "playstation",
            "xbox",
            "nintendo",
        ),
    ),
    Rule(
        "streaming_text",
        _text_contains(
            ENTERTAINMENT,
            "spotify",
            "netflix",
            "youtube premium",
            "youtube music",
            "disney+",
            "hbo",
            "prime video",
            "apple music",
            "soundcloud",
        ),
    ),
    Rule("fitness_text", _text_contains(FITNESS, "gym", "fitness")),
    Rule("placeholder_sector", _placeholder_sector),
)


def explain_category(tx: Transaction, override: str | None = None) -> tuple[str, str]:
    """Return ``(category, rule_name)`` for ``tx``.

    ``rule_name`` is ``"fallback"`` when no rule matched.
    """

    fields = RuleInput.from_transaction(tx, override)
    for rule in RULES:
        category = rule(fields)
        if category:
            return category, rule.name
    return OTHER, FALLBACK_RULE


def categorize_transaction(tx: Transaction, override: str | None = None) -> str:
    """Return the category label for ``tx``.

    Parameters
    ----------
    tx:
        The transaction to classify. ``tx.manual_category`` acts as an
        override when ``override`` is not given.
    override:
        Explicit category correction (e.g. from the override store). Labels
        outside the vocabulary are ignored.
    """

    return explain_category(tx, override)[0]


__all__ = [
    "SECTOR_CATEGORY_MAP",
    "CRYPTO_EXCHANGES",
    "FALLBACK_RULE",
    "RuleInput",
    "Rule",
    "RULES",
    "explain_category",
    "categorize_transaction",
]
