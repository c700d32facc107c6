"""Category and merchant reference data for transaction classification.

This module defines the closed category set, each category's subcategories
and fallback keywords, and the curated known-merchant table used by the
merchant resolver. All tables are read-only and shared process-wide.

Table order is significant: the merchant resolver walks KNOWN_MERCHANTS in
declaration order and the first match wins.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple


class Category(str, Enum):
    """Standard transaction categories for classification."""

    FOOD = "Food"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    HOUSING = "Housing"
    UTILITIES = "Utilities"
    HEALTH = "Health"
    TRAVEL = "Travel"
    ENTERTAINMENT = "Entertainment"
    SUBSCRIPTIONS = "Subscriptions"
    CASH = "Cash"
    FEES_INTEREST = "Fees/Interest"
    TRANSFERS = "Transfers"
    INCOME = "Income"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class CategoryConfig:
    """Static configuration for one category."""

    subcategories: Tuple[str, ...]
    keywords: Tuple[str, ...] = ()
    examples: Tuple[str, ...] = ()

    @property
    def default_subcategory(self) -> Optional[str]:
        return self.subcategories[0] if self.subcategories else None


@dataclass(frozen=True)
class MerchantMetadata:
    """Known merchant entry: display name, default category and aliases."""

    canonical_name: str
    category: Category
    subcategory: Optional[str] = None
    aliases: Tuple[str, ...] = field(default_factory=tuple)
    confidence: float = 0.95


CATEGORY_CONFIG: Mapping[Category, CategoryConfig] = MappingProxyType(
    {
        Category.FOOD: CategoryConfig(
            subcategories=("Groceries", "Eating out", "Coffee", "Alcohol"),
            keywords=("restaurant", "cafe", "supermarket", "grocery", "food", "dining"),
            examples=("Tesco", "Sainsbury's", "McDonald's", "Starbucks", "Pizza Hut"),
        ),
        Category.TRANSPORT: CategoryConfig(
            subcategories=("Fuel", "Rideshare", "Public transport", "Parking", "Taxi"),
            keywords=("uber", "lyft", "taxi", "petrol", "gas", "station", "parking", "tfl"),
            examples=("Shell", "BP", "Uber", "Transport for London", "National Rail"),
        ),
        Category.SHOPPING: CategoryConfig(
            subcategories=("Clothing", "Electronics", "Home", "Personal care", "General"),
            keywords=("amazon", "shop", "store", "retail", "clothing"),
            examples=("Amazon", "H&M", "Zara", "Apple Store", "Boots"),
        ),
        Category.HOUSING: CategoryConfig(
            subcategories=("Rent", "Mortgage", "Maintenance"),
            keywords=("rent", "mortgage", "landlord", "estate", "property"),
            examples=("Monthly rent payment", "Mortgage payment"),
        ),
        Category.UTILITIES: CategoryConfig(
            subcategories=("Electricity", "Water", "Gas", "Internet", "Mobile", "Shared bills"),
            keywords=("electric", "water", "gas", "broadband", "internet", "mobile", "phone"),
            examples=("British Gas", "Thames Water", "EE", "Virgin Media"),
        ),
        Category.HEALTH: CategoryConfig(
            subcategories=("Medical", "Pharmacy", "Fitness", "Insurance"),
            keywords=("pharmacy", "chemist", "doctor", "hospital", "gym", "fitness"),
            examples=("Boots Pharmacy", "PureGym", "Bupa", "NHS"),
        ),
        Category.TRAVEL: CategoryConfig(
            subcategories=("Flights", "Accommodation", "Activities"),
            keywords=("airline", "hotel", "booking", "airbnb", "flight", "airport"),
            examples=("British Airways", "Booking.com", "Airbnb", "Ryanair"),
        ),
        Category.ENTERTAINMENT: CategoryConfig(
            subcategories=("Movies", "Games", "Events", "Hobbies"),
            keywords=("cinema", "theater", "game", "concert", "event", "ticket"),
            examples=("Odeon", "Vue Cinema", "Ticketmaster", "Steam"),
        ),
        Category.SUBSCRIPTIONS: CategoryConfig(
            subcategories=("Streaming", "Software", "Membership", "News"),
            keywords=("subscription", "monthly", "membership"),
            examples=("Netflix", "Spotify", "Disney+", "Apple Music", "Amazon Prime"),
        ),
        Category.CASH: CategoryConfig(
            subcategories=("ATM Withdrawal",),
            keywords=("atm", "cash", "withdrawal", "dispense"),
            examples=("ATM", "Cash withdrawal"),
        ),
        Category.FEES_INTEREST: CategoryConfig(
            subcategories=("Bank fees", "Interest charges", "Overdraft", "Foreign exchange"),
            keywords=("fee", "charge", "interest", "overdraft", "penalty"),
            examples=("Bank charges", "Interest payment", "Overdraft fee"),
        ),
        Category.TRANSFERS: CategoryConfig(
            subcategories=("Friends", "Savings", "Investment", "Other accounts"),
            keywords=("transfer", "payment to", "from"),
            examples=("Transfer to John Smith", "Savings account transfer"),
        ),
        Category.INCOME: CategoryConfig(
            subcategories=("Salary", "Refund", "Reimbursement", "Other"),
            keywords=("salary", "wage", "refund", "reimbursement", "payment received"),
            examples=("Monthly salary", "Tax refund", "Expense reimbursement"),
        ),
        Category.UNKNOWN: CategoryConfig(subcategories=("Uncategorized",)),
    }
)

SUBCATEGORIES: Mapping[Category, Tuple[str, ...]] = MappingProxyType(
    {category: config.subcategories for category, config in CATEGORY_CONFIG.items()}
)


def is_valid_subcategory(category: Category, subcategory: Optional[str]) -> bool:
    """True if subcategory is unset or belongs to the category's set."""
    if subcategory is None:
        return True
    return subcategory in SUBCATEGORIES.get(Category(category), ())


def _merchant(name, category, subcategory, aliases=(), confidence=0.95) -> MerchantMetadata:
    return MerchantMetadata(name, category, subcategory, tuple(aliases), confidence)


# Keyed by normalized merchant key (lowercase, no whitespace).
KNOWN_MERCHANTS: Mapping[str, MerchantMetadata] = MappingProxyType(
    {
        # Food - Groceries
        "tesco": _merchant("Tesco", Category.FOOD, "Groceries", ["tesco stores", "tesco express", "tesco metro"]),
        "sainsburys": _merchant("Sainsbury's", Category.FOOD, "Groceries", ["sainsbury", "sainsburys local"]),
        "asda": _merchant("Asda", Category.FOOD, "Groceries"),
        "aldi": _merchant("Aldi", Category.FOOD, "Groceries"),
        "lidl": _merchant("Lidl", Category.FOOD, "Groceries"),
        "waitrose": _merchant("Waitrose", Category.FOOD, "Groceries"),
        "morrisons": _merchant("Morrisons", Category.FOOD, "Groceries"),
        # Food - Eating out
        "mcdonalds": _merchant("McDonald's", Category.FOOD, "Eating out", ["mcdonald", "mcdonalds"]),
        "kfc": _merchant("KFC", Category.FOOD, "Eating out"),
        "subway": _merchant("Subway", Category.FOOD, "Eating out", confidence=0.9),
        "nandos": _merchant("Nando's", Category.FOOD, "Eating out", ["nandos"]),
        "pizzahut": _merchant("Pizza Hut", Category.FOOD, "Eating out", ["pizza hut"]),
        "dominos": _merchant("Domino's", Category.FOOD, "Eating out", ["dominos pizza"]),
        "starbucks": _merchant("Starbucks", Category.FOOD, "Coffee"),
        "costa": _merchant("Costa Coffee", Category.FOOD, "Coffee", ["costa coffee"]),
        "pret": _merchant("Pret A Manger", Category.FOOD, "Eating out", ["pret a manger"]),
        # Transport
        "shell": _merchant("Shell", Category.TRANSPORT, "Fuel"),
        "bp": _merchant("BP", Category.TRANSPORT, "Fuel"),
        "esso": _merchant("Esso", Category.TRANSPORT, "Fuel"),
        "uber": _merchant("Uber", Category.TRANSPORT, "Rideshare", ["uber trip", "uber bv"]),
        "ubereats": _merchant("Uber Eats", Category.FOOD, "Eating out", ["uber eats", "uber* eats"]),
        "deliveroo": _merchant("Deliveroo", Category.FOOD, "Eating out"),
        "justeat": _merchant("Just Eat", Category.FOOD, "Eating out", ["just eat", "justeat"]),
        "greggs": _merchant("Greggs", Category.FOOD, "Eating out"),
        "boots": _merchant("Boots", Category.HEALTH, "Pharmacy", ["boots pharmacy"], confidence=0.9),
        "puregym": _merchant("PureGym", Category.HEALTH, "Fitness", ["pure gym"]),
        "thegym": _merchant("The Gym", Category.HEALTH, "Fitness", ["the gym group"]),
        "tfl": _merchant("Transport for London", Category.TRANSPORT, "Public transport", ["transport for london", "tfl travel"]),
        # Shopping
        "amazon": _merchant("Amazon", Category.SHOPPING, "General", ["amazon.co.uk", "amazon prime", "amzn"], confidence=0.9),
        # Subscriptions
        "netflix": _merchant("Netflix", Category.SUBSCRIPTIONS, "Streaming"),
        "spotify": _merchant("Spotify", Category.SUBSCRIPTIONS, "Streaming"),
        "disneyplus": _merchant("Disney+", Category.SUBSCRIPTIONS, "Streaming", ["disney plus", "disney+"]),
        "appletv": _merchant("Apple TV+", Category.SUBSCRIPTIONS, "Streaming", ["apple tv", "apple tv+"]),
        "amazonprime": _merchant("Amazon Prime", Category.SUBSCRIPTIONS, "Membership", ["prime video", "amazon prime video"]),
        "appleicloud": _merchant(
            "Apple iCloud",
            Category.SUBSCRIPTIONS,
            "Software",
            ["apple com bil", "apple com bill", "applecom bil", "applecom bill", "apple bil", "apple bill", "icloud storage"],
        ),
        "uberone": _merchant("Uber One", Category.SUBSCRIPTIONS, "Membership", ["ubr pending uber", "ubr pending", "pending uber", "uber one"]),
    }
)

# Merchant category codes with an unambiguous category.
MCC_CATEGORY_MAP: Mapping[str, Category] = MappingProxyType(
    {
        "5411": Category.FOOD,  # Grocery stores
        "5422": Category.FOOD,  # Meat provisioners
        "5441": Category.FOOD,  # Candy stores
        "5812": Category.FOOD,  # Restaurants
        "5814": Category.FOOD,  # Fast food
        "4121": Category.TRANSPORT,  # Taxis
        "5541": Category.TRANSPORT,  # Service stations
        "5542": Category.TRANSPORT,  # Fuel dispensers
        "7832": Category.ENTERTAINMENT,  # Cinemas
        "7922": Category.ENTERTAINMENT,  # Theatres
    }
)
