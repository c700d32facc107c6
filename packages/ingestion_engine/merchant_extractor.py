"""
Merchant name extraction and resolution.

Raw statement text ("CARD PAYMENT TO TESCO STORES 1234") is reduced to a
merchant fragment, cleaned, and resolved against the known-merchant table
to a canonical display name ("Tesco").
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from rapidfuzz.distance import Levenshtein

from packages.categorization.constants import KNOWN_MERCHANTS, MerchantMetadata

# Leading boilerplate banks put in front of the merchant
BOILERPLATE_PREFIXES = (
    "payment to",
    "payment from",
    "direct debit to",
    "standing order to",
    "card payment",
    "contactless",
    "chip and pin",
    "online purchase",
    "pos",
    "purchase at",
)

DESCRIPTION_PATTERNS = [
    # "CARD PAYMENT TO TESCO STORES 1234"
    re.compile(r"(?:card payment to|payment to)\s+([^,\d]+)", re.IGNORECASE),
    # "DIRECT DEBIT TO NETFLIX"
    re.compile(r"(?:direct debit to|dd to)\s+([^,\d]+)", re.IGNORECASE),
    # "TFL TRAVEL CH"
    re.compile(r"^([a-z\s]+?)(?:\s+ch|\s+\d)", re.IGNORECASE),
    re.compile(r"^([a-z\s]+)", re.IGNORECASE),
]


@dataclass(frozen=True)
class MerchantResolution:
    """Outcome of resolving one raw merchant string."""

    cleaned_key: str
    canonical_name: str
    metadata: Optional[MerchantMetadata] = None

    @property
    def is_known(self) -> bool:
        return self.metadata is not None


def clean_merchant_name(name: str) -> str:
    """Normalize a merchant string to lowercase words without boilerplate."""
    if not name:
        return ""

    cleaned = name.lower().strip()

    # 1. URL scheme and domain suffix
    cleaned = re.sub(r"^(www\.|https?://)", "", cleaned)
    cleaned = re.sub(r"\.(com|co\.uk|org|net)$", "", cleaned)

    # 2. Legal entity suffix
    cleaned = re.sub(r"\s+(ltd|limited|inc|llc|plc|gmbh)\.?$", "", cleaned)

    # 3. " - LOCATION" suffix and trailing store numbers
    cleaned = re.sub(r"\s*-\s*[a-z\s]+$", "", cleaned)
    cleaned = re.sub(r"\s+\d+$", "", cleaned)

    # 4. Punctuation to spaces
    cleaned = re.sub(r"[^a-z0-9\s]", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    # 5. Boilerplate prefixes, whole words only
    for prefix in BOILERPLATE_PREFIXES:
        if cleaned == prefix:
            cleaned = ""
        elif cleaned.startswith(prefix + " "):
            cleaned = cleaned[len(prefix) :].strip()

    return cleaned


def matching_key(cleaned: str) -> str:
    return re.sub(r"\s+", "", cleaned)


def _alias_key(alias: str) -> str:
    return re.sub(r"[^a-z0-9]", "", alias.lower())


def title_case(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split())


class MerchantResolver:
    """Resolves raw merchant text against an ordered known-merchant table."""

    def __init__(self, known_merchants: Mapping[str, MerchantMetadata] = KNOWN_MERCHANTS):
        self.known_merchants = known_merchants

    def lookup(self, cleaned: str) -> Optional[MerchantMetadata]:
        """Find table metadata for an already-cleaned merchant string."""
        if not cleaned:
            return None

        key = matching_key(cleaned)

        # 1. Exact key
        if key in self.known_merchants:
            return self.known_merchants[key]

        # 2. Alias containment, either direction
        for metadata in self.known_merchants.values():
            for alias in metadata.aliases:
                alias_key = _alias_key(alias)
                if alias_key and (alias_key in key or key in alias_key):
                    return metadata

        # 3. Table key containment, either direction
        for table_key, metadata in self.known_merchants.items():
            if table_key in cleaned or cleaned in table_key:
                return metadata

        return None

    def resolve(self, raw: str) -> MerchantResolution:
        cleaned = clean_merchant_name(raw)
        metadata = self.lookup(cleaned)
        canonical = metadata.canonical_name if metadata else title_case(cleaned)
        return MerchantResolution(
            cleaned_key=matching_key(cleaned),
            canonical_name=canonical,
            metadata=metadata,
        )

    def canonical_name(self, raw: str) -> str:
        return self.resolve(raw).canonical_name


_default_resolver = MerchantResolver()


def resolve_merchant(raw: str) -> MerchantResolution:
    """Resolve with the shared resolver over KNOWN_MERCHANTS."""
    return _default_resolver.resolve(raw)


def extract_merchant_from_description(description: str) -> str:
    """Pull the merchant fragment out of a bank description line."""
    if not description:
        return ""

    for pattern in DESCRIPTION_PATTERNS:
        match = pattern.search(description)
        if match and match.group(1).strip():
            return match.group(1).strip()

    return description


def looks_like_person_name(name: str) -> bool:
    """Heuristic: one word of 3-12 chars, or 2-3 short words without digits."""
    words = clean_merchant_name(name).split(" ")

    if len(words) == 1:
        return 3 <= len(words[0]) <= 12

    if 2 <= len(words) <= 3:
        return all(2 <= len(w) <= 15 and not re.search(r"\d", w) for w in words)

    return False


def calculate_similarity(first: str, second: str) -> float:
    """Levenshtein similarity in [0, 1] between two cleaned merchant names."""
    a = clean_merchant_name(first)
    b = clean_merchant_name(second)

    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    return Levenshtein.normalized_similarity(a, b)


def strip_sensitive_info(text: str) -> str:
    """Mask account numbers, sort codes and card tails."""
    text = re.sub(r"\b\d{8,12}\b", "****", text)
    text = re.sub(r"\b\d{2}-\d{2}-\d{2}\b", "**-**-**", text)
    text = re.sub(r"\*+\d{4}", "****", text)
    return text


def group_by_merchant(transactions: Iterable) -> Dict[str, List]:
    """Group transactions by canonical merchant, preserving first-seen order."""
    groups: Dict[str, List] = {}
    for txn in transactions:
        groups.setdefault(txn.merchant_canonical, []).append(txn)
    return groups
