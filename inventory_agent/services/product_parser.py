"""Best-effort extraction of product fields from seller free text.

Nothing here is authoritative: the parser proposes fields and the router
decides. A failed extraction (no price, unknown brand) yields defaults, not
an exception.
"""

import re
from dataclasses import dataclass, field

from inventory_agent.services.result import INVALID_VALUE, Result

DEFAULT_CATEGORY = "accessories"
DEFAULT_BRAND = "Generic"
DEFAULT_CONDITION = "new"
DEFAULT_NAME = "New Product"
MAX_NAME_WORDS = 4

CATEGORY_KEYWORDS = {
    "rackets": ("racket", "racquet", "rackets", "astrox", "nanoflare", "arcsaber", "duora", "thruster"),
    "shoes": ("shoe", "shoes", "sneaker", "sneakers", "footwear"),
    "shuttles": ("shuttle", "shuttles", "shuttlecock", "shuttlecocks", "birdie", "feather"),
    "bags": ("bag", "bags", "backpack", "kitbag", "thermobag"),
    "apparel": ("shirt", "tshirt", "t-shirt", "jersey", "shorts", "skirt", "apparel", "track", "hoodie"),
    "accessories": ("grip", "grips", "string", "strings", "towel", "wristband", "socks"),
}

BRANDS = {
    "yonex": "Yonex",
    "li-ning": "Li-Ning",
    "lining": "Li-Ning",
    "li ning": "Li-Ning",
    "victor": "Victor",
    "apacs": "Apacs",
    "carlton": "Carlton",
    "ashaway": "Ashaway",
    "fleet": "Fleet",
    "kawasaki": "Kawasaki",
}

USED_PATTERN = re.compile(r"\b(used|second[\s-]?hand|pre[\s-]?owned|old)\b", re.IGNORECASE)

_CURRENCY = r"(?:rs\.?|pkr|rupees?)"
_PRICE_LABEL = r"(?:price|rate|cost|demand)\s*[:=-]?\s*"

# "15,000" -> "15000" so the comma split leaves amounts whole.
THOUSANDS_SEPARATOR = re.compile(r"(?<=\d),(?=\d{3}\b)")

# Whole-segment price: "15000", "Rs 15000", "price: 15000", "15000 pkr", "15k", "15.5k", "15000/-"
SEGMENT_PRICE_PATTERN = re.compile(
    rf"^\s*(?:{_PRICE_LABEL})?(?:{_CURRENCY}\s*)?(\d+(?:\.\d+)?)\s*(k)?\s*(?:/-|{_CURRENCY})?\s*$",
    re.IGNORECASE,
)
PRICE_LABEL_ONLY = re.compile(rf"^\s*{_PRICE_LABEL}$", re.IGNORECASE)

# Price anywhere in free text, most specific first.
PRICE_PATTERNS = (
    re.compile(rf"\b{_CURRENCY}\s*(\d+(?:\.\d+)?)\s*(k)?\b", re.IGNORECASE),
    re.compile(rf"\b(\d+(?:\.\d+)?)\s*(k)?\s*{_CURRENCY}(?!\w)", re.IGNORECASE),
    re.compile(r"\b(\d+(?:\.\d+)?)\s*(k)\b", re.IGNORECASE),
    re.compile(r"\b(\d{3,})\b()"),
)

STOCK_PATTERN = re.compile(
    r"\b(?:stock|qty|quantity)\s*[:=]?\s*(\d+)\b|\b(\d+)\s*(?:pcs|pieces|units)\b",
    re.IGNORECASE,
)


@dataclass
class ProposedProduct:
    name: str
    price: int = 0
    description: str = ""
    category: str = DEFAULT_CATEGORY
    brand: str = DEFAULT_BRAND
    condition: str = DEFAULT_CONDITION
    stock: int = 1
    specifications: dict = field(default_factory=dict)

    @property
    def price_missing(self) -> bool:
        return self.price == 0


def _to_amount(number: str, thousands: str | None) -> int:
    amount = float(number)
    if thousands:
        amount *= 1000
    return int(round(amount))


def parse_segment_price(segment: str) -> int | None:
    match = SEGMENT_PRICE_PATTERN.match(segment or "")
    if not match:
        return None
    return _to_amount(match.group(1), match.group(2))


def extract_price(text: str) -> tuple[int, str | None]:
    """Return (price, matched_text). Price is 0 when nothing looks like one."""
    for pattern in PRICE_PATTERNS:
        match = pattern.search(text or "")
        if match:
            return _to_amount(match.group(1), match.group(2) or None), match.group(0)
    return 0, None


def guess_category(text: str) -> str:
    tokens = set(re.findall(r"[\w-]+", (text or "").casefold()))
    for category, keywords in CATEGORY_KEYWORDS.items():
        if tokens.intersection(keywords):
            return category
    return DEFAULT_CATEGORY


def guess_brand(text: str) -> str:
    lowered = (text or "").casefold()
    for keyword, brand in BRANDS.items():
        if re.search(rf"(?<![\w-]){re.escape(keyword)}(?![\w-])", lowered):
            return brand
    return DEFAULT_BRAND


def guess_condition(text: str) -> str:
    return "used" if USED_PATTERN.search(text or "") else DEFAULT_CONDITION


def guess_stock(text: str) -> int:
    match = STOCK_PATTERN.search(text or "")
    if not match:
        return 1
    return int(match.group(1) or match.group(2))


def parse_product_details(text: str) -> ProposedProduct:
    """Parse "name, price, description..." or loose text into proposed fields.

    Comma form: the first segment is the name, the first segment after it that
    reads as a price is the price, every other segment is description. When no
    segment is a bare price, the first price found inside a segment is used.
    Loose form: the price is found by pattern and the first few remaining words
    become the name.
    """
    text = THOUSANDS_SEPARATOR.sub("", (text or "").strip())
    segments = [segment.strip() for segment in text.split(",")]
    segments = [segment for segment in segments if segment]

    if len(segments) >= 2:
        name = segments[0]
        rest = segments[1:]
        price = 0
        price_index = None
        for index, segment in enumerate(rest):
            segment_price = parse_segment_price(segment)
            if segment_price is not None:
                price, price_index = segment_price, index
                break

        if price_index is None:
            for index, segment in enumerate(rest):
                found, matched = extract_price(segment)
                if matched:
                    price, price_index = found, index
                    leftover = segment.replace(matched, " ", 1).strip()
                    if leftover and not PRICE_LABEL_ONLY.match(leftover):
                        rest[index] = " ".join(leftover.split())
                        price_index = None
                    break

        description = ", ".join(segment for index, segment in enumerate(rest) if index != price_index)
    else:
        price, matched = extract_price(text)
        remainder = text.replace(matched, " ", 1) if matched else text
        words = remainder.split()
        name = " ".join(words[:MAX_NAME_WORDS])
        description = text

    return ProposedProduct(
        name=name or DEFAULT_NAME,
        price=price,
        description=description or text,
        category=guess_category(text),
        brand=guess_brand(text),
        condition=guess_condition(text),
        stock=guess_stock(text),
    )


def coerce_update_value(field_name: str, raw: str) -> Result:
    raw = (raw or "").strip()

    if field_name == "price":
        digits = re.sub(r"[^\d]", "", raw)
        if not digits:
            return Result.failure("Invalid price. Please enter numbers only.", INVALID_VALUE)
        return Result.success(int(digits))

    if field_name == "stock":
        if not re.fullmatch(r"\d+", raw):
            return Result.failure("Invalid stock. Please enter a whole number (0 or more).", INVALID_VALUE)
        return Result.success(int(raw))

    if field_name == "name":
        if not raw:
            return Result.failure("The name can't be empty. Please type a product name.", INVALID_VALUE)
        return Result.success(raw)

    return Result.failure(f"Unknown field: {field_name}", INVALID_VALUE)
