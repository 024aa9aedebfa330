"""
Shared money parsing utilities with multi-locale support.

Handles various number formats:
- US: $1,234.56
- European: €1.234,56 or 1 234,56 €
- Swiss: CHF 1'234.56
- Prefixed dollars: CA$, A$, US$, NZ$, HK$, S$
- Negative: -$12.34 or ($12.34) when allowed
- Qualifiers: "from $99", "$99/night", "$45 per person"
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional
import logging
import re

from pricelens.models.extraction import Money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrencyInfo:
    """Formatting conventions for a supported currency."""
    code: str
    symbol: str
    name: str
    decimal_separator: str = '.'
    thousands_separator: str = ','
    minor_units: int = 2
    symbol_alt: tuple = ()


def _c(code, symbol, name, dec='.', thou=',', minor=2, alt=()):
    return CurrencyInfo(code, symbol, name, dec, thou, minor, alt)


CURRENCIES: Dict[str, CurrencyInfo] = {info.code: info for info in [
    _c('USD', '$', 'US Dollar', alt=('US$',)),
    _c('EUR', '€', 'Euro', ',', '.'),
    _c('GBP', '£', 'British Pound'),
    _c('JPY', '¥', 'Japanese Yen', minor=0, alt=('円',)),
    _c('CNY', '¥', 'Chinese Yuan', alt=('RMB', '元')),
    _c('AED', 'د.إ', 'UAE Dirham', alt=('Dhs', 'DH')),
    _c('CAD', 'CA$', 'Canadian Dollar', alt=('C$',)),
    _c('AUD', 'A$', 'Australian Dollar', alt=('AU$',)),
    _c('INR', '₹', 'Indian Rupee', alt=('Rs', 'Rs.')),
    _c('CHF', 'CHF', 'Swiss Franc', thou="'", alt=('Fr', 'SFr')),
    _c('SGD', 'S$', 'Singapore Dollar', alt=('SG$',)),
    _c('HKD', 'HK$', 'Hong Kong Dollar'),
    _c('KRW', '₩', 'South Korean Won', minor=0, alt=('원',)),
    _c('MXN', 'MX$', 'Mexican Peso'),
    _c('BRL', 'R$', 'Brazilian Real', ',', '.'),
    _c('NZD', 'NZ$', 'New Zealand Dollar'),
    _c('SEK', 'kr', 'Swedish Krona', ',', ' '),
    _c('NOK', 'kr', 'Norwegian Krone', ',', ' '),
    _c('DKK', 'kr', 'Danish Krone', ',', '.'),
    _c('PLN', 'zł', 'Polish Zloty', ',', ' '),
    _c('THB', '฿', 'Thai Baht'),
    _c('MYR', 'RM', 'Malaysian Ringgit'),
    _c('IDR', 'Rp', 'Indonesian Rupiah', ',', '.', minor=0),
    _c('PHP', '₱', 'Philippine Peso'),
    _c('VND', '₫', 'Vietnamese Dong', ',', '.', minor=0),
    _c('ZAR', 'R', 'South African Rand'),
    _c('TRY', '₺', 'Turkish Lira', ',', '.', alt=('TL',)),
    _c('RUB', '₽', 'Russian Ruble', ',', ' ', alt=('руб',)),
    _c('SAR', 'ر.س', 'Saudi Riyal', alt=('SR',)),
    _c('QAR', 'ر.ق', 'Qatari Riyal', alt=('QR',)),
    _c('BHD', 'ب.د', 'Bahraini Dinar', minor=3, alt=('BD',)),
    _c('KWD', 'د.ك', 'Kuwaiti Dinar', minor=3, alt=('KD',)),
    _c('OMR', 'ر.ع', 'Omani Rial', minor=3),
    _c('JOD', 'د.أ', 'Jordanian Dinar', minor=3, alt=('JD',)),
    _c('ILS', '₪', 'Israeli Shekel', alt=('NIS',)),
    _c('EGP', 'E£', 'Egyptian Pound', alt=('ج.م',)),
    _c('TWD', 'NT$', 'Taiwan Dollar', minor=0),
    _c('CZK', 'Kč', 'Czech Koruna', ',', ' '),
    _c('HUF', 'Ft', 'Hungarian Forint', ',', ' ', minor=0),
    _c('CLP', 'CL$', 'Chilean Peso', ',', '.', minor=0),
    _c('COP', 'CO$', 'Colombian Peso', ',', '.', minor=0),
    _c('ARS', 'AR$', 'Argentine Peso', ',', '.'),
    _c('PEN', 'S/', 'Peruvian Sol'),
]}

# Letter prefixes in front of "$" (e.g. "CA$120")
PREFIXED_DOLLARS = {
    'CA': 'CAD', 'C': 'CAD',
    'AU': 'AUD', 'A': 'AUD',
    'US': 'USD',
    'NZ': 'NZD',
    'HK': 'HKD',
    'SG': 'SGD', 'S': 'SGD',
    'MX': 'MXN',
    'NT': 'TWD',
    'R': 'BRL',
    'CL': 'CLP',
    'CO': 'COP',
    'AR': 'ARS',
}

# Unambiguous single-currency symbols, checked before ¥ and $
UNAMBIGUOUS_SYMBOLS = [
    ('€', 'EUR'),
    ('£', 'GBP'),
    ('₹', 'INR'),
    ('د.إ', 'AED'),
]

SYMBOL_CHARS = '$€£¥₹₽₩₪฿₫₱₺'
ARABIC_SYMBOLS = ['ر.س', 'ر.ق', 'ب.د', 'د.ك', 'ر.ع', 'د.إ', 'ج.م', 'د.أ']

_NOT_LETTER_BEFORE = r'(?<![^\W\d_])'
_NOT_LETTER_AFTER = r'(?![^\W\d_])'

# ISO code as a standalone token; digits may touch it ("AED5401")
ISO_TOKEN = re.compile(_NOT_LETTER_BEFORE + r'([A-Z]{3})' + _NOT_LETTER_AFTER)
PREFIXED_DOLLAR = re.compile(r'([A-Z]{1,2})\$')

# Digit run; whitespace only counts as a thousands group ("1 234,56")
NUMBER_RUN = re.compile(r"-?\d(?:[\d,.'’]|\s(?=\d{3}(?!\d)))*\d|-?\d")

CANONICAL_USD = re.compile(r'^\$\d{1,3}(?:,\d{3})*(?:\.\d{2})?$')
AMBIGUOUS_SEPARATOR = re.compile(r'^\d{1,3}[.,]\d{3}$')

FROM_PATTERNS = [
    re.compile(r'\bfrom\b', re.IGNORECASE),
    re.compile(r'\bstarting\s+at\b', re.IGNORECASE),
    re.compile(r'\bstarts?\s+at\b', re.IGNORECASE),
    re.compile(r'\bas\s+low\s+as\b', re.IGNORECASE),
    re.compile(r'\bbase\s+(?:fare|price|rate)\b', re.IGNORECASE),
]

PER_NIGHT_PATTERNS = [
    re.compile(r'/\s*night', re.IGNORECASE),
    re.compile(r'per\s*night', re.IGNORECASE),
    re.compile(r'\bnight(?:ly)?\b.*\$', re.IGNORECASE),
    re.compile(r'\bnightly\s*rate', re.IGNORECASE),
    re.compile(r'\bper\s*n(?:ight|ite)\b', re.IGNORECASE),
]

PER_PERSON_PATTERNS = [
    re.compile(r'/\s*person', re.IGNORECASE),
    re.compile(r'per\s*person', re.IGNORECASE),
    re.compile(r'/\s*pax', re.IGNORECASE),
    re.compile(r'\bper\s*(?:person|pax|guest|adult|traveler)\b', re.IGNORECASE),
    re.compile(r'\beach\b', re.IGNORECASE),
]

PRICE_SUBSTRING = re.compile(r'(?:[$€£¥₹]|\b[A-Z]{3}\s)\s*\d[\d,]*')

_ISO_ALTERNATION = '|'.join(CURRENCIES)
CURRENCY_INDICATOR = re.compile(
    '[' + re.escape(SYMBOL_CHARS) + ']'
    + '|' + _NOT_LETTER_BEFORE + '(?:' + _ISO_ALTERNATION + ')' + _NOT_LETTER_AFTER
)
TYPICAL_NUMERAL = re.compile(r'\d{1,3}(?:[,.\s]\d{3})+(?:[.,]\d{1,2})?|\d+[.,]\d{1,2}\b')

PRICE_PREFIXED = re.compile(
    r"(?:" + _NOT_LETTER_BEFORE + r"[A-Z]{3}\s?|[A-Z]{1,2}\$|[" + re.escape(SYMBOL_CHARS) + r"])"
    r"\s?\d(?:[\d,.'’]*\d)?"
)
PRICE_SUFFIXED = re.compile(
    r"\d(?:[\d,.'’]|\s(?=\d{3}(?!\d)))*\d?\s?"
    r"(?:(?:" + _ISO_ALTERNATION + r")" + _NOT_LETTER_AFTER
    + r"|[€£₹₽₩₪฿₫₱₺]|zł|kr|Ft|Kč)"
)


@dataclass
class ParseMoneyOptions:
    """Options for parse_money."""
    default_currency: str = 'USD'
    expected_currency: Optional[str] = None
    min_amount: Optional[Decimal] = Decimal('0')
    max_amount: Optional[Decimal] = Decimal('10000000')
    allow_zero: bool = False
    allow_negative: bool = False


@dataclass
class ParseMoneyResult:
    """Outcome of a single money parse."""
    money: Optional[Money] = None
    confidence: int = 0
    warnings: List[str] = field(default_factory=list)
    is_from_price: bool = False
    is_per_night: bool = False
    is_per_person: bool = False


def normalize_text(text: str) -> str:
    """Normalize non-breaking spaces, zero-width characters and whitespace."""
    text = text.replace("\u00a0", " ").replace("\u202f", " ")
    text = re.sub("[\u200b-\u200d\ufeff]", "", text)
    return re.sub(r'\s+', ' ', text).strip()


def detect_from_price(text: str) -> bool:
    """Detect "from" / "starting at" qualifiers."""
    return any(p.search(text) for p in FROM_PATTERNS)


def detect_per_night(text: str) -> bool:
    """Detect per-night qualifiers."""
    return any(p.search(text) for p in PER_NIGHT_PATTERNS)


def detect_per_person(text: str) -> bool:
    """Detect per-person qualifiers."""
    return any(p.search(text) for p in PER_PERSON_PATTERNS)


def _build_symbol_lookup() -> Dict[str, str]:
    # First registered currency wins for shared symbols ("kr" -> SEK).
    # Bare single letters ("R") are too noisy to detect from text.
    lookup: Dict[str, str] = {}
    for code, info in CURRENCIES.items():
        for symbol in (info.symbol,) + tuple(info.symbol_alt):
            key = symbol.lower()
            if len(key) == 1 and key.isalpha():
                continue
            lookup.setdefault(key, code)
    return lookup


SYMBOL_TO_CURRENCY = _build_symbol_lookup()


def _contains_symbol(lower_text: str, symbol: str) -> bool:
    if any(ch.isalpha() for ch in symbol) and symbol.isascii():
        pattern = _NOT_LETTER_BEFORE + re.escape(symbol) + _NOT_LETTER_AFTER
        return re.search(pattern, lower_text) is not None
    return symbol in lower_text


def detect_currency(text: str) -> Optional[str]:
    """
    Detect currency from text in priority order.

    ISO codes, then prefixed dollars, then unambiguous symbols,
    then ¥ (JPY) and $ (USD), then the rest of the symbol table.

    Examples:
        >>> detect_currency("AED 3,200")
        'AED'
        >>> detect_currency("CA$1,234.56")
        'CAD'
        >>> detect_currency("$99")
        'USD'
    """
    for code in ISO_TOKEN.findall(text):
        if code in CURRENCIES:
            return code

    for prefix in PREFIXED_DOLLAR.findall(text.upper()):
        if prefix in PREFIXED_DOLLARS:
            return PREFIXED_DOLLARS[prefix]

    for symbol, code in UNAMBIGUOUS_SYMBOLS:
        if symbol in text:
            return code

    if '¥' in text:
        return 'JPY'

    if '$' in text:
        return 'USD'

    lower = text.lower()
    for symbol, code in SYMBOL_TO_CURRENCY.items():
        if symbol in ('$', '€', '£', '₹', '¥', 'د.إ'):
            continue
        if _contains_symbol(lower, symbol):
            return code

    return None


def _strip_currency_indicators(text: str) -> str:
    cleaned = text
    for symbol in ARABIC_SYMBOLS:
        cleaned = cleaned.replace(symbol, ' ')
    cleaned = re.sub(_NOT_LETTER_BEFORE + r'[A-Za-z]{3}' + _NOT_LETTER_AFTER, ' ', cleaned)
    cleaned = re.sub('[' + re.escape(SYMBOL_CHARS) + ']', '', cleaned)
    cleaned = re.sub(r'\b(?:zł|kr|Ft|Kč|Rs\.?|RM|Rp)', ' ', cleaned, flags=re.IGNORECASE)
    return re.sub(r'\s+', ' ', cleaned).strip()


def extract_amount(text: str, currency_hint: Optional[CurrencyInfo] = None) -> Optional[Decimal]:
    """
    Extract the numeric amount from text with currency indicators removed.

    The longest digit-and-separator run is taken as the numeral.
    """
    cleaned = _strip_currency_indicators(text)
    matches = NUMBER_RUN.findall(cleaned)
    if not matches:
        return None

    best = max(matches, key=len)
    return parse_numeric_string(best, currency_hint)


def parse_numeric_string(num_str: str, currency_hint: Optional[CurrencyInfo] = None) -> Optional[Decimal]:
    """
    Parse a numeral with smart decimal/thousands separator detection.

    Rules:
    - No separators: integer
    - Both "." and ",": whichever occurs last is the decimal separator
    - Same separator repeated: thousands separators
    - Single separator + 1-2 digits: decimal
    - Single separator + exactly 3 digits: ambiguous, resolved by the
      currency hint's decimal separator; thousands when there is no hint
    - Apostrophes (Swiss) are always thousands separators

    Examples:
        >>> parse_numeric_string("1.234,56")
        Decimal('1234.56')
        >>> parse_numeric_string("1,234")
        Decimal('1234')
    """
    if not num_str:
        return None

    clean = re.sub(r'\s', '', num_str)
    clean = clean.replace("'", '').replace('’', '')

    negative = clean.startswith('-')
    if negative:
        clean = clean[1:]

    dots = clean.count('.')
    commas = clean.count(',')
    decimal_sep: Optional[str] = None

    if dots and commas:
        decimal_sep = '.' if clean.rfind('.') > clean.rfind(',') else ','
    elif dots or commas:
        sep = '.' if dots else ','
        if clean.count(sep) == 1:
            digits_after = len(clean) - clean.rfind(sep) - 1
            if digits_after == 3:
                if currency_hint is not None and currency_hint.decimal_separator == sep:
                    decimal_sep = sep
            elif digits_after <= 2:
                decimal_sep = sep
            elif sep == '.':
                decimal_sep = sep

    if decimal_sep == '.':
        clean = clean.replace(',', '')
    elif decimal_sep == ',':
        clean = clean.replace('.', '').replace(',', '.')
    else:
        clean = clean.replace('.', '').replace(',', '')

    try:
        value = Decimal(clean)
    except (InvalidOperation, ValueError):
        logger.debug("Could not parse numeral %r", num_str)
        return None

    return -value if negative else value


def _calculate_confidence(
    original_text: str,
    amount: Decimal,
    detected_currency: Optional[str],
    warnings: List[str]
) -> int:
    confidence = 100
    confidence -= len(warnings) * 10

    if not detected_currency:
        confidence -= 15

    if AMBIGUOUS_SEPARATOR.match(re.sub(r'[^0-9.,]', '', original_text)):
        confidence -= 10

    if amount < 10 or amount > 100000:
        confidence -= 10

    if detect_from_price(original_text):
        confidence -= 5

    if CANONICAL_USD.match(original_text.strip()):
        confidence += 10

    return max(0, min(100, confidence))


def parse_money(text: str, options: Optional[ParseMoneyOptions] = None, **overrides) -> ParseMoneyResult:
    """
    Parse a price string into Money.

    Never raises: failures come back as money=None with warnings.

    Args:
        text: Raw text containing a price (e.g. "$1,234.56", "1.234,56 €")
        options: Parsing options; keyword overrides are applied on top

    Returns:
        ParseMoneyResult with money, confidence (0-100), warnings and qualifier flags

    Examples:
        >>> parse_money("$1,234.56").money.amount
        Decimal('1234.56')
        >>> parse_money("€1.234,56").money.currency
        'EUR'
        >>> parse_money("$99/night").is_per_night
        True
    """
    opts = options or ParseMoneyOptions()
    if overrides:
        opts = ParseMoneyOptions(**{**opts.__dict__, **overrides})

    result = ParseMoneyResult()

    if not text or not isinstance(text, str):
        result.warnings.append('Empty or invalid input')
        return result

    normalized = normalize_text(text)

    result.is_from_price = detect_from_price(normalized)
    result.is_per_night = detect_per_night(normalized)
    result.is_per_person = detect_per_person(normalized)

    detected = detect_currency(normalized)
    currency = detected or opts.expected_currency or opts.default_currency

    if opts.expected_currency and detected and detected != opts.expected_currency:
        result.warnings.append(f'Expected {opts.expected_currency} but detected {detected}')

    hint_code = detected or opts.expected_currency
    hint = CURRENCIES.get(hint_code) if hint_code else None

    amount = extract_amount(normalized, hint)
    if amount is None:
        result.warnings.append('Could not extract numeric amount')
        return result

    if re.match(r'^\(.*\)$', normalized) and amount > 0:
        amount = -amount

    if amount < 0 and not opts.allow_negative:
        result.warnings.append('Negative amount not allowed')
        return result

    if amount == 0 and not opts.allow_zero:
        result.warnings.append('Zero amount not allowed')
        return result

    if opts.min_amount is not None and amount < Decimal(str(opts.min_amount)):
        result.warnings.append(f'Amount {amount} below minimum {opts.min_amount}')
        return result

    if opts.max_amount is not None and amount > Decimal(str(opts.max_amount)):
        result.warnings.append(f'Amount {amount} above maximum {opts.max_amount}')
        return result

    result.money = Money(amount=amount, currency=currency, raw_text=text.strip())
    result.confidence = _calculate_confidence(text, amount, detected, result.warnings)
    return result


def parse_all_prices(text: str, options: Optional[ParseMoneyOptions] = None) -> List[ParseMoneyResult]:
    """
    Find and parse every price-like substring in text.

    Returns:
        Successful parses, de-duplicated by matched text, highest confidence first
    """
    if not text:
        return []

    results: List[ParseMoneyResult] = []
    seen = set()

    for pattern in (PRICE_PREFIXED, PRICE_SUFFIXED):
        for match in pattern.finditer(text):
            price_text = match.group(0).strip()
            if price_text in seen:
                continue
            seen.add(price_text)

            parsed = parse_money(price_text, options)
            if parsed.money:
                results.append(parsed)

    results.sort(key=lambda r: r.confidence, reverse=True)
    return results


def extract_best_price(text: str, options: Optional[ParseMoneyOptions] = None) -> Optional[Money]:
    """Highest-confidence Money found in text, or None."""
    results = parse_all_prices(text, options)
    return results[0].money if results else None


def count_price_substrings(text: str) -> int:
    """Count distinct currency-amount substrings ("$50 / $60" -> 2)."""
    return len({re.sub(r'\s', '', m) for m in PRICE_SUBSTRING.findall(text or '')})


def looks_like_price(text: str) -> bool:
    """
    Cheap pre-filter: could this short text be a price?

    Requires a digit, a currency indicator or grouped/decimal numeral,
    and a length under 50 characters.
    """
    if not text or not re.search(r'\d', text):
        return False

    if len(text) >= 50:
        return False

    has_currency = bool(CURRENCY_INDICATOR.search(text) or PREFIXED_DOLLAR.search(text))
    return has_currency or bool(TYPICAL_NUMERAL.search(text))


def _display_symbol(info: CurrencyInfo) -> str:
    # Shared symbols belong to the first registered currency (¥ -> JPY)
    owner = next(other for other in CURRENCIES.values() if other.symbol == info.symbol)
    if owner.code != info.code or info.symbol.isalpha():
        return f'{info.code} '
    return info.symbol


def format_money(money: Money) -> str:
    """
    Format Money as a display string in the currency's own conventions.

    Grouping and decimal separators come from the registry, and the
    amount keeps its own precision when it has more decimals than the
    currency's minor units, so the string parses back to the same amount.

    Args:
        money: Money to format

    Returns:
        Formatted string (e.g., "$1,234.56", "€1.234,56", "¥12,345", "CNY 88.00")

    Examples:
        >>> format_money(Money(amount=Decimal('1234.56'), currency='USD'))
        '$1,234.56'
    """
    if money is None:
        return 'N/A'

    info = CURRENCIES.get(money.currency.upper())
    minor = info.minor_units if info else 2
    symbol = _display_symbol(info) if info else f'{money.currency} '
    decimal_sep = info.decimal_separator if info else '.'
    thousands_sep = info.thousands_separator if info else ','

    amount = Decimal(money.amount)
    exponent = amount.as_tuple().exponent
    places = max(minor, -exponent) if isinstance(exponent, int) else minor

    sign = '-' if amount < 0 else ''
    formatted = f"{abs(amount):,.{places}f}"
    formatted = formatted.translate(str.maketrans({',': thousands_sep, '.': decimal_sep}))

    return f"{sign}{symbol}{formatted}"


def compare_money(a: Money, b: Money) -> bool:
    """Same currency and amounts within 0.01."""
    return a.currency == b.currency and abs(Decimal(a.amount) - Decimal(b.amount)) < Decimal('0.01')


def convert_money(money: Money, target_currency: str, rate) -> Money:
    """Convert with a caller-supplied rate (no rate lookup happens here)."""
    return Money(
        amount=Decimal(money.amount) * Decimal(str(rate)),
        currency=target_currency,
    )


def get_currency_info(code: str) -> Optional[CurrencyInfo]:
    """Registry record for an ISO code, or None."""
    return CURRENCIES.get((code or '').upper())
