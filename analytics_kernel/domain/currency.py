"""Currency -- ISO 4217 registry and precision-derived rounding."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantize_exponent(self) -> Decimal:
        """Exponent for Decimal.quantize() at this currency's precision."""
        return Decimal(1).scaleb(-self.decimal_places)


class CurrencyRegistry:
    """Registry of ISO 4217 currencies with their minor-unit decimal places."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # Major currencies
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "NZD": CurrencyInfo("NZD", 2, "New Zealand Dollar"),
        "CNY": CurrencyInfo("CNY", 2, "Yuan Renminbi"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "SEK": CurrencyInfo("SEK", 2, "Swedish Krona"),
        "NOK": CurrencyInfo("NOK", 2, "Norwegian Krone"),
        "DKK": CurrencyInfo("DKK", 2, "Danish Krone"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "MXN": CurrencyInfo("MXN", 2, "Mexican Peso"),
        "BRL": CurrencyInfo("BRL", 2, "Brazilian Real"),
        "ZAR": CurrencyInfo("ZAR", 2, "Rand"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "KES": CurrencyInfo("KES", 2, "Kenyan Shilling"),
        "TZS": CurrencyInfo("TZS", 2, "Tanzanian Shilling"),
        # Zero decimal currencies
        "CLP": CurrencyInfo("CLP", 0, "Chilean Peso"),
        "ISK": CurrencyInfo("ISK", 0, "Icelandic Krona"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "PYG": CurrencyInfo("PYG", 0, "Paraguayan Guarani"),
        "RWF": CurrencyInfo("RWF", 0, "Rwandan Franc"),
        "UGX": CurrencyInfo("UGX", 0, "Ugandan Shilling"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "XAF": CurrencyInfo("XAF", 0, "Central African CFA Franc"),
        "XOF": CurrencyInfo("XOF", 0, "West African CFA Franc"),
        # Three decimal currencies
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "JOD": CurrencyInfo("JOD", 3, "Jordanian Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Omani Rial"),
        "TND": CurrencyInfo("TND", 3, "Tunisian Dinar"),
    }

    # Decimal places for codes without registry metadata
    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is a known ISO 4217 code."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information by code."""
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Get decimal places for a currency."""
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        """Get all valid currency codes."""
        return frozenset(cls._CURRENCIES.keys())
