"""Country → default currency for merchant profiles."""

from typing import Dict, Optional

DEFAULT_CURRENCY = "USD"

COUNTRY_CURRENCY: Dict[str, str] = {
    "US": "USD",
    "BR": "BRL",
    "PT": "EUR",
    "ES": "EUR",
    "FR": "EUR",
    "DE": "EUR",
    "IT": "EUR",
    "GB": "GBP",
    "CA": "CAD",
    "AU": "AUD",
    "MX": "MXN",
    "AR": "ARS",
    "CL": "CLP",
    "CO": "COP",
    "PE": "PEN",
    "IN": "INR",
    "JP": "JPY",
    "CN": "CNY",
    "KR": "KRW",
    "ZA": "ZAR",
}


def currency_for_country(country: Optional[str]) -> str:
    return COUNTRY_CURRENCY.get((country or "").upper(), DEFAULT_CURRENCY)
