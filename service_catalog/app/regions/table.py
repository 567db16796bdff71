"""
Static pricing-region table.

Declaration order is the lookup order used by the resolver. A country code
appears in at most one region.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Tuple


@dataclass(frozen=True)
class Region:
    """A pricing region and the countries billed in its currency."""

    id: str
    currency_code: str
    description: str
    countries: FrozenSet[str]

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "currencyCode": self.currency_code,
            "description": self.description,
            "countries": sorted(self.countries),
        }


def _region(region_id: str, currency_code: str, description: str, countries: Iterable[str]) -> Region:
    return Region(region_id, currency_code, description, frozenset(countries))


REGIONS: Tuple[Region, ...] = (
    _region("AE", "AED", "United Arab Emirates", ["AE"]),
    _region("AFRICA", "USD", "Africa pricing region", [
        "LR", "TZ", "DJ", "LS", "YE", "UG", "MA", "DZ", "MG", "ML", "EH", "MR", "MU", "MW",
        "MZ", "ER", "AO", "ET", "NA", "ZM", "NE", "NG", "ZW", "BF", "RW", "BI", "BJ", "SC",
        "SD", "BW", "SL", "KE", "GA", "SN", "SO", "SS", "CD", "ST", "GH", "KM", "CF", "CG",
        "CI", "GM", "SZ", "GN", "GQ", "CM", "GW", "TD", "TG", "CV", "TN",
    ]),
    _region("ANZ", "USD", "Oceania pricing region", [
        "CC", "TV", "MP", "NR", "FJ", "HM", "FM", "NU", "PW", "CK", "GU", "SB", "WF", "CX",
        "PG", "TK", "NF", "MH", "TO", "WS", "KI", "PN", "VU",
    ]),
    _region("AR", "USD", "Argentina", ["AR"]),
    _region("AU", "AUD", "Australia", ["AU"]),
    _region("BG", "BGN", "Bulgaria", ["BG"]),
    _region("BR2", "BRL", "Brazil", ["BR"]),
    _region("CA", "CAD", "Canada", ["CA"]),
    _region("CH", "CHF", "Switzerland", ["CH", "LI"]),
    _region("CIS", "USD", "CIS pricing region", ["UZ", "TJ", "MD", "TM", "AZ", "KG", "AM", "GE"]),
    _region("CL2", "CLP", "Chile", ["CL"]),
    _region("CN2", "CNY", "China", ["CN"]),
    _region("CO2", "COP", "Colombia", ["CO"]),
    _region("CR2", "CRC", "Costa Rica", ["CR"]),
    _region("CZ", "CZK", "Czechia", ["CZ"]),
    _region("DK", "DKK", "Denmark", ["DK"]),
    _region("EAST", "USD", "Middle East/Central Asia pricing region", [
        "MN", "EG", "PS", "JO", "AF", "SY", "IQ", "IR", "MV", "LY", "LB", "PK", "OM", "LK",
    ]),
    _region("EURO", "EUR", "Europe pricing region", [
        "DE", "BE", "FI", "PT", "LT", "FO", "LU", "HR", "LV", "FR", "MC", "SI", "ME", "SK",
        "SM", "IE", "MK", "EE", "AD", "GL", "MT", "IS", "AL", "GR", "IT", "VA", "ES", "AT",
        "RE", "XK", "CY", "NL", "BA",
    ]),
    _region("GB", "GBP", "United Kingdom", ["GB", "GG", "GI", "IM", "JE"]),
    _region("HK2", "HKD", "Hong Kong", ["HK"]),
    _region("HU", "HUF", "Hungary", ["HU"]),
    _region("ID2", "IDR", "Indonesia", ["ID"]),
    _region("IL", "ILS", "Israel", ["IL"]),
    _region("IN2", "INR", "India", ["IN"]),
    _region("JP", "JPY", "Japan", ["JP"]),
    _region("KR2", "KRW", "South Korea", ["KR"]),
    _region("KZ", "KZT", "Kazakhstan", ["KZ"]),
    _region("LATAM", "USD", "Latin America/Caribbean pricing region", [
        "TT", "BB", "PR", "JM", "FK", "HN", "PY", "DM", "DO", "BM", "HT", "BO", "BS", "SH",
        "BZ", "GD", "EC", "SR", "KN", "SV", "MS", "AG", "AI", "GT", "VC", "AN", "TC", "VE",
        "PA", "GY", "CU", "AW", "LC", "NI",
    ]),
    _region("MIDEAST", "USD", "Bahrain/Kuwait pricing region", ["BH", "KW"]),
    _region("MX2", "MXN", "Mexico", ["MX"]),
    _region("MY2", "MYR", "Malaysia", ["MY"]),
    _region("NO", "NOK", "Norway", ["NO"]),
    _region("NZ", "NZD", "New Zealand", ["NZ"]),
    _region("PE2", "PEN", "Peru", ["PE"]),
    _region("PH2", "PHP", "Philippines", ["PH"]),
    _region("PL", "PLN", "Poland", ["PL"]),
    _region("QA", "QAR", "Qatar", ["QA"]),
    _region("RO", "RON", "Romania", ["RO"]),
    _region("ROW", "USD", "Rest of World pricing region", [
        "RS", "BL", "BQ", "BV", "SJ", "UM", "MF", "YT", "GF", "MQ", "KP", "SX", "IO", "GP",
        "GS", "KY", "AQ", "VG", "AS", "TF", "VI", "CW", "NC", "PF", "AX", "PM",
    ]),
    _region("RU", "RUB", "Russia", ["RU", "BY"]),
    _region("SA", "SAR", "Saudi Arabia", ["SA"]),
    _region("SE", "SEK", "Sweden", ["SE"]),
    _region("SEA", "USD", "Southeast Asia pricing region", ["MM", "MO", "NP", "BD", "BT", "LA", "TL", "BN", "KH"]),
    _region("SG2", "SGD", "Singapore", ["SG"]),
    _region("TH2", "THB", "Thailand", ["TH"]),
    _region("TR", "TRY", "Turkey", ["TR"]),
    _region("TW2", "TWD", "Taiwan", ["TW"]),
    _region("UA", "UAH", "Ukraine", ["UA"]),
    _region("US", "USD", "United States", ["US"]),
    _region("UY2", "UYU", "Uruguay", ["UY"]),
    _region("VN2", "VND", "Vietnam", ["VN"]),
    _region("ZA2", "ZAR", "South Africa", ["ZA"]),
)
