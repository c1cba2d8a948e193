"""Steam wallet currency codes."""

from enum import IntEnum


class Currency(IntEnum):
    USD = 1
    GBP = 2
    EUR = 3
    CHF = 4
    RUB = 5
    PLN = 6
    BRL = 7
    JPY = 8
    NOK = 9
    IDR = 10
    MYR = 11
    PHP = 12
    SGD = 13
    THB = 14
    VND = 15
    KRW = 16
    TRY = 17
    UAH = 18
    MXN = 19
    CAD = 20
    AUD = 21
    NZD = 22
    CNY = 23
    INR = 24
    CLP = 25
    PEN = 26
    COP = 27
    ZAR = 28
    HKD = 29
    TWD = 30
    SAR = 31
    AED = 32
    ARS = 34
    ILS = 35
    KZT = 37
    KWD = 38
    QAR = 39
    CRC = 40
    UYU = 41

    @classmethod
    def from_code(cls, value: "int | str") -> "Currency":
        """Resolve a numeric code or ISO name ("eur", "3") to a Currency."""
        if isinstance(value, str):
            if value.isdigit():
                return cls(int(value))
            return cls[value.upper()]
        return cls(value)
