"""
Checksum validators for French identifiers.

All validators take the raw matched string (separators included) and return
a bool. They never raise.
"""

import re


_SEPARATORS = re.compile(r'[\s.]')


def _clean(value: str) -> str:
    return _SEPARATORS.sub('', value)


def _luhn_sum(digits: str, double_odd: bool) -> int:
    total = 0
    for index, char in enumerate(digits):
        digit = int(char)
        if (index % 2 == 1) == double_odd:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total


def validate_siret(value: str) -> bool:
    """
    SIRET: 14 digits, Luhn-style check doubling digits at even indexes.

    >>> validate_siret("732 829 320 00074")
    True
    """
    cleaned = _clean(value)
    if len(cleaned) != 14 or not cleaned.isdigit():
        return False
    return _luhn_sum(cleaned, double_odd=False) % 10 == 0


def validate_siren(value: str) -> bool:
    """SIREN: 9 digits, Luhn-style check doubling digits at odd indexes."""
    cleaned = _clean(value)
    if len(cleaned) != 9 or not cleaned.isdigit():
        return False
    return _luhn_sum(cleaned, double_odd=True) % 10 == 0


def validate_nir(value: str) -> bool:
    """
    NIR (French social security number), 15 characters.

    The first character is the sex digit (1 or 2). Corsican department codes
    2A/2B are counted as 0 in the arithmetic. The last two digits are the key,
    which must equal 97 - (base mod 97) for the 13-character base.
    """
    cleaned = _clean(value).upper()
    if len(cleaned) != 15 or cleaned[0] not in "12":
        return False

    base, key = cleaned[:13], cleaned[13:]
    if 'A' in base:
        base = base.replace('A', '0', 1)
    elif 'B' in base:
        base = base.replace('B', '0', 1)

    if not base.isdigit() or not key.isdigit():
        return False
    return int(key) == 97 - (int(base) % 97)


def validate_french_iban(value: str) -> bool:
    """
    Structural check of a French IBAN: FR prefix and 27 characters.

    This is partial validation; the ISO 7064 mod-97 checksum is not verified.
    """
    cleaned = re.sub(r'\s', '', value).upper()
    return cleaned.startswith("FR") and len(cleaned) == 27
