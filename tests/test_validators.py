"""
Tests for checksum validators.
"""

import pytest

from anonymiseur.validators import (
    validate_french_iban,
    validate_nir,
    validate_siren,
    validate_siret,
)


def nir_with_key(base: str) -> str:
    """Append the mod-97 key computed the way the validator expects."""
    numeric = base.upper().replace("A", "0", 1).replace("B", "0", 1)
    return base + f"{97 - int(numeric) % 97:02d}"


class TestSiret:
    """Test SIRET validation."""

    @pytest.mark.parametrize("value", [
        "73282932000074",
        "732 829 320 00074",
        "732.829.320.00074",
    ])
    def test_valid_siret(self, value):
        assert validate_siret(value)

    def test_wrong_check_digit(self):
        assert not validate_siret("73282932000075")

    @pytest.mark.parametrize("value", ["7328293200007", "732829320000744", "7328293200007A", ""])
    def test_wrong_shape(self, value):
        assert not validate_siret(value)


class TestSiren:
    """Test SIREN validation."""

    def test_valid_siren(self):
        assert validate_siren("732829320")
        assert validate_siren("732 829 320")

    def test_wrong_check_digit(self):
        assert not validate_siren("732829321")

    def test_siret_is_not_a_siren(self):
        assert not validate_siren("73282932000074")


class TestNir:
    """Test NIR (social security number) validation."""

    def test_valid_nir(self):
        nir = nir_with_key("1850578006084")
        assert len(nir) == 15
        assert validate_nir(nir)

    def test_valid_nir_with_separators(self):
        nir = nir_with_key("2900175123456")
        spaced = f"{nir[0]} {nir[1:3]} {nir[3:5]} {nir[5:7]} {nir[7:10]} {nir[10:13]} {nir[13:]}"
        assert validate_nir(spaced)

    @pytest.mark.parametrize("base", ["185052A006084", "185052B006084"])
    def test_corsica_codes(self, base):
        assert validate_nir(nir_with_key(base))
        assert validate_nir(nir_with_key(base).lower())

    def test_wrong_key(self):
        nir = nir_with_key("1850578006084")
        wrong = nir[:13] + f"{(int(nir[13:]) % 97) + 1:02d}"
        assert not validate_nir(wrong)

    def test_invalid_sex_digit(self):
        nir = nir_with_key("3850578006084")
        assert not validate_nir(nir)

    @pytest.mark.parametrize("value", ["", "18505780060", "1850578006084XY"])
    def test_wrong_shape(self, value):
        assert not validate_nir(value)


class TestIban:
    """Test the structural French IBAN check."""

    def test_valid_structure(self):
        assert validate_french_iban("FR76 3000 6000 0112 3456 7890 189")
        assert validate_french_iban("fr7630006000011234567890189")

    def test_foreign_prefix(self):
        assert not validate_french_iban("DE89370400440532013000")

    def test_wrong_length(self):
        assert not validate_french_iban("FR76 3000 6000 0112 3456 7890")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
