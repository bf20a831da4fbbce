"""Pytest configuration and fixtures."""

from typing import List, Sequence

import fitz  # PyMuPDF
import pytest

from anonymiseur.config import AnonymiseurConfig
from anonymiseur.locator import GlyphRun


SAMPLE_LINES = [
    "CONTRAT DE PRESTATION",
    "Contact : jean.dupont@example.com",
    "Tel : 01 23 45 67 89",
    "SIRET : 732 829 320 00074",
]


def make_pdf(pages: Sequence[Sequence[str]], fontsize: float = 11) -> bytes:
    """Build a text-layer PDF in memory, one list of lines per page."""
    doc = fitz.open()
    for lines in pages:
        page = doc.new_page(width=595, height=842)
        y = 72.0
        for line in lines:
            page.insert_text((72, y), line, fontsize=fontsize, fontname="helv")
            y += fontsize * 2
    data = doc.tobytes()
    doc.close()
    return data


def make_split_font_pdf() -> bytes:
    """"Jean Dupont" written as two spans in different fonts on one line."""
    doc = fitz.open()
    page = doc.new_page(width=595, height=842)
    x = 72.0
    for text, font in (("Signataire : ", "helv"), ("Jean ", "helv"), ("Dupont", "tiro")):
        page.insert_text((x, 100), text, fontsize=12, fontname=font)
        x += fitz.get_text_length(text, fontname=font, fontsize=12)
    data = doc.tobytes()
    doc.close()
    return data


def runs_for(*texts: str, x: float = 50.0, y: float = 100.0,
             char_width: float = 6.0, font_size: float = 12.0) -> List[GlyphRun]:
    """Consecutive runs on one line, each character char_width wide."""
    runs = []
    for text in texts:
        width = 0.0 if text == "\n" else char_width * len(text)
        runs.append(GlyphRun(text=text, x=x, y=y, width=width, font_size=font_size))
        x += width
    return runs


@pytest.fixture
def config(tmp_path) -> AnonymiseurConfig:
    """Default configuration writing into a temporary directory."""
    config = AnonymiseurConfig()
    config.output_dir = tmp_path / "output"
    config.locator.max_workers = 1
    return config


@pytest.fixture
def sample_pdf() -> bytes:
    return make_pdf([SAMPLE_LINES])


@pytest.fixture
def two_page_pdf() -> bytes:
    return make_pdf([SAMPLE_LINES[:2], ["Page deux", "Tel : 01 23 45 67 89"]])


@pytest.fixture
def split_font_pdf() -> bytes:
    return make_split_font_pdf()


@pytest.fixture
def blank_pdf() -> bytes:
    return make_pdf([[]])


@pytest.fixture
def sample_text() -> str:
    return (
        "Contrat conclu le 15/03/2023 entre la société ACME, "
        "SIRET 732 829 320 00074, RCS Paris 732 829 320, "
        "et Monsieur Jean Martin, domicilié 12 rue des Lilas, 75011 Paris.\n"
        "Contact : jean.martin@example.com, tél. 06 12 34 56 78.\n"
        "IBAN : FR76 3000 6000 0112 3456 7890 189\n"
    )
