"""
Tests for the command-line interface.
"""

import json
import logging

import pytest

from anonymiseur.cli import EXIT_ERROR, EXIT_OK, EXIT_UNLOCATED, create_parser, main


@pytest.fixture
def pdf_file(tmp_path, sample_pdf):
    path = tmp_path / "contrat.pdf"
    path.write_bytes(sample_pdf)
    return path


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / "note.txt"
    path.write_text(
        "Rendez-vous avec Jean Dupont au 01 23 45 67 89 ou jean.dupont@example.com.\n",
        encoding="utf-8",
    )
    return path


class TestParser:

    def test_defaults(self):
        args = create_parser().parse_args(["-i", "doc.pdf"])
        assert args.output is None
        assert args.log_level is None
        assert args.terms == []
        assert not args.verify_ai
        assert not args.strict

    def test_rejects_unknown_type(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["-i", "doc.pdf", "--types", "passport"])

    def test_custom_is_not_a_detectable_type(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["-i", "doc.pdf", "--types", "custom"])


class TestMain:
    """Test CLI runs end to end."""

    def test_list_types(self, capsys):
        assert main(["--list-types"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "siret" in out
        assert "postal_code" in out

    def test_input_required(self):
        with pytest.raises(SystemExit):
            main([])

    def test_pdf(self, tmp_path, pdf_file):
        out_dir = tmp_path / "out"
        assert main(["-i", str(pdf_file), "-o", str(out_dir)]) == EXIT_OK

        assert (out_dir / "anonymise_contrat.pdf").exists()
        metadata = json.loads((out_dir / "contrat_correspondance.json").read_text(encoding="utf-8"))
        assert metadata["source"] == "contrat.pdf"
        assert {row["replacement"] for row in metadata["correspondence"]} == {
            "[EMAIL_1]", "[TEL_1]", "[SIRET_1]",
        }
        assert all(row["located"] for row in metadata["correspondence"])

    def test_strict_with_unlocated_term(self, tmp_path, pdf_file):
        argv = ["-i", str(pdf_file), "-o", str(tmp_path / "out"), "--terms", "Introuvable"]
        assert main(argv) == EXIT_OK
        assert main(argv + ["--strict"]) == EXIT_UNLOCATED

    def test_terms_file(self, tmp_path, pdf_file):
        terms = tmp_path / "terms.txt"
        terms.write_text("Introuvable\n\n", encoding="utf-8")
        argv = ["-i", str(pdf_file), "-o", str(tmp_path / "out"), "--terms-file", str(terms), "--strict"]
        assert main(argv) == EXIT_UNLOCATED

    def test_dry_run_writes_nothing(self, tmp_path, pdf_file):
        out_dir = tmp_path / "out"
        assert main(["-i", str(pdf_file), "-o", str(out_dir), "--dry-run"]) == EXIT_OK
        assert not out_dir.exists()

    def test_text_file(self, tmp_path, text_file):
        out_dir = tmp_path / "out"
        argv = ["-i", str(text_file), "-o", str(out_dir), "--types", "email", "phone",
                "--terms", "Jean Dupont"]
        assert main(argv) == EXIT_OK

        masked = (out_dir / "note_anonymise.txt").read_text(encoding="utf-8")
        assert masked == "Rendez-vous avec [ELEMENT_1] au [TEL_1] ou [EMAIL_1].\n"
        metadata = json.loads((out_dir / "note_correspondance.json").read_text(encoding="utf-8"))
        assert metadata["correspondence"][0]["original"] == "Jean Dupont"

    def test_no_audit_page_option(self, tmp_path, pdf_file):
        import fitz

        out_dir = tmp_path / "out"
        assert main(["-i", str(pdf_file), "-o", str(out_dir), "--no-audit-page"]) == EXIT_OK
        with fitz.open(out_dir / "anonymise_contrat.pdf") as doc:
            assert doc.page_count == 1

    def test_missing_input(self, tmp_path):
        assert main(["-i", str(tmp_path / "absent.pdf")]) == EXIT_ERROR

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "contrat.docx"
        path.write_bytes(b"PK")
        assert main(["-i", str(path), "-o", str(tmp_path / "out")]) == EXIT_ERROR

    def test_blank_pdf(self, tmp_path, blank_pdf):
        path = tmp_path / "scan.pdf"
        path.write_bytes(blank_pdf)
        assert main(["-i", str(path), "-o", str(tmp_path / "out")]) == EXIT_ERROR

    def test_config_file(self, tmp_path, pdf_file):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"detection": {"enabled_types": ["email"]}}), encoding="utf-8")
        out_dir = tmp_path / "out"
        assert main(["-i", str(pdf_file), "-o", str(out_dir), "-c", str(config_path)]) == EXIT_OK

        metadata = json.loads((out_dir / "contrat_correspondance.json").read_text(encoding="utf-8"))
        assert [row["replacement"] for row in metadata["correspondence"]] == ["[EMAIL_1]"]

    def test_config_output_dir_used_without_output_option(self, tmp_path, text_file):
        out_dir = tmp_path / "from_config"
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"output_dir": str(out_dir)}), encoding="utf-8")

        assert main(["-i", str(text_file), "-c", str(config_path)]) == EXIT_OK
        assert (out_dir / "note_anonymise.txt").exists()

    def test_config_log_level_used_without_option(self, tmp_path, text_file):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"log_level": "WARNING"}), encoding="utf-8")
        argv = ["-i", str(text_file), "-o", str(tmp_path / "out"), "-c", str(config_path)]

        assert main(argv) == EXIT_OK
        assert logging.getLogger().level == logging.WARNING
        assert main(argv + ["--log-level", "DEBUG"]) == EXIT_OK
        assert logging.getLogger().level == logging.DEBUG

    def test_invalid_config_file(self, tmp_path, pdf_file):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"detection": {"unknown_key": 1}}), encoding="utf-8")
        assert main(["-i", str(pdf_file), "-c", str(config_path)]) == EXIT_ERROR


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
