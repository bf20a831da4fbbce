"""
Command-line interface for anonymiseur.

Processes one document per invocation with argparse.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import AnonymiseurConfig, CorrespondenceEntry, EntityType, available_entity_types, load_config
from .errors import AnonymiseurError, UnsupportedDocumentError
from .logger import get_logger, setup_root_logger
from .pipeline import AnonymizationPipeline, count_occurrences, mask_targets


SUPPORTED_SUFFIXES = (".pdf", ".txt")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_UNLOCATED = 2


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="anonymiseur",
        description="Anonymise French business and legal documents (PDF or text)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Detect and redact every known entity type
  anonymiseur --input contrat.pdf --output out/

  # Only emails and phones, plus operator terms
  anonymiseur -i contrat.pdf --types email phone --terms "Jean Dupont" "ACME SAS"

  # Second pass with AI verification, fail if anything could not be located
  anonymiseur -i contrat.pdf --verify-ai --strict

Exit codes: 0 success, 1 fatal error, 2 (--strict) some targets not located.
        """
    )

    parser.add_argument("--input", "-i", type=str, help="Input file (.pdf or .txt)")
    parser.add_argument("--output", "-o", type=str,
                        help="Output directory (default: output_dir from config, else output)")

    # Detection
    parser.add_argument(
        "--types",
        nargs="+",
        choices=[t.value for t in EntityType if t is not EntityType.CUSTOM],
        help="Entity types to detect (default: all)"
    )
    parser.add_argument("--terms", nargs="+", default=[],
                        help="Terms to hide, e.g. names of parties")
    parser.add_argument("--terms-file", type=str,
                        help="File with one term per line")
    parser.add_argument("--no-split-terms", action="store_true",
                        help="Do not also hide each word of multi-word terms")

    # Verification
    parser.add_argument("--verify-ai", action="store_true",
                        help="Ask an OpenAI model for entities the patterns missed")
    parser.add_argument("--model", type=str, help="OpenAI model for --verify-ai")

    # Output
    parser.add_argument("--config", "-c", type=str, help="Configuration JSON file")
    parser.add_argument("--no-audit-page", action="store_true",
                        help="Do not attach the correspondence table to the PDF")
    parser.add_argument("--strict", action="store_true",
                        help="Exit with code 2 when a target could not be located")
    parser.add_argument("--dry-run", action="store_true",
                        help="Show what would be anonymised without writing files")
    parser.add_argument("--list-types", action="store_true",
                        help="List the detectable entity types and exit")

    # Logging
    parser.add_argument("--log-level", type=str,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: log_level from config)")
    parser.add_argument("--log-file", type=str,
                        help="Path to log file (default: console only)")

    parser.add_argument("--version", action="version", version=f"anonymiseur {__version__}")

    return parser


def read_terms(args: argparse.Namespace) -> List[str]:
    """Terms from --terms and --terms-file, blank lines dropped."""
    terms = list(args.terms or [])
    if args.terms_file:
        with open(args.terms_file, "r", encoding="utf-8") as f:
            terms.extend(line.strip() for line in f)
    return [t for t in terms if t and t.strip()]


def apply_overrides(config: AnonymiseurConfig, args: argparse.Namespace) -> AnonymiseurConfig:
    """Override configuration with CLI arguments."""
    if args.types:
        config.detection.enabled_types = [EntityType(t) for t in args.types]
    if args.verify_ai:
        config.verification.enabled = True
    if args.model:
        config.verification.model = args.model
    if args.no_audit_page:
        config.redaction.include_audit_page = False
    if args.output:
        config.output_dir = Path(args.output)
    return config


def write_json(path: Path, data: dict) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def process_pdf(input_path: Path, config: AnonymiseurConfig, terms: List[str],
                args: argparse.Namespace, logger) -> int:
    pipeline = AnonymizationPipeline(config)
    pdf_bytes = input_path.read_bytes()

    if args.dry_run:
        extraction = pipeline.extractor.extract(pdf_bytes)
        if not extraction.has_text:
            raise UnsupportedDocumentError(f"No extractable text in {input_path.name}")
        plan = pipeline.plan(extraction.text, terms=terms, split_terms=not args.no_split_terms)
        logger.info(f"DRY RUN - {len(plan.targets)} targets would be hidden:")
        for target in plan.targets:
            logger.info(f"  {target.replacement:<14} {target.source}")
        return EXIT_OK

    result = pipeline.process(
        pdf_bytes,
        terms=terms,
        split_terms=not args.no_split_terms,
        source_name=input_path.name,
    )

    output_dir = config.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    pdf_path = output_dir / f"anonymise_{input_path.name}"
    pdf_path.write_bytes(result.pdf_bytes)
    if config.save_metadata:
        write_json(output_dir / f"{input_path.stem}_correspondance.json", {
            "source": input_path.name,
            "output": pdf_path.name,
            **result.to_dict(),
        })

    logger.info(f"""
Processing complete!
  Targets: {result.statistics['targets']}
  Located: {result.statistics['located']}
  Not located: {result.statistics['unlocated']}
  Processing time: {result.processing_time_ms:.0f}ms
  Output: {pdf_path}
        """)

    if result.unlocated:
        for entry in result.unlocated:
            logger.warning(f"  Not located: {entry.replacement} ({entry.source})")
        if args.strict:
            return EXIT_UNLOCATED
    return EXIT_OK


def process_text(input_path: Path, config: AnonymiseurConfig, terms: List[str],
                 args: argparse.Namespace, logger) -> int:
    text = input_path.read_text(encoding="utf-8")
    if not text.strip():
        raise UnsupportedDocumentError(f"{input_path.name} is empty")

    plan = AnonymizationPipeline(config).plan(text, terms=terms, split_terms=not args.no_split_terms)
    targets = plan.targets

    if args.dry_run:
        logger.info(f"DRY RUN - {len(targets)} targets would be hidden")
        return EXIT_OK

    output_dir = config.output_dir
    output_dir.mkdir(parents=True, exist_ok=True)
    out_path = output_dir / f"{input_path.stem}_anonymise.txt"
    out_path.write_text(mask_targets(text, targets), encoding="utf-8")

    correspondence = []
    for target in targets:
        entry = CorrespondenceEntry.from_target(target)
        entry.occurrences = count_occurrences(text, target.original)
        entry.located = entry.occurrences > 0
        correspondence.append(entry)
    if config.save_metadata:
        write_json(output_dir / f"{input_path.stem}_correspondance.json", {
            "source": input_path.name,
            "output": out_path.name,
            "correspondence": [entry.to_dict() for entry in correspondence],
            "entities": [e.to_dict() for e in plan.entities],
            "verification": plan.verification.to_dict() if plan.verification else None,
        })

    logger.info(f"Anonymised {len(targets)} targets into {out_path}")
    if args.strict and any(not entry.located for entry in correspondence):
        return EXIT_UNLOCATED
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    setup_root_logger(args.log_level, log_file)
    logger = get_logger(__name__)

    if args.list_types:
        for item in available_entity_types():
            print(f"{item['type']:<12} {item['label']:<22} {item['description']}")
        return EXIT_OK

    if not args.input:
        parser.error("--input is required")

    try:
        config = apply_overrides(load_config(args.config), args)
        if args.log_level is None:
            setup_root_logger(config.log_level, log_file)
        input_path = Path(args.input)
        if not input_path.is_file():
            raise FileNotFoundError(f"Input file not found: {input_path}")

        suffix = input_path.suffix.lower()
        if suffix not in SUPPORTED_SUFFIXES:
            raise UnsupportedDocumentError(
                f"Unsupported input format {suffix or '(none)'}; expected one of {SUPPORTED_SUFFIXES}",
                code="UNSUPPORTED_FORMAT",
            )

        terms = read_terms(args)
        logger.info(f"Processing: {input_path}")
        if suffix == ".pdf":
            return process_pdf(input_path, config, terms, args, logger)
        return process_text(input_path, config, terms, args, logger)

    except AnonymiseurError as e:
        logger.error(f"Anonymisation failed: {e}")
        return EXIT_ERROR
    except (FileNotFoundError, ValueError, TypeError) as e:
        # Missing files and invalid configuration
        logger.error(str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.info("Processing interrupted by user")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
