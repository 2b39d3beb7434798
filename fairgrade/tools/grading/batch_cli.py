#!/usr/bin/env python3
"""Command-line interface for grading a batch of answer files against a rubric."""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

from fairgrade.libs.config_loader import get_config, load_all_configs
from fairgrade.libs.ocr import OCREngine, OCRError
from fairgrade.tools.sessions import (
    GradingSession,
    SessionStore,
    file_to_data_url,
    get_template,
)
from .batch_grader import BatchGrader, improvement_suggestions, summarize
from .models import StudentFile
from .rubric_parser import RubricParser

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)


def read_rubric_text(rubric_file: StudentFile, ocr: OCREngine) -> str:
    """Rubric text from a text file, or OCR'd from an image or PDF."""
    return asyncio.run(ocr.extract_text(rubric_file))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Grade student answer images/PDFs against a weighted rubric using an AI model',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Grade scans with a rubric written one criterion per line, "Thesis (30%)"
  fairgrade-grade answers/*.png --rubric rubric.txt --subject English

  # Use a built-in template instead of a rubric file
  fairgrade-grade answers/*.pdf --template english-essay --session-name "Essay 1"

  # OCR a photographed rubric and save a YAML summary
  fairgrade-grade answers/*.jpg --rubric rubric_photo.jpg --summary results.yaml
        """
    )

    parser.add_argument(
        'files',
        nargs='+',
        type=Path,
        help='Student answer files (images or PDFs)'
    )
    rubric_group = parser.add_mutually_exclusive_group(required=True)
    rubric_group.add_argument(
        '--rubric', '-r',
        type=Path,
        help='Rubric file: text, or an image/PDF to read with OCR'
    )
    rubric_group.add_argument(
        '--template', '-t',
        type=str,
        help='Id of a built-in rubric template (e.g. english-essay, math-basic)'
    )

    parser.add_argument(
        '--subject',
        type=str,
        default=None,
        help='Subject used in the grading prompt (default: from config)'
    )
    parser.add_argument(
        '--session-name', '-n',
        type=str,
        default='',
        help='Name for the saved grading session'
    )
    parser.add_argument(
        '--user', '-u',
        type=str,
        default=None,
        help='Owner of the saved session (default: current OS user)'
    )
    parser.add_argument(
        '--summary', '-o',
        type=Path,
        default=None,
        help='Also write a YAML summary to this path'
    )
    parser.add_argument(
        '--max-concurrent', '-c',
        type=int,
        default=None,
        help='Maximum number of files graded at once (overrides config value)'
    )
    parser.add_argument(
        '--no-save',
        action='store_true',
        help='Do not store the grading session'
    )
    parser.add_argument(
        '--require-criteria',
        action='store_true',
        help='Fail instead of producing zero scores when the rubric has no criteria'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    return parser


def main(argv=None):
    """Main entry point for the fairgrade-grade command."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    missing = [str(p) for p in args.files if not p.is_file()]
    if missing:
        LOG.error(f"Answer files do not exist: {', '.join(missing)}")
        sys.exit(1)

    if args.rubric is not None and not args.rubric.is_file():
        LOG.error(f"Rubric file does not exist: {args.rubric}")
        sys.exit(1)

    try:
        config = load_all_configs()
    except Exception as e:
        LOG.error(f"Failed to load configuration: {e}")
        sys.exit(1)

    subject = args.subject if args.subject is not None else get_config(
        "grading.default_subject", config, default="")
    user_id = args.user or getpass.getuser()

    rubric_file = None
    if args.template:
        template = get_template(args.template)
        if template is None:
            LOG.error(f"Unknown rubric template: {args.template}")
            sys.exit(1)
        rubric_text = template.content
        subject = subject or template.subject
    else:
        rubric_file = StudentFile.from_path(args.rubric)
        try:
            rubric_text = read_rubric_text(rubric_file, OCREngine.from_config(config))
        except (OCRError, OSError) as e:
            LOG.error(f"Could not read rubric {args.rubric}: {e}")
            sys.exit(1)

    criteria = RubricParser().parse(rubric_text)
    if not criteria:
        if args.require_criteria:
            LOG.error("Rubric contains no criteria in the form 'name (N%)'")
            sys.exit(1)
        LOG.warning("Rubric contains no criteria in the form 'name (N%)'")

    files = [StudentFile.from_path(p) for p in args.files]

    try:
        batch_grader = BatchGrader(configs=config, max_concurrent=args.max_concurrent)
    except Exception as e:
        LOG.error(f"Failed to initialize batch grader: {e}")
        sys.exit(1)

    LOG.info(f"Grading {len(files)} files on {len(criteria)} criteria")
    results = batch_grader.process_student_answers(files, rubric_text, subject)

    session = None
    if not args.no_save:
        session = GradingSession(
            user_id=user_id,
            subject=subject,
            session_name=args.session_name,
            student_files=[file_to_data_url(f) for f in files],
            rubric_file=file_to_data_url(rubric_file) if rubric_file else None,
            rubric_text=rubric_text,
            use_template_rubric=bool(args.template),
            results=results,
        )
        try:
            SessionStore.from_config(config).save(session)
        except OSError as e:
            LOG.error(f"Failed to save grading session: {e}")
            session = None

    if args.summary:
        try:
            batch_grader.save_summary(results, args.summary)
        except OSError as e:
            LOG.error(f"Failed to save summary: {e}")

    stats = summarize(results)
    print(f"\n{'='*60}")
    print("Grading Complete")
    print(f"{'='*60}")
    print(f"Students graded: {stats['students']}")
    print(f"Average score: {stats['average']:.1f}%")
    print(f"Highest score: {stats['highest']}%")
    print(f"Lowest score: {stats['lowest']}%")
    if stats['needs_review']:
        print(f"Needing manual review: {stats['needs_review']}")

    for result in results:
        flag = "  [review]" if result.needs_review else ""
        print(f"\n{result.name}: {result.score}% - {result.feedback}{flag}")
        for criterion in result.criteria:
            print(f"  {criterion.name}: {criterion.score}/{criterion.max_score}")
        for name, suggestions in improvement_suggestions(result).items():
            for suggestion in suggestions:
                print(f"    -> {name}: {suggestion}")

    if session is not None:
        print(f"\nSession saved as {session.id}")


if __name__ == "__main__":
    main()
