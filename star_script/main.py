"""
Star Script - Command line entry points
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from star_script.core.config import Config
from star_script.language.conformance import compare_parsers, load_fixtures, render_markdown, write_report
from star_script.language.transpiler import transpile_pine_to_star, transpile_to_module


def setup_logging(level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging"""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
    if log_file:
        logger.add(
            log_file,
            rotation="10 MB",
            retention="7 days",
            level=level.upper()
        )


def _load_config(path: Optional[str]) -> Config:
    config = Config(path)
    setup_logging(config.get('app.log_level', 'INFO'), config.get('app.log_file'))
    return config


def transpile_main(argv: Optional[List[str]] = None) -> int:
    """star-transpile: Pine-like source to Star text and/or a Python unit"""
    parser = argparse.ArgumentParser(prog="star-transpile", description="Transpile Star Script source")
    parser.add_argument("--in", "-i", dest="input", required=True, help="Source file to transpile")
    parser.add_argument("--out-star", help="Write transpiled Star source to this file")
    parser.add_argument("--out-module", help="Write a runnable Python module to this file")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--log-level", help="Override the configured log level")
    args = parser.parse_args(argv)

    config = _load_config(args.config)
    if args.log_level:
        setup_logging(args.log_level, config.get('app.log_file'))

    source_path = Path(args.input)
    try:
        source = source_path.read_text(encoding='utf-8')
    except OSError as e:
        logger.error(f"Cannot read {source_path}: {e}")
        return 1

    star = transpile_pine_to_star(source)

    if args.out_star:
        Path(args.out_star).write_text(star + '\n', encoding='utf-8')
        logger.info(f"Wrote Star source to {args.out_star}")

    if args.out_module:
        Path(args.out_module).write_text(transpile_to_module(source), encoding='utf-8')
        logger.info(f"Wrote module to {args.out_module}")

    if not args.out_star and not args.out_module:
        print(star)

    return 0


def conformance_main(argv: Optional[List[str]] = None) -> int:
    """star-conformance: compare the hand parser with the generated parser"""
    parser = argparse.ArgumentParser(prog="star-conformance", description="Compare Star Script parsers")
    parser.add_argument("--fixtures", help="Directory of *.pine / *.txt fixtures")
    parser.add_argument("--out", help="JSON report path")
    parser.add_argument("--markdown", help="Also write a Markdown report to this path")
    parser.add_argument("--config", help="YAML configuration file")
    args = parser.parse_args(argv)

    config = _load_config(args.config)
    fixtures_dir = args.fixtures or config.get('conformance.fixtures_dir')
    out_path = args.out or config.get('conformance.report_path', 'parser-diff.json')

    report = compare_parsers(load_fixtures(fixtures_dir))
    write_report(report, out_path)

    if args.markdown:
        Path(args.markdown).write_text(render_markdown(report), encoding='utf-8')
        logger.info(f"Wrote Markdown report to {args.markdown}")

    if not report.ok:
        logger.error(f"{len(report.mismatches)} of {report.samples} samples differ between parsers")
        return 1

    logger.info("Parsers agree on all samples")
    return 0


def main():
    """Main entry point"""
    sys.exit(transpile_main())


def conformance():
    sys.exit(conformance_main())


if __name__ == "__main__":
    main()
