"""
Parser conformance harness
Compares the hand parser with the grammar-generated parser over fixtures
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from loguru import logger

from .ast_nodes import ASTNode, Assignment, Program
from .grammar_parser import adapt_generated_program, parse_generated
from .parser import parse

LOCATION_KEYS = frozenset({'loc', 'location', 'start', 'end'})

FIXTURE_SUFFIXES = ('.pine', '.txt')

FALLBACK_SAMPLES = [('sample1', 'a = 1\nplot(a)\n')]


@dataclass
class Mismatch:
    name: str
    hand: Any
    gen: Any

    def to_dict(self) -> Dict[str, Any]:
        return {'name': self.name, 'hand': self.hand, 'gen': self.gen}


@dataclass
class ConformanceReport:
    """Outcome of one comparison run"""
    samples: int = 0
    mismatches: List[Mismatch] = field(default_factory=list)
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def ok(self) -> bool:
        return not self.mismatches

    def to_dict(self) -> Dict[str, Any]:
        return {
            'generatedAt': self.generated_at,
            'samples': self.samples,
            'mismatches': [m.to_dict() for m in self.mismatches]
        }


def canonicalize(ast: Any) -> Any:
    """
    Plain-data form of a parse result for comparison.

    Accepts a Program, an AST node, an assignment or raw dictionaries/lists;
    location metadata is dropped at every level.
    """
    if isinstance(ast, (Program, ASTNode, Assignment)):
        ast = ast.to_dict()

    if isinstance(ast, dict):
        return {
            key: canonicalize(value)
            for key, value in sorted(ast.items())
            if key not in LOCATION_KEYS
        }
    if isinstance(ast, (list, tuple)):
        return [canonicalize(item) for item in ast]
    return ast


def generated_program(source: str) -> Program:
    """Parse with the generated parser and adapt to the hand-parser AST"""
    return adapt_generated_program(parse_generated(source))


def compare_parsers(samples: Iterable[Tuple[str, str]],
                    reference: Optional[Callable[[str], Program]] = None) -> ConformanceReport:
    """
    Parse every (name, source) sample with both parsers.

    A sample whose canonical forms differ, or that the reference parser
    rejects, is recorded as a mismatch.
    """
    reference = reference or generated_program
    report = ConformanceReport()

    for name, source in samples:
        report.samples += 1
        hand = canonicalize(parse(source))
        try:
            gen = canonicalize(reference(source))
        except Exception as e:
            logger.warning(f"Reference parser rejected {name}: {e}")
            report.mismatches.append(Mismatch(name, hand, {'error': str(e)}))
            continue

        if hand != gen:
            logger.warning(f"Parser mismatch in {name}")
            report.mismatches.append(Mismatch(name, hand, gen))

    logger.info(f"Compared {report.samples} samples: {len(report.mismatches)} mismatches")
    return report


def load_fixtures(directory: Optional[str]) -> List[Tuple[str, str]]:
    """Fixture sources (*.pine, *.txt) sorted by name; a built-in sample if none"""
    path = Path(directory) if directory else None
    if path is None or not path.is_dir():
        logger.debug(f"No fixtures directory at {directory}; using built-in sample")
        return list(FALLBACK_SAMPLES)

    fixtures = [
        (f.name, f.read_text(encoding='utf-8'))
        for f in sorted(path.iterdir())
        if f.is_file() and f.suffix in FIXTURE_SUFFIXES
    ]
    return fixtures or list(FALLBACK_SAMPLES)


def write_report(report: ConformanceReport, path: str) -> Path:
    """Write the report as JSON"""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(report.to_dict(), indent=2, default=str), encoding='utf-8')
    logger.info(f"Wrote parser diff report to {target}")
    return target


def render_markdown(report: ConformanceReport) -> str:
    """Human-readable version of the report"""
    lines = [
        '# Parser conformance report',
        '',
        f"Generated: {report.generated_at}",
        '',
        f"Samples: {report.samples}",
        f"Mismatches: {len(report.mismatches)}",
        '',
    ]

    if report.ok:
        lines.append('All samples parse identically.')
        return '\n'.join(lines) + '\n'

    for mismatch in report.mismatches:
        lines.extend([
            f"## {mismatch.name}",
            '',
            '### hand',
            '',
            '```json',
            json.dumps(mismatch.hand, indent=2, default=str),
            '```',
            '',
            '### gen',
            '',
            '```json',
            json.dumps(mismatch.gen, indent=2, default=str),
            '```',
            '',
        ])
    return '\n'.join(lines)
