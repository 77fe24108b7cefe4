import json

import pytest

from star_script.language.ast_nodes import Program
from star_script.language.conformance import (
    FALLBACK_SAMPLES, canonicalize, compare_parsers, load_fixtures, render_markdown, write_report
)
from star_script.language.grammar_parser import GrammarParseError, adapt_generated_program, parse_generated
from star_script.language.parser import parse

AGREEING_SOURCES = [
    "a = 1 + 2 * 3",
    "b = (1 + 2) * 3\nc = 2 ^ 3 ^ 2\nd = -2 ^ 2",
    "e = - -x + +y",
    'plot(close, title="Close", linewidth=2)',
    'plot(close, { title: "Close", linewidth: 2 })',
    "x = ta.hma(close, 12)[2]\ny = close[1][0]",
    'arr = [1, 2.5, .5, "s", \'t\']\nempty = []',
    'f()\ng(a, b = 1, { c: 2 })',
    '// comment\n\n  indicator("t", overlay=true)\nindicatorValue = 1\n/* block */\nz = 1 // tail\n',
    'esc = "a\\"b\\n"',
    "a = 1\r\nb = 2\r\n",
    "",
]


@pytest.mark.parametrize("source", AGREEING_SOURCES)
def test_generated_parser_agrees_with_hand_parser(source):
    generated = adapt_generated_program(parse_generated(source))
    hand = parse(source)
    assert generated == hand
    assert canonicalize(generated) == canonicalize(hand)


def test_raw_generated_nodes_carry_locations():
    raw = parse_generated("a = 1\nb = f(x=2)\n")
    assert raw['type'] == 'Program'
    second = raw['assignments'][1]
    assert second['loc']['line'] == 2
    assert second['expr']['args'][0]['type'] == 'NamedArg'


def test_generated_parser_rejects_invalid_source():
    with pytest.raises(GrammarParseError):
        parse_generated("a = 1 +")


def test_canonicalize_drops_location_keys():
    raw = {'type': 'Number', 'value': 1, 'loc': {'line': 1}, 'start': 0, 'end': 1, 'location': None}
    assert canonicalize(raw) == {'type': 'Number', 'value': 1}
    assert canonicalize([raw]) == [{'type': 'Number', 'value': 1}]


def test_canonicalize_accepts_programs():
    program = parse("a = 1")
    assert canonicalize(program) == {
        'assignments': [{'expr': {'type': 'Number', 'value': 1}, 'id': 'a'}],
        'indicators': [],
    }


def test_compare_parsers_reports_agreement():
    report = compare_parsers([(f"s{i}", s) for i, s in enumerate(AGREEING_SOURCES)])
    assert report.ok
    assert report.samples == len(AGREEING_SOURCES)


def test_reference_errors_become_mismatches():
    report = compare_parsers([("junk", "a = 1\nthis is junk\n")])
    assert not report.ok
    mismatch = report.mismatches[0]
    assert mismatch.name == "junk"
    assert 'error' in mismatch.gen
    assert mismatch.hand['assignments'][0]['id'] == 'a'


def test_custom_reference_parser():
    report = compare_parsers([("s", "a = 1")], reference=lambda source: Program())
    assert len(report.mismatches) == 1
    assert report.mismatches[0].gen == {'assignments': [], 'indicators': []}


def test_repository_fixtures_agree(fixtures_dir):
    report = compare_parsers(load_fixtures(str(fixtures_dir)))
    assert report.samples == 3
    assert report.ok, report.mismatches


def test_load_fixtures_falls_back_to_sample(tmp_path):
    assert load_fixtures(str(tmp_path / "missing")) == FALLBACK_SAMPLES
    assert load_fixtures(None) == FALLBACK_SAMPLES
    assert load_fixtures(str(tmp_path)) == FALLBACK_SAMPLES


def test_load_fixtures_filters_by_suffix(tmp_path):
    (tmp_path / "b.txt").write_text("b = 2\n")
    (tmp_path / "a.pine").write_text("a = 1\n")
    (tmp_path / "notes.md").write_text("# ignored\n")
    assert load_fixtures(str(tmp_path)) == [("a.pine", "a = 1\n"), ("b.txt", "b = 2\n")]


def test_write_report(tmp_path):
    report = compare_parsers([("junk", "???")])
    path = write_report(report, str(tmp_path / "out" / "parser-diff.json"))
    data = json.loads(path.read_text())
    assert 'generatedAt' in data
    assert data['mismatches'][0]['name'] == 'junk'
    assert set(data['mismatches'][0]) == {'name', 'hand', 'gen'}


def test_render_markdown():
    clean = render_markdown(compare_parsers(FALLBACK_SAMPLES))
    assert "Mismatches: 0" in clean

    dirty = render_markdown(compare_parsers([("junk", "???")]))
    assert "## junk" in dirty
    assert "```json" in dirty


@pytest.mark.parametrize("source", ["_call = 1", "(f(x))"])
def test_reserved_and_parenthesized_statements_rejected_by_both(source):
    with pytest.raises(GrammarParseError):
        parse_generated(source)
    assert parse(source).assignments == ()


def test_reserved_target_error_names_the_target():
    with pytest.raises(GrammarParseError, match="_call"):
        parse_generated("a = 1\n_call = f(x)\n")
