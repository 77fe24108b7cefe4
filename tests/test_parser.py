import pytest

from star_script.language.ast_nodes import (
    Array, Assignment, Binary, Call, CALL_SENTINEL, Identifier, Index, Number, Program, String, Unary,
    node_from_dict
)
from star_script.language.parser import StarLexer, TokenType, parse, parse_expression, unescape_string


def expr_of(source):
    return parse(source).assignments[0].expr


def test_multiplication_binds_tighter_than_addition():
    assert expr_of("x = 1 + 2 * 3") == Binary('+', Number(1), Binary('*', Number(2), Number(3)))


def test_parentheses_override_precedence():
    assert expr_of("x = (1 + 2) * 3") == Binary('*', Binary('+', Number(1), Number(2)), Number(3))


def test_subtraction_is_left_associative():
    assert expr_of("x = 1 - 2 - 3") == Binary('-', Binary('-', Number(1), Number(2)), Number(3))


def test_power_is_right_associative():
    assert expr_of("x = 2 ^ 3 ^ 2") == Binary('^', Number(2), Binary('^', Number(3), Number(2)))


def test_unary_sign_applies_before_power():
    assert expr_of("x = -2 ^ 2") == Binary('^', Unary('-', Number(2)), Number(2))
    assert expr_of("x = 2 ^ -1") == Binary('^', Number(2), Unary('-', Number(1)))


def test_nested_unary():
    assert expr_of("x = - -1") == Unary('-', Unary('-', Number(1)))


def test_named_arguments_are_interleaved():
    program = parse("f(a=1, b=2)")
    assignment = program.assignments[0]
    assert assignment.id == CALL_SENTINEL
    assert assignment.expr.args == (Identifier('a'), Number(1), Identifier('b'), Number(2))
    assert assignment.expr.args[0].keyword
    assert assignment.expr.args[2].keyword


def test_positional_identifier_is_not_a_keyword():
    call = expr_of("a = sma(close, 14)")
    assert call == Call('sma', (Identifier('close'), Number(14)))
    assert not call.args[0].keyword
    assert call.split_args() == ([Identifier('close'), Number(14)], [])


def test_options_object_flattens_to_keyword_pairs():
    call = parse('plot(a, { title: "x", linewidth: 2 })').assignments[0].expr
    assert call.args == (Identifier('a'), Identifier('title'), String('x'), Identifier('linewidth'), Number(2))
    positional, named = call.split_args()
    assert positional == [Identifier('a')]
    assert named == [('title', String('x')), ('linewidth', Number(2))]


def test_indicator_lines_kept_verbatim():
    program = parse('  indicator("My Script", overlay=true)  \nx = 1\n')
    assert program.indicators == ('indicator("My Script", overlay=true)',)
    assert len(program.assignments) == 1


def test_indicator_prefix_needs_word_boundary():
    program = parse("indicatorValue = 1")
    assert program.indicators == ()
    assert program.assignments == (Assignment('indicatorValue', Number(1)),)


def test_comments_and_blank_lines_are_skipped():
    program = parse("// heading\n\n/* block line */\na = 1 // trailing\n   \n")
    assert program.assignments == (Assignment('a', Number(1)),)


def test_unparseable_lines_are_dropped():
    source = "a = 1\nthis is not valid\nb = (1 + \nc = 3 $ 4\nd = 2\n"
    program = parse(source)
    assert [a.id for a in program.assignments] == ['a', 'd']


def test_bare_non_call_expressions_are_dropped():
    assert parse("1 + 2\nf(x)[0]\nclose\n").assignments == ()


def test_dotted_call_with_index():
    assert expr_of("x = ta.hma(close, 12)[2]") == Index(
        Call('ta.hma', (Identifier('close'), Number(12))), Number(2)
    )


def test_chained_index():
    assert expr_of("x = close[1][0]") == Index(Index(Identifier('close'), Number(1)), Number(0))


def test_array_literal():
    assert expr_of('x = [1, 2.5, "a"]') == Array((Number(1), Number(2.5), String('a')))
    assert expr_of('x = []') == Array(())


def test_number_literals_keep_their_type():
    assert isinstance(expr_of("x = 12").value, int)
    assert expr_of("x = .5") == Number(0.5)
    value = expr_of("x = 1.0").value
    assert isinstance(value, float) and value == 1.0


def test_string_escapes():
    assert expr_of(r'x = "a\"b\n"') == String('a"b\n')
    assert expr_of(r"x = 'it\'s'") == String("it's")
    assert unescape_string(r'tab\there\\') == 'tab\there\\'
    assert unescape_string(r'\q') == r'\q'


def test_unterminated_string_drops_line():
    assert parse('x = "abc').assignments == ()


def test_crlf_line_endings():
    program = parse("a = 1\r\nb = 2\r\n")
    assert [a.id for a in program.assignments] == ['a', 'b']


def test_call_sentinel_is_not_assignable():
    assert parse("_call = 1").assignments == ()


def test_parse_expression_returns_none_on_leftovers():
    assert parse_expression("1 2") is None
    assert parse_expression("f(1,)") is None
    assert parse_expression("1 + 2") == Binary('+', Number(1), Number(2))


def test_lexer_tokens():
    tokens = StarLexer("a = f(1.5, 'x') // done").tokenize()
    assert [t.type for t in tokens] == [
        TokenType.IDENTIFIER, TokenType.ASSIGN, TokenType.IDENTIFIER, TokenType.LPAREN,
        TokenType.NUMBER, TokenType.COMMA, TokenType.STRING, TokenType.RPAREN, TokenType.EOF,
    ]
    assert tokens[4].value == 1.5


def test_program_dict_round_trip_keeps_keyword_markers():
    program = parse('indicator("t")\nplot(close, title="c")\nx = -a[1] ^ 2\n')
    rebuilt = Program.from_dict(program.to_dict())
    assert rebuilt == program
    assert rebuilt.assignments[0].expr.args[1].keyword


def test_node_from_dict_rejects_unknown_types():
    with pytest.raises(ValueError):
        node_from_dict({'type': 'Ternary'})


def test_deeply_nested_line_is_dropped():
    deep = "a = " + "(" * 300 + "1" + ")" * 300
    program = parse(deep + "\nb = 2\n")
    assert [a.id for a in program.assignments] == ['b']
    assert parse_expression("(" * 300 + "1" + ")" * 300) is None


def test_parenthesized_call_is_not_a_statement():
    assert parse("(f(x))\n").assignments == ()
    assert parse("f (x)\n").assignments[0].expr == Call('f', (Identifier('x'),))
