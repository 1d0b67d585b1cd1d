import io

from shpool.etc_environment import parse_compat

SAMPLE = """
BASIC=foo
    LEADINGWS=foo
QUOTEDCOMMENT='surely a # in the middle of a quoted value won't count as a comment'
LEADINGUNTERM='wut is going on
TRAILINGUNTERM=wut is going on'
export EXPORTED1SPACE=foo
export  EXPORTED2SPACE=foo
MISMATCHQUOTE='wut is going on"
DOUBLEEQUALS=foo=bar
DOUBLEEQUALSQUOTE='foo=bar'
        """


def test_parse_file():
    pairs = parse_compat(io.StringIO(SAMPLE))
    assert pairs == [
        ("BASIC", "foo"),
        ("LEADINGWS", "foo"),
        ("QUOTEDCOMMENT", "surely a "),
        ("LEADINGUNTERM", "wut is going on"),
        ("TRAILINGUNTERM", "wut is going on'"),
        ("EXPORTED1SPACE", "foo"),
        ("MISMATCHQUOTE", "wut is going on"),
        ("DOUBLEEQUALS", "foo=bar"),
        ("DOUBLEEQUALSQUOTE", "foo=bar"),
    ]


def test_comments_blank_and_invalid_lines_skipped():
    text = "# comment\n\nNOEQUALS\n=value\nBAD-KEY=x\nGOOD=1\n"
    assert parse_compat(io.StringIO(text)) == [("GOOD", "1")]


def test_empty_input():
    assert parse_compat(io.StringIO("")) == []