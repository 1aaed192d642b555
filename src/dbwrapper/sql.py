"""
SQL placeholder handling.

Callers may write either ``%s`` or ``?`` placeholders regardless of the
backend; the statement layer rewrites them for the active dialect. Rewriting
works on a single-pass tokenization so placeholders inside string literals
are left alone.

- `tokenize_sql()` - Split SQL into literal/placeholder/text tokens
- `standardize_placeholders()` - Convert %s <-> ? for dialect
- `has_placeholders()` - Check if SQL has placeholders
"""
import re
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    POSITIONAL_PH = auto()      # %s or ?
    NAMED_PH = auto()           # %(name)s
    REGEXP_FUNC = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


# regexp_replace(...) is matched whole so '?' inside a pattern is not a placeholder
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<regexp>regexp_replace\s*\((?:[^()'"]|'(?:[^']|'')*'|"(?:[^"]|"")*"|\((?:[^()'"]|'(?:[^']|'')*'|"(?:[^"]|"")*")*\))*\))
    |(?P<named>%\((?P<pname>[^)]+)\)s)
    |(?P<percent_s>%s)
    |(?P<qmark>\?)
""", re.IGNORECASE | re.VERBOSE)

_HAS_PLACEHOLDER = re.compile(r'%s|\?|%\([^)]+\)s')


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text

    >>> [t.type.name for t in tokenize_sql("select '?' , ?")]
    ['SQL_TEXT', 'STRING_LITERAL', 'SQL_TEXT', 'POSITIONAL_PH']
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(
                type=TokenType.SQL_TEXT,
                text=sql[last_end:start],
                start=last_end,
                end=start
            ))

        if match.group('string'):
            ttype = TokenType.STRING_LITERAL
        elif match.group('regexp'):
            ttype = TokenType.REGEXP_FUNC
        elif match.group('named'):
            ttype = TokenType.NAMED_PH
        else:
            ttype = TokenType.POSITIONAL_PH

        tokens.append(Token(type=ttype, text=match.group(0), start=start, end=end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(
            type=TokenType.SQL_TEXT,
            text=sql[last_end:],
            start=last_end,
            end=len(sql)
        ))

    return tokens


def has_placeholders(sql: str | None) -> bool:
    """Check if SQL has any parameter placeholders.

    >>> has_placeholders('select 1'), has_placeholders('select %s')
    (False, True)
    """
    if not sql:
        return False

    if '%' not in sql and '?' not in sql:
        return False

    return bool(_HAS_PLACEHOLDER.search(sql))


def standardize_placeholders(sql: str, dialect: str = 'postgresql') -> str:
    """Convert placeholders between %s and ? based on dialect.

    Parameters
        sql: SQL query string
        dialect: Database dialect

    Returns
        SQL with standardized placeholders

    >>> standardize_placeholders("select * from t where a = %s and b = '%s'", 'sqlite')
    "select * from t where a = ? and b = '%s'"
    >>> standardize_placeholders('select * from t where a = ?', 'postgresql')
    'select * from t where a = %s'
    """
    if not sql:
        return sql

    if dialect == 'sqlite':
        source, target = '%s', '?'
    elif dialect == 'postgresql':
        source, target = '?', '%s'
    else:
        return sql

    if source not in sql:
        return sql

    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.POSITIONAL_PH and token.text == source:
            result.append(target)
        else:
            result.append(token.text)
    return ''.join(result)


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
