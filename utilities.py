"""
Utilities module for the Scheme front-end
Token cursor and delimiter helpers shared by the datum reader and the parser
"""

from typing import List, Optional, Sequence

from syntax import Span, Token


DEFAULT_MAX_DEPTH = 100


# ==================== SPAN UTILITIES ====================

def end_of_input_span(source: str, source_path: str) -> Span:
  """Empty span positioned just past the last character of the source"""
  return Span(len(source), len(source), source_path)


def covering_span(tokens: Sequence[Token], start: int, stop: int, fallback: Span) -> Span:
  """
  Span covering tokens[start:stop]

  Args:
    tokens: Token stream
    start: Index of the first covered token
    stop: Index one past the last covered token
    fallback: Span used when the range is empty

  Returns:
    Span from the first token's start to the last token's end
  """
  if stop <= start:
    return fallback
  return Span(tokens[start].span.start, tokens[stop - 1].span.end, tokens[start].span.filename)


# ==================== DELIMITER UTILITIES ====================

def skip_nested_delimiters(tokens: Sequence[Token], index: int) -> int:
  """
  Skip a form starting at index, respecting nested brackets

  Args:
    tokens: Token stream
    index: Position of the form's first token

  Returns:
    Index just past the matching close bracket, or len(tokens) when the
    bracket is never closed. A non-bracket token is skipped on its own.

  Examples:
    skip_nested_delimiters(tokens_of("(a (b) c) d"), 0) -> 6
    skip_nested_delimiters(tokens_of("x y"), 0) -> 1
  """
  if index >= len(tokens):
    return len(tokens)
  if not tokens[index].is_open():
    return index + 1

  depth = 0
  for position in range(index, len(tokens)):
    token = tokens[position]
    if token.is_open():
      depth += 1
    elif token.is_close():
      depth -= 1
      if depth == 0:
        return position + 1
  return len(tokens)


# ==================== TOKEN CURSOR ====================

class TokenCursor:
  """Explicit position cursor over a token stream"""

  def __init__(self, tokens: Sequence[Token], source: str, source_path: str):
    self.tokens: List[Token] = list(tokens)
    self.pos = 0
    self.eoi = end_of_input_span(source, source_path)

  def peek(self, offset: int = 0) -> Optional[Token]:
    """Token at the cursor (plus offset), or None past the end"""
    position = self.pos + offset
    if position < len(self.tokens):
      return self.tokens[position]
    return None

  def advance(self) -> Token:
    token = self.tokens[self.pos]
    self.pos += 1
    return token

  def at_end(self) -> bool:
    return self.pos >= len(self.tokens)

  def span_here(self) -> Span:
    """Span of the current token, or the end-of-input span"""
    token = self.peek()
    return token.span if token is not None else self.eoi

  def skip_form(self, index: int) -> Span:
    """
    Move the cursor past the form starting at index

    Returns:
      Span covering every skipped token
    """
    stop = skip_nested_delimiters(self.tokens, index)
    # Always make progress, even if index is behind the cursor
    stop = max(stop, self.pos, index + 1) if index < len(self.tokens) else max(stop, self.pos)
    self.pos = min(stop, len(self.tokens))
    return covering_span(self.tokens, index, self.pos, self.eoi)
