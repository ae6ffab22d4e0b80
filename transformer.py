"""
Scheme syntax transformers
Rewrite rules applied to the datum tree before the syntactic parse, the seed
of a macro system
"""

from typing import List, Optional, Sequence, Tuple

from datum import ERROR, LIST, Datum, datumize_recover, into_tokens
from error_handling import ParseError
from syntax import Span, Token
from utilities import DEFAULT_MAX_DEPTH


class ExpansionContext:
    """State visible to transformers during one expansion pass"""

    def __init__(self):
        self.registered: List['Transformer'] = []

    def register(self, transformer: 'Transformer'):
        """Make a new transformer available to subsequent expansions"""
        self.registered.append(transformer)


class Transformer:
    """Rewrite rule over a single datum

    transform returns either the datum unchanged or its replacement.
    """

    def transform(self, datum: Datum, context: ExpansionContext) -> Datum:
        raise NotImplementedError


class Begin(Transformer):
    """(begin e1 e2 ...) => ((lambda () e1 e2 ...))

    The synthesized lambda list runs from the begin keyword to the closing
    bracket of the form, so it sits strictly inside the call list.
    """

    def transform(self, datum: Datum, context: ExpansionContext) -> Datum:
        if not datum.head_is_identifier("begin"):
            return datum

        begin_span = datum.value[0].span
        lambda_span = Span(begin_span.start, datum.span.end, datum.span.filename)
        lambda_form = [
            Datum.keyword("lambda", begin_span),
            Datum.from_list([], begin_span),
        ] + datum.value[1:]
        return Datum.from_list([Datum.from_list(lambda_form, lambda_span)], datum.span)


def builtin_transformers() -> List[Transformer]:
    return [Begin()]


def apply_transformer(transformer: Transformer, datum: Datum,
                      context: ExpansionContext) -> Datum:
    """Apply transformer once to every datum of the tree

    Children are rewritten before their parent, and a transformer's output is
    not visited again.
    """
    if datum.type == LIST:
        children = [apply_transformer(transformer, child, context) for child in datum.value]
        datum = Datum.from_list(children, datum.span)
    if datum.type == ERROR:
        return datum
    return transformer.transform(datum, context)


def expand_data(transformers: Sequence[Transformer], data: List[Datum],
                debug: bool = False) -> Tuple[List[Datum], List[Transformer]]:
    """Run each transformer over all data, in registration order"""
    context = ExpansionContext()
    for transformer in transformers:
        if debug:
            print(f"[expander] applying {type(transformer).__name__}")
        data = [apply_transformer(transformer, datum, context) for datum in data]
    return data, context.registered


def expand_recover(transformers: Sequence[Transformer], tokens: Sequence[Token], source: str,
                   source_path: str = "<input>", max_depth: int = DEFAULT_MAX_DEPTH,
                   debug: bool = False) -> Tuple[List[Token], List[Transformer], Optional[ParseError]]:
    """Expand the well-formed parts of a token stream

    Malformed regions survive as their original tokens.
    """
    data, error = datumize_recover(tokens, source, source_path, max_depth)
    data, registered = expand_data(transformers, data, debug)
    return into_tokens(data), registered, error


def expand(transformers: Sequence[Transformer], tokens: Sequence[Token], source: str,
           source_path: str = "<input>", max_depth: int = DEFAULT_MAX_DEPTH,
           debug: bool = False) -> Tuple[List[Token], List[Transformer]]:
    """Expand a token stream, raising ParseError when it cannot be read as data"""
    expanded, registered, error = expand_recover(
        transformers, tokens, source, source_path, max_depth, debug
    )
    if error is not None:
        raise error
    return expanded, registered
