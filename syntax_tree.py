"""
Scheme abstract syntax tree
Immutable node classes produced by the syntactic parser, plus traversal and
pretty printing helpers
"""

from typing import Iterator, List, Optional, Union
from dataclasses import dataclass, field

from syntax import Primitive, Span


# ============================================================================
# NODES
# ============================================================================

@dataclass(frozen=True)
class Identifier:
  """Identifier with the span it was written at"""
  name: str
  span: Span = field(compare=False)

  def __str__(self) -> str:
    return self.name


class Expression:
  """Base class of every expression node"""

  def children(self) -> List['Node']:
    return []


@dataclass(frozen=True)
class ProcedureCall(Expression):
  operator: Expression
  args: List[Expression]
  span: Span = field(compare=False)

  def children(self) -> List['Node']:
    return [self.operator] + list(self.args)


@dataclass(frozen=True)
class PrimitiveExpression(Expression):
  primitive: Primitive
  span: Span = field(compare=False)


@dataclass(frozen=True)
class Procedure(Expression):
  """lambda expression; variadic procedures bind all arguments to args[0]"""
  args: List[Identifier]
  body: 'ProcedureBody'
  span: Span = field(compare=False)
  variadic: bool = False

  def children(self) -> List['Node']:
    return list(self.args) + self.body.children()


@dataclass(frozen=True)
class Conditional(Expression):
  test: Expression
  conseq: Expression
  alter: Optional[Expression]
  span: Span = field(compare=False)

  def children(self) -> List['Node']:
    nodes = [self.test, self.conseq]
    if self.alter is not None:
      nodes.append(self.alter)
    return nodes


@dataclass(frozen=True)
class Assignment(Expression):
  target: Identifier
  value: Expression
  span: Span = field(compare=False)

  def children(self) -> List['Node']:
    return [self.target, self.value]


@dataclass(frozen=True)
class ErrorExpression(Expression):
  """Placeholder for a form that failed to parse"""
  span: Span = field(compare=False)


@dataclass(frozen=True)
class Definition:
  name: Identifier
  value: Expression
  span: Span = field(compare=False)

  def children(self) -> List['Node']:
    return [self.name, self.value]


@dataclass(frozen=True)
class ProcedureBody:
  """Leading definitions followed by expressions; last_expr is the tail expression"""
  defs: List[Definition]
  exprs: List[Expression]
  last_expr: Expression

  def children(self) -> List['Node']:
    return list(self.defs) + list(self.exprs) + [self.last_expr]

  def expressions(self) -> List[Expression]:
    return list(self.exprs) + [self.last_expr]


Program = ProcedureBody

Node = Union[Expression, Definition, Identifier]


# ============================================================================
# TRAVERSAL
# ============================================================================

def child_nodes(node) -> List[Node]:
  if isinstance(node, Identifier):
    return []
  return node.children()


def walk(node) -> Iterator[Node]:
  """Yield every node below node (and node itself unless it is a body), parents first"""
  if not isinstance(node, ProcedureBody):
    yield node
  for child in child_nodes(node):
    yield from walk(child)


def find_nodes_by_type(node, node_type: type) -> List[Node]:
  """Find all nodes of a specific class in a tree"""
  return [found for found in walk(node) if isinstance(found, node_type)]


def has_errors(program: Program) -> bool:
  return bool(find_nodes_by_type(program, ErrorExpression))


# ============================================================================
# PRETTY PRINTING
# ============================================================================

def _describe(node, source: Optional[str]) -> str:
  if isinstance(node, Identifier):
    label = f"Identifier({node.name})"
  elif isinstance(node, PrimitiveExpression):
    label = f"Primitive({node.primitive.type} {node.primitive})"
  elif isinstance(node, Procedure):
    label = "Procedure(variadic)" if node.variadic else "Procedure"
  elif isinstance(node, Conditional):
    label = "Conditional" if node.alter is not None else "Conditional(no alternative)"
  else:
    label = type(node).__name__

  if source is not None:
    snippet = node.span.text(source)
    if "\n" in snippet or len(snippet) > 40:
      snippet = snippet.split("\n")[0][:37] + "..."
    label += f"  {snippet!r}"
  return label


def pretty_print_node(node, source: Optional[str] = None, indent: int = 0) -> str:
  """Pretty print a node for debugging, optionally with its source text"""
  result = "  " * indent + _describe(node, source) + "\n"
  if isinstance(node, Procedure):
    for arg in node.args:
      result += pretty_print_node(arg, source, indent + 1)
    result += pretty_print_body(node.body, source, indent + 1)
    return result
  for child in child_nodes(node):
    result += pretty_print_node(child, source, indent + 1)
  return result


def pretty_print_body(body: ProcedureBody, source: Optional[str] = None, indent: int = 0) -> str:
  result = "  " * indent + "ProcedureBody\n"
  for definition in body.defs:
    result += pretty_print_node(definition, source, indent + 1)
  for expr in body.exprs:
    result += pretty_print_node(expr, source, indent + 1)
  result += "  " * (indent + 1) + "tail:\n"
  result += pretty_print_node(body.last_expr, source, indent + 2)
  return result


def pretty_print_program(program: Program, source: Optional[str] = None) -> str:
  return pretty_print_body(program, source)
