"""
Source expansion of capture invocations.

Finds ``capture!(...)`` style invocations in Python source, works out what
is in scope at each one, and substitutes the generated expressions.

Invocations are first replaced by plain calls of exactly the same length
(``capture (   ...   )``) so the module can be parsed with :mod:`ast` while
every position still matches the original text. Calls are matched back to
invocations by position, so user code calling a function of the same name
is never mistaken for one.
"""

from __future__ import annotations

import ast
import io
import logging
import tokenize
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from .diagnostics import (
    CaptureError,
    CaptureSyntaxError,
    Diagnostic,
    GeneratedCodeError,
    SourceText,
    Span,
    byte_to_char_column,
    line_starts,
)
from .scope import MODULE_NAMES, ScopeInfo

# Statements after which `; del name` can be appended
_SIMPLE_STATEMENTS = (
    ast.Expr,
    ast.Assign,
    ast.AugAssign,
    ast.AnnAssign,
    ast.Return,
    ast.Raise,
    ast.Assert,
)


@dataclass
class Invocation:
    """One ``name!(...)`` occurrence in a module.

    ``start``/``end`` cover the whole invocation, ``paren`` is the offset of
    the opening parenthesis and ``text`` is what lies between the
    parentheses.
    """

    index: int
    entry_point: str
    start: int
    paren: int
    end: int
    text: str
    line: int
    column: int


@dataclass
class SiteContext:
    """Scope and enclosing statement of one invocation.

    ``owner`` holds the names bound by the block (module, class or function
    body) the statement belongs to. ``nested`` is set when the invocation
    sits in a lambda or comprehension inside that statement.
    """

    scope: ScopeInfo
    statement: Optional[ast.stmt]
    owner: FrozenSet[str] = frozenset()
    nested: bool = False

    @property
    def is_simple_statement(self) -> bool:
        return isinstance(self.statement, _SIMPLE_STATEMENTS)


def _error(filename: str, source: str, message: str, start: int, end: int, code: str = "syntax") -> Diagnostic:
    text = SourceText(source, filename)
    return Diagnostic(code=code, message=message, span=text.span(start, end))


def find_invocations(source: str, entry_points, filename: str = "<string>") -> List[Invocation]:
    """
    Locate every invocation of the given entry point names.

    Raises
    ------
    CaptureSyntaxError
        If an invocation is unterminated, nested in another one, or the
        module cannot be tokenized
    """
    starts = line_starts(source)

    def offset(position: Tuple[int, int]) -> int:
        row, col = position
        row = min(max(row, 1), len(starts))
        return min(starts[row - 1] + col, len(source))

    try:
        tokens = list(tokenize.generate_tokens(io.StringIO(source).readline))
    except (tokenize.TokenError, SyntaxError) as exc:
        message = exc.args[0] if exc.args else str(exc)
        raise CaptureSyntaxError(
            [_error(filename, source, f"cannot tokenize module: {message}", len(source), len(source), "host-syntax")]
        ) from exc

    def opens_invocation(i: int) -> bool:
        tok = tokens[i]
        if tok.type != tokenize.NAME or tok.string not in entry_points:
            return False
        if i + 2 >= len(tokens) or (i > 0 and tokens[i - 1].string == "."):
            return False
        bang, paren = tokens[i + 1], tokens[i + 2]
        return (
            bang.string == "!"
            and paren.string == "("
            and bang.start == tok.end
            and paren.start[0] == tok.start[0]
        )

    invocations: List[Invocation] = []
    i = 0
    while i < len(tokens):
        if not opens_invocation(i):
            i += 1
            continue

        name = tokens[i]
        depth = 0
        close = None
        for j in range(i + 2, len(tokens)):
            tok = tokens[j]
            if j > i + 2 and opens_invocation(j):
                raise CaptureSyntaxError(
                    [_error(
                        filename, source,
                        f"nested `{tok.string}!` invocations are not supported",
                        offset(tok.start), offset(tok.end),
                    )]
                )
            if tok.type == tokenize.OP and tok.string in "([{":
                depth += 1
            elif tok.type == tokenize.OP and tok.string in ")]}":
                depth -= 1
                if depth == 0:
                    close = j
                    break
        if close is None:
            raise CaptureSyntaxError(
                [_error(
                    filename, source,
                    f"unterminated `{name.string}!` invocation",
                    offset(name.start), offset(name.end),
                )]
            )

        paren = offset(tokens[i + 2].start)
        inner_start = offset(tokens[i + 2].end)
        line, column = tokens[i + 2].end
        invocations.append(
            Invocation(
                index=len(invocations),
                entry_point=name.string,
                start=offset(name.start),
                paren=paren,
                end=offset(tokens[close].end),
                text=source[inner_start:offset(tokens[close].start)],
                line=line,
                column=column,
            )
        )
        i = close + 1

    return invocations


def placeholder_source(source: str, invocations: List[Invocation]) -> str:
    """Replace invocations with same-length plain calls."""
    chars = list(source)
    for invocation in invocations:
        chars[invocation.start + len(invocation.entry_point)] = " "
        for k in range(invocation.paren + 1, invocation.end - 1):
            if chars[k] not in "\r\n":
                chars[k] = " "
    return "".join(chars)


class _BindingCollector(ast.NodeVisitor):
    """Collects names a block binds in its own scope."""

    def __init__(self):
        self.names: Set[str] = set()
        self.globals: Set[str] = set()

    def visit_Name(self, node: ast.Name) -> None:
        if isinstance(node.ctx, (ast.Store, ast.Del)):
            self.names.add(node.id)

    def visit_FunctionDef(self, node) -> None:
        self.names.add(node.name)
        for child in node.decorator_list + node.args.defaults:
            self.visit(child)
        for child in node.args.kw_defaults:
            if child is not None:
                self.visit(child)

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self.names.add(node.name)
        for child in node.decorator_list + node.bases:
            self.visit(child)
        for kw in node.keywords:
            self.visit(kw.value)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        for child in node.args.defaults:
            self.visit(child)
        for child in node.args.kw_defaults:
            if child is not None:
                self.visit(child)

    def _visit_comprehension(self, node) -> None:
        # only assignment expressions leak out of a comprehension
        for child in ast.walk(node):
            if isinstance(child, ast.NamedExpr) and isinstance(child.target, ast.Name):
                self.names.add(child.target.id)

    visit_ListComp = visit_SetComp = visit_DictComp = visit_GeneratorExp = _visit_comprehension

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            self.names.add(alias.asname or alias.name.split(".")[0])

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        for alias in node.names:
            if alias.name != "*":
                self.names.add(alias.asname or alias.name)

    def visit_Global(self, node: ast.Global) -> None:
        self.globals.update(node.names)

    def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
        if node.name:
            self.names.add(node.name)
        self.generic_visit(node)

    def visit_MatchAs(self, node) -> None:
        if node.name:
            self.names.add(node.name)
        self.generic_visit(node)

    visit_MatchStar = visit_MatchAs

    def visit_MatchMapping(self, node) -> None:
        if node.rest:
            self.names.add(node.rest)
        self.generic_visit(node)


def bound_names(node) -> Set[str]:
    """Names local to a function, lambda or comprehension."""
    if isinstance(node, (ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp)):
        collector = _BindingCollector()
        for generator in node.generators:
            collector.visit(generator.target)
        return collector.names

    args = node.args
    names = {arg.arg for arg in args.posonlyargs + args.args + args.kwonlyargs}
    if args.vararg:
        names.add(args.vararg.arg)
    if args.kwarg:
        names.add(args.kwarg.arg)

    collector = _BindingCollector()
    body = node.body if isinstance(node.body, list) else [node.body]
    for statement in body:
        collector.visit(statement)
    return (names | collector.names) - collector.globals


def module_names(tree: ast.Module) -> Set[str]:
    """Module-level names, including ones declared `global` in functions."""
    collector = _BindingCollector()
    for statement in tree.body:
        collector.visit(statement)
    names = set(collector.names)
    for node in ast.walk(tree):
        if isinstance(node, ast.Global):
            names.update(node.names)
    return names | MODULE_NAMES


class _SiteLocator(ast.NodeVisitor):
    """Finds the placeholder calls and records the scope around each.

    Parameters
    ----------
    sites : Dict[int, int]
        Character offset of each invocation, mapped to its index
    source : str
        Placeholder source the tree was parsed from
    globals_ : Set[str]
        Module-level names
    """

    def __init__(self, sites: Dict[int, int], source: str, globals_: Set[str]):
        self.offsets = sites
        self.starts = line_starts(source)
        self.lines = source.split("\n")
        self.globals = frozenset(globals_)
        self.scopes: List[Set[str]] = []
        # names bound by the module, class and function bodies being visited
        self.blocks: List[FrozenSet[str]] = [self.globals]
        self.expression_depth = 0
        self.statements: List[ast.stmt] = []
        self.sites: Dict[int, SiteContext] = {}

    def visit(self, node):
        if isinstance(node, ast.stmt):
            self.statements.append(node)
            try:
                return super().visit(node)
            finally:
                self.statements.pop()
        return super().visit(node)

    def _offset(self, node: ast.AST) -> int:
        line = self.lines[node.lineno - 1]
        return self.starts[node.lineno - 1] + byte_to_char_column(line, node.col_offset)

    def _visit_function(self, node) -> None:
        for decorator in node.decorator_list:
            self.visit(decorator)
        self.visit(node.args)
        if node.returns is not None:
            self.visit(node.returns)
        names = bound_names(node)
        self.scopes.append(names)
        self.blocks.append(frozenset(names))
        for statement in node.body:
            self.visit(statement)
        self.blocks.pop()
        self.scopes.pop()

    visit_FunctionDef = visit_AsyncFunctionDef = _visit_function

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for child in node.decorator_list + node.bases:
            self.visit(child)
        for kw in node.keywords:
            self.visit(kw.value)
        # class bodies are not visible from nested functions, so no scope
        collector = _BindingCollector()
        for statement in node.body:
            collector.visit(statement)
        self.blocks.append(frozenset(collector.names))
        for statement in node.body:
            self.visit(statement)
        self.blocks.pop()

    def _visit_nested(self, names: Set[str], children) -> None:
        self.scopes.append(names)
        self.expression_depth += 1
        for child in children:
            self.visit(child)
        self.expression_depth -= 1
        self.scopes.pop()

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.visit(node.args)
        self._visit_nested(bound_names(node), [node.body])

    def _visit_comprehension(self, node) -> None:
        # the first iterable is evaluated in the enclosing scope
        self.visit(node.generators[0].iter)
        children = []
        for index, generator in enumerate(node.generators):
            children.append(generator.target)
            if index:
                children.append(generator.iter)
            children.extend(generator.ifs)
        for field_name in ("elt", "key", "value"):
            child = getattr(node, field_name, None)
            if child is not None:
                children.append(child)
        self._visit_nested(bound_names(node), children)

    visit_ListComp = visit_SetComp = visit_DictComp = visit_GeneratorExp = _visit_comprehension

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        index = self.offsets.get(self._offset(node)) if isinstance(func, ast.Name) else None
        if index is not None and not node.args and not node.keywords:
            enclosing = frozenset().union(*self.scopes) if self.scopes else frozenset()
            self.sites[index] = SiteContext(
                scope=ScopeInfo(locals=enclosing, globals=self.globals),
                statement=self.statements[-1] if self.statements else None,
                owner=self.blocks[-1],
                nested=self.expression_depth > 0,
            )
            return
        self.generic_visit(node)


def _relocation_problem(site: SiteContext, names: List[str]) -> Optional[Tuple[str, str]]:
    """Return (message, hint) when *names* cannot be unbound after the site's statement."""
    listed = ", ".join(f"`{name}`" for name in names)
    if not site.is_simple_statement:
        return (
            f"cannot relocate {listed} out of a compound statement header",
            "assign the closure to a variable in its own statement first, "
            "or capture with `clone`/`ref` instead of `move`",
        )
    if site.nested:
        return (
            f"cannot relocate {listed} out of a lambda or comprehension",
            "build the closure in its own statement, "
            "or capture with `clone`/`ref` instead of `move`",
        )
    foreign = [name for name in names if name not in site.owner]
    if foreign:
        listed = ", ".join(f"`{name}`" for name in foreign)
        return (
            f"cannot relocate {listed}: not a variable of the enclosing block",
            "only names bound in the same function (or module) can be moved; "
            "capture with `clone`/`ref` instead",
        )
    return None


class SourceExpander:
    """Expands every invocation in a module.

    Parameters
    ----------
    compiler : CaptureCompiler
        Compiler used for each invocation
    logger : logging.Logger, optional
        Logger instance
    """

    def __init__(self, compiler, logger: Optional[logging.Logger] = None):
        self.compiler = compiler
        self.config = compiler.config
        self.logger = logger or logging.getLogger(__name__)

    def expand(self, source: str, filename: str = "<string>") -> str:
        """
        Return *source* with all invocations expanded.

        Every invocation is compiled even after one fails, so all problems
        in the module are reported together.

        Raises
        ------
        CaptureError
            The failing invocation's own error, or one carrying the
            diagnostics of every failing invocation
        GeneratedCodeError
            If the expanded module does not compile
        """
        invocations = find_invocations(source, self.config.entry_points, filename)
        if not invocations:
            self.logger.debug(f"{filename}: no invocations")
            return source

        placeholder = placeholder_source(source, invocations)
        try:
            tree = ast.parse(placeholder, filename=filename)
        except SyntaxError as exc:
            raise CaptureSyntaxError([self._host_error(exc, filename, "host-syntax")]) from exc

        locator = _SiteLocator(
            {invocation.start: invocation.index for invocation in invocations},
            placeholder,
            module_names(tree),
        )
        locator.visit(tree)

        starts = line_starts(placeholder)
        lines = placeholder.split("\n")
        edits: List[Tuple[int, int, str]] = []
        relocations: Dict[int, List[str]] = {}
        failures: List[CaptureError] = []

        for invocation in invocations:
            site = locator.sites.get(invocation.index)
            if site is None:
                failures.append(CaptureSyntaxError([
                    _error(filename, source,
                           f"`{invocation.entry_point}!` is not in expression position",
                           invocation.start, invocation.paren)
                ]))
                continue
            try:
                expansion = self.compiler.expand(
                    invocation.text,
                    entry_point=invocation.entry_point,
                    scope=site.scope,
                    filename=filename,
                    line=invocation.line,
                    column=invocation.column,
                )
            except CaptureError as exc:
                failures.append(exc)
                continue

            edits.append((invocation.start, invocation.end, expansion.expression))
            if not expansion.relocations:
                continue
            problem = _relocation_problem(site, expansion.relocations)
            if problem is not None:
                message, hint = problem
                failures.append(CaptureError([
                    Diagnostic(
                        code="relocation-site",
                        message=message,
                        span=SourceText(source, filename).span(invocation.start, invocation.end),
                        hint=hint,
                    )
                ]))
                continue
            statement = site.statement
            end = starts[statement.end_lineno - 1] + byte_to_char_column(
                lines[statement.end_lineno - 1], statement.end_col_offset
            )
            pending = relocations.setdefault(end, [])
            pending.extend(name for name in expansion.relocations if name not in pending)

        if len(failures) == 1:
            raise failures[0]
        if failures:
            raise CaptureError(d for failure in failures for d in failure.diagnostics)

        for end, names in relocations.items():
            edits.append((end, end, "; del " + ", ".join(names)))

        expanded = source
        for start, end, replacement in sorted(edits, key=lambda edit: (edit[0], edit[1]), reverse=True):
            expanded = expanded[:start] + replacement + expanded[end:]

        self.logger.info(f"{filename}: expanded {len(invocations)} invocation(s)")

        if self.config.verify_output:
            try:
                compile(expanded, filename, "exec", dont_inherit=True)
            except SyntaxError as exc:
                raise GeneratedCodeError([self._host_error(exc, filename, "generated-code")]) from exc

        return expanded

    def _host_error(self, exc: SyntaxError, filename: str, code: str) -> Diagnostic:
        line = exc.lineno or 1
        column = max((exc.offset or 1) - 1, 0)
        span = None
        if exc.lineno is not None:
            span = Span(line, column, line, column + 1, filename)
        if code == "generated-code":
            return Diagnostic(
                code=code,
                message=f"expanded code does not compile: {exc.msg}",
                span=span,
                hint="`await` and `yield` may only appear in the first capture "
                "expression; compute other values before the invocation",
            )
        return Diagnostic(code=code, message=f"invalid Python: {exc.msg}", span=span)
