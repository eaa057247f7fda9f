"""Export and class member extraction from TypeScript/JavaScript syntax trees."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from tree_sitter import Node

from .parser import LanguageParser, language_for_path

logger = logging.getLogger(__name__)


class SymbolKind(str, Enum):
    """Declaration shapes the extractor reports."""
    CLASS = 'class'
    FUNCTION = 'function'
    CONST = 'const'
    LET = 'let'
    VAR = 'var'
    TYPE = 'type'
    INTERFACE = 'interface'
    ENUM = 'enum'
    NAMESPACE = 'namespace'
    PROPERTY = 'property'
    METHOD = 'method'
    GETTER = 'getter'
    SETTER = 'setter'

    @property
    def is_member(self) -> bool:
        return self in MEMBER_KINDS


MEMBER_KINDS = frozenset({
    SymbolKind.PROPERTY,
    SymbolKind.METHOD,
    SymbolKind.GETTER,
    SymbolKind.SETTER,
})


class AccessLevel(str, Enum):
    PUBLIC = 'public'
    PROTECTED = 'protected'
    PRIVATE = 'private'


@dataclass(frozen=True)
class SourceRange:
    """Character span inside one file, with 0-based line/column endpoints."""
    start: int
    end: int
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @classmethod
    def from_offsets(cls, text: str, start: int, end: int) -> 'SourceRange':
        """Build a range from character offsets into ``text``."""
        start_line = text.count('\n', 0, start)
        start_column = start - (text.rfind('\n', 0, start) + 1)
        end_line = start_line + text.count('\n', start, end)
        end_column = end - (text.rfind('\n', 0, end) + 1)
        return cls(start, end, start_line, start_column, end_line, end_column)

    def contains(self, start: int, end: int) -> bool:
        """True when [start, end) lies entirely inside this range."""
        return self.start <= start and end <= self.end


@dataclass(frozen=True)
class Symbol:
    """A declared export or class member subject to usage analysis."""
    name: str
    kind: SymbolKind
    range: SourceRange
    file_path: str
    access_level: AccessLevel = AccessLevel.PUBLIC
    markers: Tuple[str, ...] = ()  # decorator names, e.g. ('Column', 'IsString')
    container_name: Optional[str] = None  # enclosing class for members
    is_default: bool = False
    is_exported: bool = False

    @property
    def has_marker(self) -> bool:
        return bool(self.markers)

    @property
    def is_member(self) -> bool:
        return self.kind.is_member

    @property
    def qualified_name(self) -> str:
        """``Class.member`` for members, the bare name for exports."""
        if self.container_name:
            return f"{self.container_name}.{self.name}"
        return self.name


@dataclass
class ExtractionResult:
    """Symbols from one file plus any non-fatal extraction diagnostics."""
    file_path: str
    symbols: List[Symbol] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.diagnostics

    @property
    def exports(self) -> List[Symbol]:
        return [s for s in self.symbols if s.is_exported]

    @property
    def members(self) -> List[Symbol]:
        return [s for s in self.symbols if s.is_member]


class ExtractionError(ValueError):
    """A single declaration could not be turned into a Symbol."""


# Declaration node type -> reported kind (variable declarations handled apart)
DECLARATION_KINDS: Dict[str, SymbolKind] = {
    'class_declaration': SymbolKind.CLASS,
    'abstract_class_declaration': SymbolKind.CLASS,
    'function_declaration': SymbolKind.FUNCTION,
    'generator_function_declaration': SymbolKind.FUNCTION,
    'function_signature': SymbolKind.FUNCTION,
    'type_alias_declaration': SymbolKind.TYPE,
    'interface_declaration': SymbolKind.INTERFACE,
    'enum_declaration': SymbolKind.ENUM,
    'internal_module': SymbolKind.NAMESPACE,
    'module': SymbolKind.NAMESPACE,
}

VARIABLE_DECLARATIONS = {'lexical_declaration', 'variable_declaration'}

CLASS_NODE_TYPES = {'class_declaration', 'abstract_class_declaration', 'class'}

MEMBER_NODE_TYPES = {
    'method_definition',
    'abstract_method_signature',
    'public_field_definition',  # typescript
    'field_definition',  # javascript
}


class _ExtractionContext:
    """Per-call state: one source text, one file, one result list."""

    def __init__(self, text: str, file_path: str):
        self.text = text
        self.file_path = file_path
        self.source = text.encode('utf-8', errors='surrogatepass')
        self._ascii = len(self.source) == len(text)
        self.result = ExtractionResult(file_path=file_path)
        self.seen: Set[Tuple[str, Optional[str], str, int]] = set()

    def char_offset(self, byte_offset: int) -> int:
        if self._ascii:
            return byte_offset
        return len(self.source[:byte_offset].decode('utf-8', errors='surrogatepass'))

    def node_text(self, node: Node) -> str:
        return self.source[node.start_byte:node.end_byte].decode('utf-8', errors='surrogatepass')

    def span(self, start_byte: int, end_byte: int) -> SourceRange:
        return SourceRange.from_offsets(
            self.text, self.char_offset(start_byte), self.char_offset(end_byte)
        )

    def add(self, symbol: Symbol):
        """Append ``symbol`` unless an identical declaration was already recorded."""
        key = (symbol.kind.value, symbol.container_name, symbol.name, symbol.range.start)
        if key in self.seen:
            return
        self.seen.add(key)
        self.result.symbols.append(symbol)

    def diagnose(self, message: str):
        logger.debug("%s: %s", self.file_path, message)
        self.result.diagnostics.append(message)


class SymbolExtractor:
    """Extract exported declarations and class members from source text.

    Every call builds its own syntax tree and context; parsers are cached per
    grammar but always parse from scratch (no previous tree is passed in), so
    nothing carries over from one file to the next.
    """

    def __init__(self):
        self._parsers: Dict[str, LanguageParser] = {}

    def _parser_for(self, language: str) -> LanguageParser:
        if language not in self._parsers:
            self._parsers[language] = LanguageParser(language)
        return self._parsers[language]

    def extract(self, file_text: str, file_path: str | Path) -> List[Symbol]:
        """Return all exports and class members declared in ``file_text``."""
        return self.extract_file(file_text, file_path).symbols

    def find_exports(self, file_text: str, file_path: str | Path) -> List[Symbol]:
        return self.extract_file(file_text, file_path).exports

    def find_named_exports(self, file_text: str, file_path: str | Path) -> List[Symbol]:
        """Exports without ``export default`` declarations."""
        return [s for s in self.find_exports(file_text, file_path) if not s.is_default]

    def find_class_members(self, file_text: str, file_path: str | Path) -> List[Symbol]:
        return self.extract_file(file_text, file_path).members

    def extract_file(self, file_text: str, file_path: str | Path,
                     language: Optional[str] = None) -> ExtractionResult:
        """Extract symbols and collect diagnostics without ever raising.

        Args:
            file_text: Full text of the file
            file_path: Path the text belongs to (also selects the grammar)
            language: Explicit grammar name, overriding the file extension

        Returns:
            ExtractionResult; partial when the source has syntax errors,
            empty when the file cannot be parsed at all
        """
        ctx = _ExtractionContext(file_text, str(file_path))
        language = language or language_for_path(file_path)
        if language is None:
            ctx.diagnose(f"unsupported file type: {Path(file_path).suffix or '<none>'}")
            return ctx.result

        try:
            tree = self._parser_for(language).parse_source(ctx.source)
        except ValueError as e:
            ctx.diagnose(f"parse failed: {e}")
            return ctx.result

        if tree.root_node.has_error:
            ctx.diagnose("extraction-partial: syntax errors present")

        for node in _traverse(tree.root_node):
            try:
                if node.type == 'export_statement':
                    self._extract_export(node, ctx)
                elif node.type in CLASS_NODE_TYPES:
                    self._extract_members(node, ctx)
            except ExtractionError as e:
                ctx.diagnose(f"skipped declaration at line {node.start_point[0] + 1}: {e}")

        return ctx.result

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def _extract_export(self, node: Node, ctx: _ExtractionContext):
        declaration = node.child_by_field_name('declaration')
        if declaration is None:
            # export { a }, export * from '...', export default <expression>
            return

        is_default = any(child.type == 'default' for child in node.children)
        markers = _decorator_names(node.children_by_field_name('decorator'), ctx)

        if declaration.type == 'ambient_declaration':
            declaration = _first_declaration(declaration)
            if declaration is None:
                return

        if declaration.type in VARIABLE_DECLARATIONS:
            self._extract_variables(node, declaration, ctx)
            return

        kind = DECLARATION_KINDS.get(declaration.type)
        if kind is None:
            return

        name_node = declaration.child_by_field_name('name')
        if name_node is None or name_node.type == 'string':
            # ambient `declare module "x"` has no exportable name
            return

        name = ctx.node_text(name_node)
        if name_node.type == 'nested_identifier':
            name = name.split('.', 1)[0]
        if not name:
            raise ExtractionError(f"{declaration.type} without a name")

        if declaration.type in CLASS_NODE_TYPES:
            markers += _decorator_names(declaration.children_by_field_name('decorator'), ctx)

        ctx.add(Symbol(
            name=name,
            kind=kind,
            range=ctx.span(node.start_byte, name_node.end_byte),
            file_path=ctx.file_path,
            markers=markers,
            is_default=is_default,
            is_exported=True,
        ))

    def _extract_variables(self, export_node: Node, declaration: Node, ctx: _ExtractionContext):
        """One symbol per bound identifier: ``export const a = 1, { b } = obj``."""
        kind = _variable_kind(declaration, ctx)
        for declarator in declaration.named_children:
            if declarator.type != 'variable_declarator':
                continue
            name_node = declarator.child_by_field_name('name')
            if name_node is None:
                raise ExtractionError("variable declarator without a binding")
            for ident in _pattern_identifiers(name_node):
                name = ctx.node_text(ident)
                if not name:
                    continue
                ctx.add(Symbol(
                    name=name,
                    kind=kind,
                    range=ctx.span(export_node.start_byte, ident.end_byte),
                    file_path=ctx.file_path,
                    is_exported=True,
                ))

    # ------------------------------------------------------------------
    # Class members
    # ------------------------------------------------------------------

    def _extract_members(self, class_node: Node, ctx: _ExtractionContext):
        name_node = class_node.child_by_field_name('name')
        class_name = ctx.node_text(name_node) if name_node is not None else ''
        class_name = class_name or 'AnonymousClass'

        body = class_node.child_by_field_name('body')
        if body is None:
            return

        # Method decorators are siblings in the class body, not children
        pending: List[Node] = []
        for child in body.named_children:
            if child.type == 'decorator':
                pending.append(child)
                continue
            if child.type == 'comment':
                continue
            if child.type in MEMBER_NODE_TYPES:
                try:
                    self._extract_member(child, class_name, pending, ctx)
                except ExtractionError as e:
                    ctx.diagnose(f"skipped member of {class_name} at line {child.start_point[0] + 1}: {e}")
            pending = []

    def _extract_member(self, node: Node, class_name: str, decorators: List[Node],
                        ctx: _ExtractionContext):
        name_node = node.child_by_field_name('name') or node.child_by_field_name('property')
        if name_node is None:
            raise ExtractionError(f"{node.type} without a name")
        if name_node.type == 'computed_property_name':
            return

        name = ctx.node_text(name_node)
        if name_node.type == 'string':
            name = name[1:-1]
        if not name:
            raise ExtractionError(f"{node.type} with an empty name")

        kind = _member_kind(node)
        if kind is SymbolKind.METHOD and name == 'constructor':
            return

        if name_node.type == 'private_property_identifier':
            access = AccessLevel.PRIVATE
        else:
            access = _access_level(node, ctx)

        all_decorators = decorators + node.children_by_field_name('decorator')
        start_byte = min([node.start_byte] + [d.start_byte for d in all_decorators])

        ctx.add(Symbol(
            name=name,
            kind=kind,
            range=ctx.span(start_byte, node.end_byte),
            file_path=ctx.file_path,
            access_level=access,
            markers=_decorator_names(all_decorators, ctx),
            container_name=class_name,
        ))


def _traverse(node: Node) -> Iterator[Node]:
    """Pre-order, left-to-right traversal using an explicit stack."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def _first_declaration(ambient: Node) -> Optional[Node]:
    for child in ambient.named_children:
        if child.type in DECLARATION_KINDS or child.type in VARIABLE_DECLARATIONS:
            return child
    return None


def _variable_kind(declaration: Node, ctx: _ExtractionContext) -> SymbolKind:
    if declaration.type == 'variable_declaration':
        return SymbolKind.VAR
    kind_node = declaration.child_by_field_name('kind') or declaration.child(0)
    keyword = ctx.node_text(kind_node) if kind_node is not None else ''
    if keyword == 'let':
        return SymbolKind.LET
    return SymbolKind.CONST


def _pattern_identifiers(node: Node) -> List[Node]:
    """Identifiers bound by a declarator name, including destructuring."""
    if node.type in ('identifier', 'shorthand_property_identifier_pattern'):
        return [node]
    if node.type in ('object_pattern', 'array_pattern', 'rest_pattern'):
        found = []
        for child in node.named_children:
            found.extend(_pattern_identifiers(child))
        return found
    if node.type == 'pair_pattern':
        value = node.child_by_field_name('value')
        return _pattern_identifiers(value) if value is not None else []
    if node.type in ('object_assignment_pattern', 'assignment_pattern'):
        left = node.child_by_field_name('left')
        return _pattern_identifiers(left) if left is not None else []
    return []


def _member_kind(node: Node) -> SymbolKind:
    if node.type in ('public_field_definition', 'field_definition'):
        return SymbolKind.PROPERTY
    for child in node.children:
        if child.is_named:
            continue
        if child.type == 'get':
            return SymbolKind.GETTER
        if child.type == 'set':
            return SymbolKind.SETTER
    return SymbolKind.METHOD


def _access_level(node: Node, ctx: _ExtractionContext) -> AccessLevel:
    for child in node.named_children:
        if child.type == 'accessibility_modifier':
            return AccessLevel(ctx.node_text(child).strip())
    return AccessLevel.PUBLIC


def _decorator_names(decorators: List[Node], ctx: _ExtractionContext) -> Tuple[str, ...]:
    """Marker names: the last identifier of each decorator expression.

    ``@Column()`` -> ``Column``, ``@Type(() => Foo)`` -> ``Type``,
    ``@ns.Inject`` -> ``Inject``.
    """
    names = []
    for decorator in decorators:
        expression = next(iter(decorator.named_children), None)
        if expression is None:
            continue
        if expression.type == 'call_expression':
            expression = expression.child_by_field_name('function') or expression
        if expression.type == 'member_expression':
            expression = expression.child_by_field_name('property') or expression
        if expression.type == 'parenthesized_expression':
            continue
        name = ctx.node_text(expression).strip()
        if name:
            names.append(name)
    return tuple(names)
