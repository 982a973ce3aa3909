"""
Module scanner - reads import and export declarations from module source.

The source is tokenized with the Lark lexer from grammar.py and the
declarations are read from the token stream. Only statements at the top
level of a module (brace depth 0, at the start of a statement) count as
declarations, so `import` inside strings, comments, template literals or
function bodies is never picked up.
"""
import ast
from typing import List, Optional, Tuple

from lark import Lark
from lark.exceptions import UnexpectedCharacters
from pydantic import BaseModel, Field

from .errors import ImportScanError, get_line_context
from .grammar import module_lexer_grammar

# Local name given to anonymous default exports
DEFAULT_BINDING = "__ono_default"

# Keywords that can only start a new statement; used to find where an
# exported variable declaration ends when it has no semicolon.
STATEMENT_KEYWORDS = frozenset({
    "async", "break", "class", "const", "continue", "do", "export", "for",
    "function", "if", "import", "let", "return", "switch", "throw", "try",
    "var", "while",
})


class ImportDeclaration(BaseModel):
    """A single `import ... from "specifier"` statement."""
    specifier: str
    default: Optional[str] = None
    namespace: Optional[str] = None
    named: List[Tuple[str, str]] = Field(default_factory=list)  # (imported, local)
    start: int
    end: int
    line: int
    text: str

    @property
    def side_effect_only(self) -> bool:
        return self.default is None and self.namespace is None and not self.named


class ExportDeclaration(BaseModel):
    """
    A single export statement.

    `start`/`end` cover the part of the statement that must be replaced
    by `replacement` to turn it into plain code: the `export` keyword for
    declarations, the whole statement for export lists and re-exports.
    """
    start: int
    end: int
    line: int
    text: str
    replacement: str = ""
    bindings: List[Tuple[str, str]] = Field(default_factory=list)  # (exported, local)
    specifier: Optional[str] = None
    reexports: List[Tuple[str, str]] = Field(default_factory=list)  # (exported, imported)
    star: bool = False
    star_alias: Optional[str] = None

    @property
    def is_reexport(self) -> bool:
        return self.specifier is not None


class ModuleSyntax(BaseModel):
    """Import and export declarations of one module, in source order."""
    imports: List[ImportDeclaration] = Field(default_factory=list)
    exports: List[ExportDeclaration] = Field(default_factory=list)

    @property
    def specifiers(self) -> List[str]:
        """Import and re-export specifiers in source order."""
        found = [(d.start, d.specifier) for d in self.imports]
        found += [(d.start, d.specifier) for d in self.exports if d.is_reexport]
        return [specifier for _, specifier in sorted(found)]

    @property
    def export_names(self) -> List[str]:
        names = []
        for declaration in self.exports:
            names.extend(exported for exported, _ in declaration.bindings)
            names.extend(exported for exported, _ in declaration.reexports)
            if declaration.star_alias:
                names.append(declaration.star_alias)
        return names

    @property
    def has_star_export(self) -> bool:
        return any(d.star for d in self.exports)


def apply_edits(code, edits):
    """Apply (start, end, replacement) edits to `code`; ranges must not overlap."""
    parts = []
    position = 0
    for start, end, replacement in sorted(edits):
        parts.append(code[position:start])
        parts.append(replacement)
        position = end
    parts.append(code[position:])
    return "".join(parts)


class ModuleScanner:
    """
    Reads import/export declarations from module source.

    A scanner owns its compiled lexer; create one per build (or share it
    between threads, lexing keeps no state between calls).
    """

    def __init__(self):
        self._lexer = Lark(module_lexer_grammar, parser='lalr', lexer='basic')

    def tokenize(self, code, filename=None):
        """Return the significant tokens of `code` (comments and whitespace dropped)."""
        try:
            return list(self._lexer.lex(code))
        except UnexpectedCharacters as e:
            raise ImportScanError(
                "Unexpected character",
                path=filename,
                line_number=e.line,
                column=e.column,
                context=get_line_context(code, e.line),
            )

    def scan(self, code, filename=None, strict=True) -> ModuleSyntax:
        """
        Read the declarations of a module.

        Args:
            code: Module source code
            filename: Used in error messages only
            strict: Fail on unbalanced braces and malformed declarations.
                Raw component source can hide braces from the lexer inside
                JSX text (`<a>http://x</a>`), and a line of JSX text may
                start with `import` or `export`, so dependency collection
                scans it leniently.

        Returns:
            ModuleSyntax with the import and export declarations

        Raises:
            ImportScanError: On unexpected characters, and in strict mode
                on malformed declarations and unbalanced braces
        """
        tokens = self.tokenize(code, filename)
        return _DeclarationReader(code, tokens, filename, strict).read()


class _DeclarationReader:
    """Walks a token list once and collects top-level declarations."""

    def __init__(self, code, tokens, filename, strict):
        self.code = code
        self.tokens = tokens
        self.filename = filename
        self.strict = strict

    def read(self):
        imports = []
        exports = []
        depth = 0
        previous = None
        i = 0

        while i < len(self.tokens):
            token = self.tokens[i]

            if token.type == 'PUNCT' and token == '{':
                depth += 1
            elif token.type == 'PUNCT' and token == '}':
                depth -= 1
                if depth < 0:
                    if self.strict:
                        raise self._error("Unbalanced '}'", token)
                    depth = 0
            elif (depth == 0 and token.type == 'NAME' and token in ('import', 'export')
                  and self._at_statement_start(previous, token)
                  and not (token == 'import' and self._is_dynamic_import(i))):
                found = self._read_declaration(i)
                if found is not None:
                    declaration, i = found
                    if token == 'import':
                        imports.append(declaration)
                    else:
                        exports.append(declaration)
                    previous = self.tokens[i - 1]
                    continue

            previous = token
            i += 1

        if depth != 0 and self.strict:
            raise self._error("Unbalanced '{'", self.tokens[-1],
                              suggestion="Regex literals containing quotes or braces confuse "
                                         "the scanner; build them with new RegExp(...)")

        return ModuleSyntax(imports=imports, exports=exports)

    def _read_declaration(self, i):
        """
        Read the declaration starting at token i.

        In lenient mode a malformed declaration is JSX text that happens to
        start a line with `import` or `export`; it yields None and the
        words are read as ordinary tokens.
        """
        read = self._read_import if self.tokens[i] == 'import' else self._read_export
        try:
            return read(i)
        except ImportScanError:
            if self.strict:
                raise
            return None

    # --- Imports ---

    def _read_import(self, i):
        start = self.tokens[i]
        j = i + 1
        default = None
        namespace = None
        named = []

        token = self._expect(j)
        if token.type == 'STRING':
            specifier = self._string_value(token)
            j += 1
        else:
            if token.type == 'NAME':
                default = str(token)
                j += 1
                if self._at(j) == ',':
                    j += 1
                token = self._expect(j)
            if token == '*':
                self._expect(j + 1, 'as')
                namespace = self._name_value(self._expect(j + 2, kind='NAME'))
                j += 3
            elif token == '{':
                named, j = self._read_specifier_list(j)
            elif default is None or token != 'from':
                raise self._error("Malformed import declaration", token)
            self._expect(j, 'from')
            specifier = self._string_value(self._expect(j + 1, kind='STRING'))
            j += 2

        j = self._skip_attributes(j)
        j = self._skip_semicolon(j)
        end = self.tokens[j - 1].end_pos

        declaration = ImportDeclaration(
            specifier=specifier,
            default=default,
            namespace=namespace,
            named=named,
            start=start.start_pos,
            end=end,
            line=start.line,
            text=self.code[start.start_pos:end],
        )
        return declaration, j

    # --- Exports ---

    def _read_export(self, i):
        start = self.tokens[i]
        token = self._expect(i + 1)

        if token == 'default':
            return self._read_export_default(i)

        if token in ('const', 'let', 'var'):
            names = self._declared_names(i + 2)
            return self._declaration(start, token, [(name, name) for name in names]), i + 1

        if token in ('function', 'class') or (token == 'async' and self._at(i + 2) == 'function'):
            k = i + 2 if token == 'async' else i + 1
            if self._at(k) == 'function' and self._at(k + 1) == '*':
                k += 1
            name = self._name_value(self._expect(k + 1, kind='NAME'))
            return self._declaration(start, token, [(name, name)]), i + 1

        if token == '{':
            items, j = self._read_specifier_list(i + 1)
            specifier = None
            if self._at(j) == 'from':
                specifier = self._string_value(self._expect(j + 1, kind='STRING'))
                j = self._skip_attributes(j + 2)
            j = self._skip_semicolon(j)
            end = self.tokens[j - 1].end_pos
            if specifier is None:
                bindings = [(exported, local) for local, exported in items]
                reexports = []
            else:
                bindings = []
                reexports = [(exported, imported) for imported, exported in items]
            return ExportDeclaration(
                start=start.start_pos,
                end=end,
                line=start.line,
                text=self.code[start.start_pos:end],
                bindings=bindings,
                specifier=specifier,
                reexports=reexports,
            ), j

        if token == '*':
            j = i + 2
            alias = None
            if self._at(j) == 'as':
                alias = self._name_value(self._expect(j + 1))
                j += 2
            self._expect(j, 'from')
            specifier = self._string_value(self._expect(j + 1, kind='STRING'))
            j = self._skip_semicolon(self._skip_attributes(j + 2))
            end = self.tokens[j - 1].end_pos
            return ExportDeclaration(
                start=start.start_pos,
                end=end,
                line=start.line,
                text=self.code[start.start_pos:end],
                specifier=specifier,
                star=alias is None,
                star_alias=alias,
            ), j

        raise self._error("Unsupported export declaration", token)

    def _read_export_default(self, i):
        start = self.tokens[i]
        value = self._expect(i + 2)
        k = i + 2
        if value == 'async' and self._at(k + 1) == 'function' and self._at(k + 1).line == value.line:
            k += 1
        keyword = self.tokens[k]

        if keyword in ('function', 'class') and keyword.type == 'NAME':
            if keyword == 'function' and self._at(k + 1) == '*':
                k += 1
            name = self._expect(k + 1)
            anonymous = name in ('(', '{', 'extends')
            if not anonymous:
                return self._declaration(start, value, [('default', str(name))]), i + 2

            # `export default function () {}` -> `function __ono_default() {}`
            head_end = self.tokens[k].end_pos
            return ExportDeclaration(
                start=start.start_pos,
                end=head_end,
                line=start.line,
                text=self.code[start.start_pos:head_end],
                replacement=f"{self.code[value.start_pos:head_end]} {DEFAULT_BINDING}",
                bindings=[('default', DEFAULT_BINDING)],
            ), k + 1

        # `export default <expression>`
        return ExportDeclaration(
            start=start.start_pos,
            end=value.start_pos,
            line=start.line,
            text=self.code[start.start_pos:value.start_pos],
            replacement=f"const {DEFAULT_BINDING} = ",
            bindings=[('default', DEFAULT_BINDING)],
        ), i + 2

    def _declaration(self, start, body, bindings):
        """An export that only needs its leading keywords removed."""
        return ExportDeclaration(
            start=start.start_pos,
            end=body.start_pos,
            line=start.line,
            text=self.code[start.start_pos:body.start_pos],
            bindings=bindings,
        )

    def _declared_names(self, j):
        """Names bound by a `const`/`let`/`var` declaration starting at token j."""
        names = []
        depth = 0
        expecting_binding = True

        while j < len(self.tokens):
            token = self.tokens[j]
            if expecting_binding:
                if token.type == 'NAME':
                    names.append(str(token))
                    j += 1
                elif token in ('{', '['):
                    found, j = self._pattern_names(j)
                    names.extend(found)
                else:
                    raise self._error("Malformed exported declaration", token)
                expecting_binding = False
                continue

            if token.type == 'PUNCT':
                if token in ('(', '[', '{'):
                    depth += 1
                elif token in (')', ']', '}'):
                    depth -= 1
                    if depth < 0:
                        break
                elif depth == 0 and token == ',':
                    expecting_binding = True
                elif depth == 0 and token == ';':
                    break
            elif (depth == 0 and token.type == 'NAME' and token in STATEMENT_KEYWORDS
                  and token.line > self.tokens[j - 1].line):
                break
            j += 1

        return names

    def _pattern_names(self, j):
        """Names bound by a destructuring pattern starting at token j."""
        names = []
        depth = 0
        default_depth = None

        while j < len(self.tokens):
            token = self.tokens[j]
            if token.type == 'PUNCT' and token in ('(', '[', '{'):
                depth += 1
            elif token.type == 'PUNCT' and token in (')', ']', '}'):
                depth -= 1
                if default_depth is not None and depth < default_depth:
                    default_depth = None
                if depth == 0:
                    return names, j + 1
            elif default_depth is not None:
                if token == ',' and depth == default_depth:
                    default_depth = None
            elif token == '=':
                default_depth = depth
            elif token.type == 'NAME':
                following = self._at(j + 1)
                if following in (',', '}', ']', '='):
                    names.append(str(token))
            j += 1

        raise self._error("Unterminated destructuring pattern", self.tokens[-1])

    # --- Shared helpers ---

    def _read_specifier_list(self, j):
        """Read `{ a, b as c, "d" as e }` starting at the opening brace."""
        items = []
        j += 1
        while True:
            token = self._expect(j)
            if token == '}':
                return items, j + 1
            if token.type not in ('NAME', 'STRING'):
                raise self._error("Malformed specifier list", token)
            name = self._name_value(token)
            alias = name
            j += 1
            if self._at(j) == 'as':
                alias = self._name_value(self._expect(j + 1))
                j += 2
            items.append((name, alias))
            token = self._expect(j)
            if token == ',':
                j += 1
            elif token != '}':
                raise self._error("Expected ',' or '}' in specifier list", token)

    def _skip_attributes(self, j):
        """Skip import attributes: `with { type: "json" }`."""
        if self._at(j) in ('with', 'assert') and self._at(j + 1) == '{':
            j += 2
            while self._expect(j) != '}':
                j += 1
            j += 1
        return j

    def _skip_semicolon(self, j):
        if self._at(j) == ';':
            j += 1
        return j

    def _at_statement_start(self, previous, token):
        if previous is None:
            return True
        if previous == '.':
            return False
        return previous in (';', '}') or previous.line < token.line

    def _is_dynamic_import(self, i):
        return self._at(i + 1) in ('(', '.')

    def _at(self, j):
        if 0 <= j < len(self.tokens):
            return self.tokens[j]
        return None

    def _expect(self, j, value=None, kind=None):
        token = self._at(j)
        if token is None:
            raise self._error("Unexpected end of input in declaration", self.tokens[-1])
        if value is not None and token != value:
            raise self._error(f"Expected '{value}'", token)
        if kind is not None and token.type != kind:
            raise self._error(f"Expected {kind.lower()}", token)
        return token

    def _name_value(self, token):
        if token.type == 'STRING':
            return self._string_value(token)
        if token.type != 'NAME':
            raise self._error("Expected a name", token)
        return str(token)

    def _string_value(self, token):
        raw = str(token)
        try:
            value = ast.literal_eval(raw)
        except (ValueError, SyntaxError):
            # JS-only escapes such as \u{1F600}
            return raw[1:-1]
        return value if isinstance(value, str) else raw[1:-1]

    def _error(self, message, token, suggestion=None):
        return ImportScanError(
            message,
            path=self.filename,
            line_number=token.line,
            column=token.column,
            context=get_line_context(self.code, token.line),
            suggestion=suggestion,
        )
