"""
StudyREPL Parser

Lexer and recursive-descent parser for the REPL's small statement language:

    let town = Town(name: "Munich", citizens: ["Tom Hanks"])
    town.citizens.append("Richard")
    print("Hello {2 + 3} World")
    player1 ?? "nobody"

Statements are separated by ';' or by newlines outside brackets.
"""

from typing import List, Optional, Any, Tuple, Union
from dataclasses import dataclass

from ..core.ast import *
from ..core.values import INT_MAX, int_value, float_value, bool_value, NIL
from ..errors.diagnostics import SourceLocation
from ..errors.exceptions import SyntaxError


KEYWORDS = {'let', 'var', 'struct', 'class', 'nil', 'true', 'false'}

# Longest operators first so '...' wins over '.' and '??' over '?'
OPERATORS = [
    ('...', 'CLOSED_RANGE'),
    ('..<', 'HALF_OPEN_RANGE'),
    ('?.', 'OPTIONAL_DOT'),
    ('??', 'COALESCE'),
    ('==', 'EQ'),
    ('!=', 'NE'),
    ('+', 'PLUS'),
    ('-', 'MINUS'),
    ('*', 'STAR'),
    ('/', 'SLASH'),
    ('%', 'PERCENT'),
    ('=', 'ASSIGN'),
    ('!', 'BANG'),
    ('?', 'QUESTION'),
    ('.', 'DOT'),
    (',', 'COMMA'),
    (':', 'COLON'),
    ('(', 'LPAREN'),
    (')', 'RPAREN'),
    ('[', 'LBRACKET'),
    (']', 'RBRACKET'),
    ('{', 'LBRACE'),
    ('}', 'RBRACE'),
]


@dataclass
class Token:
    """Token representation"""
    type: str
    value: Any
    line: int
    column: int


class Lexer:
    """Tokenizer for REPL input"""

    def __init__(self, source: str, filename: Optional[str] = None):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Token] = []
        # Newlines inside () and [] do not end a statement
        self.nesting = 0

    def tokenize(self) -> List[Token]:
        """Tokenize the source code"""
        while self.pos < len(self.source):
            char = self.source[self.pos]

            if char == '\n':
                if self.nesting == 0:
                    self._add_token('SEMI', '\n')
                self._newline()
            elif char.isspace():
                self._advance_char()
            elif char == '/' and self._peek() == '/':
                self._skip_comment()
            elif char == ';':
                self._add_token('SEMI', ';')
                self._advance_char()
            elif char == '"':
                self._read_string()
            elif char.isdecimal():
                self._read_number()
            elif char.isalpha() or char == '_':
                self._read_identifier()
            else:
                self._read_operator()

        self._add_token('EOF', None)
        return self.tokens

    def _peek(self, offset: int = 1) -> str:
        """Peek at a following character"""
        pos = self.pos + offset
        return self.source[pos] if pos < len(self.source) else ''

    def _add_token(self, type_: str, value: Any, line: int = None, column: int = None):
        """Add a token to the list"""
        self.tokens.append(Token(type_, value,
                                 self.line if line is None else line,
                                 self.column if column is None else column))

    def _advance_char(self, count: int = 1):
        self.pos += count
        self.column += count

    def _newline(self):
        self.pos += 1
        self.line += 1
        self.column = 1

    def _location(self, line: int = None, column: int = None) -> SourceLocation:
        return SourceLocation(
            filename=self.filename,
            line=self.line if line is None else line,
            column=self.column if column is None else column
        )

    def _skip_comment(self):
        """Skip // line comments"""
        while self.pos < len(self.source) and self.source[self.pos] != '\n':
            self._advance_char()

    def _read_string(self):
        """Read a string literal; escapes are resolved, braces are kept for the template pass"""
        start_line, start_col = self.line, self.column
        self._advance_char()  # Skip opening quote
        chars = []
        escapes = {'n': '\n', 't': '\t', '"': '"', '\\': '\\'}

        while True:
            if self.pos >= len(self.source) or self.source[self.pos] == '\n':
                raise SyntaxError("Unterminated string literal",
                                  self._location(start_line, start_col), expected='"')
            char = self.source[self.pos]
            if char == '"':
                self._advance_char()
                break
            if char == '\\':
                escaped = self._peek()
                if escaped not in escapes:
                    raise SyntaxError(f"Invalid escape sequence '\\{escaped}' in string literal",
                                      self._location())
                chars.append(escapes[escaped])
                self._advance_char(2)
            else:
                chars.append(char)
                self._advance_char()

        self._add_token('STRING', ''.join(chars), start_line, start_col)

    def _read_number(self):
        """Read an Int or Float literal. '1...3' lexes as 1, '...', 3."""
        start, start_col = self.pos, self.column

        while self.pos < len(self.source) and (self.source[self.pos].isdecimal() or self.source[self.pos] == '_'):
            self._advance_char()

        is_float = False
        if self._peek(0) == '.' and self._peek().isdecimal():
            is_float = True
            self._advance_char()
            while self.pos < len(self.source) and self.source[self.pos].isdecimal():
                self._advance_char()

        text = self.source[start:self.pos].replace('_', '')
        if is_float:
            self._add_token('FLOAT', float(text), column=start_col)
            return

        # Digit count first: int() refuses very long strings
        if len(text.lstrip('0')) > len(str(INT_MAX)) or int(text) > INT_MAX:
            shown = text if len(text) <= 24 else text[:20] + '...'
            raise SyntaxError(f"Integer literal '{shown}' overflows Int",
                              self._location(column=start_col),
                              expected=f"an integer no larger than {INT_MAX}")
        self._add_token('INT', int(text), column=start_col)

    def _read_identifier(self):
        start, start_col = self.pos, self.column
        while self.pos < len(self.source) and (self.source[self.pos].isalnum() or self.source[self.pos] == '_'):
            self._advance_char()

        value = self.source[start:self.pos]
        if value in KEYWORDS:
            self._add_token('KEYWORD', value, column=start_col)
        else:
            self._add_token('IDENT', value, column=start_col)

    def _read_operator(self):
        for text, type_ in OPERATORS:
            if self.source.startswith(text, self.pos):
                if type_ in ('LPAREN', 'LBRACKET'):
                    self.nesting += 1
                elif type_ in ('RPAREN', 'RBRACKET'):
                    self.nesting = max(0, self.nesting - 1)
                self._add_token(type_, text)
                self._advance_char(len(text))
                return

        raise SyntaxError(f"Unexpected character '{self.source[self.pos]}'", self._location())


class Parser:
    """Recursive-descent parser producing AST nodes"""

    def __init__(self, tokens: List[Token], filename: Optional[str] = None):
        self.tokens = tokens
        self.pos = 0
        self.filename = filename

    def parse(self) -> Program:
        """Parse tokens into a program"""
        program = Program()
        self._skip_separators()
        while not self._check('EOF'):
            program.statements.append(self._parse_statement())
            if not self._check('EOF'):
                self._expect('SEMI', "';' or newline between statements")
            self._skip_separators()
        return program

    def parse_single_expression(self) -> ASTNode:
        """Parse input that must be exactly one expression"""
        self._skip_separators()
        expr = self._parse_expr()
        self._skip_separators()
        if not self._check('EOF'):
            token = self._current()
            raise SyntaxError(f"Unexpected token '{token.value}' after expression",
                              self._location(token))
        return expr

    # Token helpers

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self) -> Token:
        """Peek at next token without advancing"""
        return self.tokens[min(self.pos + 1, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.type != 'EOF':
            self.pos += 1
        return token

    def _check(self, type_: str, value: Any = None) -> bool:
        token = self._current()
        return token.type == type_ and (value is None or token.value == value)

    def _match(self, type_: str, value: Any = None) -> bool:
        if self._check(type_, value):
            self._advance()
            return True
        return False

    def _expect(self, type_: str, expected: str) -> Token:
        if self._check(type_):
            return self._advance()
        token = self._current()
        found = "end of input" if token.type == 'EOF' else f"'{token.value}'"
        raise SyntaxError(f"Expected {expected}, found {found}",
                          self._location(token), expected=expected)

    def _location(self, token: Token) -> SourceLocation:
        return SourceLocation(
            filename=self.filename,
            line=token.line,
            column=token.column,
            length=len(str(token.value)) if token.value is not None else 1
        )

    def _skip_separators(self):
        while self._match('SEMI'):
            pass

    # Statements

    def _parse_statement(self) -> ASTNode:
        token = self._current()

        if token.type == 'KEYWORD' and token.value in ('let', 'var'):
            return self._parse_binding()
        if token.type == 'KEYWORD' and token.value in ('struct', 'class'):
            return self._parse_type_declaration()
        if token.type == 'IDENT' and token.value == 'print' and self._peek().type == 'LPAREN':
            return self._parse_print()

        expr = self._parse_expr()

        if self._check('ASSIGN'):
            assign_token = self._advance()
            value = self._parse_expr()
            if isinstance(expr, Name):
                return Assign(expr.name, value)
            if isinstance(expr, FieldAccess) and not expr.optional:
                return FieldAssign(expr.target, expr.name, value)
            raise SyntaxError("Cannot assign to this expression",
                              self._location(assign_token),
                              expected="a variable or a record field")

        if isinstance(expr, MethodCall) and expr.name == 'append' and not expr.optional:
            if len(expr.args) != 1 or expr.args[0].label is not None:
                raise SyntaxError("append() takes exactly one unlabeled argument",
                                  self._location(token))
            return Append(expr.target, expr.args[0].value)

        return ExpressionStatement(expr)

    def _parse_binding(self) -> Let:
        keyword = self._advance()
        name = self._expect('IDENT', "a name after '{}'".format(keyword.value))
        optional = False
        if self._match('COLON'):
            optional = self._parse_type_annotation()
        self._expect('ASSIGN', "'='")
        value = self._parse_expr()
        return Let(name.value, value, mutable=(keyword.value == 'var'), optional=optional)

    def _parse_type_declaration(self) -> TypeDeclaration:
        keyword = self._advance()
        name = self._expect('IDENT', "a type name")
        self._expect('LBRACE', "'{'")

        fields: List[Tuple[str, bool]] = []
        while True:
            while self._match('SEMI') or self._match('COMMA'):
                pass
            if self._match('RBRACE'):
                break
            token = self._current()
            if not (token.type == 'KEYWORD' and token.value in ('let', 'var')):
                raise SyntaxError("Expected a 'let' or 'var' field declaration",
                                  self._location(token), expected="'let' or 'var'")
            self._advance()
            field_name = self._expect('IDENT', "a field name")
            if self._match('COLON'):
                self._parse_type_annotation()
            fields.append((field_name.value, token.value == 'var'))

        return TypeDeclaration(name.value, fields, is_class=(keyword.value == 'class'))

    def _parse_type_annotation(self) -> bool:
        """Consume a type annotation such as String, Int?, or [String].

        Types are not checked; the return value tells whether the type is Optional.
        """
        if self._match('LBRACKET'):
            self._expect('IDENT', "an element type")
            self._expect('RBRACKET', "']'")
        else:
            self._expect('IDENT', "a type name")
        return self._match('QUESTION')

    def _parse_print(self) -> Print:
        self._advance()  # print
        self._expect('LPAREN', "'('")
        value = self._parse_expr()
        self._expect('RPAREN', "')'")
        return Print(value)

    # Expressions, lowest precedence first

    def _parse_expr(self) -> ASTNode:
        return self._parse_coalesce()

    def _parse_coalesce(self) -> ASTNode:
        left = self._parse_equality()
        if self._match('COALESCE'):
            # Right-associative: a ?? b ?? c == a ?? (b ?? c)
            right = self._parse_coalesce()
            return Coalesce(left, right)
        return left

    def _parse_equality(self) -> ASTNode:
        left = self._parse_additive()
        while self._check('EQ') or self._check('NE'):
            op = self._advance().value
            left = BinaryOp(op, left, self._parse_additive())
        return left

    def _parse_additive(self) -> ASTNode:
        left = self._parse_term()
        while self._check('PLUS') or self._check('MINUS'):
            op = self._advance().value
            left = BinaryOp(op, left, self._parse_term())
        return left

    def _parse_term(self) -> ASTNode:
        left = self._parse_unary()
        while self._check('STAR') or self._check('SLASH') or self._check('PERCENT'):
            op = self._advance().value
            left = BinaryOp(op, left, self._parse_unary())
        return left

    def _parse_unary(self) -> ASTNode:
        if self._match('MINUS'):
            return UnaryOp('-', self._parse_unary())
        return self._parse_postfix()

    def _parse_postfix(self) -> ASTNode:
        expr = self._parse_primary()

        while True:
            if self._check('DOT') or self._check('OPTIONAL_DOT'):
                optional = self._advance().type == 'OPTIONAL_DOT'
                name = self._expect('IDENT', "a member name").value
                if self._check('LPAREN'):
                    expr = MethodCall(expr, name, self._parse_arguments(), optional)
                else:
                    expr = FieldAccess(expr, name, optional)
            elif self._check('BANG'):
                self._advance()
                expr = ForceUnwrap(expr)
            elif self._check('LPAREN'):
                expr = Call(expr, self._parse_arguments())
            else:
                return expr

    def _parse_arguments(self) -> List[Argument]:
        self._expect('LPAREN', "'('")
        args: List[Argument] = []
        if self._match('RPAREN'):
            return args

        while True:
            label = None
            if self._check('IDENT') and self._peek().type == 'COLON':
                label = self._advance().value
                self._advance()
            value = self._parse_expr()
            if self._check('CLOSED_RANGE') or self._check('HALF_OPEN_RANGE'):
                closed = self._advance().type == 'CLOSED_RANGE'
                value = RangeExpr(value, self._parse_expr(), closed)
            args.append(Argument(label, value))
            if self._match('RPAREN'):
                return args
            self._expect('COMMA', "',' or ')'")

    def _parse_primary(self) -> ASTNode:
        token = self._current()

        if token.type == 'INT':
            self._advance()
            return Literal(int_value(token.value))
        if token.type == 'FLOAT':
            self._advance()
            return Literal(float_value(token.value))
        if token.type == 'STRING':
            self._advance()
            return parse_template(token.value, self.filename)
        if token.type == 'KEYWORD' and token.value == 'nil':
            self._advance()
            return Literal(NIL)
        if token.type == 'KEYWORD' and token.value in ('true', 'false'):
            self._advance()
            return Literal(bool_value(token.value == 'true'))
        if token.type == 'IDENT':
            self._advance()
            return Name(token.value, token.line, token.column)
        if token.type == 'LPAREN':
            self._advance()
            expr = self._parse_expr()
            self._expect('RPAREN', "')'")
            return expr
        if token.type == 'LBRACKET':
            return self._parse_list_literal()

        found = "end of input" if token.type == 'EOF' else f"'{token.value}'"
        raise SyntaxError(f"Expected an expression, found {found}",
                          self._location(token), expected="an expression")

    def _parse_list_literal(self) -> ListLiteral:
        self._advance()  # [
        items: List[ASTNode] = []
        if self._match('RBRACKET'):
            return ListLiteral(items)
        while True:
            items.append(self._parse_expr())
            if self._match('RBRACKET'):
                return ListLiteral(items)
            self._expect('COMMA', "',' or ']'")


def split_template(template: str) -> List[Tuple[bool, str]]:
    """Split a string template into (is_expression, text) segments.

    '{expr}' marks an embedded expression; '{{' and '}}' are literal braces.
    """
    segments: List[Tuple[bool, str]] = []
    text: List[str] = []
    i = 0
    while i < len(template):
        char = template[i]
        if char == '{' and template.startswith('{{', i):
            text.append('{')
            i += 2
        elif char == '}' and template.startswith('}}', i):
            text.append('}')
            i += 2
        elif char == '{':
            end = template.find('}', i + 1)
            if end == -1:
                raise SyntaxError("Unterminated '{' in string interpolation", expected="'}'")
            if text:
                segments.append((False, ''.join(text)))
                text = []
            source = template[i + 1:end]
            if not source.strip():
                raise SyntaxError("Empty expression in string interpolation",
                                  expected="an expression between '{' and '}'")
            segments.append((True, source))
            i = end + 1
        elif char == '}':
            raise SyntaxError("Unmatched '}' in string literal; write '}}' for a literal brace")
        else:
            text.append(char)
            i += 1

    if text:
        segments.append((False, ''.join(text)))
    return segments


def parse_template(template: str, filename: Optional[str] = None) -> StringTemplate:
    """Parse a string template into literal text and expression nodes"""
    parts: List[Union[str, ASTNode]] = []
    for is_expr, text in split_template(template):
        if is_expr:
            parts.append(parse_expression(text, filename))
        else:
            parts.append(text)
    return StringTemplate(parts)


def parse(source: str, filename: Optional[str] = None) -> Program:
    """Parse REPL input into a program"""
    lexer = Lexer(source, filename)
    tokens = lexer.tokenize()
    parser = Parser(tokens, filename)
    return parser.parse()


def parse_expression(source: str, filename: Optional[str] = None) -> ASTNode:
    """Parse input consisting of exactly one expression"""
    tokens = Lexer(source, filename).tokenize()
    return Parser(tokens, filename).parse_single_expression()
