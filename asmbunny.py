'''Parsing of asmbunny source into instructions.

Two dialects are supported. The basic one knows cpy, inc, dec and jnz, always
writes to named registers and only jumps by literal offsets. The toggle
dialect adds tgl and allows any field to be a constant or a register, since
toggling can turn a write target into a jump offset and the other way around.
'''
from dataclasses import dataclass
import logging
import re

logger = logging.getLogger(__name__)

INT_PATTERN = re.compile(r'[+-]?[0-9]+')
INT_MIN = -2 ** 63
INT_MAX = 2 ** 63 - 1


class AsmError(Exception):
    '''Base class for errors raised while parsing a program.'''

    def __init__(self, message, data, line_no=None):
        super().__init__(message)
        self.message = message
        self.data = data
        self.line_no = line_no

    def __str__(self):
        if self.line_no is None:
            return self.message
        return 'line %d: %s' % (self.line_no, self.message)


class IntFormatError(AsmError):
    '''A token that must be an integer literal is not one.'''

    def __init__(self, data, line_no=None):
        super().__init__(f"Int format error for '{data}'", data, line_no)


class InvalidInstructionError(AsmError):
    '''Unknown mnemonic, or a known mnemonic with the wrong number of fields.'''

    def __init__(self, data, line_no=None):
        super().__init__(f"Invalid instruction '{data}'", data, line_no)


@dataclass(frozen=True)
class Constant:
    value: int

    def __str__(self):
        return str(self.value)


@dataclass(frozen=True)
class Register:
    name: str

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class Cpy:
    source: object
    target: object

    def __str__(self):
        return f'cpy {self.source} {self.target}'


@dataclass(frozen=True)
class Inc:
    target: object

    def __str__(self):
        return f'inc {self.target}'


@dataclass(frozen=True)
class Dec:
    target: object

    def __str__(self):
        return f'dec {self.target}'


@dataclass(frozen=True)
class Jnz:
    condition: object
    offset: object

    def __str__(self):
        return f'jnz {self.condition} {self.offset}'


@dataclass(frozen=True)
class Tgl:
    offset: object

    def __str__(self):
        return f'tgl {self.offset}'


def parse_int(token):
    if not INT_PATTERN.fullmatch(token):
        raise IntFormatError(token)
    value = int(token)
    if not INT_MIN <= value <= INT_MAX:
        raise IntFormatError(token)
    return value


def parse_operand(token):
    try:
        return Constant(parse_int(token))
    except IntFormatError:
        return Register(token)


def _parse_basic(tokens, line):
    if len(tokens) == 3 and tokens[0] == 'cpy':
        return Cpy(parse_operand(tokens[1]), Register(tokens[2]))
    if len(tokens) == 2 and tokens[0] == 'inc':
        return Inc(Register(tokens[1]))
    if len(tokens) == 2 and tokens[0] == 'dec':
        return Dec(Register(tokens[1]))
    if len(tokens) == 3 and tokens[0] == 'jnz':
        return Jnz(parse_operand(tokens[1]), Constant(parse_int(tokens[2])))
    raise InvalidInstructionError(line)


# mnemonic -> (instruction class, number of operands)
TOGGLE_FORMS = {
    'cpy': (Cpy, 2),
    'inc': (Inc, 1),
    'dec': (Dec, 1),
    'jnz': (Jnz, 2),
    'tgl': (Tgl, 1),
}


def _parse_toggle(tokens, line):
    if not tokens or tokens[0] not in TOGGLE_FORMS:
        raise InvalidInstructionError(line)
    (cls, arity) = TOGGLE_FORMS[tokens[0]]
    if len(tokens) - 1 != arity:
        raise InvalidInstructionError(line)
    return cls(*[parse_operand(t) for t in tokens[1:]])


def parse_instruction(line, toggle=False):
    '''Parses a single line. Raises AsmError if it isn't a valid instruction.'''
    tokens = line.split()
    if toggle:
        return _parse_toggle(tokens, line)
    return _parse_basic(tokens, line)


def parse_program(lines, toggle=False):
    '''Parses all lines of a program.

    Blank lines at the end are ignored, anywhere else they are invalid
    instructions. The first bad line aborts the whole parse; the raised
    error gets the 1-based line number attached.
    '''
    lines = list(lines)
    while lines and not lines[-1].strip():
        lines.pop()
    program = []
    for line_no, line in enumerate(lines, 1):
        try:
            program.append(parse_instruction(line, toggle))
        except AsmError as e:
            e.line_no = line_no
            raise
    logger.info('Parsed %d instructions (%s dialect)', len(program), 'toggle' if toggle else 'basic')
    return program


def load_program(filename, toggle=False):
    with open(filename, 'r', encoding='utf-8') as f:
        return parse_program(f.read().splitlines(), toggle)


# Operands move across positionally; only the kind of instruction changes.
TOGGLE_TABLE = {
    Cpy: lambda i: Jnz(i.source, i.target),
    Inc: lambda i: Dec(i.target),
    Dec: lambda i: Inc(i.target),
    Jnz: lambda i: Cpy(i.condition, i.offset),
    Tgl: lambda i: Inc(i.offset),
}


def toggled(instruction):
    return TOGGLE_TABLE[type(instruction)](instruction)
