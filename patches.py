'''Shortcuts for loops that asmbunny programs spend almost all their time in.

A patch is passed to Machine.step_with_override. It looks at the code at the
current instruction counter and, if it recognizes a loop whose result can be
computed directly, updates the registers and moves the counter past the loop.
If the code doesn't match, or the loop wouldn't terminate normally, it
returns None and the machine single steps as usual.
'''
import logging

from asmbunny import Constant, Cpy, Dec, Inc, Jnz, Register

logger = logging.getLogger(__name__)


def _match(machine, pattern):
    '''Matches the instructions at the counter against pattern.

    pattern is a list of (instruction class, fields) where each field is
    either an int (a constant that must be present) or a str naming a
    variable. Variables bind to registers; the same variable must bind to
    the same register each time and different variables to different
    registers. Returns the bindings or None.
    '''
    bindings = {}
    for ofs, (cls, fields) in enumerate(pattern):
        instr = machine.get_instruction(machine.ic + ofs)
        if type(instr) is not cls:
            return None
        for field, operand in zip(fields, vars(instr).values()):
            if isinstance(field, int):
                if operand != Constant(field):
                    return None
            elif not isinstance(operand, Register):
                return None
            elif bindings.setdefault(field, operand) != operand:
                return None
    if len(set(bindings.values())) != len(bindings):
        return None
    return bindings


ADD_LOOP = [
    (Inc, ['x']),
    (Dec, ['y']),
    (Jnz, ['y', -2]),
]

MULTIPLY_LOOP = [(Cpy, ['w', 'y'])] + ADD_LOOP + [
    (Dec, ['z']),
    (Jnz, ['z', -5]),
]


def add_patch(machine):
    '''inc x; dec y; jnz y -2  ->  x += y; y = 0'''
    m = _match(machine, ADD_LOOP)
    if m is None:
        return None
    x, y = m['x'], m['y']
    if machine.read(y) <= 0:
        return None
    logger.info('%5d: add %s += %s (%d)', machine.ic, x, y, machine.read(y))
    machine.write(x, machine.read(x) + machine.read(y))
    machine.write(y, 0)
    machine.ic += len(ADD_LOOP)
    return True


def multiply_patch(machine):
    '''cpy w y; inc x; dec y; jnz y -2; dec z; jnz z -5  ->  x += w * z; y = 0; z = 0

    The outer jnz jumps back to the cpy, which reloads y for every round.
    '''
    m = _match(machine, MULTIPLY_LOOP)
    if m is None:
        return None
    w, x, y, z = m['w'], m['x'], m['y'], m['z']
    if machine.read(w) <= 0 or machine.read(z) <= 0:
        return None
    logger.info('%5d: multiply %s += %s * %s (%d * %d)', machine.ic, x, w, z, machine.read(w), machine.read(z))
    machine.write(x, machine.read(x) + machine.read(w) * machine.read(z))
    machine.write(y, 0)
    machine.write(z, 0)
    machine.ic += len(MULTIPLY_LOOP)
    return True


def combine(*patches):
    '''Returns a patch trying each of patches in order.'''
    def patch(machine):
        for p in patches:
            result = p(machine)
            if result is not None:
                return result
        return None
    return patch


DEFAULT_PATCH = combine(multiply_patch, add_patch)
