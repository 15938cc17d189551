import functools
import logging
import sys

from asmbunny import Constant, Cpy, Dec, Inc, Jnz, Register, Tgl, toggled

logger = logging.getLogger(__name__)

# Write a dot to stderr every PROGRESS_INTERVAL executed instructions
SHOW_PROGRESS = False
PROGRESS_INTERVAL = 1000000


class Machine(object):
    '''Executes a parsed asmbunny program one instruction at a time.

    The machine owns its instruction memory; tgl rewrites entries of it in
    place. Any instruction counter outside the program means halted, there
    is no halt instruction.
    '''

    def __init__(self, instructions):
        self.program = list(instructions)
        self.reset()

    def reset(self):
        self.instructions = list(self.program)
        self.registers = {}
        self.ic = 0
        self.count = 0  # num instructions executed
        self.instr_count = [0] * len(self.instructions)

    def read(self, operand):
        if isinstance(operand, Constant):
            return operand.value
        return self.registers.get(operand.name, 0)

    def write(self, target, value):
        # Only reachable with a constant target after a tgl mangled the instruction
        if isinstance(target, Register):
            self.registers[target.name] = value

    def get_instruction(self, ic):
        if 0 <= ic < len(self.instructions):
            return self.instructions[ic]
        return None

    @property
    def halted(self):
        return self.get_instruction(self.ic) is None

    def step(self):
        '''Executes the instruction at the counter.

        Returns False, and changes nothing, if the counter is outside the
        program.
        '''
        instr = self.get_instruction(self.ic)
        if instr is None:
            return False

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug('%5d: Executing %s', self.ic, instr)
        self.count += 1
        if SHOW_PROGRESS and self.count % PROGRESS_INTERVAL == 0:
            sys.stderr.write('.')
            sys.stderr.flush()
        self.instr_count[self.ic] += 1

        new_ic = self.opcodes[type(instr)](self, instr)
        self.ic = self.ic + 1 if new_ic is None else new_ic  # Must distinguish 0 and None
        return True

    def step_with_override(self, patch):
        '''Gives patch a chance to replace the next step.

        patch is called with the machine. If it returns None, a normal step
        is executed. Otherwise it has already updated the machine itself and
        its return value is passed on as the result of this step.
        '''
        result = patch(self)
        if result is None:
            return self.step()
        return result

    def run(self, steps=0, patch=None):
        '''Runs until halted, or at most steps instructions if steps > 0.

        Returns True if the machine halted.
        '''
        if patch is None:
            step = self.step
        else:
            step = functools.partial(self.step_with_override, patch)

        if steps:
            while steps > 0 and step():
                steps -= 1
        else:
            while step():
                pass

        logger.info('Stopped at %d after %d instructions', self.ic, self.count)
        return self.halted

    def show(self, addr=0, end_addr=None):
        if end_addr is None:
            end_addr = len(self.instructions)
        for addr in range(max(addr, 0), min(end_addr, len(self.instructions))):
            line = '%4d  %-20s' % (addr, self.instructions[addr])
            if self.instr_count[addr]:
                line += '[%10d]' % (self.instr_count[addr])
            print(line)

    def hotspots(self):
        '''Prints executed instructions, most executed first.'''
        executed = [addr for addr, n in enumerate(self.instr_count) if n > 0]
        for addr in sorted(executed, key=lambda addr: -self.instr_count[addr]):
            print('%15d  %4d  %s' % (self.instr_count[addr], addr, self.instructions[addr]))

    # If an opcode returns a non-value, it's the value of the new counter
    # Otherwise the counter moves on to the next instruction

    def opcode_cpy(self, instr):
        self.write(instr.target, self.read(instr.source))

    def opcode_inc(self, instr):
        self.write(instr.target, self.read(instr.target) + 1)

    def opcode_dec(self, instr):
        self.write(instr.target, self.read(instr.target) - 1)

    def opcode_jnz(self, instr):
        if self.read(instr.condition) != 0:
            return self.ic + self.read(instr.offset)

    def opcode_tgl(self, instr):
        addr = self.ic + self.read(instr.offset)
        target = self.get_instruction(addr)
        if target is None:
            logger.info('%5d: Toggle target %d outside program', self.ic, addr)
            return
        self.instructions[addr] = toggled(target)
        logger.info('%5d: Toggled %d: %s -> %s', self.ic, addr, target, self.instructions[addr])

    opcodes = {
        Cpy: opcode_cpy,
        Inc: opcode_inc,
        Dec: opcode_dec,
        Jnz: opcode_jnz,
        Tgl: opcode_tgl,
    }


def run_program(instructions, registers=None, steps=0, patch=None):
    '''Builds a machine, seeds registers, runs it and returns the machine.'''
    machine = Machine(instructions)
    if registers:
        machine.registers.update(registers)
    machine.run(steps, patch)
    return machine
