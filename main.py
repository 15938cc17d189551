import argparse
import logging
import sys

from asmbunny import AsmError, load_program
from patches import DEFAULT_PATCH
from vm import Machine

logger = logging.getLogger(__name__)


def register_value(s):
    '''Parses a NAME=VALUE register assignment.'''
    name, sep, value = s.partition('=')
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got '{s}'")
    try:
        return name, int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid value for register {name}: '{value}'")


def step_limit(s):
    '''Parses a step limit; 0 means no limit.'''
    try:
        value = int(s)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid step limit: '{s}'")
    if value < 0:
        raise argparse.ArgumentTypeError(f"step limit must not be negative, got {value}")
    return value


def build_parser():
    parser = argparse.ArgumentParser(description='Runs an asmbunny program and prints its registers')
    parser.add_argument('file', help='asmbunny source file, one instruction per line')
    parser.add_argument('--toggle', action='store_true', help='accept tgl and constant operands anywhere')
    parser.add_argument('--set', dest='registers', metavar='NAME=VALUE', type=register_value,
                        action='append', default=[], help='initial register value (repeatable)')
    parser.add_argument('--turbo', action='store_true', help='shortcut recognized add/multiply loops')
    parser.add_argument('--max-steps', type=step_limit, default=0, help='stop after this many steps (0: no limit)')
    parser.add_argument('--register', dest='show', action='append', default=[],
                        help='register to print (repeatable, default all)')
    parser.add_argument('--log-level', default='warning', choices=['debug', 'info', 'warning'])
    parser.add_argument('--hotspots', action='store_true', help='print execution counts per instruction')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper()))

    try:
        program = load_program(args.file, toggle=args.toggle)
    except (AsmError, OSError, UnicodeDecodeError) as e:
        print(f'{args.file}: {e}', file=sys.stderr)
        return 1

    machine = Machine(program)
    machine.registers.update(dict(args.registers))
    halted = machine.run(args.max_steps, DEFAULT_PATCH if args.turbo else None)

    if args.hotspots:
        machine.hotspots()

    names = args.show or sorted(machine.registers)
    for name in names:
        print(f'{name} = {machine.registers.get(name, 0)}')

    if not halted:
        logger.warning('Step limit reached at %d after %d instructions', machine.ic, machine.count)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
