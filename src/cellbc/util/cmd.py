'''Command-line plumbing shared by the cellbc scripts: each script module
lists its commands in __commands__ as (name, parser_function) pairs, and
main_argparse turns them into one program with a subcommand per entry, or
a plain program when there is a single nameless command.
'''

import os.path
import sys
import logging
import argparse
import importlib

import cellbc

__version__ = cellbc.__version__

log = logging.getLogger()

LOG_FORMAT = "%(asctime)s - %(module)s:%(lineno)d:%(funcName)s - %(levelname)s - %(message)s"
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def setup_logger(log_level):
    loglevel = getattr(logging, log_level.upper(), None)
    assert loglevel, "unrecognized log level: %s" % log_level
    log.setLevel(loglevel)
    h = logging.StreamHandler()
    h.setFormatter(logging.Formatter(LOG_FORMAT))
    log.addHandler(h)


def script_name():
    return os.path.basename(sys.argv[0]).rsplit('.', 1)[0]


def _add_loglevel(parser, default):
    parser.add_argument("--loglevel", dest="loglevel", default=default or 'INFO', choices=LOG_LEVELS,
                        help="Verboseness of output.  [default: %(default)s]")


def _add_threads(parser, default):
    parser.add_argument('--threads', dest="threads", type=int, default=default,
                        help="Number of threads per compressor process (default: {})".format(
                            "4, capped at the available cores" if default is None else default))


def _add_version(parser, default):
    parser.add_argument('--version', '-V', action='version', version=default or __version__)


_COMMON_ARGS = {'loglevel': _add_loglevel, 'threads': _add_threads, 'version': _add_version}


def common_args(parser, arglist=(('loglevel', None),)):
    '''Add the options every command shares; arglist holds (name, default) pairs.'''
    for k, v in arglist:
        if k not in _COMMON_ARGS:
            raise Exception("unrecognized argument %s" % k)
        _COMMON_ARGS[k](parser, v)
    return parser


def main_command(mainfunc):
    ''' Wrap mainfunc so it can be called with an argparse.Namespace: the
        parsed options are passed on as keyword arguments.
    '''

    def _main(args):
        kwargs = dict((k, v) for k, v in vars(args).items()
                      if k not in ('loglevel', 'version', 'func_main', 'command'))
        return mainfunc(**kwargs)

    _main.__doc__ = mainfunc.__doc__
    return _main


def attach_main(parser, cmd_main, split_args=False):
    ''' Make cmd_main the function run for this parser's command. '''
    if split_args:
        cmd_main = main_command(cmd_main)
    parser.description = cmd_main.__doc__
    parser.set_defaults(func_main=cmd_main)
    return parser


def make_parser(commands, description):
    ''' commands: (name, parser_function) pairs. A single pair whose name is
        None gives a parser with that command's options and no subcommands.
    '''
    if len(commands) == 1 and commands[0][0] is None:
        parser = commands[0][1](argparse.ArgumentParser(formatter_class=argparse.ArgumentDefaultsHelpFormatter))
        parser.set_defaults(command='')
        return parser

    parser = argparse.ArgumentParser(description=description, usage='%(prog)s subcommand')
    parser.add_argument('--version', '-V', action='version', version=__version__, help=argparse.SUPPRESS)
    subparsers = parser.add_subparsers(title='subcommands', dest='command')
    for cmd_name, cmd_parser in commands:
        p = subparsers.add_parser(cmd_name, help=cmd_parser.__doc__ or None,
                                  formatter_class=argparse.ArgumentDefaultsHelpFormatter)
        cmd_parser(p)
    return parser


def main_argparse(commands, description, argv=None):
    parser = make_parser(commands, description)
    argv = sys.argv[1:] if argv is None else list(argv)
    single = len(commands) == 1 and commands[0][0] is None

    # too few arguments to do anything: show the relevant help instead
    if not argv:
        parser.parse_args(['--help'])
    elif len(argv) == 1 and not single:
        parser.parse_args([argv[0], '--help'])
    args = parser.parse_args(argv)

    setup_logger(getattr(args, 'loglevel', 'DEBUG'))
    log.info("software version: %s, python version: %s", __version__, sys.version)
    log.info("command: %s %s %s", script_name(), args.command,
             ' '.join("%s=%s" % (k, v) for k, v in vars(args).items() if k not in ('command', 'func_main')))

    ret = args.func_main(args)
    return 0 if ret is None else ret


class BadInputError(RuntimeError):

    '''Indicates that an invalid input was given to a command'''

    def __init__(self, reason):
        super(BadInputError, self).__init__(reason)


def check_input(condition, error_msg):
    '''Check input to a command'''
    if not condition:
        raise BadInputError(error_msg)


def run_cmd(module, cmd, args):
    """Parse `args` with the parser of command `cmd` from `module` (a module
    or its dotted name) and run the command, returning its result. Used to
    drive commands in-process, e.g. from tests."""
    if isinstance(module, str):
        module = importlib.import_module(module)
    log.info('Calling command %s with args %s', cmd, args)
    parser_fn = dict(module.__commands__)[cmd]
    args_parsed = parser_fn(argparse.ArgumentParser()).parse_args([str(a) for a in args])
    return args_parsed.func_main(args_parsed)
