from sigillum.cli._root import cli_root
from sigillum.cli.commands.keys import *
from sigillum.cli.commands.signing import *
from sigillum.cli.commands.validation import *

__all__ = ['launch', 'cli_root']


def launch():
    cli_root(prog_name='sigillum')
