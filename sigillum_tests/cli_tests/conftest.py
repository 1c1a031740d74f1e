import os

import pytest
import yaml
from click.testing import CliRunner

from sigillum.cli import cli_root
from sigillum_tests.samples import MINIMAL

INPUT_PATH = 'input.pdf'
SIGNED_OUTPUT_PATH = 'output.pdf'
KEY_DIR = 'keys'


# cli_runner is autouse to ensure it gets priority in the dependency graph
@pytest.fixture(scope="function", autouse=True)
def cli_runner(monkeypatch):
    runner = CliRunner()
    with runner.isolated_filesystem():
        # never touch the real key directory
        monkeypatch.setenv('SIGILLUM_HOME', os.path.abspath('home'))
        with open(INPUT_PATH, 'wb') as outf:
            outf.write(MINIMAL)
        yield runner


@pytest.fixture
def key_files(alice_pems):
    private_pem, public_pem = alice_pems
    with open('private.pem', 'w') as outf:
        outf.write(private_pem)
    with open('public.pem', 'w') as outf:
        outf.write(public_pem)
    return 'private.pem', 'public.pem'


@pytest.fixture
def imported_key(cli_runner, key_files):
    result = cli_runner.invoke(
        cli_root, ['--key-dir', KEY_DIR, 'import', *key_files]
    )
    assert not result.exception, result.output
    return key_files


def _write_config(config: dict, fname: str = 'sigillum.yml'):
    with open(fname, 'w') as outf:
        yaml.dump(config, outf)
