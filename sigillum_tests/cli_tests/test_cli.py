import json
import os

from sigillum import __version__
from sigillum.cli import cli_root
from sigillum.keys import FileKeyStorage
from sigillum_tests.samples import (
    MINIMAL,
    MINIMAL_ENCRYPTED,
    append_revision,
)

from .conftest import INPUT_PATH, KEY_DIR, SIGNED_OUTPUT_PATH, _write_config


def _invoke(cli_runner, *args):
    return cli_runner.invoke(cli_root, ['--key-dir', KEY_DIR, *args])


def _sign(cli_runner, *extra_args):
    result = _invoke(
        cli_runner,
        'sign',
        INPUT_PATH,
        SIGNED_OUTPUT_PATH,
        '--name',
        'Alice',
        *extra_args,
    )
    assert not result.exception, result.output
    return result


def test_version(cli_runner):
    result = cli_runner.invoke(cli_root, ['--version'])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_keygen(cli_runner):
    result = _invoke(cli_runner, 'keygen')
    assert not result.exception, result.output
    assert '-----BEGIN PUBLIC KEY-----' in result.output

    stored = FileKeyStorage(KEY_DIR).read()
    assert stored.public_key in result.output
    assert stored.private_key not in result.output


def test_keygen_refuses_overwrite(cli_runner, imported_key):
    result = _invoke(cli_runner, 'keygen')
    assert result.exit_code == 1
    assert 'already exists' in result.output

    with open(imported_key[1]) as inf:
        public_pem = inf.read()
    assert FileKeyStorage(KEY_DIR).read().public_key == public_pem


def test_keygen_force(cli_runner, imported_key):
    result = _invoke(cli_runner, 'keygen', '--force', '--key-size', '3072')
    assert not result.exception, result.output
    with open(imported_key[1]) as inf:
        public_pem = inf.read()
    stored = FileKeyStorage(KEY_DIR).read()
    assert stored.public_key != public_pem
    assert stored.public_key in result.output


def test_keygen_bad_key_size(cli_runner):
    result = _invoke(cli_runner, 'keygen', '--key-size', '1024')
    assert result.exit_code == 1
    assert 'Key error' in result.output
    assert not os.path.exists(KEY_DIR)


def test_pubkey_without_key(cli_runner):
    result = _invoke(cli_runner, 'pubkey')
    assert result.exit_code == 1
    assert 'sigillum keygen' in result.output


def test_import_and_pubkey(cli_runner, imported_key):
    with open(imported_key[1]) as inf:
        public_pem = inf.read()
    result = _invoke(cli_runner, 'pubkey')
    assert not result.exception, result.output
    assert public_pem in result.output


def test_import_mismatch(cli_runner, alice_pems, bob_pems):
    with open('private.pem', 'w') as outf:
        outf.write(alice_pems[0])
    with open('public.pem', 'w') as outf:
        outf.write(bob_pems[1])
    result = _invoke(cli_runner, 'import', 'private.pem', 'public.pem')
    assert result.exit_code == 1
    assert 'Key error' in result.output
    assert not FileKeyStorage(KEY_DIR).exists()


def test_import_missing_file(cli_runner):
    result = _invoke(cli_runner, 'import', 'nope.pem', 'nope.pub.pem')
    assert result.exit_code == 2


def test_export(cli_runner, imported_key, alice_pems):
    result = _invoke(cli_runner, 'export')
    assert not result.exception, result.output
    assert alice_pems[0] in result.output


def test_export_to_file(cli_runner, imported_key, alice_pems):
    result = _invoke(cli_runner, 'export', '--output', 'exported.pem')
    assert not result.exception, result.output
    with open('exported.pem') as inf:
        assert inf.read() == alice_pems[0]


def test_sign_and_verify(cli_runner, imported_key):
    result = _sign(cli_runner, '--extra', 'Approved')
    assert 'Signed by Alice at' in result.output
    with open(SIGNED_OUTPUT_PATH, 'rb') as inf:
        assert inf.read().startswith(MINIMAL)

    result = _invoke(cli_runner, 'verify', SIGNED_OUTPUT_PATH)
    assert result.exit_code == 0, result.output
    assert 'Signer:    Alice' in result.output
    assert 'Extra:     Approved' in result.output
    assert 'Status:    valid' in result.output


def test_sign_without_key(cli_runner):
    result = _invoke(
        cli_runner, 'sign', INPUT_PATH, SIGNED_OUTPUT_PATH, '--name', 'Alice'
    )
    assert result.exit_code == 1
    assert 'sigillum keygen' in result.output
    assert not os.path.exists(SIGNED_OUTPUT_PATH)


def test_sign_requires_name(cli_runner, imported_key):
    result = _invoke(cli_runner, 'sign', INPUT_PATH, SIGNED_OUTPUT_PATH)
    assert result.exit_code == 2


def test_sign_blank_name(cli_runner, imported_key):
    result = _invoke(
        cli_runner, 'sign', INPUT_PATH, SIGNED_OUTPUT_PATH, '--name', ' '
    )
    assert result.exit_code == 1
    assert 'Invalid input' in result.output


def test_sign_encrypted(cli_runner, imported_key):
    with open(INPUT_PATH, 'wb') as outf:
        outf.write(MINIMAL_ENCRYPTED)
    result = _invoke(
        cli_runner, 'sign', INPUT_PATH, SIGNED_OUTPUT_PATH, '--name', 'Alice'
    )
    assert result.exit_code == 1
    assert 'Invalid input' in result.output


def test_sign_not_a_pdf(cli_runner, imported_key):
    with open(INPUT_PATH, 'wb') as outf:
        outf.write(b'This is not a PDF file')
    result = _invoke(
        cli_runner, 'sign', INPUT_PATH, SIGNED_OUTPUT_PATH, '--name', 'Alice'
    )
    assert result.exit_code == 1
    assert 'Failed to read PDF file' in result.output


def test_verify_unsigned(cli_runner, imported_key):
    result = _invoke(cli_runner, 'verify', INPUT_PATH)
    assert result.exit_code == 1
    assert 'Status:    not signed' in result.output
    assert 'Signer:' not in result.output


def test_verify_modified(cli_runner, imported_key):
    _sign(cli_runner)
    with open(SIGNED_OUTPUT_PATH, 'rb') as inf:
        signed = inf.read()
    with open(SIGNED_OUTPUT_PATH, 'wb') as outf:
        outf.write(append_revision(signed))
    result = _invoke(cli_runner, 'verify', SIGNED_OUTPUT_PATH)
    assert result.exit_code == 1
    assert 'Signer:    Alice' in result.output
    assert 'Status:    document modified after signing' in result.output


def test_verify_json(cli_runner, imported_key):
    # keep log output out of the way
    _write_config({'logging': {'root-level': 'ERROR'}})
    _sign(cli_runner)
    result = _invoke(cli_runner, 'verify', '--json', SIGNED_OUTPUT_PATH)
    assert result.exit_code == 0, result.output
    response = json.loads(result.output)
    assert response['is_signed'] is True
    assert response['message'] == 'valid'
    assert response['signature_info']['signer_name'] == 'Alice'
    assert response['signature_info']['extra'] is None


def test_verify_other_key(cli_runner, imported_key, bob_pems):
    _sign(cli_runner)
    with open('bob.pem', 'w') as outf:
        outf.write(bob_pems[0])
    with open('bob.pub.pem', 'w') as outf:
        outf.write(bob_pems[1])
    result = cli_runner.invoke(
        cli_root,
        ['--key-dir', 'bob-keys', 'import', 'bob.pem', 'bob.pub.pem'],
    )
    assert not result.exception, result.output
    result = cli_runner.invoke(
        cli_root, ['--key-dir', 'bob-keys', 'verify', SIGNED_OUTPUT_PATH]
    )
    assert result.exit_code == 1
    assert 'Status:    signature does not match content' in result.output


def test_key_dir_from_config(cli_runner, key_files):
    _write_config({'key-dir': 'configured-keys'})
    result = cli_runner.invoke(cli_root, ['import', *key_files])
    assert not result.exception, result.output
    assert FileKeyStorage('configured-keys').exists()
    # the home directory fallback is untouched
    assert not os.path.exists('home')


def test_key_dir_default(cli_runner, key_files):
    result = cli_runner.invoke(cli_root, ['import', *key_files])
    assert not result.exception, result.output
    assert FileKeyStorage(os.path.abspath('home')).exists()


def test_explicit_config_file(cli_runner, imported_key):
    _write_config(
        {'digest-algorithm': 'sha512', 'watermark': {'margin': 20}},
        fname='custom.yml',
    )
    result = cli_runner.invoke(
        cli_root,
        [
            '--config',
            'custom.yml',
            '--key-dir',
            KEY_DIR,
            'sign',
            INPUT_PATH,
            SIGNED_OUTPUT_PATH,
            '--name',
            'Alice',
        ],
    )
    assert not result.exception, result.output
    with open(SIGNED_OUTPUT_PATH, 'rb') as inf:
        assert b'/DigestMethod /SHA512' in inf.read()


def test_bad_config(cli_runner):
    _write_config({'key-size': 'enormous'})
    result = _invoke(cli_runner, 'pubkey')
    assert result.exit_code == 1
    assert 'Configuration problem' in result.output


def test_verbose(cli_runner, imported_key):
    result = cli_runner.invoke(
        cli_root, ['--verbose', '--key-dir', KEY_DIR, 'pubkey']
    )
    assert not result.exception, result.output
