import click

from sigillum.cli._ctx import CLIContext
from sigillum.cli._root import cli_root
from sigillum.cli.runtime import sigillum_exception_manager
from sigillum.cli.utils import logger, readable_file

__all__ = ['keygen', 'export_key', 'import_key', 'pubkey']


@cli_root.command(help='generate a new keypair', name='keygen')
@click.option(
    '--key-size',
    help='RSA modulus size in bits [default: from configuration]',
    required=False,
    type=int,
)
@click.option(
    '--force',
    help='replace an existing keypair',
    type=bool,
    is_flag=True,
    default=False,
)
@click.pass_context
def keygen(ctx: click.Context, key_size, force):
    ctx_obj: CLIContext = ctx.obj
    with sigillum_exception_manager():
        engine = ctx_obj.get_engine()
        if engine.has_key() and not force:
            raise click.ClickException(
                "A keypair already exists; pass --force to replace it."
            )
        keypair = engine.key_store.generate(key_size)
        logger.debug(f"Generated keypair {keypair.fingerprint}")
        click.echo(keypair.public_key_pem, nl=False)


@cli_root.command(help='print the private key', name='export')
@click.option(
    '--output',
    help='file to write the private key to [default: stdout]',
    required=False,
    type=click.File('w'),
)
@click.pass_context
def export_key(ctx: click.Context, output):
    ctx_obj: CLIContext = ctx.obj
    with sigillum_exception_manager():
        private_pem = ctx_obj.get_engine().export_key()
    click.echo(private_pem, nl=False, file=output)


@cli_root.command(help='import a keypair from PEM files', name='import')
@click.argument('private_key', type=readable_file)
@click.argument('public_key', type=readable_file)
@click.pass_context
def import_key(ctx: click.Context, private_key, public_key):
    ctx_obj: CLIContext = ctx.obj
    with sigillum_exception_manager():
        with open(private_key, 'rb') as inf:
            private_data = inf.read()
        with open(public_key, 'rb') as inf:
            public_data = inf.read()
        engine = ctx_obj.get_engine()
        public_pem = engine.import_key(private_data, public_data)
    click.echo(public_pem, nl=False)


@cli_root.command(help='print the public key', name='pubkey')
@click.pass_context
def pubkey(ctx: click.Context):
    ctx_obj: CLIContext = ctx.obj
    with sigillum_exception_manager():
        public_pem = ctx_obj.get_engine().get_public_key()
    click.echo(public_pem, nl=False)
