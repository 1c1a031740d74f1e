import click

from sigillum.cli._ctx import CLIContext
from sigillum.cli._root import cli_root
from sigillum.cli.runtime import sigillum_exception_manager
from sigillum.cli.utils import readable_file

__all__ = ['sign']


@cli_root.command(help='sign a PDF file', name='sign')
@click.argument('infile', type=readable_file)
@click.argument('outfile', type=click.Path(writable=True, dir_okay=False))
@click.option('--name', help='name of the signer', required=True, type=str)
@click.option(
    '--extra',
    help='additional text to include in the signature',
    required=False,
    default='',
    type=str,
)
@click.pass_context
def sign(ctx: click.Context, infile, outfile, name, extra):
    ctx_obj: CLIContext = ctx.obj
    with sigillum_exception_manager():
        with open(infile, 'rb') as inf:
            pdf_bytes = inf.read()
        response = ctx_obj.get_engine().sign_pdf(pdf_bytes, name, extra=extra)
        with open(outfile, 'wb') as outf:
            outf.write(response.signed_pdf)
    info = response.signature_info
    click.echo(f"Signed by {info.signer_name} at {info.timestamp}")
