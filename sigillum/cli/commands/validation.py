import json

import click

from sigillum.api import VerifyPdfResponse
from sigillum.cli._ctx import CLIContext
from sigillum.cli._root import cli_root
from sigillum.cli.runtime import sigillum_exception_manager
from sigillum.cli.utils import readable_file

__all__ = ['verify']


def _print_response(response: VerifyPdfResponse):
    info = response.signature_info
    if info is not None:
        click.echo(f"Signer:    {info.signer_name}")
        click.echo(f"Timestamp: {info.timestamp}")
        if info.extra:
            click.echo(f"Extra:     {info.extra}")
        click.echo(f"Signature: {info.signature}")
    click.echo(f"Status:    {response.message}")


@cli_root.command(help='verify the signature on a PDF file', name='verify')
@click.argument('infile', type=readable_file)
@click.option(
    '--json',
    'as_json',
    help='print the result as JSON',
    type=bool,
    is_flag=True,
    default=False,
)
@click.pass_context
def verify(ctx: click.Context, infile, as_json):
    ctx_obj: CLIContext = ctx.obj
    with sigillum_exception_manager():
        with open(infile, 'rb') as inf:
            pdf_bytes = inf.read()
        response = ctx_obj.get_engine().verify_pdf(pdf_bytes)
    if as_json:
        click.echo(json.dumps(response.as_dict(), indent=2))
    else:
        _print_response(response)
    if not response.is_signed:
        ctx.exit(1)
