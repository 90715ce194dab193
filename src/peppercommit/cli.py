import logging
import sys

import click

from peppercommit.lib.crypto import ENCODINGS, Commitment, PepperGenerator, verify
from peppercommit.lib.errors import PepperCommitError
from peppercommit.lib.models import commit_many
from peppercommit.lib.store import SecretStore
from peppercommit.lib.util.config import Config
from peppercommit.lib.util.serialization import from_hex_str, stringify, to_hex_str

EXIT_MISMATCH = 1


def _fail(err: PepperCommitError):
    click.echo(f"Error: {err}", err=True)
    sys.exit(err.exit_code)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
@click.option("--config-file", "conf_file", type=click.Path(exists=True, dir_okay=False),
              help="Path to a TOML configuration file.")
@click.pass_context
def cli(ctx, verbose, conf_file):
    """Commit to a value now, reveal it later and let anyone check it."""
    ctx.ensure_object(dict)
    if verbose:
        logging.basicConfig(stream=sys.stderr, level=logging.DEBUG)
    try:
        ctx.obj["config"] = Config(conf_file)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--config-file")
    ctx.obj["store"] = SecretStore(ctx.obj["config"].get_lock_timeout())
    ctx.obj.setdefault("generator", PepperGenerator())


@cli.command("commit")
@click.argument("values", nargs=-1)
@click.option("--output", "-o", "output_file", help="Where to write the secret file.")
@click.option("--pepper-length", type=int, help="Pepper size in bytes (min 16).")
@click.option("--encoding", type=click.Choice(ENCODINGS), help="Commitment encoding.")
@click.option("--force", is_flag=True, help="Overwrite an existing secret file.")
@click.option("--workers", type=click.IntRange(min=1), default=1, show_default=True,
              help="Threads used when committing several values.")
@click.pass_context
def commit_cmd(ctx, values, output_file, pepper_length, encoding, force, workers):
    """
    Commit to one or more VALUES and keep the secrets for the reveal.

    This command:
      1. Prompts for a value if none is given on the command line.
      2. Draws a fresh pepper per value and computes its commitment.
      3. Writes the input, pepper and commitment to the secret file
         (a single record, or a batch for several values).
      4. Prints the commitments, one per line, ready to publish.

    The secret file is never overwritten unless --force is given.
    """
    conf = ctx.obj["config"]
    store = ctx.obj["store"]

    if not values:
        values = (click.prompt("Value to commit", hide_input=True),)

    output_file = output_file or conf.get_secret_file()
    pepper_length = pepper_length or conf.get_pepper_length()
    encoding = encoding or conf.get_commitment_encoding()

    try:
        records = commit_many(values, ctx.obj["generator"], pepper_length=pepper_length, encoding=encoding, workers=workers)
        if len(records) == 1:
            store.save(records[0], output_file, overwrite=force)
        else:
            store.save_batch(records, output_file, overwrite=force)
    except PepperCommitError as e:
        _fail(e)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--pepper-length")

    for record in records:
        click.echo(record.commitment.encode(encoding))
    click.echo(f"Secrets written to {output_file}. Keep this file until you reveal.", err=True)


@cli.command("verify")
@click.option("--input", "input_value", required=True, help="Revealed input.")
@click.option("--pepper", required=True, help="Revealed pepper, hex.")
@click.option("--commitment", required=True, help="Published commitment, hex or base64.")
def verify_cmd(input_value, pepper, commitment):
    """
    Check a revealed input and pepper against a published commitment.

    Needs no secret file, so any third party can run it. Exits 0 on a
    match and 1 on a mismatch.
    """
    try:
        ok = verify(input_value, from_hex_str(pepper), commitment)
    except PepperCommitError as e:
        _fail(e)

    click.echo("match" if ok else "mismatch")
    if not ok:
        sys.exit(EXIT_MISMATCH)


@cli.command("reveal")
@click.argument("secret_file", type=click.Path(dir_okay=False))
@click.pass_context
def reveal_cmd(ctx, secret_file):
    """
    Print the input, pepper and commitment stored in SECRET_FILE.

    The file is validated on load, so a tampered or corrupted record is
    rejected instead of being revealed.
    """
    store = ctx.obj["store"]
    try:
        records = store.load_any(secret_file)
    except PepperCommitError as e:
        _fail(e)

    for record in records:
        click.echo(f"input:      {stringify(record.input)}")
        click.echo(f"pepper:     {to_hex_str(record.pepper)}")
        click.echo(f"commitment: {record.commitment.encode(record.encoding)}")
        if record.created_at:
            click.echo(f"created_at: {record.created_at}")
        click.echo("")


@cli.command("check")
@click.argument("secret_file", type=click.Path(dir_okay=False))
@click.option("--input", "input_value", required=True, help="Claimed input.")
@click.option("--commitment", help="Only check the record with this commitment.")
@click.pass_context
def check_cmd(ctx, secret_file, input_value, commitment):
    """
    Check a claimed input against the pepper kept in SECRET_FILE.

    For a batch file every record is tried unless --commitment picks one.
    Exits 0 on a match and 1 on a mismatch.
    """
    store = ctx.obj["store"]
    try:
        records = store.load_any(secret_file)
        if commitment:
            wanted = Commitment.parse(commitment)
            records = [r for r in records if r.commitment == wanted]
    except PepperCommitError as e:
        _fail(e)

    ok = any(verify(input_value, r.pepper, r.commitment) for r in records)
    click.echo("match" if ok else "mismatch")
    if not ok:
        sys.exit(EXIT_MISMATCH)


if __name__ == "__main__":
    cli(obj={})
