"""Command-line entry point for configuring the headset.

Options are applied in the order they appear on the command line, after the
connection handshake. The first failure stops the run.
"""

from __future__ import annotations

import logging
import re
import sys

import click

from .errors import BasedConnectError, TransportError, ValidationError
from .models.settings import (
    AUTO_OFF_ARGS,
    MAX_NAME_LEN,
    NOISE_CANCELLING_ARGS,
    PROMPT_LANGUAGE_ARGS,
    AutoOff,
    NoiseCancelling,
    PromptLanguage,
    encode_name,
    truncate_name,
)
from .session import CommandSession
from .transport.rfcomm import RFCOMM_CHANNEL, open_rfcomm

logger = logging.getLogger(__name__)

ADDRESS_RE = re.compile(r"^[0-9A-Fa-f]{2}(:[0-9A-Fa-f]{2}){5}$")


def _parse_name(value: str) -> str:
    encode_name(value)
    return value


_PARSERS = {
    "name": _parse_name,
    "noise_cancelling": NoiseCancelling.from_arg,
    "auto_off": AutoOff.from_arg,
    "prompt_language": PromptLanguage.from_arg,
}


class OrderedCommand(click.Command):
    """A command that remembers the order its options were given in.

    click groups repeated options per parameter; the per-occurrence order
    from the parser is kept in ``ctx.meta["param_order"]`` so every
    occurrence can be replayed in sequence.
    """

    def make_parser(self, ctx: click.Context):
        parser = super().make_parser(ctx)
        parse_args = parser.parse_args

        def parse_and_record(args):
            opts, largs, order = parse_args(args=args)
            ctx.meta["param_order"] = order
            return opts, largs, order

        parser.parse_args = parse_and_record
        return parser


def _parse_settings(ctx: click.Context, param: click.Parameter, values):
    """Validate every occurrence of a setting option."""
    try:
        parsed = tuple(_PARSERS[param.name](value) for value in values)
    except ValidationError as e:
        raise click.BadParameter(str(e), ctx=ctx, param=param) from e

    if param.name == "name":
        for name in parsed:
            if truncate_name(name)[1]:
                click.echo(
                    f"Name exceeds {MAX_NAME_LEN} character maximum. Truncating.",
                    err=True,
                )
    return parsed


def _ordered_changes(ctx: click.Context, **settings) -> list:
    """Interleave the parsed settings in command-line order."""
    pending = {name: list(values) for name, values in settings.items()}
    changes = []
    for param in ctx.meta.get("param_order", ()):
        values = pending.get(param.name)
        if values:
            changes.append(values.pop(0))
    return changes


def _validate_address(ctx: click.Context, param: click.Parameter, value: str) -> str:
    if not ADDRESS_RE.match(value):
        raise click.BadParameter(
            f"'{value}' is not a Bluetooth address (expected XX:XX:XX:XX:XX:XX)"
        )
    return value.upper()


@click.command(
    cls=OrderedCommand, context_settings={"help_option_names": ["-h", "--help"]}
)
@click.argument("address", callback=_validate_address)
@click.option(
    "-n", "--name", multiple=True, callback=_parse_settings,
    help=f"Change the name of the headphones (max {MAX_NAME_LEN} characters).",
)
@click.option(
    "-c", "--noise-cancelling", multiple=True, callback=_parse_settings,
    metavar="LEVEL",
    help=f"Change the noise cancelling level: {', '.join(NOISE_CANCELLING_ARGS)}.",
)
@click.option(
    "-o", "--auto-off", multiple=True, callback=_parse_settings,
    metavar="MINUTES",
    help=f"Change the auto-off time: {', '.join(AUTO_OFF_ARGS)}.",
)
@click.option(
    "-l", "--prompt-language", multiple=True, callback=_parse_settings,
    metavar="LANGUAGE",
    help=f"Change the voice-prompt language: {', '.join(PROMPT_LANGUAGE_ARGS)}.",
)
@click.option(
    "--channel", type=click.IntRange(1, 30), default=RFCOMM_CHANNEL,
    show_default=True, help="RFCOMM channel of the headset.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log protocol traffic.")
@click.version_option(package_name="based-connect")
@click.pass_context
def cli(ctx, address, name, noise_cancelling, auto_off, prompt_language, channel, verbose):
    """Configure Bluetooth headphones at ADDRESS.

    Options may be repeated; each one is applied in the order given.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    changes = _ordered_changes(
        ctx,
        name=name,
        noise_cancelling=noise_cancelling,
        auto_off=auto_off,
        prompt_language=prompt_language,
    )

    try:
        transport = open_rfcomm(address, channel)
    except TransportError as e:
        raise click.ClickException(f"{e.kind}: {e}") from e

    with CommandSession(transport) as session:
        result = session.init_connection()
        results = [result]
        if result.ok:
            results += session.apply(changes)

    failed = next((r for r in results if not r.ok), None)
    if failed is not None:
        raise click.ClickException(f"{failed.error.kind}: {failed.error}")

    logger.info("Applied %d setting(s) to %s", len(changes), address)


def main():
    """Entry point."""
    try:
        code = cli(standalone_mode=False)
    except click.exceptions.Abort:
        sys.exit(1)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except BasedConnectError as e:
        click.echo(f"Error: {e.kind}: {e}", err=True)
        sys.exit(1)
    sys.exit(code if isinstance(code, int) else 0)


if __name__ == "__main__":
    main()
