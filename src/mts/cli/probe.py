"""CLI command for probing stream health."""

from __future__ import annotations

import click

from mts.cli.exit_codes import ExitCode
from mts.config.models import MTSConfig
from mts.exceptions import HealthCheckError, RetryError, TranscodeCancelledError
from mts.reconnect.retry import retry_with_backoff
from mts.stream.health import StreamHealthChecker


@click.command("probe")
@click.argument("url")
@click.option("--origin", default=None, help="Origin HTTP header.")
@click.option("--referer", default=None, help="Referer HTTP header.")
@click.option("--user-agent", default=None, help="User-Agent HTTP header.")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Request timeout in seconds (default: [reconnect] health_check_timeout).",
)
@click.option(
    "--retry",
    is_flag=True,
    default=False,
    help="Retry with backoff per the reconnect settings.",
)
@click.pass_context
def probe_command(
    ctx: click.Context,
    url: str,
    origin: str | None,
    referer: str | None,
    user_agent: str | None,
    timeout: float | None,
    retry: bool,
) -> None:
    """Check that URL serves a reachable HLS manifest.

    Examples:

        mts probe https://example.com/live/index.m3u8

        mts probe https://example.com/live/index.m3u8 --retry
    """
    config: MTSConfig = ctx.obj["config"]
    policy = config.reconnect.to_retry_policy()
    checker = StreamHealthChecker(
        user_agent=user_agent or config.http.user_agent,
        origin=origin,
        referer=referer,
    )
    effective_timeout = timeout if timeout is not None else policy.health_check_timeout

    try:
        if retry:
            retry_with_backoff(
                lambda attempt: checker.check(url, effective_timeout),
                policy,
                description="stream health check",
            )
        else:
            checker.check(url, effective_timeout)
    except (HealthCheckError, RetryError) as e:
        click.echo(f"UNHEALTHY: {e}", err=True)
        ctx.exit(ExitCode.STREAM_UNHEALTHY)
    except TranscodeCancelledError:
        ctx.exit(ExitCode.INTERRUPTED)

    click.echo(f"OK: {url} is serving an HLS manifest")
