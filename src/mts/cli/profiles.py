"""CLI commands for transcode profile management."""

import json

import click

from mts.cli.exit_codes import ExitCode
from mts.config.profiles import (
    ProfileError,
    ProfileNotFoundError,
    TranscodeProfileModel,
    get_profiles_directory,
    list_profiles,
    load_profile,
)


@click.group("profiles")
def profiles_group() -> None:
    """Manage transcode profiles."""
    pass


@profiles_group.command("list")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output in JSON format.",
)
def list_profiles_cmd(json_output: bool) -> None:
    """List available transcode profiles.

    Profiles are stored in ~/.mts/profiles/ as YAML files.

    Examples:

        mts profiles list

        mts profiles list --json
    """
    profile_names = list_profiles()

    if json_output:
        data = []
        for name in profile_names:
            try:
                data.append(load_profile(name).model_dump(exclude_none=True))
            except ProfileError as e:
                data.append({"name": name, "error": str(e)})
        click.echo(json.dumps(data, indent=2))
        return

    if not profile_names:
        click.echo(f"No profiles found in {get_profiles_directory()}")
        click.echo("\nTo create a profile, add a YAML file to the profiles directory.")
        click.echo("Example: ~/.mts/profiles/live-hevc.yaml")
        return

    click.echo(f"{'NAME':<20} {'CODEC':<12} {'DESCRIPTION':<40}")
    click.echo("-" * 74)
    for name in profile_names:
        try:
            profile = load_profile(name)
            codec = profile.video_codec or "-"
            desc = profile.description or "-"
        except ProfileError as e:
            codec = "-"
            desc = f"(error: {e})"
        click.echo(f"{name:<20} {codec:<12} {desc[:40]:<40}")


@profiles_group.command("show")
@click.argument("profile_name")
@click.option(
    "--json",
    "json_output",
    is_flag=True,
    help="Output in JSON format.",
)
@click.pass_context
def show_profile(ctx: click.Context, profile_name: str, json_output: bool) -> None:
    """Show the settings stored in a profile.

    PROFILE_NAME is the name of the profile (without .yaml extension).
    """
    try:
        profile = load_profile(profile_name)
    except ProfileNotFoundError:
        click.echo(f"Error: Profile '{profile_name}' not found.", err=True)
        available = list_profiles()
        if available:
            click.echo("\nAvailable profiles:", err=True)
            for name in available:
                click.echo(f"  - {name}", err=True)
        ctx.exit(ExitCode.PROFILE_NOT_FOUND)
    except ProfileError as e:
        click.echo(f"Error: {e}", err=True)
        ctx.exit(ExitCode.CONFIG_ERROR)

    if json_output:
        data = profile.model_dump(exclude_none=True)
        data["location"] = str(get_profiles_directory() / f"{profile_name}.yaml")
        click.echo(json.dumps(data, indent=2))
        return

    _output_profile_human(profile, profile_name)


def _output_profile_human(profile: TranscodeProfileModel, file_name: str) -> None:
    click.echo(f"\nProfile: {profile.name}")
    click.echo("-" * 50)
    if profile.description:
        click.echo(f"  Description: {profile.description}")
    click.echo(f"  Location:    {get_profiles_directory() / f'{file_name}.yaml'}")

    settings = profile.model_dump(
        exclude_none=True, exclude={"name", "description", "reconnect"}
    )
    if settings:
        click.echo("\n  Transcode:")
        for key, value in settings.items():
            click.echo(f"    {key}: {value}")

    if profile.reconnect is not None:
        overrides = profile.reconnect.model_dump(exclude_none=True)
        if overrides:
            click.echo("\n  Reconnect:")
            for key, value in overrides.items():
                click.echo(f"    {key}: {value}")
    click.echo("")
