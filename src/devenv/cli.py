import logging
import os
from pathlib import Path

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_UPSTREAM_PATH,
    DEV_ENV_DIR,
    LAUNCHER_FILE,
    SETTINGS_FILE,
)
from .core import DevEnv
from .errors import DevEnvError
from .models import LaunchConfig, UpgradeConfig
from .services.config_loader import ConfigLoader
from .services.identity import default_map_user
from .upgrade import SelfUpgrader

COMMAND_META_KEY = "devenv.command"


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if config.get(key) is not None:
        return config[key]
    return default


def find_project_root(start: Path) -> Path:
    for candidate in (start, *start.parents):
        if (candidate / DEV_ENV_DIR).is_dir() or (candidate / LAUNCHER_FILE).is_file():
            return candidate
    return start


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _configure_logging(logger: logging.Logger, verbose: bool, log_file):
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)


def _usage_error(message: str, ctx: click.Context) -> click.UsageError:
    error = click.UsageError(message, ctx=ctx)
    error.exit_code = 1
    return error


class LauncherCommand(click.Command):
    """Splits argv at the first bare ``--`` and reports every bad argument at once."""

    def parse_args(self, ctx, args):
        args = list(args)
        if "--" in args:
            split_at = args.index("--")
            args, command = args[:split_at], args[split_at + 1 :]
        else:
            command = []
        ctx.meta[COMMAND_META_KEY] = tuple(command)

        try:
            remaining = super().parse_args(ctx, args)
        except click.UsageError as exc:
            exc.exit_code = 1
            raise

        if ctx.args:
            unknown = [arg for arg in ctx.args if arg.startswith("-")]
            stray = [arg for arg in ctx.args if not arg.startswith("-")]
            problems = []
            if unknown:
                problems.append(f"No such option: {', '.join(unknown)}")
            if stray:
                problems.append(
                    f"Unexpected argument: {', '.join(stray)} (put the command after `--`)"
                )
            raise _usage_error("; ".join(problems), ctx)

        return remaining


def _show_usage(ctx, _param, value):
    if not value or ctx.resilient_parsing:
        return
    click.echo(ctx.get_help())
    ctx.exit(1)


@click.command(
    cls=LauncherCommand,
    context_settings={
        "help_option_names": [],
        "ignore_unknown_options": True,
        "allow_extra_args": True,
    },
)
@click.option("--distro", required=False, help="Distro build context under .dev-env/ to use.")
@click.option("--build/--no-build", default=None, help="Build the image before running (default: on).")
@click.option(
    "--folder-name",
    required=False,
    help="Mount the project at /workspace/NAME (default: project directory name).",
)
@click.option("--image", required=False, help="Use this image tag instead of the computed one.")
@click.option("--keep/--no-keep", default=None, help="Keep the container after it stops.")
@click.option(
    "--map-user/--no-map-user",
    default=None,
    help="Run as the host user inside the container (default: on unless root).",
)
@click.option("--run/--no-run", default=None, help="Start the container and run the command (default: on).")
@click.option("--tty/--no-tty", default=None, help="Allocate a pseudo-terminal (default: on).")
@click.option(
    "--upgrade-dev-env",
    "upgrade_dev_env",
    is_flag=True,
    default=False,
    help="Merge the latest upstream launcher into the local one and exit.",
)
@click.option(
    "--upgrade-dev-env-to",
    "upgrade_dev_env_to",
    required=False,
    metavar="VERSION",
    help="Merge upstream launcher VERSION into the local one and exit.",
)
@click.option("--verbose/--no-verbose", default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "-h",
    "--help",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=_show_usage,
    help="Show this message and exit.",
)
@click.pass_context
def main(
    ctx,
    distro,
    build,
    folder_name,
    image,
    keep,
    map_user,
    run,
    tty,
    upgrade_dev_env,
    upgrade_dev_env_to,
    verbose,
    log_file,
):
    """Build and enter the project's containerized development environment.

    Everything after a bare `--` is executed inside the container instead of
    an interactive login shell.
    """
    logger = logging.getLogger("devenv")
    project_root = find_project_root(Path(os.getcwd()))

    try:
        settings = ConfigLoader().load(project_root / DEV_ENV_DIR / SETTINGS_FILE)
    except DevEnvError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, settings, "verbose", default=False))
    log_file = _resolve_option(log_file, settings, "log_file")
    _configure_logging(logger, verbose, log_file)

    if upgrade_dev_env or upgrade_dev_env_to:
        launcher = _resolve_option(None, settings, "launcher", default=LAUNCHER_FILE)
        upgrade_config = UpgradeConfig(
            launcher_path=project_root / launcher,
            target_version=upgrade_dev_env_to,
            upstream_repo=_resolve_option(None, settings, "upstream_repo"),
            upstream_path=_resolve_option(None, settings, "upstream_path", default=DEFAULT_UPSTREAM_PATH),
            merge_tool=_resolve_option(None, settings, "merge_tool"),
        )
        raise SystemExit(SelfUpgrader(upgrade_config).run())

    launch_config = LaunchConfig(
        project_root=project_root,
        distro=distro,
        build=bool(_resolve_option(build, settings, "build", default=True)),
        folder_name=_resolve_option(folder_name, settings, "folder_name"),
        image=_resolve_option(image, settings, "image"),
        keep=bool(_resolve_option(keep, settings, "keep", default=False)),
        map_user=bool(_resolve_option(map_user, settings, "map_user", default=default_map_user())),
        run=bool(_resolve_option(run, settings, "run", default=True)),
        tty=bool(_resolve_option(tty, settings, "tty", default=True)),
        command=ctx.meta.get(COMMAND_META_KEY, ()),
    )

    raise SystemExit(DevEnv(launch_config, default_distro=settings.get("distro")).run())


if __name__ == "__main__":
    main()
