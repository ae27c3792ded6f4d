"""``promote`` command: publish a build's deployment descriptors to GitOps.

The pipeline runs strictly in order and stops at the first failure:
parse arguments, load config, resolve the target, verify the build identity,
resolve descriptors, then write/commit/push. Every failure is a
``PromoteError`` whose kind decides the exit code; nothing below this module
knows about exit codes.
"""

from __future__ import annotations

import importlib
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType

import typer
from rich.markup import escape

from buildtools import __version__, ci
from buildtools.config import load_config
from buildtools.credentials import resolve_author, resolve_credentials
from buildtools.errors import (
    ArgumentError,
    DescriptorNotFoundError,
    ExitCode,
    GitTransportError,
    PromoteError,
    UnidentifiedBuildError,
)
from buildtools.files import find_files_for_target
from buildtools.gateway import GitOpsRepository, commit_message, destination_path, write_descriptors
from buildtools.log import MARKUP, configure_logging, get_logger
from buildtools.render import render_descriptors

DESCRIPTOR_DIR = "k8s"
HELP_FLAGS = ("-h", "--help")

log = get_logger()

app = typer.Typer(
    name="promote",
    help="Promote deployment descriptors for the current build to a GitOps repository.",
    add_completion=False,
    context_settings={"help_option_names": list(HELP_FLAGS)},
)


@dataclass(frozen=True)
class PromoteOptions:
    """Parsed command line."""

    target: str
    tag: str | None = None
    url: str | None = None
    path: str | None = None
    user: str | None = None
    key: str | None = None
    password: str | None = None
    out: str | None = None
    namespace: str | None = None
    print_config: bool = False
    verbose: bool = False


def _version_option_callback(value: bool) -> None:
    """Handle eager --version option."""
    if value:
        typer.echo(f"promote {__version__}")
        raise typer.Exit()


@app.command()
def promote(
    target: str = typer.Argument(..., metavar="TARGET", help="the target in the .buildtools.yaml"),
    version: bool = typer.Option(
        False,
        "--version",
        help="Print version information and exit",
        is_eager=True,
        callback=_version_option_callback,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose mode"),
    print_config: bool = typer.Option(False, "--config", help="Print parsed config and exit"),
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="override the namespace for default deployment target"
    ),
    tag: str | None = typer.Option(
        None, "--tag", help="override the tag to deploy, not using the CI or VCS evaluated value"
    ),
    url: str | None = typer.Option(
        None, "--url", help="override the URL to the Git repository where files will be generated"
    ),
    path: str | None = typer.Option(
        None, "--path", help="override the path in the Git repository where files will be generated"
    ),
    user: str | None = typer.Option(None, "--user", help="username for Git access (defaults to git)"),
    key: str | None = typer.Option(
        None, "--key", help="private key for Git access (defaults to ~/.ssh/id_rsa)"
    ),
    password: str | None = typer.Option(None, "--password", help="password for private key"),
    out: str | None = typer.Option(
        None, "--out", "-o", help="write output to specified directory instead of committing and pushing to Git"
    ),
) -> PromoteOptions:
    """Promote the current build to TARGET."""
    _ = version
    return PromoteOptions(
        target=target,
        tag=tag,
        url=url,
        path=path,
        user=user,
        key=key,
        password=password,
        out=out,
        namespace=namespace,
        print_config=print_config,
        verbose=verbose,
    )


def _click_exceptions(command: object) -> ModuleType:
    """Return the exceptions module of the click package that built ``command``.

    Newer typer releases ship their own copy of click, so the classes raised
    during parsing are not necessarily those of the installed ``click``.
    """
    for cls in type(command).__mro__:
        if cls.__name__ == "Command" and cls.__module__.endswith(".core"):
            package = cls.__module__.rpartition(".")[0]
            return importlib.import_module(f"{package}.exceptions")
    raise TypeError(f"{type(command).__name__} is not a click command")


def parse_arguments(args: list[str]) -> PromoteOptions | None:
    """Parse the command line; ``None`` means help or version was printed."""
    # Help and version win over every other argument, valid or not.
    if any(arg in HELP_FLAGS for arg in args):
        args = ["--help"]
    elif "--version" in args:
        args = ["--version"]

    command = typer.main.get_command(app)
    exceptions = _click_exceptions(command)
    try:
        result = command.main(args=args, prog_name="promote", standalone_mode=False)
    except exceptions.ClickException as exc:
        raise ArgumentError(exc.format_message()) from exc
    except exceptions.Abort as exc:
        raise ArgumentError("aborted") from exc
    if isinstance(result, PromoteOptions):
        return result
    return None


def do_promote(directory: Path, *args: str, environ: Mapping[str, str] | None = None) -> int:
    """Run the promotion pipeline for ``directory`` and return the exit code."""
    configure_logging()
    try:
        options = parse_arguments(list(args))
        if options is None:
            return int(ExitCode.OK)
        configure_logging(options.verbose)
        return int(run_promotion(directory, options, environ))
    except PromoteError as exc:
        log.error("%s", exc)
        return int(ExitCode.for_kind(exc.kind))


def run_promotion(
    directory: Path,
    options: PromoteOptions,
    environ: Mapping[str, str] | None = None,
) -> ExitCode:
    config = load_config(directory, environ)
    if options.print_config:
        typer.echo(config.dump())
        return ExitCode.OK

    endpoint = config.endpoint(options.target)

    identity = ci.identify(directory, environ)
    if not identity.identified:
        raise UnidentifiedBuildError(
            "Commit and/or branch information is missing. Perhaps you're not in a Git "
            "repository or forgot to set environment variables?"
        )

    if options.tag:
        log.info("Using passed tag [green]%s[/green] to promote", escape(options.tag), extra=MARKUP)
    tag = options.tag or endpoint.tag or identity.commit

    # --tag only changes the substituted value; descriptors are still required.
    descriptor_dir = directory / DESCRIPTOR_DIR
    paths = find_files_for_target(descriptor_dir, options.target) if descriptor_dir.exists() else []
    if not paths:
        raise DescriptorNotFoundError(f"no deployment descriptors found in {DESCRIPTOR_DIR} directory")

    log.info("generating...")
    entries = render_descriptors(paths, tag, options.namespace)
    destination = destination_path(
        options.path if options.path is not None else endpoint.path,
        identity.build_name,
    )

    if options.out:
        out_dir = Path(options.out)
        if not out_dir.is_absolute():
            out_dir = directory / out_dir
        log.info("writing output to %s", out_dir)
        write_descriptors(out_dir, destination, entries)
        return ExitCode.OK

    url = options.url or endpoint.url
    if not url:
        raise GitTransportError(f"no repository url configured for gitops target {options.target}")
    credentials = resolve_credentials(
        config.git,
        user=options.user,
        key=options.key,
        password=options.password,
    )
    repository = GitOpsRepository(url, credentials, resolve_author(config.git))
    repository.promote(
        entries,
        destination,
        commit_message(identity.build_name, identity.commit, options.target),
    )
    return ExitCode.OK


def main() -> None:
    sys.exit(do_promote(Path.cwd(), *sys.argv[1:]))


if __name__ == "__main__":
    main()
