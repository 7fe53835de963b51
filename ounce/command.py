# Copyright Red Hat
#
# ounce/command.py - Snapshot guard wrapper command interface
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``ounce.command`` module provides the ounce command line
interface: it separates ounce's own options from the target program
and its arguments, makes sure every existing file named on the command
line has a snapshot of its current contents, and then runs the target
program with its arguments untouched.

The individual steps are also available as functions for use by other
programs, or interactively in the Python shell.
"""
from argparse import ArgumentParser, REMAINDER
from dataclasses import dataclass
from os.path import basename, exists
from subprocess import Popen
from shutil import which
from typing import List, Optional, Tuple
import logging
import sys

from ounce import (
    OUNCE_CMD,
    HTTM_CMD,
    ZFS_CMD,
    ZPOOL_CMD,
    OUNCE_DEBUG_NAMES,
    OUNCE_SUBSYSTEM_COMMAND,
    OunceError,
    OunceArgumentError,
    OunceDependencyError,
    OunceRecursionError,
    SubsystemFilter,
    TargetSpec,
    WrapperOptions,
    set_debug_mask,
    validate_suffix,
    __version__,
)
from ounce._config import OunceConfig
from ounce.callouts import (
    check_unprivileged_user,
    find_paths_needing_snapshot,
    give_privileges,
    take_snapshot,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": OUNCE_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None

#: Exit status for fatal ounce errors and usage requests.
_EXIT_FAILURE = 1

#: Shell convention for a program that could not be found.
_EXIT_NOT_FOUND = 127

#: Shell convention for a program that could not be executed.
_EXIT_NOT_EXECUTABLE = 126

#: Shell convention base for programs terminated by a signal.
_EXIT_SIGNAL_BASE = 128

_HELP_ARGS = ("-h", "--help")
_VERSION_ARGS = ("-V", "--version")
_GIVE_PRIV_ARG = "--give-priv"

#: Explicit end of ounce options.
_END_OF_OPTIONS = "--"

_USAGE = f"""\
'{OUNCE_CMD}' is a wrapper program that allows '{HTTM_CMD}' to take snapshots \
of files you open with other programs at the command line.

USAGE:
    {OUNCE_CMD} [OPTIONS] [target executable] [argument1 argument2...]
    {OUNCE_CMD} --give-priv
    {OUNCE_CMD} -h|--help
    {OUNCE_CMD} -V|--version

OPTIONS:
    --suffix NAME:
        Use a special suffix for the snapshots you take.
        See the '{HTTM_CMD}' help, specifically "{HTTM_CMD} --snap", for
        additional information.

    --utc:
        Use UTC time for the timestamps in snapshot names.

    -v, --verbose:
        Enable verbose output (repeat for debugging output).

    --debug DEBUGOPTS:
        A comma separated list of debug options to enable: command, lookup,
        snapshot, privilege or all.

    --give-priv:
        To use '{OUNCE_CMD}' you will need privileges to snapshot ZFS datasets.
        The preferred scheme is via zfs-allow. Executing --give-priv as an
        unprivileged user will give the current user snapshot privileges on
        all imported pools.
"""


@dataclass(frozen=True)
class Dependencies:
    """
    Paths to the external programs ounce cannot run without.
    """

    httm: str
    zfs: str


def check_dependencies() -> Dependencies:
    """
    Locate the programs ounce requires on the search path.

    :returns: The resolved program paths.
    :rtype: ``Dependencies``
    :raises: ``OunceDependencyError`` if a program is missing.
    """
    resolved = {}
    for name in (HTTM_CMD, ZFS_CMD):
        path = which(name)
        if not path:
            raise OunceDependencyError(
                f"'{name}' is required to execute '{OUNCE_CMD}': "
                f"check that '{name}' is in your path"
            )
        resolved[name] = path
    _log_debug_command("Found dependencies: %s", resolved)
    return Dependencies(httm=resolved[HTTM_CMD], zfs=resolved[ZFS_CMD])


class _WrapperArgumentParser(ArgumentParser):
    """
    An ``ArgumentParser`` that reports usage errors as
    ``OunceArgumentError`` instead of exiting.
    """

    def error(self, message):
        raise OunceArgumentError(message)


def _build_parser(prog: str, config: OunceConfig) -> ArgumentParser:
    """
    Build the parser for ounce's own options and the target command.

    :param prog: The program name to report in errors.
    :param config: Configuration supplying default option values.
    :returns: The configured parser.
    :rtype: ``ArgumentParser``
    """
    parser = _WrapperArgumentParser(prog=prog, add_help=False, allow_abbrev=False)
    parser.add_argument(
        "--suffix",
        metavar="NAME",
        type=str,
        default=config.suffix,
        help="Use a special suffix for the snapshots you take",
    )
    parser.add_argument(
        "--utc",
        action="store_true",
        default=config.utc,
        help="Use UTC time for the timestamps in snapshot names",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Enable verbose output (repeat for debugging output)",
    )
    parser.add_argument(
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable",
    )
    parser.add_argument(
        "command",
        metavar="COMMAND",
        default=[],
        nargs=REMAINDER,
        help="The target program to run with its arguments",
    )
    return parser


def parse_wrapper_args(
    tokens: List[str], config: Optional[OunceConfig] = None, prog: str = OUNCE_CMD
) -> Tuple[WrapperOptions, List[str]]:
    """
    Consume ounce's own options from the front of ``tokens``.

    Option parsing stops at the first token that is not an ounce option:
    that token and everything after it are returned unmodified.

    :param tokens: Command line arguments, excluding the program name.
    :param config: Configuration supplying default option values.
    :param prog: The program name to report in errors.
    :returns: A tuple of the parsed options and the remaining tokens.
    :rtype: ``Tuple[WrapperOptions, List[str]]``
    :raises: ``OunceArgumentError`` for malformed options.
    """
    parser = _build_parser(prog, config or OunceConfig())
    cmd_args = parser.parse_args(tokens)

    rest = list(cmd_args.command)
    if rest[:1] == [_END_OF_OPTIONS]:
        rest = rest[1:]

    options = WrapperOptions(
        suffix=validate_suffix(cmd_args.suffix),
        utc=cmd_args.utc,
        verbose=cmd_args.verbose,
        debug=cmd_args.debug,
    )
    return options, rest


def resolve_target(tokens: List[str]) -> TargetSpec:
    """
    Resolve the target program named by ``tokens[0]`` on the search path.

    :param tokens: The target program name followed by its arguments.
    :returns: The target program path and its verbatim arguments.
    :rtype: ``TargetSpec``
    :raises: ``OunceArgumentError`` if no executable program is found.
    """
    if not tokens:
        raise OunceArgumentError(
            f"'{OUNCE_CMD}' requires a valid executable name as the first argument"
        )
    name = tokens[0]
    program = which(name) if name else None
    if not program:
        if name.startswith("-"):
            raise OunceArgumentError(f"unrecognized option '{name}'")
        raise OunceArgumentError(
            f"'{OUNCE_CMD}' requires a valid executable name as the first "
            f"argument: '{name}' not found"
        )
    _log_debug_command("Resolved target program '%s' to %s", name, program)
    return TargetSpec(program=program, args=list(tokens[1:]))


def find_candidate_paths(args: List[str]) -> List[str]:
    """
    Return the arguments in ``args`` that name an existing file or
    directory, in argument order and including repeats.

    Arguments containing a newline are skipped since they cannot be passed
    through the line oriented lookup output.

    :param args: The target program arguments.
    :returns: A list of existing paths.
    :rtype: ``List[str]``
    """
    candidates = []
    for arg in args:
        if not arg or not exists(arg):
            continue
        if "\n" in arg:
            _log_warn("Not checking snapshots for path containing a newline: %r", arg)
            continue
        candidates.append(arg)
    _log_debug_command("Found %d candidate path(s): %s", len(candidates), candidates)
    return candidates


def _wait_target(proc: Popen) -> int:
    """
    Wait for ``proc`` to exit and return its status.

    A terminal interrupt is delivered to the whole foreground process
    group: the target decides how to react to it, and ounce keeps waiting
    for the target to exit.
    """
    while True:
        try:
            return proc.wait()
        except KeyboardInterrupt:
            _log_debug_command("Interrupted: waiting for target pid %d", proc.pid)


def execute_target(target: TargetSpec) -> int:
    """
    Run the target program and wait for it to exit.

    The target inherits the terminal and the default signal dispositions
    of the ounce process.

    :param target: The program and arguments to execute.
    :returns: The exit status of the target program, ``128 + N`` if it was
              terminated by signal ``N``.
    :rtype: ``int``
    """
    _log_debug_command("Executing %s", " ".join(target.argv))
    try:
        proc = Popen(target.argv)
    except FileNotFoundError as err:
        _log_error("Failed to execute %s: %s", target.program, err)
        return _EXIT_NOT_FOUND
    except OSError as err:
        _log_error("Failed to execute %s: %s", target.program, err)
        return _EXIT_NOT_EXECUTABLE
    returncode = _wait_target(proc)
    if returncode < 0:
        return _EXIT_SIGNAL_BASE - returncode
    return returncode


def ensure_snapshots(deps: Dependencies, options: WrapperOptions, args: List[str]):
    """
    Take a snapshot of the datasets holding any path in ``args`` whose live
    contents differ from its last snapshot.

    :param deps: Resolved external program paths.
    :param options: Parsed wrapper options.
    :param args: The target program arguments.
    """
    candidates = find_candidate_paths(args)
    if not candidates:
        return

    needed = find_paths_needing_snapshot(deps.httm, candidates)
    if not needed:
        _log_info("All paths already have a current snapshot")
        return

    tier = take_snapshot(deps.httm, needed, options.suffix, utc=options.utc)
    _log_info(
        "Took %s snapshot of %d path(s) with %s privileges",
        options.suffix,
        len(needed),
        tier.value,
    )


def give_priv(deps: Dependencies) -> int:
    """
    Privilege grant command handler.

    :param deps: Resolved external program paths.
    :returns: integer status code returned from ``main()``
    """
    check_unprivileged_user()
    zpool = which(ZPOOL_CMD)
    if not zpool:
        raise OunceDependencyError(
            f"'{ZPOOL_CMD}' is required to execute '{OUNCE_CMD} {_GIVE_PRIV_ARG}': "
            f"check that '{ZPOOL_CMD}' is in your path"
        )
    pools = give_privileges(deps.zfs, zpool)
    print("Successfully obtained ZFS snapshot privileges on all the following pools:")
    for pool in pools:
        print(pool)
    return 0


def print_usage():
    """
    Print the ounce usage message to stderr.
    """
    print(_USAGE, file=sys.stderr)


def setup_logging(verbose=0):
    """
    Set up ounce logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if verbose and verbose > 1:
        level = logging.DEBUG
    elif verbose and verbose > 0:
        level = logging.INFO

    ounce_log = logging.getLogger("ounce")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    ounce_log.setLevel(level)
    if ounce_log.hasHandlers():
        ounce_log.handlers.clear()

    _ounce_subsystem_filter = SubsystemFilter("ounce")

    _CONSOLE_HANDLER = logging.StreamHandler(sys.stderr)
    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_ounce_subsystem_filter)

    ounce_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down ounce logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask = 0
    for name in debug_arg.split(","):
        if name not in OUNCE_DEBUG_NAMES:
            raise OunceArgumentError(f"Unknown debug option: {name}")
        mask |= OUNCE_DEBUG_NAMES[name]
    set_debug_mask(mask)


def _is_recursive(token: str, prog_name: str) -> bool:
    return basename(token) in (OUNCE_CMD, prog_name)


def _ounce_main(args: List[str]) -> int:
    prog_name = basename(args[0]) if args else OUNCE_CMD
    tokens = list(args[1:])

    deps = check_dependencies()

    first = tokens[0] if tokens else None
    if first is not None and _is_recursive(first, prog_name):
        raise OunceRecursionError(f"'{OUNCE_CMD}' being called recursively")
    if first in _HELP_ARGS:
        print_usage()
        return _EXIT_FAILURE
    if first in _VERSION_ARGS:
        print(__version__)
        return 0
    if first == _GIVE_PRIV_ARG:
        return give_priv(deps)

    config = OunceConfig.from_file()
    options, rest = parse_wrapper_args(tokens, config, prog=prog_name)
    set_debug(options.debug)
    setup_logging(options.verbose)
    _log_debug_command("Parsed %s", " ".join(tokens))

    target = resolve_target(rest)
    ensure_snapshots(deps, options, target.args)
    return execute_target(target)


def main(args):
    """
    Main entry point for ounce.
    """
    setup_logging()

    status = _EXIT_FAILURE
    try:
        status = _ounce_main(args)
    except KeyboardInterrupt:  # pragma: no cover
        _log_info("Exiting on user cancel")
    except OunceError as err:
        _log_error("%s", err)

    shutdown_logging()
    return status


def console_main():
    """
    Console script entry point for ounce.
    """
    return main(sys.argv)


# vim: set et ts=4 sw=4 :
