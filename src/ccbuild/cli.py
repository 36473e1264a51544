"""
Command-line interface for ccbuild.

This module provides the `ccbuild` CLI tool for compiling C/C++/CUDA sources
into a static library from scripts and build steps.
"""

import argparse
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ccbuild.build import Build
from ccbuild.cli_utils import ErrorFormatter, parse_define
from ccbuild.errors import BuildError

VERSION = "0.1.0"


@dataclass
class BuildOptions:
    """Options shared by every command."""

    sources: List[Path] = field(default_factory=list)
    includes: List[Path] = field(default_factory=list)
    defines: List[str] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)
    flags_if_supported: List[str] = field(default_factory=list)
    cpp: bool = False
    cuda: bool = False
    opt_level: Optional[str] = None
    debug: bool = False
    target: Optional[str] = None
    host: Optional[str] = None
    out_dir: Optional[Path] = None
    compiler: Optional[Path] = None
    archiver: Optional[Path] = None
    jobs: Optional[int] = None
    verbose: bool = False


@dataclass
class CompileArgs:
    """Arguments for the compile command."""

    name: str
    options: BuildOptions
    cargo_metadata: bool = False


def make_build(options: BuildOptions) -> Build:
    """Translate command options into a configured Build."""
    build = Build().files(options.sources).includes(options.includes)
    for text in options.defines:
        build.define(*parse_define(text))
    for flag in options.flags:
        build.flag(flag)
    for flag in options.flags_if_supported:
        build.flag_if_supported(flag)

    if options.cuda:
        build.cuda()
    elif options.cpp:
        build.cpp()
    if options.opt_level is not None:
        build.opt_level(options.opt_level)
    if options.debug:
        build.debug()
    if options.target:
        build.target(options.target)
    if options.host:
        build.host(options.host)
    if options.out_dir is not None:
        build.out_dir(options.out_dir)
    if options.compiler is not None:
        build.compiler(options.compiler)
    if options.archiver is not None:
        build.archiver(options.archiver)
    if options.jobs is not None:
        build.jobs(options.jobs)
    return build.verbose(options.verbose).show_progress(options.verbose)


def compiler_command(options: BuildOptions) -> None:
    """Print the compiler that would be used and its arguments.

    Examples:
        ccbuild compiler                      # Default C compiler
        ccbuild compiler --cpp -O2            # C++ compiler at -O2
        ccbuild compiler --target x86_64-pc-windows-msvc
    """
    try:
        tool = make_build(options).get_compiler()
        print(f"compiler: {tool.path}")
        print(f"family:   {tool.family.value}")
        print(f"command:  {' '.join(tool.to_command())}")
        if tool.cc_env():
            print(f"CC:       {tool.cc_env()}")
        sys.exit(0)

    except BuildError as e:
        ErrorFormatter.handle_build_error(e)
    except ValueError as e:
        ErrorFormatter.print_error("Invalid option", str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, options.verbose)


def compile_command(args: CompileArgs) -> None:
    """Compile sources into a static library.

    Examples:
        ccbuild compile -n foo foo.c bar.c            # libfoo.a in ./build
        ccbuild compile -n foo --cpp -I include a.cpp # C++ sources
        ccbuild compile -n foo -j 8 src/*.c           # 8 parallel compiles
    """
    options = args.options
    try:
        build = make_build(options).cargo_metadata(args.cargo_metadata)

        start_time = time.time()
        archive = build.compile(args.name)
        build_time = time.time() - start_time

        if not args.cargo_metadata:
            ErrorFormatter.print_success("Build successful!")
            print()
            print(f"Library: {archive}")
            print(f"Build time: {build_time:.2f}s")
        sys.exit(0)

    except BuildError as e:
        ErrorFormatter.handle_build_error(e)
    except ValueError as e:
        ErrorFormatter.print_error("Invalid option", str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, options.verbose)


def expand_command(options: BuildOptions) -> None:
    """Preprocess sources and write the result to stdout.

    Examples:
        ccbuild expand foo.c
        ccbuild expand -D FOO=1 -I include foo.c
    """
    try:
        output = make_build(options).expand()
        sys.stdout.buffer.write(output)
        sys.stdout.flush()
        sys.exit(0)

    except BuildError as e:
        ErrorFormatter.handle_build_error(e)
    except ValueError as e:
        ErrorFormatter.print_error("Invalid option", str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, options.verbose)


def add_build_options(parser: argparse.ArgumentParser, sources_required: bool) -> None:
    """Add the options shared by every command."""
    parser.add_argument(
        "sources",
        nargs="+" if sources_required else "*",
        type=Path,
        help="Source files",
    )
    parser.add_argument(
        "-I",
        "--include",
        dest="includes",
        action="append",
        type=Path,
        default=[],
        help="Add an include directory",
    )
    parser.add_argument(
        "-D",
        "--define",
        dest="defines",
        action="append",
        default=[],
        help="Add a define (NAME or NAME=VALUE)",
    )
    parser.add_argument(
        "-f",
        "--flag",
        dest="flags",
        action="append",
        default=[],
        help="Add a compiler flag (use -f=-Wall for dash-prefixed values)",
    )
    parser.add_argument(
        "--flag-if-supported",
        dest="flags_if_supported",
        action="append",
        default=[],
        help="Add a compiler flag only if the compiler accepts it",
    )
    parser.add_argument("--cpp", action="store_true", help="Compile as C++")
    parser.add_argument("--cuda", action="store_true", help="Compile as CUDA (implies --cpp)")
    parser.add_argument(
        "-O",
        "--opt-level",
        default=None,
        help="Optimization level: 0-3, s or z (default: OPT_LEVEL or 0)",
    )
    parser.add_argument("-g", "--debug", action="store_true", help="Emit debug information")
    parser.add_argument("--target", default=None, help="Target triple (default: TARGET or host)")
    parser.add_argument("--host", default=None, help="Host triple (default: HOST or detected)")
    parser.add_argument(
        "-o",
        "--out-dir",
        type=Path,
        default=None,
        help="Output directory (default: OUT_DIR or ./build)",
    )
    parser.add_argument("--compiler", type=Path, default=None, help="Compiler to use")
    parser.add_argument("--archiver", type=Path, default=None, help="Archiver to use")
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=None,
        help="Parallel compiles (default: NUM_JOBS or CPU count)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show every command that is run",
    )


def options_from(parsed_args: argparse.Namespace) -> BuildOptions:
    return BuildOptions(
        sources=parsed_args.sources,
        includes=parsed_args.includes,
        defines=parsed_args.defines,
        flags=parsed_args.flags,
        flags_if_supported=parsed_args.flags_if_supported,
        cpp=parsed_args.cpp,
        cuda=parsed_args.cuda,
        opt_level=parsed_args.opt_level,
        debug=parsed_args.debug,
        target=parsed_args.target,
        host=parsed_args.host,
        out_dir=parsed_args.out_dir,
        compiler=parsed_args.compiler,
        archiver=parsed_args.archiver,
        jobs=parsed_args.jobs,
        verbose=parsed_args.verbose,
    )


def main(argv: Optional[List[str]] = None) -> None:
    """ccbuild - Compile C/C++/CUDA sources into a static library."""
    parser = argparse.ArgumentParser(
        prog="ccbuild",
        description="ccbuild - Compile C/C++/CUDA sources into a static library",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ccbuild {VERSION}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    compiler_parser = subparsers.add_parser(
        "compiler",
        help="Show the compiler and arguments that would be used",
    )
    add_build_options(compiler_parser, sources_required=False)

    compile_parser = subparsers.add_parser(
        "compile",
        help="Compile sources into a static library",
    )
    compile_parser.add_argument(
        "-n",
        "--name",
        required=True,
        help="Library name (foo -> libfoo.a / foo.lib)",
    )
    compile_parser.add_argument(
        "--cargo-metadata",
        action="store_true",
        help="Print cargo link directives instead of a summary",
    )
    add_build_options(compile_parser, sources_required=True)

    expand_parser = subparsers.add_parser(
        "expand",
        help="Preprocess sources and print the result",
    )
    add_build_options(expand_parser, sources_required=True)

    # Parse arguments
    parsed_args = parser.parse_args(argv)

    # If no command specified, show help
    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    options = options_from(parsed_args)

    # Execute command
    if parsed_args.command == "compiler":
        compiler_command(options)
    elif parsed_args.command == "compile":
        compile_args = CompileArgs(
            name=parsed_args.name,
            options=options,
            cargo_metadata=parsed_args.cargo_metadata,
        )
        compile_command(compile_args)
    elif parsed_args.command == "expand":
        expand_command(options)


if __name__ == "__main__":
    main()
