"""Compiler-intrinsic macro and include directory discovery.

GCC-family descriptors ask the installed compiler for its predefined
macros (``gcc -E -dM -``) and its system include search list
(``gcc -xc++ -E -v -``). Results are parsed here; callers decide the
fallback values when the compiler cannot be run.
"""

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

_NORMAL_MACRO = re.compile(r"^#define (\w+)(?: (.*))?$")
_FUNC_MACRO = re.compile(r"^#define (\w+\([^\)]*\))(?: .*)?$")

PROBE_TIMEOUT = 30


class MacroProbeError(Exception):
    """Raised when the compiler cannot be queried."""

    pass


def macro_to_define(line: str) -> Optional[str]:
    """
    Convert one ``#define`` line to a ``NAME=VALUE`` definition.

    Function-like macros keep their parameter list and lose their body:
    ``#define MAX(a,b) ((a)>(b)?(a):(b))`` becomes ``MAX(a,b)=``.

    Args:
        line: Preprocessor output line

    Returns:
        Definition string, or None if the line is not a macro definition
    """
    # keep the trailing space of empty macros
    line = line.rstrip("\r\n")

    match = _NORMAL_MACRO.match(line)
    if match:
        return f"{match.group(1)}={match.group(2) or ''}"

    match = _FUNC_MACRO.match(line)
    if match:
        return f"{match.group(1)}="

    return None


def parse_macro_dump(output: str) -> List[str]:
    """Parse the output of ``-E -dM`` into definitions, skipping blank lines."""
    defines = []
    for line in output.splitlines():
        if not line.strip():
            continue
        value = macro_to_define(line)
        if value:
            defines.append(value)
    return defines


def parse_include_search_list(output: str) -> List[str]:
    """
    Extract the ``#include <...>`` search list from ``-E -v`` output.

    Args:
        output: Combined stdout/stderr of the compiler

    Returns:
        Directories in search order, normalized, including only
        directories that exist
    """
    dirs = []
    in_list = False

    for line in output.splitlines():
        if line.startswith("#include <...>"):
            in_list = True
            continue
        if line.startswith("End of search list."):
            break
        if in_list:
            candidate = os.path.normpath(line.strip())
            if candidate and os.path.isdir(candidate):
                dirs.append(candidate)

    return dirs


def _run_preprocessor(compiler: Path, args: Iterable[str]) -> subprocess.CompletedProcess:
    cmd = [str(compiler)] + list(args)
    logging.debug(f"Probing compiler: {' '.join(cmd)}")
    try:
        return subprocess.run(
            cmd,
            input="",
            capture_output=True,
            text=True,
            timeout=PROBE_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise MacroProbeError(f"Failed to run {compiler}: {e}") from e


def probe_macros(compiler: Path) -> List[str]:
    """
    Query the compiler's predefined macros.

    Raises:
        MacroProbeError: If the compiler cannot be run or fails
    """
    result = _run_preprocessor(compiler, ["-E", "-dM", "-"])
    if result.returncode != 0:
        raise MacroProbeError(f"{compiler} exited with code {result.returncode}: {result.stderr}")
    return parse_macro_dump(result.stdout)


def probe_include_dirs(compiler: Path) -> List[str]:
    """
    Query the compiler's system include search list.

    Raises:
        MacroProbeError: If the compiler cannot be run
    """
    result = _run_preprocessor(compiler, ["-xc++", "-E", "-v", "-"])
    return parse_include_search_list(result.stdout + "\n" + result.stderr)
