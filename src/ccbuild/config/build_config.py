"""Build configuration.

This module holds the plain data accumulated by ``Build`` before a terminal
action consumes it.

Design:
    - Plain dataclass, no behavior besides copying
    - Tri-state switches use None for "decide from environment/target"
    - Environment overrides are consulted before os.environ for every lookup
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

OptLevel = Union[int, str]

# cpp_link_stdlib value meaning "explicitly link no C++ standard library".
NO_STDLIB = ""


@dataclass
class BuildConfig:
    """Everything a terminal action needs to compile a static library.

    Attributes:
        files: Source files, in order
        objects: Extra object files added to the archive as-is
        include_dirs: Include directories, in order
        definitions: (name, value) preprocessor defines; value None for a bare define
        flags: Free-form compiler flags
        flags_supported: Flags used only if the compiler accepts them
        cpp: Compile as C++
        cuda: Compile as CUDA (implies C++)
        warnings: Enable default warnings (None: on unless CFLAGS/CXXFLAGS is set)
        extra_warnings: Enable extra warnings (None: same rule as warnings)
        warnings_into_errors: Turn warnings into errors
        shared_flag: Pass -shared
        static_flag: Pass -static
        pic: Position-independent code (None: target default)
        use_plt: Use the procedure linkage table (False adds -fno-plt)
        static_crt: Link the C runtime statically (None: from CARGO_CFG_TARGET_FEATURE)
        debug: Emit debug info (None: from DEBUG)
        opt_level: Optimization level (None: from OPT_LEVEL)
        cpp_link_stdlib: C++ stdlib to link (None: target default, NO_STDLIB: none)
        cpp_set_stdlib: C++ stdlib to force at compile time
        target: Target triple (None: TARGET, else host)
        host: Host triple (None: HOST, else detected)
        out_dir: Output directory (None: OUT_DIR, else ./build)
        compiler: Explicit compiler path
        archiver: Explicit archiver path
        cargo_metadata: Print cargo link directives after compiling
        jobs: Parallel compile workers (None: NUM_JOBS, else CPU count)
        env: Environment overrides
    """

    files: List[Path] = field(default_factory=list)
    objects: List[Path] = field(default_factory=list)
    include_dirs: List[Path] = field(default_factory=list)
    definitions: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    flags: List[str] = field(default_factory=list)
    flags_supported: List[str] = field(default_factory=list)
    cpp: bool = False
    cuda: bool = False
    warnings: Optional[bool] = None
    extra_warnings: Optional[bool] = None
    warnings_into_errors: bool = False
    shared_flag: Optional[bool] = None
    static_flag: Optional[bool] = None
    pic: Optional[bool] = None
    use_plt: Optional[bool] = None
    static_crt: Optional[bool] = None
    debug: Optional[bool] = None
    opt_level: Optional[OptLevel] = None
    cpp_link_stdlib: Optional[str] = None
    cpp_set_stdlib: Optional[str] = None
    target: Optional[str] = None
    host: Optional[str] = None
    out_dir: Optional[Path] = None
    compiler: Optional[Path] = None
    archiver: Optional[Path] = None
    cargo_metadata: bool = False
    jobs: Optional[int] = None
    env: Dict[str, str] = field(default_factory=dict)

    def snapshot(self) -> "BuildConfig":
        """Return an independent copy for a terminal action to consume."""
        return copy.deepcopy(self)
