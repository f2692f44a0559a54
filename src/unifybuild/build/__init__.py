"""Builder parameter compilation: sources, hashes, scatter files and target shaping."""

from .compiler import BuildParameterCompiler
from .hashing import compute_option_hashes, needs_rebuild, stable_hash
from .params import PARAMS_FILE_NAME, BuilderParams
from .scatter import InvalidMemoryLayoutError, ScatterFileGenerator, generate_scatter_file, max_memory_size
from .sources import SourceCollector, SourceInfo
from .targets import TargetBuilder, gen_cpu_id

__all__ = [
    "BuildParameterCompiler",
    "BuilderParams",
    "PARAMS_FILE_NAME",
    "compute_option_hashes",
    "needs_rebuild",
    "stable_hash",
    "InvalidMemoryLayoutError",
    "ScatterFileGenerator",
    "generate_scatter_file",
    "max_memory_size",
    "SourceCollector",
    "SourceInfo",
    "TargetBuilder",
    "gen_cpu_id",
]
