"""8-bit toolchain descriptors: Keil C51, SDCC and IAR for STM8."""

import logging
import os
import re
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import DATA_DIR, ProjectInfo, ToolchainDescriptor, ToolchainName, exe_name, use_lib_linker

C51_LIB_TEMPLATE = DATA_DIR / "template" / "C51.LIB"


class OutputLibraryError(Exception):
    """Raised when the empty C51 output library cannot be created."""

    pass


class KeilC51(ToolchainDescriptor):
    """Keil C51 Compiler."""

    name = ToolchainName.KEIL_C51
    category = "C51"
    model_name = "8051.keil.model.json"
    config_name = "8051.options.keil.json"
    verify_file_name = "8051.keil.verify.json"
    version = 2
    description = "Keil C51 Compiler"

    FORCE_INCLUDE_HEADER = "c51.h"

    DEFAULT_OPTIONS = {
        "global": {
            "ram-mode": "SMALL",
            "rom-mode": "LARGE",
        },
        "c/cpp-compiler": {
            "optimization-type": "SPEED",
            "optimization-level": "level-8",
        },
        "asm-compiler": {},
        "linker": {
            "remove-unused": True,
            "output-format": "elf",
        },
    }

    def get_toolchain_dir(self) -> Path:
        return Path(self.settings.c51_dir)

    def get_compiler_path(self) -> Path:
        return self.get_toolchain_dir() / "BIN" / exe_name("C51")

    def is_ready(self) -> bool:
        return (self.get_toolchain_dir() / "BIN").is_dir()

    def pre_handle_options(self, project_info: ProjectInfo, options: Dict[str, Any]) -> None:
        compiler = options.get("c/cpp-compiler")
        if compiler is not None:
            op_type = (compiler.get("optimization-type") or "").upper() or "SPEED"
            op_level = (compiler.get("optimization-level") or "").replace("level-", "") or "8"
            compiler["optimization"] = f"{op_level},{op_type}"

        linker = options.get("linker")
        if linker is not None:
            warnings = linker.get("disable-warnings")
            if isinstance(warnings, list):
                linker["disable-warnings"] = ",".join(str(w) for w in warnings)

        if linker and linker.get("output-format") == "lib":
            linker["$use"] = "linker-lib"
            self._create_empty_lib(project_info)

    def _create_empty_lib(self, project_info: ProjectInfo) -> Path:
        """
        Replace ``<outDir>/<target>.LIB`` with an empty library.

        Raises:
            OutputLibraryError: If the old library cannot be removed, the
                template is missing, or the copy fails
        """
        lib_file = Path(project_info.out_dir) / f"{project_info.target_name}.LIB"

        if lib_file.is_file():
            try:
                lib_file.unlink()
            except OSError as e:
                raise OutputLibraryError(f"Delete exist lib failed: {lib_file}") from e

        if not C51_LIB_TEMPLATE.is_file():
            raise OutputLibraryError(f"Template library not found: {C51_LIB_TEMPLATE}")

        try:
            lib_file.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(C51_LIB_TEMPLATE, lib_file)
        except OSError as e:
            raise OutputLibraryError(f"Create empty C51 LIB failed: {lib_file}") from e

        logging.debug(f"Created empty library {lib_file}")
        return lib_file

    def get_custom_defines(self) -> List[str]:
        return ["__UVISION_VERSION=526"]

    def get_default_includes(self) -> List[str]:
        return [str(self.get_toolchain_dir() / "INC")]

    def get_lib_dirs(self) -> List[str]:
        return [str(self.get_toolchain_dir() / "LIB")]


class SDCC(ToolchainDescriptor):
    """Small Device C Compiler."""

    name = ToolchainName.SDCC
    category = "SDCC"
    model_name = "sdcc.model.json"
    config_name = "options.sdcc.json"
    verify_file_name = "sdcc.verify.json"
    version = 3
    description = "Small Device C Compiler"

    FORCE_INCLUDE_HEADER = "sdcc.h"

    # Device name to assembler suffix, for devices whose sdas binary differs
    ASM_MAPPER = {
        "mcs51": "8051",
        "ds400": "ds390",
        "hc08": "6808",
        "s08": "6808",
        "r2k": "rab",
        "gbz80": "gb",
        "ez80_z80": "z80",
    }

    VERSION_DEFINES = [
        "__SDCC",
        "__SDCC_VERSION_MAJOR=4",
        "__SDCC_VERSION_MINOR=1",
        "__SDCC_VERSION_PATCH=0",
    ]

    # Boolean global options and the macro each one enables
    FLAG_DEFINES = [
        ("stack-auto", "__SDCC_STACK_AUTO"),
        ("use-external-stack", "__SDCC_USE_XSTACK"),
        ("int-long-reent", "__SDCC_INT_LONG_REENT"),
        ("float-reent", "__SDCC_FLOAT_REENT"),
    ]

    DEFAULT_OPTIONS = {
        "global": {
            "device": "mcs51",
            "optimize-type": "speed",
            "use-non-free": False,
        },
        "c/cpp-compiler": {
            "language-c": "c99",
        },
        "asm-compiler": {},
        "linker": {
            "$mainFileName": "main",
            "output-format": "hex",
        },
    }

    def get_toolchain_dir(self) -> Path:
        return Path(self.settings.sdcc_dir)

    def get_compiler_path(self) -> Path:
        return self.get_toolchain_dir() / "bin" / exe_name("sdcc")

    def is_ready(self) -> bool:
        return (self.get_toolchain_dir() / "bin").is_dir()

    def pre_handle_options(self, project_info: ProjectInfo, options: Dict[str, Any]) -> None:
        linker = options.setdefault("linker", {})
        asm = options.setdefault("asm-compiler", {})

        output_format = linker.get("output-format")
        if output_format:
            if output_format == "lib":
                linker["$use"] = "linker-lib"
            elif output_format == "hex":
                linker.pop("$use", None)
            else:
                linker["$use"] = output_format

        device = (options.get("global") or {}).get("device") or "mcs51"
        asm["$toolName"] = f"sdas{self.ASM_MAPPER.get(device, device)}"

    @staticmethod
    def _parse_code_model(conf: str) -> Optional[str]:
        match = re.search(r"\s*--model-(\w+)\s*", conf, re.IGNORECASE)
        return match.group(1) if match else None

    @staticmethod
    def _parse_processor(conf: str) -> Optional[str]:
        match = re.search(r"\s*-p(\w+)\s*", conf, re.IGNORECASE)
        return match.group(1) if match else None

    def get_internal_defines(self, options: Dict[str, Any]) -> List[str]:
        defines = list(self.VERSION_DEFINES)

        device = "mcs51"
        code_model = None
        processor = None

        conf = options.get("global")
        if conf:
            if conf.get("device"):
                device = conf["device"]
                defines.append(f"__SDCC_{device}")

            if conf.get("misc-controls"):
                code_model = self._parse_code_model(conf["misc-controls"])
                processor = self._parse_processor(conf["misc-controls"])

            for key, macro in self.FLAG_DEFINES:
                if conf.get(key):
                    defines.append(macro)

        conf = options.get("c/cpp-compiler")
        if conf and conf.get("misc-controls"):
            code_model = self._parse_code_model(conf["misc-controls"]) or code_model

        if processor and device.startswith("pic"):
            defines.append(f"__SDCC_PIC{processor.upper()}")

        if device == "ds390":
            defines.append("__SDCC_MODEL_FLAT24")
        elif code_model:
            defines.append(f"__SDCC_MODEL_{code_model.upper()}")

        return defines

    def get_system_includes(self, options: Dict[str, Any]) -> List[str]:
        tool_dir = self.get_toolchain_dir()
        includes = [str(tool_dir / "include")]

        conf = options.get("global")
        if conf:
            device = conf.get("device") or "mcs51"
            if conf.get("device") and (tool_dir / "include" / device).is_dir():
                includes.append(str(tool_dir / "include" / device))

            if conf.get("use-non-free"):
                includes.append(str(tool_dir / "non-free" / "include"))
                if (tool_dir / "non-free" / "include" / device).is_dir():
                    includes.append(str(tool_dir / "non-free" / "include" / device))

        return includes

    def get_lib_dirs(self) -> List[str]:
        return [str(self.get_toolchain_dir() / "lib")]


class IARSTM8(ToolchainDescriptor):
    """IAR C Compiler for STM8."""

    name = ToolchainName.IAR_STM8
    category = "IAR"
    model_name = "stm8.iar.model.json"
    config_name = "options.stm8.iar.json"
    verify_file_name = "stm8.iar.verify.json"
    version = 5
    description = "IAR C Compiler for STM8"

    FORCE_INCLUDE_HEADER = "iar_stm8.h"

    TOOLCHAIN_ROOT_VAR = re.compile(r"\$\{ToolchainRoot\}", re.IGNORECASE)

    DEFAULT_OPTIONS = {
        "global": {
            "data-mode": "medium",
            "code-mode": "small",
            "printf-formatter": "tiny",
            "scanf-formatter": "small",
            "math-functions": "default",
            "output-debug-info": "enable",
        },
        "c/cpp-compiler": {
            "optimization": "no",
            "runtime-lib": "normal",
            "destroy-cpp-static-object": True,
        },
        "asm-compiler": {
            "case-sensitive-user-symbols": True,
        },
        "linker": {
            "output-format": "elf",
            "linker-config": "lnkstm8s103f3.icf",
            "auto-search-runtime-lib": True,
            "use-C_SPY-debug-lib": True,
            "config-defines": [
                "_CSTACK_SIZE=0x0200",
                "_HEAP_SIZE=0x0000",
            ],
        },
    }

    def get_toolchain_dir(self) -> Path:
        return Path(self.settings.iar_stm8_dir)

    def get_compiler_path(self) -> Path:
        return self.get_toolchain_dir() / "stm8" / "bin" / exe_name("iccstm8")

    def is_ready(self) -> bool:
        return (self.get_toolchain_dir() / "stm8" / "bin").is_dir()

    def pre_handle_options(self, project_info: ProjectInfo, options: Dict[str, Any]) -> None:
        linker = options.setdefault("linker", {})
        compiler = options.setdefault("c/cpp-compiler", {})

        use_lib_linker(options)

        linker_config = linker.get("linker-config")
        if linker_config:
            if linker_config.startswith("./") or linker_config.startswith(".\\"):
                linker["linker-config"] = f'"{project_info.to_absolute_path(linker_config)}"'
            elif self.TOOLCHAIN_ROOT_VAR.match(linker_config):
                abs_path = self.TOOLCHAIN_ROOT_VAR.sub(
                    lambda _: str(self.get_toolchain_dir()), linker_config, count=1
                )
                linker["linker-config"] = f'"{os.path.normpath(abs_path)}"'

        runtime_lib = compiler.get("runtime-lib")
        if runtime_lib and runtime_lib != "null":
            code = (compiler.get("code-mode") or "small")[0]
            data = (compiler.get("data-mode") or "medium")[0]
            compiler["runtime-lib"] = f"dlstm8{code}{data}{runtime_lib[0]}.h"
        else:
            compiler.pop("runtime-lib", None)

    def get_system_includes(self, options: Dict[str, Any]) -> List[str]:
        stm8 = self.get_toolchain_dir() / "stm8"
        return [
            str(stm8 / "inc"),
            str(stm8 / "inc" / "c"),
            str(stm8 / "inc" / "ecpp"),
            str(stm8 / "lib"),
        ]

    def get_default_includes(self) -> List[str]:
        return [str(self.get_toolchain_dir() / "stm8" / "lib")]

    def get_lib_dirs(self) -> List[str]:
        return [str(self.get_toolchain_dir() / "stm8" / "lib")]
