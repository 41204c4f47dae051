"""Language registry: how each supported language is compiled and run.

The table is built once at startup and handed out as a read-only mapping, so
it can be shared between concurrent executions without locking.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType

from forge.sandbox.errors import UnsupportedLanguageError


class Language(str, Enum):
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    JAVA = "java"
    CPP = "cpp"
    C = "c"
    HTML = "html"
    CSS = "css"


class InvocationMode(str, Enum):
    INTERPRET = "interpret"
    COMPILE_AND_RUN = "compile_and_run"
    NOT_EXECUTABLE = "not_executable"


_ALIASES: dict[str, Language] = {"c++": Language.CPP}


@dataclass(frozen=True)
class LanguageProfile:
    language: Language
    display_name: str
    file_extension: str
    mode: InvocationMode
    source_filename: str
    interpreter: tuple[str, ...] = ()
    compiler: tuple[str, ...] = ()
    artifact: str | None = None
    env: tuple[tuple[str, str], ...] = ()

    @property
    def executable(self) -> bool:
        return self.mode is not InvocationMode.NOT_EXECUTABLE

    @property
    def requires_compilation(self) -> bool:
        return self.mode is InvocationMode.COMPILE_AND_RUN

    def compile_command(self) -> list[str]:
        """Compiler argv; paths are relative to the workspace."""
        if not self.requires_compilation:
            raise ValueError(f"{self.language.value} is not a compiled language")
        return [*self.compiler, "-o", self.artifact, self.source_filename]

    def run_command(self, workspace_root: Path) -> list[str]:
        if self.mode is InvocationMode.INTERPRET:
            return [*self.interpreter, self.source_filename]
        if self.mode is InvocationMode.COMPILE_AND_RUN:
            name = f"{self.artifact}.exe" if os.name == "nt" else self.artifact
            return [str(workspace_root / name)]
        raise ValueError(f"{self.language.value} cannot be executed")

    def required_commands(self) -> list[str]:
        """Executables that must be on PATH for this profile to run."""
        if self.mode is InvocationMode.INTERPRET:
            return [self.interpreter[0]]
        if self.mode is InvocationMode.COMPILE_AND_RUN:
            return [self.compiler[0]]
        return []

    def browser_only_message(self) -> str:
        name = self.display_name.upper()
        return (
            f"{name} files cannot be executed directly.\n\n"
            f"To view your {name} code:\n"
            "   - Open the file in a web browser\n"
            "   - Or save it locally and open it in your browser\n\n"
            "Tip: for HTML, create an index.html file and open it in any browser."
        )


def _default_python_command() -> str:
    return "python" if os.name == "nt" else "python3"


def build_registry(python_command: str | None = None) -> Mapping[Language, LanguageProfile]:
    """Build the read-only profile table.

    ``python_command`` overrides the interpreter used for python sources
    (hosts that only ship a versioned binary, or a virtualenv).
    """
    python = python_command or _default_python_command()
    profiles = [
        LanguageProfile(
            language=Language.PYTHON,
            display_name="Python",
            file_extension=".py",
            mode=InvocationMode.INTERPRET,
            source_filename="main.py",
            interpreter=(python,),
            env=(("PYTHONUNBUFFERED", "1"), ("PYTHONDONTWRITEBYTECODE", "1")),
        ),
        LanguageProfile(
            language=Language.JAVASCRIPT,
            display_name="JavaScript",
            file_extension=".js",
            mode=InvocationMode.INTERPRET,
            source_filename="main.js",
            interpreter=("node",),
        ),
        LanguageProfile(
            language=Language.TYPESCRIPT,
            display_name="TypeScript",
            file_extension=".ts",
            mode=InvocationMode.INTERPRET,
            source_filename="main.ts",
            interpreter=("npx", "ts-node"),
        ),
        # The single-file source launcher needs the file named after the public class.
        LanguageProfile(
            language=Language.JAVA,
            display_name="Java",
            file_extension=".java",
            mode=InvocationMode.INTERPRET,
            source_filename="Main.java",
            interpreter=("java",),
        ),
        LanguageProfile(
            language=Language.CPP,
            display_name="C++",
            file_extension=".cpp",
            mode=InvocationMode.COMPILE_AND_RUN,
            source_filename="main.cpp",
            compiler=("g++",),
            artifact="out",
        ),
        LanguageProfile(
            language=Language.C,
            display_name="C",
            file_extension=".c",
            mode=InvocationMode.COMPILE_AND_RUN,
            source_filename="main.c",
            compiler=("gcc",),
            artifact="out",
        ),
        LanguageProfile(
            language=Language.HTML,
            display_name="HTML",
            file_extension=".html",
            mode=InvocationMode.NOT_EXECUTABLE,
            source_filename="index.html",
        ),
        LanguageProfile(
            language=Language.CSS,
            display_name="CSS",
            file_extension=".css",
            mode=InvocationMode.NOT_EXECUTABLE,
            source_filename="style.css",
        ),
    ]
    table = {p.language: p for p in profiles}
    missing = set(Language) - set(table)
    if missing:
        raise RuntimeError(f"No profile for {sorted(m.value for m in missing)}")
    return MappingProxyType(table)


DEFAULT_REGISTRY = build_registry()


def parse_language(language_id: str | None) -> Language:
    key = (language_id or "").strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    try:
        return Language(key)
    except ValueError:
        raise UnsupportedLanguageError(language_id or "") from None


def resolve(
    language_id: str | None,
    registry: Mapping[Language, LanguageProfile] = DEFAULT_REGISTRY,
) -> LanguageProfile:
    """Case-insensitive lookup; raises UnsupportedLanguageError."""
    language = parse_language(language_id)
    profile = registry.get(language)
    if profile is None:
        raise UnsupportedLanguageError(language_id or "")
    return profile


def toolchain_status(registry: Mapping[Language, LanguageProfile] = DEFAULT_REGISTRY) -> dict[str, bool]:
    """Whether every command each executable profile needs is on PATH."""
    return {
        language.value: all(shutil.which(cmd) for cmd in profile.required_commands())
        for language, profile in registry.items()
        if profile.executable
    }
