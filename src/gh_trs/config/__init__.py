"""Config module: the gh-trs config model, its files and its validation."""

from gh_trs.config.types import (
    Author,
    Config,
    File,
    FileType,
    Language,
    LanguageType,
    TestFile,
    TestFileType,
    Testing,
    Workflow,
)

__all__ = [
    "Author",
    "Config",
    "File",
    "FileType",
    "Language",
    "LanguageType",
    "TestFile",
    "TestFileType",
    "Testing",
    "Workflow",
]
