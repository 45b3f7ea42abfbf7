"""Build script assembly.

Writes the rewritten modules and the scripts that install them:

- ``js/<module>.js``: one file per rewritten module
- ``moduleLoader.js``: SQLcl script that stages the files in a table
- ``install.sql``: creates the staging table, runs the loader, creates the
  MLE modules and environment, then drops the staging table
- ``remove.sql``: drops everything install.sql created
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from importlib import resources
from pathlib import Path

from .processor import BuildResult

logger = logging.getLogger(__name__)

JS_DIR_NAME = "js"
LOADER_SCRIPT_NAME = "moduleLoader.js"
INSTALL_SCRIPT_NAME = "install.sql"
REMOVE_SCRIPT_NAME = "remove.sql"


def new_staging_table_name() -> str:
    """Random staging table name, so concurrent installs never clash."""
    return f"module_loader_{uuid.uuid4().hex[:8]}"


def load_loader_template() -> str:
    template = resources.files("mle_module_loader").joinpath("templates").joinpath(LOADER_SCRIPT_NAME)
    return template.read_text(encoding="utf-8")


@dataclass(frozen=True)
class WrittenScripts:
    """Paths of the files written for one build."""

    output_dir: Path
    module_files: tuple[Path, ...]
    loader_script: Path
    install_script: Path
    remove_script: Path


class ScriptAssembler:
    """Renders a BuildResult to disk."""

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)
        self.js_dir = self.output_dir / JS_DIR_NAME

    def render_loader_script(self, result: BuildResult) -> str:
        content = load_loader_template()
        content += f'var targetTableName = "{result.table_name}";\n\n'
        content += "".join(result.load_instructions)
        return content

    def render_install_script(self, result: BuildResult, loader_script: Path) -> str:
        lines = (
            f"create table {result.table_name} (\n"
            f"  module_name varchar2(200),\n"
            f"  module_version varchar2(10),\n"
            f"  module_content blob\n"
            f");\n\n"
        )
        lines += f"script {loader_script.as_posix()}\n\n"
        lines += "".join(result.create_statements)
        lines += f"drop table {result.table_name} purge;\n"
        return lines

    def render_remove_script(self, result: BuildResult) -> str:
        return "".join(result.drop_statements)

    def write(self, result: BuildResult) -> WrittenScripts:
        """Write module files and scripts; returns the paths written."""
        self.js_dir.mkdir(parents=True, exist_ok=True)

        module_files = []
        for record in result.records:
            path = self.js_dir / f"{record.logical_name}.js"
            path.write_text(record.rewritten_text, encoding="utf-8")
            module_files.append(path)
        logger.info(f"Written {len(module_files)} module files to {self.js_dir}")

        loader_script = self.output_dir / LOADER_SCRIPT_NAME
        loader_script.write_text(self.render_loader_script(result), encoding="utf-8")
        logger.info(f"Written module script to {loader_script}")

        install_script = self.output_dir / INSTALL_SCRIPT_NAME
        install_script.write_text(self.render_install_script(result, loader_script), encoding="utf-8")

        remove_script = self.output_dir / REMOVE_SCRIPT_NAME
        remove_script.write_text(self.render_remove_script(result), encoding="utf-8")

        return WrittenScripts(
            output_dir=self.output_dir,
            module_files=tuple(module_files),
            loader_script=loader_script,
            install_script=install_script,
            remove_script=remove_script,
        )
