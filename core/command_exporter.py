"""
Command Module Exporter — Exports modules by invoking an external export command.

Alternative to ModuleExporter for environments where the stack is exported
with a separate export tool. Each export_module() call runs:

    <export_command> -k <stack key> -d <export dir> --module <module>
        [-a <alias>] [--branch <branch>] [--query <json>]
        [--secured-assets] [--config <path>] -y

and then reads what the command wrote back through the ExportStore, so the
orchestrator and resolvers see the same interface and return values as
with the API backend.
"""

import json
import logging
import shlex
import subprocess
from typing import Any, Dict, List, Optional

from config import Module

from .errors import FetchError
from .export_store import ExportStore
from .module_exporter import ExportedModulesLedger

logger = logging.getLogger(__name__)


class CommandModuleExporter:
    """Exports modules by shelling out to an external export command."""

    def __init__(self, config, store: ExportStore,
                 ledger: Optional[ExportedModulesLedger] = None, log=None):
        self.config = config
        self.store = store
        self.ledger = ledger if ledger is not None else ExportedModulesLedger()
        self.log = log or logger

    def build_command(self, module: Module, query: Optional[Dict[str, Any]] = None) -> List[str]:
        """Build the argument list for one module export."""
        module = Module(module)
        cmd = shlex.split(self.config.export_command)
        cmd += ["-k", self.config.stack_api_key, "-d", self.config.export_dir, "--module", module.value]

        if self.config.management_token_alias:
            cmd += ["-a", self.config.management_token_alias]
        if self.config.branch_name:
            cmd += ["--branch", self.config.branch_name]
        if query:
            cmd += ["--query", json.dumps({"modules": {module.value: query}})]
        if self.config.secured_assets:
            cmd.append("--secured-assets")
        if self.config.external_config_path:
            cmd += ["--config", self.config.external_config_path]

        cmd.append("-y")
        return cmd

    def export_module(
        self,
        module: Module,
        query: Optional[Dict[str, Any]] = None,
        merge: bool = False,
    ) -> List[Dict[str, Any]]:
        """Run the export command for a module and return what it wrote.

        The command always replaces the module's aggregate file; merge is
        accepted for interface compatibility and ignored.

        Raises:
            FetchError: If the command cannot be started or exits non-zero.
        """
        module = Module(module)
        cmd = self.build_command(module, query)
        self.log.info(f"Exporting module: {module.value}")
        self.log.debug(f"Running: {' '.join(shlex.quote(c) for c in cmd)}")

        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except FileNotFoundError as e:
            self.log.error(f"Failed to export {module.value}: {e}")
            raise FetchError(f"Export command not found: {cmd[0]}", module=module.value) from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip() or f"exit code {e.returncode}"
            self.log.error(f"Failed to export {module.value}: {detail}")
            raise FetchError(f"Export command failed for {module.value}: {detail}", module=module.value) from e

        if module == Module.STACK:
            stack = self.store.read_document(Module.STACK)
            items = [stack] if stack else []
        else:
            items = self.store.read_module(module)

        self.ledger.record(module, items)
        self.log.info(f"Successfully exported {module.value}")
        return items

    def fetch_batch(self, module: Module, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run the export command for one batch.

        The command writes the module's aggregate file itself, so each batch
        replaces it; the batch merge happens in the caller's staging files.
        """
        return self.export_module(module, query)
