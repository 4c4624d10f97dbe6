"""
Output Manager — Export directory layout.

Every run writes under a single root:

    {export_dir}/{branch}/{module_dir}/{file}

The branch level is omitted when the stack has no branch configured. Inside
each module directory the exporter writes an aggregate file and, for some
modules, one file per record (see config.modules).

Staging files (suffix ".tmp") are used while merging batched output and are
removed by cleanup_staging_files() once the merged file has been swapped in.
"""

import os
from typing import List, Optional

STAGING_SUFFIX = ".tmp"


class OutputManager:
    """Resolves paths inside the export directory.

    Attributes:
        base_dir: Root export directory (e.g., "./export").
        branch_name: Branch sub-directory, or "" for unbranched stacks.
    """

    def __init__(self, base_dir: str, branch_name: Optional[str] = None):
        self.base_dir = base_dir
        self.branch_name = branch_name or ""

    @property
    def root_dir(self) -> str:
        """The directory module folders live in ({base_dir}/{branch})."""
        if self.branch_name:
            return os.path.join(self.base_dir, self.branch_name)
        return self.base_dir

    def module_dir(self, dir_name: str, create: bool = False) -> str:
        path = os.path.join(self.root_dir, dir_name)
        if create:
            os.makedirs(path, exist_ok=True)
        return path

    def get_output_path(self, dir_name: str, filename: str) -> str:
        """Get the full path for a file inside a module directory."""
        return os.path.join(self.module_dir(dir_name), filename)

    def get_root_path(self, filename: str) -> str:
        """Get the full path for a file at the export root (e.g., run metadata)."""
        return os.path.join(self.base_dir, filename)

    def staging_path(self, final_path: str) -> str:
        return f"{final_path}{STAGING_SUFFIX}"

    def cleanup_staging_files(self, dir_name: str) -> List[str]:
        """Remove leftover staging files in a module directory.

        Returns:
            The paths that were removed.
        """
        directory = self.module_dir(dir_name)
        if not os.path.isdir(directory):
            return []

        removed = []
        for name in os.listdir(directory):
            if name.endswith(STAGING_SUFFIX):
                path = os.path.join(directory, name)
                os.remove(path)
                removed.append(path)
        return removed
