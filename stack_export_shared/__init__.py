"""
stack-export-shared — File output helpers for the query-based stack exporter.

  output_manager.py   Export directory layout ({export_dir}/{branch}/{module})
                      and staging-file cleanup.
  json_files.py       JSON read and atomic JSON write helpers.
"""

from .output_manager import OutputManager, STAGING_SUFFIX
from .json_files import read_json, write_json
