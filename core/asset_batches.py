"""
Asset Batch Exporter — Exports referenced assets in fixed-size batches.

Asset uids found in entries are fetched batch_size at a time (uid $in
[...]). After each batch the results are merged into two staging files:

    assets/metadata.json.tmp   list of {uid, url, filename} per asset
    assets/assets.json.tmp     full asset records keyed by uid

When the last batch has been merged the staging files replace
metadata.json and assets.json and leftover staging files are removed. If a
batch fails, the staging files keep every batch merged so far and the error
is re-raised; nothing is rolled back.
"""

import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from config import Module, get_definition
from stack_export_shared import OutputManager, read_json, write_json

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"


def split_batches(uids: List[str], batch_size: int) -> List[Tuple[int, List[str]]]:
    """Split uids into numbered batches of at most batch_size."""
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    return [
        (number, uids[start:start + batch_size])
        for number, start in enumerate(range(0, len(uids), batch_size), start=1)
    ]


@dataclass
class AssetBatchResult:
    total_assets: int = 0
    batch_sizes: List[int] = field(default_factory=list)
    metadata_path: str = ""
    assets_path: str = ""

    @property
    def total_batches(self) -> int:
        return len(self.batch_sizes)


class AssetBatchExporter:
    """Fetches assets by uid in batches and merges the batch output."""

    def __init__(self, exporter, output: OutputManager, batch_size: int = 100, log=None):
        self.exporter = exporter
        self.output = output
        self.batch_size = batch_size
        self.log = log or logger
        self.dir_name = get_definition(Module.ASSETS).dir_name

    @property
    def metadata_path(self) -> str:
        return self.output.get_output_path(self.dir_name, METADATA_FILE)

    @property
    def assets_path(self) -> str:
        return self.output.get_output_path(self.dir_name, get_definition(Module.ASSETS).file_name)

    def export(self, asset_uids: List[str]) -> AssetBatchResult:
        """Export the given assets batch by batch.

        Raises:
            FetchError: If a batch fetch fails.
            OSError: If merging a batch into the staging files fails.
        """
        uids = list(dict.fromkeys(asset_uids))
        result = AssetBatchResult(metadata_path=self.metadata_path, assets_path=self.assets_path)
        if not uids:
            self.log.info("No referenced assets to export")
            return result

        batches = split_batches(uids, self.batch_size)
        total_batches = math.ceil(len(uids) / self.batch_size)
        self.log.info(f"Exporting {len(uids)} assets in {total_batches} batch(es) of up to {self.batch_size}")

        metadata_staging = self.output.staging_path(self.metadata_path)
        assets_staging = self.output.staging_path(self.assets_path)
        # Start from clean staging files; leftovers belong to an earlier failed run
        self.output.cleanup_staging_files(self.dir_name)

        for number, batch in batches:
            self.log.info(f"Exporting asset batch {number}/{total_batches} ({len(batch)} assets)")
            try:
                items = self.exporter.fetch_batch(Module.ASSETS, {"uid": {"$in": batch}})
                self._merge_batch(items, metadata_staging, assets_staging)
            except Exception as e:
                self.log.error(
                    f"Asset batch {number}/{total_batches} failed: {e}. "
                    f"Batches 1-{number - 1} remain in {metadata_staging} and {assets_staging}"
                )
                raise
            result.batch_sizes.append(len(batch))

        os.replace(metadata_staging, self.metadata_path)
        os.replace(assets_staging, self.assets_path)
        removed = self.output.cleanup_staging_files(self.dir_name)
        if removed:
            self.log.debug(f"Removed {len(removed)} staging file(s)")

        merged = read_json(self.assets_path, default={}) or {}
        result.total_assets = len(merged)
        self.log.info(f"Merged {result.total_assets} assets from {result.total_batches} batch(es)")
        return result

    def _merge_batch(self, items: List[Dict[str, Any]], metadata_staging: str, assets_staging: str) -> None:
        metadata = read_json(metadata_staging, default=[]) or []
        assets = read_json(assets_staging, default={}) or {}

        seen = {m.get("uid") for m in metadata}
        for item in items:
            uid = item.get("uid")
            if not uid:
                continue
            assets[uid] = item
            if uid not in seen:
                metadata.append({"uid": uid, "url": item.get("url"), "filename": item.get("filename")})
                seen.add(uid)

        write_json(metadata_staging, metadata)
        write_json(assets_staging, assets)
