# -*- coding: utf-8 -*-
"""Export of downloaded records.

Each record is written as two files in the save directory:

- `<name>.csv`: one row per sample, columns `index,offset_ms,time,value,unit`
  where `time` is the absolute UTC time (ISO 8601) of the sample
- `<name>.json`: record metadata (descriptor, start time, interval, sample
  count and value summary)

The default name is `record_<index:04d>`, e.g. `record_0003.csv`.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Optional

import simplejson as json
from loguru import logger

from ut181a.types import RecordData

CSV_COLUMNS = ("index", "offset_ms", "time", "value", "unit")


def default_record_name(record: RecordData) -> str:
    return f"record_{record.index:04d}"


def save_record(
    record: RecordData, save_dir: str | Path = ".", name: Optional[str] = None
) -> Path:
    """Write the record's CSV and metadata files, returning the CSV path."""
    save_dir = Path(save_dir).expanduser()
    save_dir.mkdir(parents=True, exist_ok=True)
    name = name or default_record_name(record)

    csv_path = save_dir / f"{name}.csv"
    with open(csv_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_COLUMNS)
        for i, sample in enumerate(record.samples):
            writer.writerow(
                (
                    i,
                    sample.offset_ms,
                    record.sample_time(sample).isoformat(),
                    repr(sample.value),
                    sample.unit_name,
                )
            )

    meta_path = save_dir / f"{name}.json"
    with open(meta_path, "w") as f:
        json.dump(record_metadata(record), f, indent=4)

    logger.info("Saved record {} ({} samples) to {}", record.index, len(record), csv_path)
    return csv_path


def record_metadata(record: RecordData) -> dict:
    return {
        "descriptor": record.descriptor.to_dict(),
        "kind": record.descriptor.kind_name,
        "start_time": record.start_time.isoformat(),
        "interval_ms": record.interval_ms,
        "sample_count": len(record),
        "units": sorted({s.unit_name for s in record.samples}),
        "summary": record.summary(),
    }
