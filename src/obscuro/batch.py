"""Simple batch runner with multiprocessing concurrency.

Processes a list of input PDFs and writes redacted PDFs to an output
directory, preserving base filenames. Documents are independent, so each one
runs in its own worker process.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from tqdm import tqdm

from .errors import CoreError
from .logging import get_logger
from .models import StampConfig
from .pipeline import RunConfig, redact_file

logger = get_logger(__name__)


@dataclass
class BatchItem:
    input: str
    output: Optional[str]
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _one(args: Tuple[str, str, RunConfig, StampConfig]) -> Tuple[str, str, int]:
    inp, out_dir, cfg, stamp = args
    p = Path(inp)
    out_path = str(Path(out_dir) / f"{p.stem}.redacted.pdf")
    res = redact_file(inp, out_path, stamp=stamp, cfg=cfg)
    return inp, out_path, len(res.marks)


def run_batch(
    inputs: List[str],
    output_dir: str,
    cfg: RunConfig,
    workers: int = 2,
    stamp: Optional[StampConfig] = None,
    progress: bool = True,
) -> List[BatchItem]:
    """Process multiple inputs concurrently.

    A failing document does not stop the batch; it is reported with its
    error kind and no output file is written for it.
    """
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    stamp = stamp or StampConfig()
    results: List[BatchItem] = []
    with ProcessPoolExecutor(max_workers=max(1, int(workers))) as ex:
        futs = {ex.submit(_one, (i, output_dir, cfg, stamp)): i for i in inputs}
        for f in tqdm(as_completed(futs), total=len(futs), desc="Redact", disable=not progress):
            inp = futs[f]
            try:
                _, out, marks = f.result()
            except Exception as exc:  # noqa: BLE001 - reported per item
                kind = exc.kind if isinstance(exc, CoreError) else type(exc).__name__
                logger.error("Batch item failed", extra={"extra": {"input": inp, "kind": kind}})
                results.append(BatchItem(input=inp, output=None, error=kind))
                continue
            logger.info("Batch item done", extra={"extra": {"input": inp, "marks": marks}})
            results.append(BatchItem(input=inp, output=out))
    return sorted(results, key=lambda item: item.input)
