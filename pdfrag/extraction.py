"""
Page text extraction and reading-order reconstruction.

Fragments are positioned strings in a bottom-left origin coordinate system,
the way PDF text layers report them. `ExtractionWorker` runs pdfplumber in a
worker thread and reports back to the event loop through `WorkerMessage`s:

    coordinator -> worker   start-extraction   {"path": ...}
    worker -> coordinator   batch-complete     {"pages": [...], "current", "total"}
    worker -> coordinator   extraction-complete {"total"}
    worker -> coordinator   error              {"error": ...}
"""

import asyncio
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

import pdfplumber
import pytesseract
from PIL import ImageOps

from config import OCR_FALLBACK, PAGES_PER_BATCH
from pdfrag.errors import ExtractionError

logger = logging.getLogger(__name__)

START_EXTRACTION = "start-extraction"
BATCH_COMPLETE = "batch-complete"
EXTRACTION_COMPLETE = "extraction-complete"
ERROR = "error"

OCR_RESOLUTION = 200


@dataclass
class TextFragment:
    x: float
    y: float
    text: str
    width: float = 0.0


@dataclass
class WorkerMessage:
    type: str
    data: Dict[str, Any] = field(default_factory=dict)


def _field(fragment: Any, name: str) -> Any:
    if isinstance(fragment, dict):
        return fragment.get(name)
    return getattr(fragment, name, None)


def _coerce_fragment(fragment: Any) -> Optional[TextFragment]:
    x, y, text = _field(fragment, "x"), _field(fragment, "y"), _field(fragment, "text")
    if isinstance(x, bool) or isinstance(y, bool):
        return None
    if not isinstance(x, Real) or not isinstance(y, Real) or not isinstance(text, str):
        return None
    if x != x or y != y:  # NaN
        return None
    return TextFragment(x=float(x), y=float(y), text=text, width=float(_field(fragment, "width") or 0.0))


def reconstruct_page_text(fragments: Optional[Iterable[Any]]) -> str:
    """Rebuild reading-order lines from positioned fragments.

    Malformed fragments are skipped; they never fail the page.
    """
    if not fragments:
        return ""

    lines: Dict[int, List[TextFragment]] = defaultdict(list)
    skipped = 0
    for raw in fragments:
        frag = _coerce_fragment(raw)
        if frag is None:
            skipped += 1
            continue
        lines[round(frag.y)].append(frag)
    if skipped:
        logger.debug("Skipped %d malformed text fragments", skipped)

    out: List[str] = []
    for y in sorted(lines, reverse=True):
        items = sorted(lines[y], key=lambda f: f.x)
        line = " ".join(f.text for f in items).strip()
        if line:
            out.append(line)
    return "\n".join(out)


_HYPHEN_BREAK = re.compile(r"(\w)-[ \t]*\n[ \t]*(\w)")
_MULTI_SPACE = re.compile(r"[ \t]{2,}")


def clean_page_text(text: str) -> str:
    text = _HYPHEN_BREAK.sub(r"\1\2", text)
    text = _MULTI_SPACE.sub(" ", text)
    return text.strip()


def extract_page_fragments(page, ocr_fallback: bool = OCR_FALLBACK) -> List[TextFragment]:
    """Words of a pdfplumber page as bottom-left origin fragments."""
    height = float(page.height)
    fragments = [
        TextFragment(
            x=float(w["x0"]),
            y=height - float(w["bottom"]),
            text=w["text"],
            width=float(w["x1"]) - float(w["x0"]),
        )
        for w in page.extract_words()
    ]
    if fragments or not ocr_fallback:
        return fragments
    logger.warning("Page %s has no text layer, falling back to OCR", page.page_number)
    return ocr_page_fragments(page)


def ocr_page_fragments(page, resolution: int = OCR_RESOLUTION) -> List[TextFragment]:
    image = ImageOps.grayscale(page.to_image(resolution=resolution).original)
    data = pytesseract.image_to_data(image, output_type=pytesseract.Output.DICT)
    scale = resolution / 72.0
    height = float(page.height)

    # Tesseract words on one line have ragged bottoms; use the line's lowest edge.
    line_bottom: Dict[tuple, float] = {}
    keys = []
    for i in range(len(data["text"])):
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        keys.append(key)
        bottom = data["top"][i] + data["height"][i]
        line_bottom[key] = max(line_bottom.get(key, 0), bottom)

    fragments: List[TextFragment] = []
    for i, word in enumerate(data["text"]):
        if not word or not word.strip() or float(data["conf"][i]) < 0:
            continue
        fragments.append(
            TextFragment(
                x=data["left"][i] / scale,
                y=height - line_bottom[keys[i]] / scale,
                text=word.strip(),
                width=data["width"][i] / scale,
            )
        )
    return fragments


class ExtractionWorker:
    """Extracts PDF pages in batches; runs off the event loop."""

    def __init__(self, pages_per_batch: int = PAGES_PER_BATCH, ocr_fallback: bool = OCR_FALLBACK):
        self.pages_per_batch = max(1, pages_per_batch)
        self.ocr_fallback = ocr_fallback

    def handle(self, message: WorkerMessage, post: Callable[[WorkerMessage], None]) -> None:
        if message.type != START_EXTRACTION:
            post(WorkerMessage(ERROR, {"error": f"Unknown message type: {message.type}"}))
            return
        try:
            self._extract(message.data["path"], post)
        except Exception as exc:
            logger.exception("PDF extraction failed")
            post(WorkerMessage(ERROR, {"error": str(exc)}))

    def _extract(self, path: str, post: Callable[[WorkerMessage], None]) -> None:
        with pdfplumber.open(path) as pdf:
            total = len(pdf.pages)
            for start in range(0, total, self.pages_per_batch):
                end = min(start + self.pages_per_batch, total)
                pages = []
                for page in pdf.pages[start:end]:
                    fragments = extract_page_fragments(page, self.ocr_fallback)
                    pages.append(
                        {
                            "page_number": page.page_number,
                            "text": clean_page_text(reconstruct_page_text(fragments)),
                        }
                    )
                post(WorkerMessage(BATCH_COMPLETE, {"pages": pages, "current": end, "total": total}))
            post(WorkerMessage(EXTRACTION_COMPLETE, {"total": total}))


async def run_extraction(path: str, worker: Optional[ExtractionWorker] = None) -> AsyncIterator[WorkerMessage]:
    """Coordinator side: start the worker and yield its batch messages.

    Raises ExtractionError when the worker reports an error.
    """
    worker = worker or ExtractionWorker()
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[WorkerMessage]" = asyncio.Queue()

    def post(msg: WorkerMessage) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, msg)

    task = asyncio.create_task(asyncio.to_thread(worker.handle, WorkerMessage(START_EXTRACTION, {"path": path}), post))
    try:
        while True:
            msg = await queue.get()
            if msg.type == BATCH_COMPLETE:
                yield msg
            elif msg.type == EXTRACTION_COMPLETE:
                return
            elif msg.type == ERROR:
                raise ExtractionError("PDF extraction failed", {"path": path, "error": msg.data.get("error")})
    finally:
        await task
