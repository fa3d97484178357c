import logging
import threading
from typing import Optional, Sequence

from core.errors import RecognitionFailure

logger = logging.getLogger("extraction.ocr")


class OcrEngine:
    """Thin wrapper around an EasyOCR reader.

    The reader loads detection and recognition models on construction, which
    takes seconds, so it is built lazily on first use and then shared. Reading
    is serialized because the underlying models are not thread-safe.
    """

    def __init__(self, languages: Sequence[str] = ("en",), gpu: bool = False):
        self.languages = list(languages)
        self.gpu = gpu
        self._reader = None
        self._lock = threading.Lock()

    def _get_reader(self):
        """Lazy-load the EasyOCR reader."""
        if self._reader is None:
            import easyocr

            self._reader = easyocr.Reader(self.languages, gpu=self.gpu, verbose=False)
            logger.info("EasyOCR reader initialized for %s", ", ".join(self.languages))
        return self._reader

    def recognize(self, image: bytes) -> str:
        """Return the text found in an encoded image, one line per text region.

        Raises:
            RecognitionFailure: if the reader cannot be loaded or fails to run
        """
        with self._lock:
            try:
                reader = self._get_reader()
                lines = reader.readtext(image, detail=0, paragraph=False)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.error("Text recognition failed: %s", str(e))
                raise RecognitionFailure(f"Text recognition failed: {e}") from e

        return "\n".join(str(line) for line in lines)


_shared_engine: Optional[OcrEngine] = None
_shared_engine_lock = threading.Lock()


def get_ocr_engine(languages: Sequence[str] = ("en",), gpu: bool = False) -> OcrEngine:
    """Return the process-wide engine so the models are only loaded once."""
    global _shared_engine
    # Concurrent first requests arrive on different threadpool workers
    with _shared_engine_lock:
        if _shared_engine is None:
            _shared_engine = OcrEngine(languages=languages, gpu=gpu)
    return _shared_engine
