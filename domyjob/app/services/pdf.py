import logging
from dataclasses import dataclass

log = logging.getLogger(__name__)


class PdfProcessingError(ValueError):
    pass


@dataclass
class PdfResult:
    text: str
    num_pages: int


def process_pdf(data: bytes) -> PdfResult:
    """Validate the PDF header and return placeholder text.

    Text extraction is not implemented yet; the stored context only records
    that a PDF of this size was uploaded.
    """
    header = data[:20].decode('latin-1', errors='ignore')
    if '%PDF' not in header:
        raise PdfProcessingError("The uploaded file does not appear to be a valid PDF")
    log.info("pdf_placeholder_extraction", extra={"count": len(data)})
    return PdfResult(
        text=(
            "This is a placeholder text for the PDF document.\n"
            f"File size: {len(data)} bytes\n"
            "Full PDF text extraction is not available yet."
        ),
        num_pages=1,
    )
