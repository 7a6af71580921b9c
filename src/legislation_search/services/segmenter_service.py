"""Legislative text segmentation into semantic chunks."""

import re
import uuid
from typing import Callable, List, Optional, Sequence, Tuple

from legislation_search.config import get_settings
from legislation_search.models.chunk import Chunk, ChunkKind, Section
from legislation_search.models.document import Document
from legislation_search.utils.errors import SegmentationError
from legislation_search.utils.logging import get_logger

logger = get_logger("segmenter_service")
settings = get_settings()

# Structural markers found at the start of a line in Indian legislation
_BOUNDARY_PATTERN = re.compile(
    r"^(?:\d+\.|CHAPTER [IVXLCDM]+|PREAMBLE|SCHEDULE|Short title)", re.MULTILINE
)
_CHAPTER_HEADING = re.compile(r"CHAPTER ([IVXLCDM]+)")
_CLAUSE_NUMBER = re.compile(r"^(\d+)\.")
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")

_OTHER_LABEL_WORDS = 8


def _first_line(text: str) -> str:
    lines = text.strip().splitlines()
    return lines[0].strip() if lines else ""


def _match_preamble(text: str, first_line: str) -> Optional[str]:
    lowered = text.lower()
    if "be it enacted" in lowered or "preamble" in lowered:
        return "Preamble"
    return None


def _match_chapter(text: str, first_line: str) -> Optional[str]:
    match = _CHAPTER_HEADING.search(first_line)
    if match:
        return f"Chapter {match.group(1)}"
    return None


def _match_clause(text: str, first_line: str) -> Optional[str]:
    match = _CLAUSE_NUMBER.match(first_line)
    if match:
        return f"Clause {match.group(1)}"
    return None


def _match_schedule(text: str, first_line: str) -> Optional[str]:
    if "schedule" in text.lower():
        return "Schedule"
    return None


# Evaluated in order; the first rule returning a label decides the kind.
# A clause whose body mentions a schedule is still a clause.
CLASSIFICATION_RULES: Sequence[Tuple[ChunkKind, Callable[[str, str], Optional[str]]]] = (
    (ChunkKind.PREAMBLE, _match_preamble),
    (ChunkKind.SECTION, _match_chapter),
    (ChunkKind.CLAUSE, _match_clause),
    (ChunkKind.SCHEDULE, _match_schedule),
)


class SegmenterService:
    """
    Split raw legislative text into ordered, labeled chunks.

    Strategy:
    1. Cut the text at structural markers (numbered clauses, chapter headings,
       PREAMBLE, SCHEDULE, "Short title"); without markers, cut at blank lines
    2. Classify each section with the ordered rules in ``CLASSIFICATION_RULES``
    3. Drop sections at or below ``min_section_chars`` once trimmed
    4. If nothing survives, merge long paragraphs into chunks of at most
       ``max_chunk_words`` words

    The service holds no state besides its thresholds; identical input always
    yields an identical chunk sequence.
    """

    def __init__(
        self,
        min_section_chars: Optional[int] = None,
        min_paragraph_chars: Optional[int] = None,
        max_chunk_words: Optional[int] = None,
    ) -> None:
        self.min_section_chars = (
            min_section_chars if min_section_chars is not None else settings.segmenter.min_section_chars
        )
        self.min_paragraph_chars = (
            min_paragraph_chars
            if min_paragraph_chars is not None
            else settings.segmenter.min_paragraph_chars
        )
        self.max_chunk_words = (
            max_chunk_words if max_chunk_words is not None else settings.segmenter.max_chunk_words
        )

    def segment_document(self, document: Document) -> List[Chunk]:
        """Segment a document's text, stamping chunks with its id and reference."""
        return self.segment(document.text, document_id=document.id, document_reference=document.reference)

    def segment(
        self,
        text: str,
        document_id: Optional[uuid.UUID] = None,
        document_reference: str = "",
    ) -> List[Chunk]:
        """
        Segment text into chunks.

        Args:
            text: Raw document text
            document_id: Owning document id stamped on every chunk
            document_reference: Owning document reference stamped on every chunk

        Returns:
            Chunks in document order with indices 0..n-1; empty for blank text

        Raises:
            SegmentationError: If text is not a string
        """
        if not isinstance(text, str):
            raise SegmentationError(
                f"Document text must be a string, got {type(text).__name__}",
                details={"document_reference": document_reference},
            )
        if not text.strip():
            return []

        sections = self.split_sections(text)

        kept: List[Tuple[Section, ChunkKind, str]] = []
        for section in sections:
            body = section.text.strip()
            if len(body) <= self.min_section_chars:
                continue
            kind, label = self.classify(body)
            kept.append((section, kind, label))

        if not kept:
            logger.debug("No structured sections survived the noise filter, accumulating paragraphs")
            kept = self._accumulate_paragraphs(text)

        chunks = [
            Chunk(
                document_id=document_id,
                document_reference=document_reference,
                index=index,
                kind=kind,
                label=label,
                text=section.text.strip(),
                start_offset=section.start,
                end_offset=section.end,
            )
            for index, (section, kind, label) in enumerate(kept)
        ]

        logger.debug(
            f"Segmented text: reference={document_reference or 'n/a'}, "
            f"sections={len(sections)}, chunks={len(chunks)}"
        )
        return chunks

    def split_sections(self, text: str) -> List[Section]:
        """
        Cut text into raw sections at boundary markers.

        Any text ahead of the first marker (title block) is returned as its own
        section so that the spans tile the input. Without markers the text is
        split into blank-line-separated paragraphs.
        """
        starts = [match.start() for match in _BOUNDARY_PATTERN.finditer(text)]
        if not starts:
            return self._split_paragraphs(text)

        if starts[0] > 0:
            starts.insert(0, 0)
        ends = starts[1:] + [len(text)]
        return [Section(start=start, end=end, text=text[start:end]) for start, end in zip(starts, ends)]

    def classify(self, text: str) -> Tuple[ChunkKind, str]:
        """Return the kind and label for a trimmed section body."""
        first_line = _first_line(text)
        for kind, rule in CLASSIFICATION_RULES:
            label = rule(text, first_line)
            if label is not None:
                return kind, label

        if 5 < len(first_line) < 100:
            return ChunkKind.OTHER, first_line
        return ChunkKind.OTHER, " ".join(first_line.split()[:_OTHER_LABEL_WORDS])

    def _split_paragraphs(self, text: str) -> List[Section]:
        paragraphs: List[Section] = []
        position = 0
        for separator in _PARAGRAPH_BREAK.finditer(text):
            paragraphs.append(Section(start=position, end=separator.start(), text=text[position : separator.start()]))
            position = separator.end()
        paragraphs.append(Section(start=position, end=len(text), text=text[position:]))
        return [p for p in paragraphs if p.text.strip()]

    def _accumulate_paragraphs(self, text: str) -> List[Tuple[Section, ChunkKind, str]]:
        paragraphs = [
            p for p in self._split_paragraphs(text) if len(p.text.strip()) > self.min_paragraph_chars
        ]

        groups: List[List[Section]] = []
        current: List[Section] = []
        current_words = 0
        for paragraph in paragraphs:
            words = len(paragraph.text.split())
            if current and current_words + words > self.max_chunk_words:
                groups.append(current)
                current, current_words = [], 0
            current.append(paragraph)
            current_words += words
        if current:
            groups.append(current)

        accumulated: List[Tuple[Section, ChunkKind, str]] = []
        for index, group in enumerate(groups):
            body = "\n\n".join(p.text.strip() for p in group)
            merged = Section(start=group[0].start, end=group[-1].end, text=body)
            first_line = _first_line(body)
            label = first_line if 10 < len(first_line) < 100 else f"Section {index + 1}"
            accumulated.append((merged, ChunkKind.OTHER, label))
        return accumulated
