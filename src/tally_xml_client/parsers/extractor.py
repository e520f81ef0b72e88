"""
Response record extraction by text scanning.

Tally's export output is not reliably well-formed XML (unescaped characters
in names, truncated bodies on large exports), but the record shapes this
client reads are always flat: an entity element with field sub-elements.
So responses are scanned as text instead of parsed:

- One forward pass, two states: SCANNING_FOR_ENTITY, SCANNING_FOR_FIELD
- No backtracking, no recursive descent
- Missing closing tags end the value (or record) at the next tag or at
  end of text instead of failing
- Attributes on entity tags are ignored unless the pattern asks for them
- Captured values are trimmed and XML character references decoded

Callers depend on ResponseExtractor, so a structured parser can replace
TextScanExtractor without touching them.
"""

from abc import ABC, abstractmethod
from enum import Enum, auto
from typing import Dict, List, Optional, Sequence, Tuple
import html
import logging
import re

from tally_xml_client.models.records import RecordPattern, ResponseRecord


logger = logging.getLogger(__name__)

_TAG_NAME_TERMINATORS = frozenset(' \t\r\n/>')

_ATTRIBUTE_RE = re.compile(r'([A-Za-z_][A-Za-z0-9_.\-]*)\s*=\s*(?:"([^"]*)"|\'([^\']*)\')')


class _ScanState(Enum):
    SCANNING_FOR_ENTITY = auto()
    SCANNING_FOR_FIELD = auto()


def _clean(raw: str) -> str:
    return html.unescape(raw.strip())


def find_open_tag(text: str, tag: str, start: int, end: int) -> int:
    """
    Find the next start tag named exactly `tag` in text[start:end].

    '<NAME' only matches when followed by whitespace, '>' or '/', so
    '<NAME.LIST>' and '<NAMES>' are skipped.

    Returns:
        Index of '<', or -1 if not found
    """
    needle = '<' + tag
    pos = text.find(needle, start, end)
    while pos != -1:
        after = pos + len(needle)
        if after >= end:
            return -1
        if text[after] in _TAG_NAME_TERMINATORS:
            return pos
        pos = text.find(needle, after, end)
    return -1


def locate_region(text: str, container_tag: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Locate the text between a container's start and end tags.

    Returns:
        (start, end) offsets; the whole text when container_tag is None;
        None when the container is absent. A missing end tag extends the
        region to the end of text.
    """
    if container_tag is None:
        return 0, len(text)

    open_at = find_open_tag(text, container_tag, 0, len(text))
    if open_at == -1:
        return None

    tag_end = text.find('>', open_at)
    if tag_end == -1:
        return None
    if text[tag_end - 1] == '/':
        return tag_end + 1, tag_end + 1

    close_at = text.find(f'</{container_tag}>', tag_end + 1)
    if close_at == -1:
        close_at = len(text)
    return tag_end + 1, close_at


def scan_fields(text: str, start: int, end: int, field_tags: Sequence[str]) -> Dict[str, str]:
    """
    Capture the first occurrence of each field tag within text[start:end].

    Single forward pass over '<' positions. A field whose end tag is
    missing runs to the next tag (or to `end`).

    Returns:
        Mapping of field tag to cleaned value, in field_tags order
    """
    wanted = set(field_tags)
    found: Dict[str, str] = {}
    pos = start

    while pos < end and len(found) < len(wanted):
        lt = text.find('<', pos, end)
        if lt == -1:
            break

        name_end = lt + 1
        while name_end < end and text[name_end] not in _TAG_NAME_TERMINATORS:
            name_end += 1
        name = text[lt + 1:name_end]

        if name not in wanted or name in found:
            pos = lt + 1
            continue

        gt = text.find('>', name_end, end)
        if gt == -1:
            break
        if text[gt - 1] == '/':
            found[name] = ''
            pos = gt + 1
            continue

        close_tag = f'</{name}>'
        close = text.find(close_tag, gt + 1, end)
        if close == -1:
            next_tag = text.find('<', gt + 1, end)
            value_end = end if next_tag == -1 else next_tag
            pos = value_end
        else:
            value_end = close
            pos = close + len(close_tag)

        found[name] = _clean(text[gt + 1:value_end])

    return {tag: found[tag] for tag in field_tags if tag in found}


def parse_attributes(start_tag: str) -> Dict[str, str]:
    """Parse name="value" pairs from a start tag."""
    attributes = {}
    for match in _ATTRIBUTE_RE.finditer(start_tag):
        value = match.group(2) if match.group(2) is not None else match.group(3)
        attributes[match.group(1)] = _clean(value)
    return attributes


class ResponseExtractor(ABC):
    """
    Abstract base class for response extraction strategies.

    Implementations never raise for odd but textual input: a response with
    no matching records yields an empty list.
    """

    @abstractmethod
    def extract(
        self,
        response_text: str,
        pattern: RecordPattern,
        limit: Optional[int] = None
    ) -> List[ResponseRecord]:
        """
        Extract up to `limit` records matching `pattern`, in document order.

        Args:
            response_text: Raw response body
            pattern: Entity/field shape to extract
            limit: Maximum number of records; None for no cap

        Returns:
            Ordered list of ResponseRecord (possibly empty)
        """
        pass


class TextScanExtractor(ResponseExtractor):
    """
    Linear text scanner for flat entity/field record shapes.

    Example:
        >>> text = '<DATA><COMPANY><NAME>Acme Pvt Ltd</NAME></COMPANY></DATA>'
        >>> pattern = RecordPattern(entity_tag='COMPANY', field_tags=['NAME'])
        >>> [r['NAME'] for r in TextScanExtractor().extract(text, pattern, 3)]
        ['Acme Pvt Ltd']
    """

    def extract(
        self,
        response_text: str,
        pattern: RecordPattern,
        limit: Optional[int] = None
    ) -> List[ResponseRecord]:
        if not isinstance(response_text, str):
            raise TypeError(
                f"response_text must be str, got {type(response_text).__name__}"
            )
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")

        region = locate_region(response_text, pattern.container_tag)
        if region is None or limit == 0:
            return []

        text = response_text
        start, end = region
        entity_tag = pattern.entity_tag
        close_tag = f'</{entity_tag}>'

        records: List[ResponseRecord] = []
        state = _ScanState.SCANNING_FOR_ENTITY
        pos = start
        body_start = body_end = 0
        start_tag = ''

        while limit is None or len(records) < limit:
            if state is _ScanState.SCANNING_FOR_ENTITY:
                open_at = find_open_tag(text, entity_tag, pos, end)
                if open_at == -1:
                    break

                tag_end = text.find('>', open_at, end)
                if tag_end == -1:
                    # Truncated start tag at end of text
                    break

                start_tag = text[open_at:tag_end + 1]
                body_start = tag_end + 1

                if text[tag_end - 1] == '/':
                    body_end = pos = body_start
                else:
                    # The end tag is only searched for up to the next record start
                    next_open = find_open_tag(text, entity_tag, body_start, end)
                    record_limit = end if next_open == -1 else next_open
                    close_at = text.find(close_tag, body_start, record_limit)

                    if close_at != -1:
                        body_end = close_at
                        pos = close_at + len(close_tag)
                    else:
                        # End tag missing: the record stops where the next one starts
                        body_end = pos = record_limit

                state = _ScanState.SCANNING_FOR_FIELD

            else:
                fields = scan_fields(text, body_start, body_end, pattern.field_tags)

                if pattern.attribute_fields:
                    attributes = parse_attributes(start_tag)
                    for name in pattern.attribute_fields:
                        if name in attributes:
                            fields.setdefault(name, attributes[name])

                if fields:
                    records.append(ResponseRecord(fields=fields))

                state = _ScanState.SCANNING_FOR_ENTITY

        logger.debug(
            f"Extracted {len(records)} {entity_tag} record(s)"
            + (f" (limit {limit})" if limit is not None else "")
        )
        return records


_default_extractor = TextScanExtractor()


def extract_records(
    response_text: str,
    pattern: RecordPattern,
    limit: Optional[int] = None
) -> List[ResponseRecord]:
    """
    Extract records from a response with the default text scanner.

    Args:
        response_text: Raw response body
        pattern: Entity/field shape to extract
        limit: Maximum number of records; None for no cap

    Returns:
        Ordered list of ResponseRecord; empty when nothing matches

    Example:
        >>> text = ('<DATA><COMPANY><NAME>Acme Pvt Ltd</NAME></COMPANY>'
        ...         '<COMPANY><NAME>Beta LLP</NAME></COMPANY></DATA>')
        >>> pattern = RecordPattern(entity_tag='COMPANY', field_tags=['NAME'])
        >>> [r['NAME'] for r in extract_records(text, pattern, limit=3)]
        ['Acme Pvt Ltd', 'Beta LLP']
    """
    return _default_extractor.extract(response_text, pattern, limit)
