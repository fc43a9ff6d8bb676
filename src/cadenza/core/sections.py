# src/cadenza/core/sections.py
"""Top-level section reader/writer for WebAssembly binaries.

Reads just enough of a core module or component to walk its top-level
sections and pull out one named custom section. Nothing is validated,
resolved or instantiated beyond the container framing: every non-matching
section is skipped by offset without copying its bytes.

Binary layout:
    header:  b"\\0asm" + 4 version bytes
             core module: 01 00 00 00
             component:   <u16 version> 01 00  (layer 1)
    section: id (1 byte) + LEB128 u32 size + content
    custom:  id 0, content = LEB128 name length + UTF-8 name + payload
"""

from collections.abc import Iterator
from dataclasses import dataclass

from cadenza.contracts.errors import ParseError
from cadenza.core.logging import get_logger

logger = get_logger(__name__)

MAGIC = b"\x00asm"
CORE_VERSION = b"\x01\x00\x00\x00"
COMPONENT_LAYER = 1
HEADER_SIZE = 8
CUSTOM_SECTION_ID = 0

# Name of the custom section that carries a plugin's configuration schema
CONFIG_SCHEMA_SECTION = "plugin-config-schema"

_MAX_U32_BYTES = 5


@dataclass(frozen=True)
class Section:
    """Location of one top-level section inside a buffer.

    offset is where the section id byte sits; content_offset/size span the
    section content. For custom sections, name is set and payload_offset
    points past the name.
    """

    id: int
    offset: int
    content_offset: int
    size: int
    name: str | None = None
    payload_offset: int | None = None

    @property
    def end(self) -> int:
        return self.content_offset + self.size


def encode_leb128(value: int) -> bytes:
    """Encode a non-negative integer as unsigned LEB128."""
    if value < 0:
        raise ValueError(f"LEB128 value must be non-negative, got {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_leb128(buffer: bytes | memoryview, offset: int, limit: int | None = None) -> tuple[int, int]:
    """Decode an unsigned LEB128 u32.

    Args:
        buffer: Bytes to read from
        offset: Position of the first LEB128 byte
        limit: Exclusive end of the readable region (defaults to len(buffer))

    Returns:
        (value, offset just past the encoding)

    Raises:
        ParseError: If the encoding is truncated or does not fit in 32 bits
    """
    end = len(buffer) if limit is None else limit
    result = 0
    shift = 0
    pos = offset
    for index in range(_MAX_U32_BYTES):
        if pos >= end:
            raise ParseError("truncated LEB128 integer", offset)
        byte = buffer[pos]
        pos += 1
        if index == _MAX_U32_BYTES - 1 and byte & 0xF0:
            raise ParseError("LEB128 integer does not fit in 32 bits", offset)
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
    raise ParseError("LEB128 integer does not fit in 32 bits", offset)


def _check_header(view: memoryview) -> None:
    if len(view) < HEADER_SIZE:
        raise ParseError(f"buffer too short for a module header ({len(view)} bytes)", 0)
    if bytes(view[:4]) != MAGIC:
        raise ParseError("bad magic number, not a WebAssembly binary", 0)
    version = bytes(view[4:8])
    if version == CORE_VERSION:
        return
    layer = int.from_bytes(version[2:4], "little")
    if layer != COMPONENT_LAYER:
        raise ParseError(f"unsupported binary version {version.hex()}", 4)


def iter_sections(buffer: bytes | bytearray | memoryview) -> Iterator[Section]:
    """Yield every top-level section in order.

    Raises:
        ParseError: On a malformed header or section framing. Sections
            already yielded stay valid; iteration stops at the fault.
    """
    view = memoryview(buffer).cast("B")
    _check_header(view)
    total = len(view)
    pos = HEADER_SIZE

    while pos < total:
        start = pos
        section_id = view[pos]
        size, content_offset = decode_leb128(view, pos + 1)
        end = content_offset + size
        if end > total:
            raise ParseError(
                f"section {section_id} claims {size} bytes but only "
                f"{total - content_offset} remain",
                start,
            )

        name: str | None = None
        payload_offset: int | None = None
        if section_id == CUSTOM_SECTION_ID:
            name_len, name_offset = decode_leb128(view, content_offset, end)
            payload_offset = name_offset + name_len
            if payload_offset > end:
                raise ParseError(
                    f"custom section name length {name_len} overruns its section",
                    content_offset,
                )
            try:
                name = bytes(view[name_offset:payload_offset]).decode("utf-8")
            except UnicodeDecodeError:
                raise ParseError("custom section name is not valid UTF-8", name_offset) from None

        yield Section(
            id=section_id,
            offset=start,
            content_offset=content_offset,
            size=size,
            name=name,
            payload_offset=payload_offset,
        )
        pos = end


def find_custom_section(
    buffer: bytes | bytearray | memoryview,
    name: str = CONFIG_SCHEMA_SECTION,
) -> bytes | None:
    """Return the payload of the first custom section called name.

    Returns:
        Payload bytes, or None when no such section exists

    Raises:
        ParseError: If the buffer is not a well-formed module container
    """
    view = memoryview(buffer).cast("B")
    scanned = 0
    for section in iter_sections(view):
        scanned += 1
        if section.name == name and section.payload_offset is not None:
            logger.debug(
                "Found custom section",
                section=name,
                offset=section.offset,
                size=section.end - section.payload_offset,
            )
            return bytes(view[section.payload_offset : section.end])
    logger.debug("Custom section not present", section=name, sections_scanned=scanned)
    return None


def encode_custom_section(name: str, payload: bytes) -> bytes:
    """Encode a complete custom section (id, size, name, payload)."""
    name_bytes = name.encode("utf-8")
    content = encode_leb128(len(name_bytes)) + name_bytes + payload
    return bytes([CUSTOM_SECTION_ID]) + encode_leb128(len(content)) + content


def append_custom_section(module: bytes, name: str, payload: bytes) -> bytes:
    """Append a custom section to an existing module or component.

    The module is walked first so a malformed input is rejected instead of
    producing a binary that no reader could parse.

    Raises:
        ParseError: If module is not a well-formed container
    """
    for _ in iter_sections(module):
        pass
    return bytes(module) + encode_custom_section(name, payload)
