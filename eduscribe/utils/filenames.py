"""
Recording and transcript filename handling.

Raw meeting recordings arrive with free-form names such as
``"Jane Doe - 2024-03-01 10:00:00 GMT.mp4"``. After discovery they are renamed
to the canonical ``Jane_Doe_2024-03-01_AbCdEfGhIj.mp4`` scheme, and their
transcripts keep the same stem with a ``.txt`` extension. Everything here is
pure string handling.
"""

import re
from typing import Optional

from ..domain.models import ParsedFilename

# "name <separators> YYYY-MM-DD <anything>", as produced by the meeting recorder
RAW_RECORDING_PATTERN = re.compile(r"^(.+?)[ _-]+(\d{4}-\d{2}-\d{2}).*$")

# "Name_YYYY-MM-DD[_10charid]" stem, after renaming
CANONICAL_STEM_PATTERN = re.compile(r"^(.+?)_(\d{4}-\d{2}-\d{2})(?:_[A-Za-z0-9_-]{10})?$")

CANONICAL_RECORDING_PATTERN = re.compile(
    r"^(.+?)_(\d{4}-\d{2}-\d{2})_[A-Za-z0-9_-]{10}\.mp4$", re.IGNORECASE
)

TRANSCRIPT_SUFFIX_PATTERN = re.compile(
    r"_(\d{4}-\d{2}-\d{2})_([A-Za-z0-9_-]{10})\.txt$", re.IGNORECASE
)

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

SPECIAL_CHARS_PATTERN = re.compile(r"[~^*'`+]")

EXTENSION_PATTERN = re.compile(r"\.[^/.]+$")

ID_FRAGMENT_LENGTH = 10

EXCLUSION_MARKER = "*"


def parse_filename(file_name: str) -> Optional[ParsedFilename]:
    """
    Extract the student name and class date from a recording or transcript name.

    Tries the loose meeting-recorder pattern first, then the strict canonical
    pattern. Returns None when neither matches or when the cleaned name is empty.

    Args:
        file_name: Raw or canonical file name, with or without extension

    Returns:
        ParsedFilename with the cleaned name, the ISO date and the raw name segment
    """
    if not file_name:
        return None

    stem = EXTENSION_PATTERN.sub("", file_name).strip()
    stem = stem.replace("/", "-")

    match = RAW_RECORDING_PATTERN.match(stem) or CANONICAL_STEM_PATTERN.match(stem)
    if not match or not match.group(1) or not match.group(2):
        return None

    raw_name = match.group(1)
    class_date = match.group(2)
    student_name = clean_student_name(raw_name)

    if not student_name or not ISO_DATE_PATTERN.match(class_date):
        return None

    return ParsedFilename(student_name=student_name, class_date=class_date, raw_name=raw_name)


def clean_student_name(raw_name: str) -> str:
    name = SPECIAL_CHARS_PATTERN.sub("", raw_name).strip()
    name = name.replace("_", " ")
    name = re.sub(r"\s+", " ", name)
    name = re.sub(r"[ -]+$", "", name)
    return name.strip()


def normalize_student_name(name: str) -> str:
    """Case-folded, underscore/whitespace-collapsed key used for roster matching."""
    return clean_student_name(str(name or "")).lower()


def is_excluded_name(raw_name: str) -> bool:
    return EXCLUSION_MARKER in (raw_name or "")


def is_canonical_recording_name(file_name: str) -> bool:
    return bool(CANONICAL_RECORDING_PATTERN.match((file_name or "").strip()))


def build_recording_name(student_name: str, class_date: str, file_id: str) -> str:
    standardized = re.sub(r"\s+", "_", student_name.strip())
    return f"{standardized}_{class_date}_{file_id[:ID_FRAGMENT_LENGTH]}.mp4"


def transcript_name_for(recording_name: str) -> str:
    stem = re.sub(r"\.mp4$", "", recording_name.strip(), flags=re.IGNORECASE)
    return f"{stem}.txt"


def prompt_name_from_transcript(transcript_name: str) -> Optional[str]:
    match = TRANSCRIPT_SUFFIX_PATTERN.search(transcript_name or "")
    if not match:
        return None
    return f"prompt_{match.group(1)}_{match.group(2)}.txt"
