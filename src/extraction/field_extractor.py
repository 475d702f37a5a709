# src/extraction/field_extractor.py — v1
"""Deterministic pattern extraction of core fields from document text.

Runs before any paid model call and never raises: a field that no pattern
matches keeps the ``"Not specified"`` sentinel. Each field has an ordered
list of candidate patterns; the first one that matches wins.
"""

from __future__ import annotations

import logging
import re

from offerscope.analysis.models import NOT_SPECIFIED, CoreFields

logger = logging.getLogger(__name__)

# Country detection: first group with a whole-word hit wins.
_COUNTRY_MARKERS: list[tuple[str, tuple[str, ...]]] = [
    ("Australia", ("cricos", "aud", "australia")),
    ("USA", ("sevis", "usd", "united states", "usa")),
    ("UK", ("cas", "gbp", "united kingdom", "uk")),
    ("Canada", ("dli", "cad", "canada")),
]

_LEVEL_MARKERS: list[tuple[str, tuple[str, ...]]] = [
    ("Bachelor", ("bachelor", "undergraduate")),
    ("Master", ("master", "postgraduate")),
    ("PhD", ("phd", "doctorate")),
    ("Diploma/Certificate", ("diploma", "certificate")),
]

_CURRENCY_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("AUD", re.compile(r"\baud\b|\$\s*(?:aud|australian)", re.I)),
    ("USD", re.compile(r"\busd\b|\$\s*(?:usd|us)\b", re.I)),
    ("GBP", re.compile(r"\bgbp\b|£", re.I)),
    ("CAD", re.compile(r"\bcad\b|\$\s*(?:cad|canadian)", re.I)),
]

_LINE = r"([^\n\r]+)"
_NAME = r"([A-Za-z][A-Za-z .'-]*)"
_AMOUNT = r"((?:(?-i:[A-Z]{3})\s*)?[£$€]?\s*\d[\d,]*(?:\.\d{2})?)"

_FIELD_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "student_name": [
        re.compile(rf"student\s+name[:\s]+{_LINE}", re.I),
        re.compile(
            rf"(?<!institution )(?<!provider )(?<!program )(?<!course )(?<!agent )"
            rf"\bname[ \t]*:[ \t]*{_NAME}",
            re.I,
        ),
        re.compile(rf"\bdear[ \t]+{_NAME}", re.I),
    ],
    "institution_name": [
        re.compile(rf"\binstitution(?:\s+name)?[ \t]*:[ \t]*{_LINE}", re.I),
        re.compile(rf"\bprovider(?:\s+name)?[ \t]*:[ \t]*{_LINE}", re.I),
        re.compile(
            r"((?:[A-Z][\w&'.-]*[ \t]+)*(?:University|College|Institute)"
            r"(?:[ \t]+of(?:[ \t]+[A-Z][\w&'.-]*)+)?)"
        ),
    ],
    "program_name": [
        re.compile(rf"\bprogram(?:me)?(?:\s+name)?[ \t]*:[ \t]*{_LINE}", re.I),
        re.compile(rf"\bcourse(?:\s+name|\s+title)?[ \t]*:[ \t]*{_LINE}", re.I),
        re.compile(rf"\bdegree[ \t]*:[ \t]*{_LINE}", re.I),
        re.compile(rf"\bstudying[:\s]+{_LINE}", re.I),
    ],
    "tuition_amount": [
        re.compile(rf"tuition(?:\s+fees?)?[^\d\n\r£$€]{{0,30}}?{_AMOUNT}", re.I),
        re.compile(rf"course\s+fees?[^\d\n\r£$€]{{0,30}}?{_AMOUNT}", re.I),
        re.compile(rf"program(?:me)?\s+cost[^\d\n\r£$€]{{0,30}}?{_AMOUNT}", re.I),
        re.compile(rf"total\s+(?:tuition|cost)[^\d\n\r£$€]{{0,30}}?{_AMOUNT}", re.I),
    ],
    "start_date": [
        re.compile(rf"start\s*date[:\s]+{_LINE}", re.I),
        re.compile(rf"commencement(?:\s+date)?[:\s]+{_LINE}", re.I),
        re.compile(rf"\bbegin(?:s|ning)?[ \t]*:[ \t]*{_LINE}", re.I),
        re.compile(rf"\bintake[:\s]+{_LINE}", re.I),
    ],
}

_COUNTRY_SPECIFIC: dict[str, dict[str, list[re.Pattern[str]]]] = {
    "Australia": {
        "cricos": [
            re.compile(r"cricos(?:\s+(?:provider\s+)?code)?[:\s#]*([0-9]{5,6}[A-Z])", re.I),
            re.compile(r"provider\s*code[:\s#]*([0-9A-Z]+)", re.I),
        ],
        "oshc": [
            re.compile(rf"\boshc\b[ \t]*:?[ \t]*{_LINE}", re.I),
            re.compile(rf"health\s*insurance[ \t]*:?[ \t]*{_LINE}", re.I),
        ],
    },
    "USA": {
        "sevis_id": [
            re.compile(r"sevis(?:\s+id)?[:\s#]*(N\d{10})", re.I),
            re.compile(r"i-20[:\s#]*([0-9A-Z-]+)", re.I),
        ],
        "school_code": [
            re.compile(r"school\s*code[:\s#]*([0-9A-Z]+)", re.I),
        ],
    },
    "UK": {
        "cas_number": [
            re.compile(r"\bcas(?:\s+number|\s+no\.?)?[:\s#]*([0-9A-Z][0-9A-Z-]{5,})", re.I),
            re.compile(r"confirmation\s+number[:\s#]*([0-9A-Z-]+)", re.I),
        ],
        "sponsor": [
            re.compile(rf"sponsor(?:\s+licence(?:\s+number)?)?[ \t]*:[ \t]*{_LINE}", re.I),
        ],
    },
    "Canada": {
        "dli": [
            re.compile(r"\bdli(?:\s+(?:number|#))?[:\s#]*(O\d{11}|[0-9A-Z-]{6,})", re.I),
            re.compile(r"designated\s+learning\s+institution(?:\s+number)?[:\s#]*([0-9A-Z-]+)", re.I),
        ],
    },
}


def clean_text(value: str) -> str:
    """Turn colons and line breaks into spaces and collapse whitespace."""
    return re.sub(r"\s+", " ", re.sub(r"[:\n\r]", " ", value)).strip()


def first_match(text: str, patterns: list[re.Pattern[str]]) -> str | None:
    """Return the cleaned first group of the first matching pattern."""
    for pattern in patterns:
        match = pattern.search(text)
        if match and match.group(1) and match.group(1).strip():
            return clean_text(match.group(1))
    return None


def _has_word(text: str, word: str) -> bool:
    return re.search(rf"\b{re.escape(word)}\b", text) is not None


def detect_country(text: str) -> str:
    """Guess destination country from whole-word markers; ``"Other"`` if none."""
    lowered = text.lower()
    for country, markers in _COUNTRY_MARKERS:
        if any(_has_word(lowered, m) for m in markers):
            return country
    return "Other"


def detect_program_level(text: str) -> str:
    lowered = text.lower()
    for level, markers in _LEVEL_MARKERS:
        if any(m in lowered for m in markers):
            return level
    return NOT_SPECIFIED


def detect_currency(text: str) -> str:
    for code, pattern in _CURRENCY_PATTERNS:
        if pattern.search(text):
            return code
    return NOT_SPECIFIED


class FieldPatternExtractor:
    """Pull CoreFields out of raw document text with ordered regex candidates."""

    def extract(self, text: str) -> CoreFields:
        if not text or not text.strip():
            return CoreFields()

        country = detect_country(text)
        values: dict[str, str] = {}
        for field_name, patterns in _FIELD_PATTERNS.items():
            found = first_match(text, patterns)
            if found:
                values[field_name] = found

        country_specific = {
            key: found
            for key, patterns in _COUNTRY_SPECIFIC.get(country, {}).items()
            if (found := first_match(text, patterns))
        }

        fields = CoreFields(
            **values,
            program_level=detect_program_level(text),
            currency=detect_currency(text),
            country_guess=country,
            country_specific=country_specific,
        )
        logger.debug(
            "Pattern extraction: %d/5 primary fields, country=%s",
            fields.found_count(),
            country,
        )
        return fields
