"""
Prompt detection for remote-login output.

Classifies fragments of ssh output as a host-key confirmation, a
password/passphrase prompt, or ordinary output. Patterns live in one
versioned table so they can be tested and extended without touching the
session loop.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class PromptKind(str, Enum):
    """Classification of a piece of remote output."""

    HOST_KEY_CONFIRM = "host_key_confirm"
    SECRET_PROMPT = "secret_prompt"
    PASSTHROUGH = "passthrough"


@dataclass(frozen=True)
class PromptPattern:
    """One row of the prompt table."""

    name: str
    kind: PromptKind
    pattern: re.Pattern[str]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


# =============================================================================
# ANSI/Terminal Escape Sequence Patterns
# =============================================================================

# OSC (Operating System Command) - terminal title, etc.
OSC_PATTERN = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")

# CSI (Control Sequence Introducer) - cursor, colors, etc.
CSI_PATTERN = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

# Simple escape sequences (cursor save/restore, etc.)
SIMPLE_ESC_PATTERN = re.compile(r"\x1b[78=>]")


def strip_ansi_escapes(text: str) -> str:
    """Remove ANSI escape sequences from terminal output."""
    text = OSC_PATTERN.sub("", text)
    text = CSI_PATTERN.sub("", text)
    return SIMPLE_ESC_PATTERN.sub("", text)


# =============================================================================
# Prompt table
# =============================================================================

# Bump when a row is added, removed or changes meaning.
PROMPT_TABLE_VERSION = 1

# Prompts end the fragment; text that only mentions "password:" mid-line
# is output, not a prompt.
PROMPT_TABLE: tuple[PromptPattern, ...] = (
    PromptPattern(
        name="host-key-confirm",
        kind=PromptKind.HOST_KEY_CONFIRM,
        pattern=re.compile(
            r"are you sure you want to continue connecting\b[^\n]*\?\s*$",
            re.IGNORECASE,
        ),
    ),
    PromptPattern(
        name="password",
        kind=PromptKind.SECRET_PROMPT,
        pattern=re.compile(r"password\s*:\s*$", re.IGNORECASE),
    ),
    PromptPattern(
        name="key-passphrase",
        kind=PromptKind.SECRET_PROMPT,
        pattern=re.compile(r"passphrase for key\b[^\n]*:\s*$", re.IGNORECASE),
    ),
)


def classify(text: str) -> PromptKind:
    """Classify a fragment of remote output."""
    cleaned = strip_ansi_escapes(text)
    for row in PROMPT_TABLE:
        if row.matches(cleaned):
            return row.kind
    return PromptKind.PASSTHROUGH


# Longest tail of the current line kept between reads.
MAX_PENDING_CHARS = 512


class PromptDetector:
    """
    Feeds raw pty output through ``classify``.

    Keeps the unfinished tail of the current line so a prompt split across
    two reads is still seen. The tail is dropped after a match, which means
    a single prompt occurrence is reported once no matter how the output
    is chunked.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding
        self._pending = ""

    @property
    def pending(self) -> str:
        return self._pending

    def feed(self, data: bytes) -> PromptKind:
        text = self._pending + data.decode(self._encoding, errors="replace")

        # Only the last line can be a prompt waiting for input.
        tail = re.split(r"[\r\n]", text)[-1]
        kind = classify(tail)

        if kind is PromptKind.PASSTHROUGH:
            self._pending = tail[-MAX_PENDING_CHARS:]
        else:
            self._pending = ""
        return kind

    def reset(self) -> None:
        self._pending = ""
