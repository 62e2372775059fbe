"""Loading of the question list from a file, an FTP server or the built-in defaults.

Two file formats are understood.

CSV (``.csv``), one question per row, optional header row:

    question,optionA,optionB,optionC,optionD,correct
    Which port does HTTP use by default?,21,443,80,8080,C

Block text (any other suffix), blocks separated by blank lines or '---':

    Q: Which port does HTTP use by default?
    A: 21
    B: 443
    C: 80
    D: 8080
    CORRECT: C

A source that cannot be read or parsed never stops the game: ``load_questions``
logs the problem and falls back to the built-in list.
"""

from __future__ import annotations

import csv
from ftplib import FTP, all_errors
import io
import logging
from pathlib import Path
import random

from trivia_app.constants.quiz_constants import OPTION_LABELS, QUESTIONS_FTP_FILE, QUESTIONS_FTP_PORT
from trivia_app.core.errors import QuestionSourceError
from trivia_app.core.models import Question
from trivia_app.core.settings import GameSettings

logger = logging.getLogger(__name__)

_HEADER_MARKERS = ("question", "pregunta")
_FTP_TIMEOUT_SECONDS = 10.0

_DEFAULT_QUESTIONS = [
    ("Which protocol does the web use to transfer pages?", ("FTP", "HTTP", "SMTP", "SSH"), "B"),
    ("Which port does HTTP use by default?", ("21", "443", "80", "8080"), "C"),
    (
        "Which Python module provides BSD socket access?",
        ("socket", "http", "select", "urllib"),
        "A",
    ),
    ("Which of these is NOT an HTTP method?", ("GET", "POST", "SEND", "DELETE"), "C"),
    (
        "What does TCP stand for?",
        (
            "Transfer Control Protocol",
            "Transmission Control Protocol",
            "Technical Communication Protocol",
            "Transport Connection Protocol",
        ),
        "B",
    ),
]


def make_question(text: str, options: list[str] | tuple[str, ...], correct: str) -> Question:
    """Validate and normalize a question before it enters the game."""
    cleaned_text = " ".join(text.split())
    if not cleaned_text:
        raise QuestionSourceError("Question text must not be empty.")
    if len(options) != len(OPTION_LABELS):
        raise QuestionSourceError("Each question must have exactly four options.")
    cleaned_options = tuple(" ".join(option.split()) for option in options)
    if any(not option for option in cleaned_options):
        raise QuestionSourceError("Option text cannot be empty.")
    if any("|" in part for part in (cleaned_text, *cleaned_options)):
        raise QuestionSourceError("Question and option text cannot contain '|'.")
    label = correct.strip().upper()
    if label not in OPTION_LABELS:
        raise QuestionSourceError("The correct option must be one of A, B, C or D.")
    return Question(text=cleaned_text, options=cleaned_options, correct_option=label)


def default_questions() -> list[Question]:
    return [make_question(text, options, correct) for text, options, correct in _DEFAULT_QUESTIONS]


def parse_csv_text(text: str) -> list[Question]:
    questions: list[Question] = []
    try:
        rows = [row for row in csv.reader(io.StringIO(text)) if any(cell.strip() for cell in row)]
    except csv.Error as exc:
        raise QuestionSourceError(f"Unreadable CSV: {exc}") from exc
    for line_number, row in enumerate(rows, start=1):
        if line_number == 1 and row[0].strip().lower().startswith(_HEADER_MARKERS):
            continue
        if len(row) < 6:
            raise QuestionSourceError(f"Row {line_number} needs six columns, got {len(row)}.")
        questions.append(make_question(row[0], row[1:5], row[5]))
    return questions


def parse_block_text(text: str) -> list[Question]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---" or not stripped:
            if current_block:
                blocks.append("\n".join(current_block))
                current_block = []
            continue
        current_block.append(stripped)
    if current_block:
        blocks.append("\n".join(current_block))
    return [_parse_block(block) for block in blocks]


def _parse_block(block: str) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    current_section: str | None = None

    for line in block.splitlines():
        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip()
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LABELS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in OPTION_LABELS:
            options[current_section] = f"{options[current_section]} {line}"
        else:
            raise QuestionSourceError(f"Encountered text outside of a known section: '{line}'.")

    if not question_lines:
        raise QuestionSourceError("Question text missing (Q: ...)")
    if correct_letter is None:
        raise QuestionSourceError("Each question must name its CORRECT option.")
    return make_question(
        " ".join(question_lines),
        [options.get(letter, "") for letter in OPTION_LABELS],
        correct_letter,
    )


def load_questions_from_file(file_path: Path) -> list[Question]:
    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise QuestionSourceError(f"Could not read {file_path}: {exc}") from exc
    if file_path.suffix.lower() == ".csv":
        questions = parse_csv_text(text)
    else:
        questions = parse_block_text(text)
    if not questions:
        raise QuestionSourceError(f"{file_path} did not contain any questions.")
    return questions


def fetch_questions_from_ftp(
    host: str,
    port: int = QUESTIONS_FTP_PORT,
    filename: str = QUESTIONS_FTP_FILE,
    timeout: float = _FTP_TIMEOUT_SECONDS,
) -> list[Question]:
    """Download a CSV question file with an anonymous FTP login."""
    lines: list[str] = []
    try:
        with FTP(timeout=timeout) as ftp:
            ftp.connect(host, port)
            ftp.login()
            ftp.retrlines(f"RETR {filename}", lines.append)
    except (*all_errors, UnicodeDecodeError) as exc:
        raise QuestionSourceError(f"FTP download of {filename} from {host}:{port} failed: {exc}") from exc
    questions = parse_csv_text("\n".join(lines))
    if not questions:
        raise QuestionSourceError(f"{filename} on {host} did not contain any questions.")
    return questions


def load_questions(settings: GameSettings, rng: random.Random | None = None) -> list[Question]:
    """Load questions from the configured source, falling back to the defaults."""
    questions: list[Question] | None = None
    if settings.questions_path is not None:
        try:
            questions = load_questions_from_file(settings.questions_path)
            logger.info("Loaded %d questions from %s", len(questions), settings.questions_path)
        except QuestionSourceError as exc:
            logger.warning("Question file unusable: %s", exc)
    if questions is None and settings.ftp_host:
        try:
            questions = fetch_questions_from_ftp(settings.ftp_host, settings.ftp_port, settings.ftp_file)
            logger.info("Loaded %d questions from ftp://%s/%s", len(questions), settings.ftp_host, settings.ftp_file)
        except QuestionSourceError as exc:
            logger.warning("Question download failed: %s", exc)
    if questions is None:
        questions = default_questions()
        logger.info("Using the %d built-in questions.", len(questions))

    if settings.shuffle_questions:
        (rng or random.Random()).shuffle(questions)
    return questions
