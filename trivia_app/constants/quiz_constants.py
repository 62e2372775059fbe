"""Game-related constants shared by the coordinator and scoring."""

MAX_POINTS: int = 1000
MIN_POINTS: int = 100
ANSWER_TIMEOUT_MS: int = 15000
START_PAUSE_MS: int = 2000
NEXT_PAUSE_MS: int = 1000
FINAL_PAUSE_MS: int = 2000
OPTION_LABELS: tuple[str, ...] = ("A", "B", "C", "D")
QUESTIONS_FTP_PORT: int = 21
QUESTIONS_FTP_FILE: str = "preguntas.csv"
