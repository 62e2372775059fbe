"""Static metadata describing TriviaRounds."""

APP_NAME = "TriviaRounds"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "TriviaRounds runs a round-based multiplayer trivia game over TCP. "
    "Players connect with a line-based client, the host starts the game from the console "
    "or the operator API, and every round is scored by correctness and answer speed."
)

CONSOLE_HELP_TEXT = (
    "Commands:\n"
    "  start   begin the game with the players currently connected\n"
    "  next    move on to the next question once the ranking is shown\n"
    "  status  show the game state and connected players\n"
    "  quit    stop the server"
)
