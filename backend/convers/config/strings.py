# /convers/config/strings.py

# User-facing replies and the token sets used to read yes/no answers.
# Kept here so wording can change without touching the engine.

RESET_ACKNOWLEDGED = "🔄 Conversation reset. Send any message to start again."

DID_NOT_UNDERSTAND = "🤔 Sorry, I didn't understand. Please choose one of the options and try again."

ANSWER_YES_OR_NO = "Please answer *yes* or *no*."

# Compared after trim + lower-case.
AFFIRMATIVE_TOKENS = frozenset({"sim", "s", "yes", "y", "si"})
NEGATIVE_TOKENS = frozenset({"não", "nao", "n", "no"})
