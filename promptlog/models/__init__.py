"""Models package — import all models so metadata.create_all can discover them."""

from promptlog.models.user import UserRecord
from promptlog.models.prompt_log import PromptLogRecord
from promptlog.models.session import SessionRecord

__all__ = ["UserRecord", "PromptLogRecord", "SessionRecord"]
