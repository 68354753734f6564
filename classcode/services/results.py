"""
Результаты проверки кодов и выдачи (не исключения — вердикты)
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from classcode.database.models import ClassCode, SelfStudyCode, Topic


class CodeVerdict(str, Enum):
    VALID = "valid"
    NOT_FOUND = "not_found"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    NOT_OWNER = "not_owner"


MESSAGES = {
    CodeVerdict.VALID: "Code is valid",
    CodeVerdict.NOT_FOUND: "Invalid code or code not found",
    CodeVerdict.NOT_YET_VALID: "Code is not yet valid",
    CodeVerdict.EXPIRED: "Code has expired",
    CodeVerdict.NOT_OWNER: "This code does not belong to you",
}


@dataclass
class CodeCheck:
    """Результат проверки кода"""
    verdict: CodeVerdict
    server_time: datetime
    code: Optional[Union[ClassCode, SelfStudyCode]] = None
    topic_id: Optional[int] = None
    message: str = field(default="")

    def __post_init__(self):
        if not self.message:
            self.message = MESSAGES[self.verdict]

    @property
    def valid(self) -> bool:
        return self.verdict is CodeVerdict.VALID


@dataclass
class SelfStudyIssue:
    """Выданный код самостоятельной практики"""
    self_code: SelfStudyCode
    topic: Topic

    @property
    def code(self) -> str:
        return self.self_code.code


@dataclass
class Eligibility:
    """Можно ли сейчас запросить код самостоятельной практики"""
    can_request: bool
    reason: Optional[str] = None
    during_class: bool = False
    class_ends_at: Optional[datetime] = None
    cooldown_until: Optional[datetime] = None

    @property
    def available_at(self) -> Optional[datetime]:
        """Когда запрос снова пройдёт (если известно)"""
        moments = [m for m in (self.class_ends_at, self.cooldown_until) if m is not None]
        return max(moments) if moments else None
