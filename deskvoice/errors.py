"""
异常定义

所有对外可见的错误都继承自 DeskVoiceError
"""


class DeskVoiceError(Exception):
    """deskvoice 异常基类"""


class ConfigError(DeskVoiceError):
    """配置文件缺失、格式错误或不安全"""


class LanguageResourceError(DeskVoiceError):
    """短语表无法加载或编译"""


class ResolutionError(DeskVoiceError):
    """
    意图解析失败

    属于调用方输入错误，直接返回给调用方，不会重试
    """

    def __init__(self, text: str, locale: str, message: str):
        super().__init__(message)
        self.text = text
        self.locale = locale


class NoIntentMatched(ResolutionError):
    """没有任何短语规则匹配输入文本"""

    def __init__(self, text: str, locale: str):
        super().__init__(text, locale, f"No intent matched for {text!r} (locale={locale})")


class LocaleNotFound(ResolutionError):
    """请求的语言没有配置短语表"""

    def __init__(self, text: str, locale: str):
        super().__init__(text, locale, f"Locale not configured: {locale!r}")


class TaskNotFoundError(DeskVoiceError, KeyError):
    """任务 ID 不存在"""

    def __init__(self, task_id: int):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task not found: {self.task_id}"


class BackendError(DeskVoiceError):
    """
    自动化后端错误

    包装底层（操作系统或模拟树）的异常
    """

    def __init__(self, message: str, cause: Exception = None):
        super().__init__(message)
        self.cause = cause

    @property
    def detail(self) -> str:
        if self.cause is not None:
            return f"{self} ({type(self.cause).__name__}: {self.cause})"
        return str(self)
