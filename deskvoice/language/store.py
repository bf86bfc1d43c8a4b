"""
语言资源存储

按语言保存短语表（有序的 pattern -> 动作规则）、别名和本地化消息。
启动时加载一次，运行期间只读，不需要加锁
"""

import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Pattern, Sequence, Tuple, Union

import yaml
from loguru import logger
from pydantic import ValidationError

from ..errors import LanguageResourceError
from ..models import ActionKind, ActionSpec
from ..utils.config import AliasConfig, AliasStep

_WHITESPACE_RE = re.compile(r"\s+")
_TEMPLATE_RE = re.compile(r"\{(\w+)(?:\|(\w+))?\}")

SELECTOR_FIELDS = ("name", "automation_id", "role", "index")

TEMPLATE_FILTERS = {
    "capitalize": str.capitalize,
    "upper": str.upper,
    "lower": str.lower,
    "title": str.title,
    "strip": str.strip,
    "int": lambda value: str(int(value)),
    # "2-ю кнопку" / "2nd button" -> index 1
    "ordinal": lambda value: str(int(value) - 1),
}

DEFAULT_MESSAGES = {
    "hint": "Command not recognized. Please try again.",
    "task_queued": "Task #{task_id} queued",
    "task_processing": "Task #{task_id} processing",
    "task_success": "Task #{task_id} succeeded",
    "task_failure": "Task #{task_id} failed: {reason}",
    "task_cancelled": "Task #{task_id} cancelled",
    "error": "Error: {error}",
}


def normalize_text(text: str) -> str:
    """规范化文本：大小写折叠、去掉首尾空白、合并连续空白"""
    return _WHITESPACE_RE.sub(" ", text.casefold().strip())


def render_template(template: str, groups: Mapping[str, str]) -> str:
    """
    渲染模板

    支持 {group} 和 {group|filter} 两种写法

    Args:
        template: 模板字符串
        groups: 正则命名分组

    Returns:
        渲染后的字符串
    """

    def _substitute(match: "re.Match[str]") -> str:
        value = groups.get(match.group(1)) or ""
        filter_name = match.group(2)
        if filter_name:
            value = TEMPLATE_FILTERS[filter_name](value)
        return value

    return _TEMPLATE_RE.sub(_substitute, template)


def _template_names(template: str) -> List[Tuple[str, Optional[str]]]:
    return [(m.group(1), m.group(2)) for m in _TEMPLATE_RE.finditer(template)]


class PhraseRule:
    """短语规则：一个正则和它对应的动作、选择器模板、参数模板"""

    def __init__(
        self,
        pattern: str,
        action: ActionSpec,
        selector: Mapping[str, Any],
        parameters: Optional[Mapping[str, Any]] = None,
    ):
        try:
            self.regex: Pattern[str] = re.compile(pattern)
        except re.error as e:
            raise LanguageResourceError(f"Invalid pattern {pattern!r}: {e}") from e

        self.pattern = pattern
        self.action = action
        self.selector = {key: str(value) for key, value in (selector or {}).items()}
        self.parameters = {key: str(value) for key, value in (parameters or {}).items()}

        unknown = set(self.selector) - set(SELECTOR_FIELDS)
        if unknown:
            raise LanguageResourceError(f"Unknown selector fields in {pattern!r}: {sorted(unknown)}")
        if not self.selector:
            raise LanguageResourceError(f"Rule {pattern!r} has no selector")

        for template in list(self.selector.values()) + list(self.parameters.values()):
            for group, filter_name in _template_names(template):
                if group not in self.regex.groupindex:
                    raise LanguageResourceError(f"Template refers to unknown group {group!r} in {pattern!r}")
                if filter_name and filter_name not in TEMPLATE_FILTERS:
                    raise LanguageResourceError(f"Unknown template filter {filter_name!r} in {pattern!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PhraseRule":
        try:
            pattern = data["pattern"]
            action = ActionSpec(kind=ActionKind(data["action"]), name=data.get("name"))
        except KeyError as e:
            raise LanguageResourceError(f"Phrase rule is missing field {e}") from e
        except (ValueError, ValidationError) as e:
            raise LanguageResourceError(f"Invalid action in phrase rule {data!r}: {e}") from e
        return cls(pattern, action, data.get("selector") or {}, data.get("parameters"))

    def match(self, text: str) -> Optional[Dict[str, str]]:
        """整句匹配，返回命名分组（未参与匹配的分组被丢弃）"""
        m = self.regex.fullmatch(text)
        if m is None:
            return None
        return {key: value for key, value in m.groupdict().items() if value is not None}

    def __repr__(self) -> str:
        return f"PhraseRule({self.pattern!r} -> {self.action})"


class PhraseTable:
    """单个语言的短语表"""

    def __init__(
        self,
        locale: str,
        rules: Sequence[PhraseRule],
        messages: Optional[Mapping[str, str]] = None,
    ):
        self.locale = locale
        self.rules: Tuple[PhraseRule, ...] = tuple(rules)
        self.messages: Dict[str, str] = {**DEFAULT_MESSAGES, **(messages or {})}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], locale: Optional[str] = None) -> "PhraseTable":
        locale = data.get("locale") or locale
        if not locale:
            raise LanguageResourceError("Phrase table has no locale")
        rules = [PhraseRule.from_dict(rule) for rule in data.get("rules") or []]
        return cls(locale, rules, data.get("messages"))


class LanguageResourceStore:
    """
    语言资源存储

    保存所有语言的短语表和别名，只读
    """

    def __init__(self, tables: Iterable[PhraseTable], aliases: Iterable[AliasConfig] = ()):
        self._tables: Dict[str, PhraseTable] = {}
        for table in tables:
            if table.locale in self._tables:
                raise LanguageResourceError(f"Duplicate phrase table for locale {table.locale!r}")
            self._tables[table.locale] = table

        # (locale 或 None, 规范化短语) -> 步骤
        self._aliases: Dict[Tuple[Optional[str], str], List[AliasStep]] = {}
        for alias in aliases:
            key = (alias.locale, normalize_text(alias.alias))
            self._aliases[key] = alias.as_steps()

        logger.debug(f"Language store ready: locales={self.locales()}, aliases={len(self._aliases)}")

    @classmethod
    def from_dicts(
        cls,
        tables: Mapping[str, Mapping[str, Any]],
        aliases: Iterable[Union[AliasConfig, Mapping[str, Any]]] = (),
    ) -> "LanguageResourceStore":
        """从内存中的字典构造（测试和嵌入使用）"""
        parsed_aliases = [
            alias if isinstance(alias, AliasConfig) else AliasConfig.model_validate(alias) for alias in aliases
        ]
        return cls(
            [PhraseTable.from_dict(data, locale=locale) for locale, data in tables.items()],
            parsed_aliases,
        )

    @classmethod
    def load(cls, lang_dir: Union[str, Path], aliases: Iterable[AliasConfig] = ()) -> "LanguageResourceStore":
        """
        从目录加载所有短语表

        Args:
            lang_dir: 短语表目录（每个语言一个 .yaml / .yml / .json 文件）
            aliases: 配置中的别名

        Returns:
            LanguageResourceStore 实例

        Raises:
            LanguageResourceError: 目录不存在或文件格式错误
        """
        lang_path = Path(lang_dir)
        if not lang_path.is_dir():
            raise LanguageResourceError(f"Language directory not found: {lang_path}")

        tables = []
        for file_path in sorted(lang_path.iterdir()):
            if file_path.suffix.lower() not in (".yaml", ".yml", ".json"):
                continue
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise LanguageResourceError(f"Error parsing language file {file_path}: {e}") from e
            table = PhraseTable.from_dict(data, locale=file_path.stem)
            logger.info(f"Loaded phrase table {table.locale!r}: {len(table.rules)} rules from {file_path.name}")
            tables.append(table)

        return cls(tables, aliases)

    def locales(self) -> List[str]:
        return sorted(self._tables)

    def has_locale(self, locale: str) -> bool:
        return locale in self._tables

    def table(self, locale: str) -> Optional[PhraseTable]:
        return self._tables.get(locale)

    def alias(self, normalized_text: str, locale: str) -> Optional[List[AliasStep]]:
        """查找别名，语言专属的别名优先于通用别名"""
        steps = self._aliases.get((locale, normalized_text))
        if steps is None:
            steps = self._aliases.get((None, normalized_text))
        return steps

    def message(self, locale: str, key: str, **values: Any) -> str:
        """获取本地化消息，未知语言使用默认消息"""
        table = self._tables.get(locale)
        messages = table.messages if table else DEFAULT_MESSAGES
        template = messages.get(key, DEFAULT_MESSAGES.get(key, key))
        try:
            return template.format(**values)
        except (KeyError, IndexError):
            return template
