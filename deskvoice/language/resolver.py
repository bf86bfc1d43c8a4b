"""
意图解析器

把原始文本转换为结构化的 Intent。无副作用，可以被并发调用
"""

from typing import Any, Dict, List, Mapping

from loguru import logger
from pydantic import ValidationError

from ..errors import LocaleNotFound, NoIntentMatched
from ..models import ElementSelector, Intent
from ..utils.config import AliasStep
from .store import LanguageResourceStore, PhraseRule, normalize_text, render_template


def _build_selector(templates: Mapping[str, str], groups: Mapping[str, str]) -> ElementSelector:
    fields: Dict[str, Any] = {}
    for key, template in templates.items():
        value = render_template(template, groups)
        if key == "index":
            fields[key] = int(value)
        else:
            fields[key] = value
    return ElementSelector(**fields)


class IntentResolver:
    """
    意图解析器

    按短语表的声明顺序逐条尝试，第一条整句匹配的规则生效
    """

    def __init__(self, store: LanguageResourceStore):
        self.store = store

    def resolve(self, text: str, locale: str) -> Intent:
        """
        解析单条命令

        Args:
            text: 原始命令文本
            locale: 语言

        Returns:
            Intent

        Raises:
            LocaleNotFound: 语言没有配置短语表
            NoIntentMatched: 没有规则匹配
        """
        table = self.store.table(locale)
        if table is None:
            raise LocaleNotFound(text, locale)

        normalized = normalize_text(text)
        for rule in table.rules:
            groups = rule.match(normalized)
            if groups is None:
                continue
            intent = self._build_intent(rule, groups, normalized, locale)
            logger.debug(f"Resolved {normalized!r} -> {intent.action} {intent.target_selector}")
            return intent

        logger.debug(f"No rule matched {normalized!r} (locale={locale})")
        raise NoIntentMatched(text, locale)

    def resolve_all(self, text: str, locale: str) -> List[Intent]:
        """
        解析命令，支持别名

        别名按规范化后的整句精确匹配，多步别名展开为多个 Intent；
        不是别名时等价于 [resolve(text, locale)]
        """
        if not self.store.has_locale(locale):
            raise LocaleNotFound(text, locale)

        normalized = normalize_text(text)
        steps = self.store.alias(normalized, locale)
        if steps is not None:
            logger.debug(f"Alias {normalized!r} expands to {len(steps)} step(s)")
            return [self._intent_from_step(step, normalized, locale) for step in steps]

        return [self.resolve(text, locale)]

    def _build_intent(self, rule: PhraseRule, groups: Dict[str, str], normalized: str, locale: str) -> Intent:
        try:
            parameters = dict(groups)
            for key, template in rule.parameters.items():
                parameters[key] = render_template(template, groups)
            selector = _build_selector(rule.selector, groups)
        except (ValueError, ValidationError) as e:
            # 模板渲染失败（空选择器、非数字的 int/ordinal 分组）：视为规则没有命中
            logger.warning(f"Rule {rule.pattern!r} could not be rendered for {normalized!r}: {e}")
            raise NoIntentMatched(normalized, locale) from e
        return Intent(
            action=rule.action,
            target_selector=selector,
            parameters=parameters,
            locale=locale,
            text=normalized,
        )

    def _intent_from_step(self, step: AliasStep, normalized: str, locale: str) -> Intent:
        return Intent(
            action=step.action_spec(),
            target_selector=step.selector,
            parameters=step.parameters,
            locale=locale,
            text=normalized,
        )
