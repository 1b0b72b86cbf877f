"""
样式表模型 - 解析为结构化规则列表，按选择器筛选节点样式

职责：
- parse_stylesheet(): CSS文本 -> 规则列表（支持 @media 等嵌套块，去注释）
- resolve_variables(): 将 var(--name[, fallback]) 替换为变量表中的值
- extract_node_styles(): 仅保留节点相关选择器的规则；结果过短则回退整份样式表

测试要点：
- test_extract_keeps_allowed_prefixes: 只保留白名单前缀的规则
- test_extract_falls_back_when_small: 提取结果<100字符时返回整份样式表
- test_resolve_variables_with_fallback: var() 默认值生效
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable

logger = logging.getLogger(__name__)

# 节点容器/节点头/角色分组/人员行/旧版单人节点
NODE_SELECTOR_PREFIXES: tuple[str, ...] = (
    ".org-chart-node",
    ".node-",
    ".role-",
    ".person-",
    ".people-",
    ".multi-person",
    ".legacy",
)
MIN_EXTRACTED_LENGTH = 100

_COMMENT_RE = re.compile(r"/\*.*?\*/", re.S)
_VAR_RE = re.compile(r"var\(\s*(--[\w-]+)\s*(?:,\s*([^()]*(?:\([^()]*\))?[^()]*))?\)")


@dataclass
class CssRule:
    """单条CSS规则（at-rule 的子规则放在 children）"""
    prelude: str
    body: str = ""
    children: list[CssRule] = field(default_factory=list)

    @property
    def is_block_at_rule(self) -> bool:
        return self.prelude.startswith("@") and bool(self.children)

    @property
    def selectors(self) -> list[str]:
        if self.prelude.startswith("@"):
            return []
        return [s.strip() for s in self.prelude.split(",") if s.strip()]

    def to_css(self) -> str:
        if self.is_block_at_rule:
            inner = "\n\n".join(c.to_css() for c in self.children)
            return f"{self.prelude} {{\n{inner}\n}}"
        return f"{self.prelude} {{\n    {self.body}\n}}"


@dataclass
class Stylesheet:
    """结构化样式表"""
    rules: list[CssRule] = field(default_factory=list)

    def filter(self, predicate: Callable[[CssRule], bool]) -> Stylesheet:
        """按谓词筛选（at-rule 保留命中的子规则）"""
        kept: list[CssRule] = []
        for rule in self.rules:
            if rule.is_block_at_rule:
                children = Stylesheet(rule.children).filter(predicate).rules
                if children:
                    kept.append(CssRule(rule.prelude, "", children))
            elif predicate(rule):
                kept.append(rule)
        return Stylesheet(kept)

    def to_css(self) -> str:
        return "\n\n".join(rule.to_css() for rule in self.rules)

    def __len__(self) -> int:
        return len(self.rules)


def parse_stylesheet(css: str) -> Stylesheet:
    return Stylesheet(_parse_block(_COMMENT_RE.sub("", css or "")))


def _parse_block(text: str) -> list[CssRule]:
    rules: list[CssRule] = []
    i, n = 0, len(text)
    while i < n:
        brace = text.find("{", i)
        if brace == -1:
            break
        prelude = text[i:brace]
        # @import/@charset 等语句型规则
        if ";" in prelude:
            prelude = prelude.rsplit(";", 1)[1]
        depth, j = 1, brace + 1
        while j < n and depth:
            if text[j] == "{":
                depth += 1
            elif text[j] == "}":
                depth -= 1
            j += 1
        body = text[brace + 1:j - 1] if depth == 0 else text[brace + 1:]
        prelude = prelude.strip()
        if prelude.startswith("@") and "{" in body:
            rules.append(CssRule(prelude, "", _parse_block(body)))
        elif prelude:
            rules.append(CssRule(prelude, " ".join(body.split())))
        i = j
    return rules


def resolve_variables(css: str, variables: dict[str, str]) -> str:
    """替换 var(--name)；未知变量使用 fallback，均无则保持原样"""

    def _sub(m: re.Match[str]) -> str:
        name, fallback = m.group(1), m.group(2)
        if name in variables:
            return variables[name].strip()
        if fallback is not None:
            return fallback.strip()
        return m.group(0)

    return _VAR_RE.sub(_sub, css or "")


def matches_prefixes(rule: CssRule, prefixes: tuple[str, ...] = NODE_SELECTOR_PREFIXES) -> bool:
    return any(sel.startswith(prefixes) for sel in rule.selectors)


def extract_node_styles(
    css: str,
    prefixes: tuple[str, ...] = NODE_SELECTOR_PREFIXES,
    min_length: int = MIN_EXTRACTED_LENGTH,
) -> str:
    """提取节点样式（结果过短时回退整份样式表）"""
    try:
        extracted = parse_stylesheet(css).filter(lambda r: matches_prefixes(r, prefixes)).to_css()
    except (ValueError, IndexError) as e:
        logger.warning(f"样式提取失败，使用整份样式表: {e}")
        return css

    if len(extracted.strip()) < min_length:
        logger.warning("样式提取结果过少，使用整份样式表")
        return css
    logger.debug(f"提取节点样式 {len(extracted)} 字符")
    return extracted
