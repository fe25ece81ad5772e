"""
Input validation for user-supplied strings.

Every validator returns a ValidationResult. Expected failures (too long,
not in the allow-list, suspicious search text) are reported in the result,
never raised. Passing a non-string where a string is expected is a caller
bug and raises TypeError.

Stripping <script>/<iframe> blocks from free text is an extra layer only;
output still has to be escaped where it is rendered.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Outcome of validating one input."""
    valid: bool
    error: Optional[str] = None
    value: Any = None


# Maximum lengths per field class
INPUT_LIMITS = {
    "search": 200,
    "title": 100,
    "description": 5000,
    "review_opinion": 1000,
    "filter_value": 500,
    "id": 50,
}

ALLOWED_FILTER_OPERATORS = (
    "contains",
    "equals",
    "not_equals",
    "starts_with",
    "ends_with",
    "is_empty",
    "is_not_empty",
)
ALLOWED_SORT_DIRECTIONS = ("asc", "desc")
ALLOWED_PRIORITIES = ("低", "中", "高", "紧急")
ALLOWED_NEED_TO_DO = ("是", "否")
ALLOWED_IS_OPERATIONAL = ("yes", "no")
ALLOWED_REVIEW_STATUS = ("pending", "approved", "rejected")

# ASCII word boundaries so keywords glued to CJK text still match
SQL_KEYWORD_PATTERN = re.compile(
    r'\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION)\b',
    re.IGNORECASE | re.ASCII,
)
SCRIPT_BLOCK_PATTERN = re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE)
IFRAME_BLOCK_PATTERN = re.compile(r'<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>', re.IGNORECASE)
HTML_TAG_PATTERN = re.compile(r'<[^>]*>')


def _require_str(value: Any, field_name: str) -> None:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value).__name__}")


def strip_dangerous_tags(text: str) -> str:
    """Remove <script> and <iframe> blocks, then trim."""
    cleaned = SCRIPT_BLOCK_PATTERN.sub("", text)
    cleaned = IFRAME_BLOCK_PATTERN.sub("", cleaned)
    return cleaned.strip()


def validate_length(value: str, max_length: int, field_name: str = "输入") -> ValidationResult:
    """Check length against max_length. Returns the trimmed value."""
    _require_str(value, field_name)

    if len(value) > max_length:
        return ValidationResult(
            valid=False,
            error=f"{field_name}长度不能超过 {max_length} 个字符（当前：{len(value)}）",
        )
    return ValidationResult(valid=True, value=value.strip())


def validate_search_term(search_term: str) -> ValidationResult:
    """Validate a free-text search term.

    Rejects terms over the search limit and terms that look like SQL.
    """
    length_result = validate_length(search_term, INPUT_LIMITS["search"], "搜索词")
    if not length_result.valid:
        return length_result

    cleaned = search_term.strip()
    if SQL_KEYWORD_PATTERN.search(cleaned):
        logger.warning(f"Potential SQL injection attempt in search term: {cleaned!r}")
        return ValidationResult(valid=False, error="搜索词包含非法字符")

    return ValidationResult(valid=True, value=cleaned)


def validate_title(title: str) -> ValidationResult:
    """Titles are required and limited in length."""
    result = validate_length(title, INPUT_LIMITS["title"], "标题")
    if result.valid and not result.value:
        return ValidationResult(valid=False, error="标题不能为空")
    return result


def validate_description(description: str) -> ValidationResult:
    result = validate_length(description, INPUT_LIMITS["description"], "描述")
    if not result.valid:
        return result
    return ValidationResult(valid=True, value=strip_dangerous_tags(description))


def validate_filter(column: str, operator: str, value: str, allowed_columns: list[str]) -> ValidationResult:
    """Validate one filter condition.

    Returns a dict {column, operator, value} as the value on success.
    """
    _require_str(column, "筛选列")
    _require_str(operator, "筛选操作符")

    if column not in allowed_columns:
        return ValidationResult(valid=False, error=f"非法的筛选列: {column}")

    if operator not in ALLOWED_FILTER_OPERATORS:
        return ValidationResult(valid=False, error=f"非法的筛选操作符: {operator}")

    if operator not in ("is_empty", "is_not_empty"):
        length_result = validate_length(value, INPUT_LIMITS["filter_value"], "筛选值")
        if not length_result.valid:
            return length_result

    return ValidationResult(
        valid=True,
        value={"column": column, "operator": operator, "value": (value or "").strip()},
    )


def _validate_choice(value: str, allowed: tuple[str, ...], error: str, allow_empty: bool) -> ValidationResult:
    _require_str(value, "值")
    if allow_empty and value == "":
        return ValidationResult(valid=True, value=None)
    if value not in allowed:
        return ValidationResult(valid=False, error=error)
    return ValidationResult(valid=True, value=value)


def validate_priority(priority: str) -> ValidationResult:
    """Empty string clears the priority (value None)."""
    return _validate_choice(priority, ALLOWED_PRIORITIES, f"非法的优先级: {priority}", allow_empty=True)


def validate_need_to_do(need_to_do: str) -> ValidationResult:
    """Empty string clears the field (value None)."""
    return _validate_choice(need_to_do, ALLOWED_NEED_TO_DO, f'非法的"是否要做"值: {need_to_do}', allow_empty=True)


def validate_is_operational(is_operational: str) -> ValidationResult:
    return _validate_choice(
        is_operational, ALLOWED_IS_OPERATIONAL, f'非法的"是否运营"值: {is_operational}', allow_empty=False
    )


def validate_review_status(status: str) -> ValidationResult:
    return _validate_choice(status, ALLOWED_REVIEW_STATUS, f"非法的评审状态: {status}", allow_empty=False)


def validate_review_opinion(opinion: str) -> ValidationResult:
    """Length-check a review opinion and strip script/iframe blocks."""
    length_result = validate_length(opinion, INPUT_LIMITS["review_opinion"], "评审意见")
    if not length_result.valid:
        return length_result
    return ValidationResult(valid=True, value=strip_dangerous_tags(opinion))


def validate_sort_config(field: str, direction: str, allowed_fields: list[str]) -> ValidationResult:
    """Validate a sort field and direction. Value is {field, direction}."""
    _require_str(field, "排序字段")
    _require_str(direction, "排序方向")

    if field not in allowed_fields:
        return ValidationResult(valid=False, error=f"非法的排序字段: {field}")
    if direction not in ALLOWED_SORT_DIRECTIONS:
        return ValidationResult(valid=False, error=f"非法的排序方向: {direction}")
    return ValidationResult(valid=True, value={"field": field, "direction": direction})


def validate_requirement_ids(ids: list[str], max_count: int = 100) -> ValidationResult:
    """Validate a batch of requirement IDs for a bulk operation."""
    if not isinstance(ids, (list, tuple)):
        raise TypeError(f"ids must be a list, got {type(ids).__name__}")

    if len(ids) == 0:
        return ValidationResult(valid=False, error="请至少选择一个需求")

    if len(ids) > max_count:
        return ValidationResult(
            valid=False,
            error=f"批量操作最多支持 {max_count} 个需求（当前选择：{len(ids)}）",
        )

    if any(not isinstance(i, str) or not i.strip() for i in ids):
        return ValidationResult(valid=False, error="存在无效的需求 ID")

    too_long = [i for i in ids if len(i) > INPUT_LIMITS["id"]]
    if too_long:
        return ValidationResult(valid=False, error=f"需求 ID 过长: {too_long[0][:20]}...")

    return ValidationResult(valid=True, value=list(ids))


def sanitize_html(html: str) -> str:
    """Reduce HTML to plain text: drop tags, decode the basic entities."""
    _require_str(html, "HTML")
    text = HTML_TAG_PATTERN.sub("", html)
    text = (
        text.replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&quot;", '"')
        .replace("&#39;", "'")
        .replace("&amp;", "&")
    )
    return text.strip()
