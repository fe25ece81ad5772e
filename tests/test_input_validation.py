"""Tests for reqtrack.lib.input_validation module."""

import logging

import pytest

from reqtrack.lib import input_validation as iv


class TestValidateLength:
    def test_trims_value(self):
        result = iv.validate_length("  hello  ", 10, "标题")
        assert result.valid
        assert result.value == "hello"

    def test_too_long(self):
        result = iv.validate_length("x" * 11, 10, "标题")
        assert not result.valid
        assert result.error == "标题长度不能超过 10 个字符（当前：11）"

    def test_length_checked_before_trim(self):
        assert not iv.validate_length(" abc ", 4).valid

    def test_non_string_raises(self):
        with pytest.raises(TypeError):
            iv.validate_length(123, 10)


class TestValidateSearchTerm:
    """Search terms: length limit and SQL keyword rejection."""

    def test_sql_rejected_and_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            result = iv.validate_search_term("SELECT * FROM users")
        assert not result.valid
        assert result.error == "搜索词包含非法字符"
        assert "SQL injection" in caplog.text

    def test_plain_term_accepted(self):
        result = iv.validate_search_term("正常搜索词")
        assert result.valid
        assert result.value == "正常搜索词"

    def test_case_insensitive(self):
        assert not iv.validate_search_term("drop table").valid

    def test_keyword_inside_word_is_fine(self):
        assert iv.validate_search_term("updated").valid
        assert iv.validate_search_term("selection").valid

    def test_keyword_next_to_cjk_is_rejected(self):
        assert not iv.validate_search_term("登录DELETE").valid

    def test_too_long(self):
        result = iv.validate_search_term("a" * 201)
        assert not result.valid
        assert "200" in result.error

    def test_value_is_trimmed(self):
        assert iv.validate_search_term("  登录 ").value == "登录"


class TestValidateTitle:
    def test_empty_rejected(self):
        assert not iv.validate_title("   ").valid

    def test_limit(self):
        assert iv.validate_title("标" * 100).valid
        assert not iv.validate_title("标" * 101).valid


class TestValidateFilter:
    COLUMNS = ["title", "priority"]

    def test_valid_filter(self):
        result = iv.validate_filter("title", "contains", " 登录 ", self.COLUMNS)
        assert result.valid
        assert result.value == {"column": "title", "operator": "contains", "value": "登录"}

    def test_unknown_column(self):
        result = iv.validate_filter("password", "equals", "x", self.COLUMNS)
        assert not result.valid
        assert "password" in result.error

    def test_unknown_operator(self):
        assert not iv.validate_filter("title", "like", "x", self.COLUMNS).valid

    def test_value_too_long(self):
        assert not iv.validate_filter("title", "equals", "x" * 501, self.COLUMNS).valid

    def test_empty_operators_skip_value_check(self):
        assert iv.validate_filter("title", "is_empty", "x" * 600, self.COLUMNS).valid
        assert iv.validate_filter("title", "is_not_empty", None, self.COLUMNS).valid


class TestChoiceValidators:
    """Allow-list validators."""

    @pytest.mark.parametrize("value", ["低", "中", "高", "紧急"])
    def test_priorities(self, value):
        assert iv.validate_priority(value).value == value

    def test_empty_priority_clears(self):
        result = iv.validate_priority("")
        assert result.valid
        assert result.value is None

    def test_bad_priority(self):
        result = iv.validate_priority("超高")
        assert not result.valid
        assert result.error == "非法的优先级: 超高"

    def test_need_to_do(self):
        assert iv.validate_need_to_do("是").valid
        assert iv.validate_need_to_do("").value is None
        assert not iv.validate_need_to_do("yes").valid

    def test_is_operational(self):
        assert iv.validate_is_operational("yes").valid
        assert not iv.validate_is_operational("").valid

    def test_review_status(self):
        assert iv.validate_review_status("approved").valid
        assert not iv.validate_review_status("done").valid

    def test_non_string_raises(self):
        with pytest.raises(TypeError):
            iv.validate_priority(None)


class TestValidateReviewOpinion:
    def test_strips_script_blocks(self):
        result = iv.validate_review_opinion("同意<script>alert(1)</script> 上线")
        assert result.valid
        assert result.value == "同意 上线"

    def test_strips_iframe_blocks(self):
        result = iv.validate_review_opinion('<iframe src="x"></iframe>需要修改')
        assert result.value == "需要修改"

    def test_too_long(self):
        assert not iv.validate_review_opinion("意" * 1001).valid


class TestValidateSortConfig:
    def test_valid(self):
        result = iv.validate_sort_config("title", "desc", ["title"])
        assert result.value == {"field": "title", "direction": "desc"}

    def test_invalid_field_or_direction(self):
        assert not iv.validate_sort_config("secret", "asc", ["title"]).valid
        assert not iv.validate_sort_config("title", "up", ["title"]).valid


class TestValidateRequirementIds:
    def test_empty(self):
        result = iv.validate_requirement_ids([])
        assert result.error == "请至少选择一个需求"

    def test_too_many(self):
        result = iv.validate_requirement_ids(["REQ-0001"] * 3, max_count=2)
        assert result.error == "批量操作最多支持 2 个需求（当前选择：3）"

    def test_blank_id(self):
        assert iv.validate_requirement_ids(["REQ-0001", " "]).error == "存在无效的需求 ID"

    def test_valid(self):
        assert iv.validate_requirement_ids(["REQ-0001", "REQ-0002"]).value == ["REQ-0001", "REQ-0002"]

    def test_not_a_list_raises(self):
        with pytest.raises(TypeError):
            iv.validate_requirement_ids("REQ-0001")


class TestSanitizeHtml:
    def test_removes_tags_and_decodes_entities(self):
        assert iv.sanitize_html("<p>a &lt;b&gt; &amp; &quot;c&quot; &#39;d&#39;</p>") == "a <b> & \"c\" 'd'"

    def test_double_encoded_ampersand_decoded_once(self):
        assert iv.sanitize_html("&amp;lt;") == "&lt;"
