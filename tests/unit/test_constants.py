"""常量模块单元测试"""

from scorespider.common.constants import (
    DEFAULT_MIN_CELLS,
    DEFAULT_OPTION_TIMEOUT_MS,
    DEFAULT_POSITIONAL_FIELDS,
    DEFAULT_SETTLE_TIMEOUT_MS,
    DEFAULT_SPECIALTY_GROUP_RULES,
    FACET_CATEGORY,
    FACET_PROVINCE,
    FACET_SPECIALTY_GROUP,
    FACET_YEAR,
    PLACEHOLDER_ROW_CLASSES,
    RECORD_FIELDS,
)


class TestRecordConstants:
    """记录字段常量测试"""

    def test_record_fields_unique(self):
        assert len(RECORD_FIELDS) == len(set(RECORD_FIELDS))

    def test_facet_keys_are_record_fields(self):
        for key in (FACET_YEAR, FACET_PROVINCE, FACET_CATEGORY, FACET_SPECIALTY_GROUP):
            assert key in RECORD_FIELDS

    def test_positional_fields_are_record_fields(self):
        assert set(DEFAULT_POSITIONAL_FIELDS) <= set(RECORD_FIELDS)
        assert DEFAULT_POSITIONAL_FIELDS[0] == "major"


class TestTraversalConstants:
    """遍历相关常量测试"""

    def test_min_cells_is_reasonable(self):
        """最少单元格数应不超过默认列数"""
        assert 1 <= DEFAULT_MIN_CELLS <= len(DEFAULT_POSITIONAL_FIELDS)

    def test_timeouts_are_reasonable(self):
        assert DEFAULT_OPTION_TIMEOUT_MS >= 1000
        assert DEFAULT_SETTLE_TIMEOUT_MS >= 1000

    def test_placeholder_classes(self):
        assert "loading" in PLACEHOLDER_ROW_CLASSES
        assert "no_data" in PLACEHOLDER_ROW_CLASSES

    def test_specialty_group_rules(self):
        assert DEFAULT_SPECIALTY_GROUP_RULES["综合改革"] == "物理组"
        assert DEFAULT_SPECIALTY_GROUP_RULES["理科"] == "理工"
