"""
Unit Tests - Field Normalizers, Keys and Dates
"""
from datetime import date

import pytest
import polars as pl

from sales_warehouse.exceptions import MalformedKeyError
from sales_warehouse.transformation import (
    NOT_AVAILABLE,
    coerce_product_key,
    date_key_expr,
    decompose_product_key,
    normalize_country,
    normalize_gender,
    normalize_marital_status,
    normalize_product_line,
    parse_date_key,
    resolve_gender,
    strip_key_hyphens,
    strip_legacy_prefix,
)
from sales_warehouse.transformation.keys import (
    category_id_expr,
    product_code_expr,
    strip_legacy_prefix_expr,
)
from sales_warehouse.transformation.normalizers import (
    country_expr,
    gender_expr,
    marital_status_expr,
    product_line_expr,
    resolved_gender_expr,
)


class TestCodeNormalizers:
    """Tests for the scalar code-to-label mappings"""

    @pytest.mark.parametrize("raw,expected", [
        ("F", "Female"),
        (" female ", "Female"),
        ("m", "Male"),
        ("MALE", "Male"),
        ("X", NOT_AVAILABLE),
        ("", NOT_AVAILABLE),
        (None, NOT_AVAILABLE),
    ])
    def test_gender(self, raw, expected):
        """Test gender codes map to labels"""
        assert normalize_gender(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("S", "Single"),
        (" m", "Married"),
        ("D", NOT_AVAILABLE),
        (None, NOT_AVAILABLE),
    ])
    def test_marital_status(self, raw, expected):
        """Test marital status codes map to labels"""
        assert normalize_marital_status(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("M", "Mountain"),
        ("r ", "Road"),
        ("S", "Other Sales"),
        ("T", "Touring"),
        ("Z", NOT_AVAILABLE),
        (None, NOT_AVAILABLE),
    ])
    def test_product_line(self, raw, expected):
        """Test product line codes map to labels"""
        assert normalize_product_line(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("DE", "Germany"),
        ("US", "United States"),
        (" usa ", "United States"),
        ("", NOT_AVAILABLE),
        ("   ", NOT_AVAILABLE),
        (None, NOT_AVAILABLE),
        (" France ", "France"),
    ])
    def test_country(self, raw, expected):
        """Test country codes map to names"""
        assert normalize_country(raw) == expected

    def test_normalizers_are_idempotent(self):
        """Labels map back onto themselves"""
        for label in ("Female", "Male"):
            assert normalize_gender(label) == label
        assert normalize_country(normalize_country("DE")) == "Germany"

    def test_resolve_gender_prefers_crm(self):
        """Test a known CRM gender is kept"""
        assert resolve_gender("F", "Male") == "Female"

    def test_resolve_gender_falls_back_to_erp(self):
        """Test ERP gender is used when CRM is unknown"""
        assert resolve_gender(None, "M") == "Male"
        assert resolve_gender("n/a", "Female") == "Female"

    def test_resolve_gender_neither_source(self):
        """Test n/a when neither source knows the gender"""
        assert resolve_gender(None, None) == NOT_AVAILABLE


class TestNormalizerExpressions:
    """Expression forms must agree with the scalar forms"""

    def test_expressions_match_scalars(self):
        """Test column expressions agree with scalar mappings"""
        values = ["F", " m ", "S", "R", "DE", "USA", "", None, "France"]
        df = pl.DataFrame({"v": values}, schema={"v": pl.Utf8})

        result = df.select(
            gender_expr("v").alias("gender"),
            marital_status_expr("v").alias("marital"),
            product_line_expr("v").alias("line"),
            country_expr("v").alias("country"),
        )

        assert result["gender"].to_list() == [normalize_gender(v) for v in values]
        assert result["marital"].to_list() == [normalize_marital_status(v) for v in values]
        assert result["line"].to_list() == [normalize_product_line(v) for v in values]
        assert result["country"].to_list() == [normalize_country(v) for v in values]

    def test_resolved_gender_expr(self):
        """Test the gender resolution expression"""
        df = pl.DataFrame(
            {"crm": ["Female", "n/a", None, "n/a"], "erp": ["Male", "M", "F", None]},
            schema={"crm": pl.Utf8, "erp": pl.Utf8},
        )

        result = df.select(resolved_gender_expr("crm", "erp").alias("g"))["g"].to_list()

        assert result == ["Female", "Male", "Female", NOT_AVAILABLE]


class TestProductKeys:
    """Tests for composite product key decomposition"""

    def test_decompose(self):
        """Test product key decomposition"""
        assert decompose_product_key("CO-RF-FR-R92B-58") == ("CO_RF", "FR-R92B-58")

    def test_decompose_is_positional(self):
        """Characters 1-5 and 7 onward, regardless of where hyphens fall"""
        assert decompose_product_key("RM-100-42") == ("RM_10", "-42")

    def test_decompose_minimum_length(self):
        """Test a seven character key is decomposable"""
        assert decompose_product_key("AB-CD-E") == ("AB_CD", "E")

    @pytest.mark.parametrize("key", [None, "", "BAD", "AB-CD-"])
    def test_decompose_malformed(self, key):
        """Test short and null keys raise MalformedKeyError"""
        with pytest.raises(MalformedKeyError) as exc_info:
            decompose_product_key(key)

        assert exc_info.value.min_length == 7
        assert exc_info.value.code == "MALFORMED_KEY"

    def test_coerce_never_fails(self):
        """Test coercion returns parts for any key"""
        assert coerce_product_key("BAD") == ("BAD", "")
        assert coerce_product_key(None) == ("", "")

    def test_key_expressions_match_scalar(self):
        """Test key expressions agree with scalar decomposition"""
        keys = ["CO-RF-FR-R92B-58", "RM-100-42", "BI-RB-BK-R93R-62"]
        df = pl.DataFrame({"k": keys})

        result = df.select(
            category_id_expr("k").alias("cat"),
            product_code_expr("k").alias("code"),
        )

        assert list(zip(result["cat"], result["code"])) == [decompose_product_key(k) for k in keys]

    def test_strip_key_hyphens(self):
        """Test hyphens are stripped from ids"""
        assert strip_key_hyphens("AW-00011000") == "AW00011000"
        assert strip_key_hyphens(None) is None

    def test_strip_legacy_prefix(self):
        """Test the legacy prefix is stripped once"""
        assert strip_legacy_prefix("NASAW00011000") == "AW00011000"
        assert strip_legacy_prefix("AW00011000") == "AW00011000"
        assert strip_legacy_prefix("XNASAW1") == "XNASAW1"
        assert strip_legacy_prefix(None) is None

    def test_strip_legacy_prefix_expr(self):
        """Test the prefix expression agrees with the scalar form"""
        df = pl.DataFrame({"cid": ["NASAW1", "AW2", None]}, schema={"cid": pl.Utf8})

        result = df.select(strip_legacy_prefix_expr("cid"))["cid"].to_list()

        assert result == ["AW1", "AW2", None]


class TestDateKeys:
    """Tests for YYYYMMDD integer parsing"""

    @pytest.mark.parametrize("raw,expected", [
        (20101229, date(2010, 12, 29)),
        ("20110105", date(2011, 1, 5)),
        (0, None),
        (None, None),
        (True, None),
        (32154, None),
        (201012290, None),
        (20101340, None),
        (20110230, None),
        ("garbage", None),
        (-2010122, None),
    ])
    def test_parse_date_key(self, raw, expected):
        """Test date key parsing and rejection"""
        assert parse_date_key(raw) == expected

    def test_date_key_expr_matches_scalar(self):
        """Test the date key expression agrees with the scalar form"""
        values = [20101229, 0, None, 32154, 20101340, 20110230, 20500101]
        df = pl.DataFrame({"d": values}, schema={"d": pl.Int64})

        result = df.select(date_key_expr("d"))["d"].to_list()

        assert result == [parse_date_key(v) for v in values]
