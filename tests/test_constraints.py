"""
Test the constraint variants: in-memory matching, value semantics and the predicates they build.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.dialects import sqlite

from pageql import (
    Between,
    Bool,
    Constraint,
    Enumerated,
    Equals,
    IgnoreCase,
    InvalidArgumentError,
    Like,
    Not,
    Numeric,
    Order,
)
from pageql.constraints import VARIANTS
from tests.models import Person, PhoneType


def _sql(expr):
    return " ".join(str(expr.compile(dialect=sqlite.dialect())).lower().split())


def _params(expr):
    return list(expr.compile(dialect=sqlite.dialect()).params.values())


class TestConstraintBase:

    def test_unwrap_returns_innermost_value(self):
        assert Constraint.unwrap(Numeric.value_of(42)) == 42
        assert Constraint.unwrap(Not.value_of(Like.contains("test"))) == "test"

    def test_unwrap_passes_plain_values_through(self):
        assert Constraint.unwrap("hello") == "hello"
        assert Constraint.unwrap(42) == 42
        assert Constraint.unwrap(None) is None

    def test_none_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            Numeric.value_of(None)
        with pytest.raises(InvalidArgumentError):
            Like.contains(None)
        with pytest.raises(InvalidArgumentError):
            Bool.value_of(None)
        with pytest.raises(InvalidArgumentError):
            IgnoreCase.value_of(None)

    def test_nesting_is_rejected(self):
        with pytest.raises(InvalidArgumentError):
            Not.value_of(Not.value_of("test"))
        with pytest.raises(InvalidArgumentError):
            Equals.value_of(Like.contains("test"))

    def test_instances_are_immutable(self):
        like = Like.contains("test")
        with pytest.raises(AttributeError):
            like.foo = "bar"

    def test_variants_cannot_be_extended(self):
        with pytest.raises(TypeError):
            class Regex(Constraint):
                pass


class TestLike:

    def test_starts_with(self):
        like = Like.starts_with("john")
        assert like.applies("John Doe")
        assert like.applies("johnny")
        assert like.applies("JOHN")
        assert not like.applies("Big John")

    def test_ends_with(self):
        like = Like.ends_with("doe")
        assert like.applies("John Doe")
        assert like.applies("Jane DOE")
        assert not like.applies("Doe Smith")

    def test_contains(self):
        like = Like.contains("test")
        assert like.applies("this is a test")
        assert like.applies("Testing")
        assert like.applies("TEST")
        assert not like.applies("other")

    def test_none_never_matches(self):
        assert not Like.contains("test").applies(None)
        assert not Like.starts_with("test").applies(None)
        assert not Like.ends_with("test").applies(None)

    def test_enum_matches_by_name(self):
        like = Like.contains("MOB")
        assert like.applies(PhoneType.MOBILE)
        assert not like.applies(PhoneType.HOME)

    def test_empty_value_matches_everything(self):
        like = Like.contains("")
        assert like.applies("anything")
        assert like.applies("")

    def test_boolean_candidate_uses_truthiness(self):
        assert Like.contains("true").applies(True)
        assert not Like.contains("true").applies(False)

    def test_anchor(self):
        assert Like.starts_with("x").anchor is Like.Anchor.STARTS_WITH
        assert Like.ends_with("x").anchor is Like.Anchor.ENDS_WITH
        assert Like.contains("x").anchor is Like.Anchor.CONTAINS

    def test_equality_and_hash(self):
        assert Like.contains("test") == Like.contains("test")
        assert Like.contains("test") != Like.starts_with("test")
        assert Like.contains("test") != Like.contains("other")
        assert hash(Like.contains("test")) == hash(Like.contains("test"))

    def test_str(self):
        assert str(Like.contains("test")) == "LIKE %test%"
        assert str(Like.starts_with("test")) == "LIKE test%"
        assert str(Like.ends_with("test")) == "LIKE %test"

    def test_build_lowercases_and_escapes_wildcards(self):
        expr = Like.contains("A_b%").build(Person.first_name)
        sql = _sql(expr)
        assert "lower(persons.first_name) like" in sql
        assert "escape" in sql
        assert _params(expr) == ["%a\\_b\\%%"]

    def test_build_casts_non_text_columns(self):
        sql = _sql(Like.starts_with("1").build(Person.id))
        assert "cast(persons.id as varchar)" in sql
        assert "lower(" not in sql

    def test_build_on_boolean_column_uses_truthiness(self):
        sql = _sql(Like.contains("true").build(Person.deleted))
        assert "persons.deleted" in sql
        assert "like" not in sql


class TestIgnoreCase:

    def test_applies(self):
        criteria = IgnoreCase.value_of("John")
        assert criteria.applies("john")
        assert criteria.applies("JOHN")
        assert criteria.applies("jOhN")
        assert not criteria.applies("Jane")
        assert not criteria.applies(None)
        assert not criteria.applies("John Doe")

    def test_applies_to_str_of_non_strings(self):
        assert IgnoreCase.value_of("42").applies(42)

    def test_equality_keeps_case(self):
        assert IgnoreCase.value_of("test") == IgnoreCase.value_of("test")
        assert IgnoreCase.value_of("test") != IgnoreCase.value_of("TEST")

    def test_build(self):
        sql = _sql(IgnoreCase.value_of("Smith").build(Person.last_name))
        assert "lower(persons.last_name) =" in sql


class TestOrder:

    def test_greater_than(self):
        order = Order.greater_than(18)
        assert order.applies(19)
        assert order.applies(100)
        assert not order.applies(18)

    def test_greater_than_or_equal_to(self):
        order = Order.greater_than_or_equal_to(18)
        assert order.applies(18)
        assert not order.applies(17)

    def test_less_than(self):
        order = Order.less_than(18)
        assert order.applies(17)
        assert not order.applies(18)

    def test_less_than_or_equal_to(self):
        order = Order.less_than_or_equal_to(18)
        assert order.applies(18)
        assert not order.applies(19)

    def test_incomparable_and_none(self):
        assert not Order.greater_than(18).applies(object())
        assert not Order.greater_than(18).applies(None)

    def test_dates_and_strings(self):
        assert Order.less_than(date(2025, 1, 1)).applies(date(2024, 12, 31))
        assert not Order.less_than(date(2025, 1, 1)).applies(date(2025, 1, 1))
        assert Order.greater_than("L").applies("M")
        assert not Order.greater_than("L").applies("A")

    def test_equality_and_str(self):
        assert Order.greater_than(18) == Order.greater_than(18)
        assert Order.greater_than(18) != Order.greater_than_or_equal_to(18)
        assert str(Order.greater_than(18)) == "> 18"
        assert str(Order.greater_than_or_equal_to(18)) == ">= 18"
        assert str(Order.less_than(18)) == "< 18"
        assert str(Order.less_than_or_equal_to(18)) == "<= 18"

    def test_unknown_operator(self):
        with pytest.raises(InvalidArgumentError):
            Order("ne", 1)

    def test_build(self):
        assert "persons.id >" in _sql(Order.greater_than(5).build(Person.id))
        assert "persons.id <=" in _sql(Order.less_than_or_equal_to(5).build(Person.id))


class TestBetween:

    def test_applies_inclusive(self):
        between = Between.range(10, 20)
        assert between.applies(10)
        assert between.applies(15)
        assert between.applies(20)
        assert not between.applies(9)
        assert not between.applies(21)

    def test_applies_with_dates_and_strings(self):
        between = Between.range(date(2025, 1, 1), date(2025, 12, 31))
        assert between.applies(date(2025, 6, 15))
        assert not between.applies(date(2026, 1, 1))
        assert Between.range("B", "D").applies("C")
        assert not Between.range("B", "D").applies("E")

    def test_none_and_incomparable(self):
        assert not Between.range(1, 10).applies(None)
        assert not Between.range(1, 10).applies(object())

    def test_bounds(self):
        between = Between.range(5, 15)
        assert between.min == 5
        assert between.max == 15
        assert str(Between.range(10, 20)) == "BETWEEN 10 AND 20"

    def test_invalid_bounds(self):
        with pytest.raises(InvalidArgumentError):
            Between.range(20, 10)
        with pytest.raises(InvalidArgumentError):
            Between.range(None, 10)

    def test_build(self):
        assert "persons.id between" in _sql(Between.range(1, 5).build(Person.id))


class TestBool:

    def test_applies(self):
        assert Bool.value_of(True).applies(True)
        assert not Bool.value_of(True).applies(False)
        assert Bool.value_of(False).applies(False)
        assert not Bool.value_of(False).applies(True)

    def test_truthy_values(self):
        for value in (1, 42, "true", "1"):
            assert Bool.value_of(True).applies(value)

    def test_falsy_values(self):
        for value in (0, -1, "false", "0", None):
            assert Bool.value_of(False).applies(value)

    def test_parse(self):
        assert Bool.parse("true").value is True
        assert Bool.parse("42").value is True
        assert Bool.parse(100).value is True
        assert Bool.parse("false").value is False
        assert Bool.parse("abc").value is False
        assert Bool.parse(None).value is False
        assert Bool.parse(-5).value is False

    def test_is_truthy(self):
        assert Bool.is_truthy(0.5)
        assert Bool.is_truthy("99")
        assert not Bool.is_truthy(-1)
        assert not Bool.is_truthy(None)

    def test_is_bool_type(self):
        assert Bool.is_bool_type(bool)
        assert not Bool.is_bool_type(str)
        assert not Bool.is_bool_type(int)

    def test_false_build_includes_null(self):
        sql = _sql(Bool.value_of(False).build(Person.deleted))
        assert "persons.deleted is null" in sql


class TestNumeric:

    def test_applies(self):
        assert Numeric.value_of(42).applies(42)
        assert Numeric.value_of(42).applies("42")
        assert not Numeric.value_of(42).applies(43)
        assert not Numeric.value_of(42).applies(None)

    def test_parse(self):
        assert Numeric.parse("42", int).value == 42
        assert isinstance(Numeric.parse("42", int).value, int)
        assert Numeric.parse("42.5", Decimal).value == Decimal("42.5")
        assert Numeric.parse("1.5", float).value == 1.5
        assert Numeric.parse("12345678901234567890", int).value == 12345678901234567890
        assert Numeric.parse(42, int).value == 42

    def test_parse_invalid(self):
        with pytest.raises(InvalidArgumentError):
            Numeric.parse("abc", int)

    def test_is_numeric_type(self):
        for t in (int, float, Decimal):
            assert Numeric.is_numeric_type(t)
        assert not Numeric.is_numeric_type(str)
        assert not Numeric.is_numeric_type(bool)

    def test_equality_and_str(self):
        assert Numeric.value_of(42) == Numeric.value_of(42)
        assert Numeric.value_of(42) != Numeric.value_of(43)
        assert str(Numeric.value_of(42)) == "NUMERIC(42)"


class TestEnumerated:

    def test_applies(self):
        home = Enumerated.value_of(PhoneType.HOME)
        assert home.applies(PhoneType.HOME)
        assert not home.applies(PhoneType.MOBILE)
        assert not home.applies(None)
        assert home.applies("home")
        assert home.applies("Home")

    def test_parse_case_insensitive(self):
        assert Enumerated.parse("mobile", PhoneType).value is PhoneType.MOBILE
        assert Enumerated.parse("HoMe", PhoneType).value is PhoneType.HOME
        assert Enumerated.parse(PhoneType.WORK, None).value is PhoneType.WORK

    def test_parse_invalid(self):
        with pytest.raises(InvalidArgumentError):
            Enumerated.parse("INVALID", PhoneType)

    def test_equality(self):
        assert Enumerated.value_of(PhoneType.HOME) == Enumerated.value_of(PhoneType.HOME)
        assert Enumerated.value_of(PhoneType.HOME) != Enumerated.value_of(PhoneType.WORK)


class TestNot:

    def test_negates_plain_value(self):
        not_ = Not.value_of("INACTIVE")
        assert not_.applies("ACTIVE")
        assert not not_.applies("INACTIVE")
        assert not_.applies(None)

    def test_negates_constraint(self):
        not_like = Not.value_of(Like.contains("test"))
        assert not_like.value == Like.contains("test")
        assert not_like.applies("other")
        assert not not_like.applies("a test")

    def test_wraps_none(self):
        assert Not.value_of(None).value is None
        assert "is not null" in _sql(Not.value_of(None).build(Person.nickname))

    def test_literal_build_keeps_nulls(self):
        sql = _sql(Not.value_of("Nick1").build(Person.nickname))
        assert "persons.nickname !=" in sql
        assert "persons.nickname is null" in sql

    def test_equality(self):
        assert Not.value_of("test") == Not.value_of("test")
        assert Not.value_of("test") != Not.value_of("other")


def test_variant_set_is_closed():
    assert all(issubclass(v, Constraint) for v in VARIANTS)
    assert len(VARIANTS) == 9
