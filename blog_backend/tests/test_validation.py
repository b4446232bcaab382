from __future__ import annotations

from conftest import run

from app.core.validation import Exists, FieldRules, IdShape, Length, Validator, escape, is_valid_id


async def _never(_: str) -> bool:
    return False


async def _always(_: str) -> bool:
    return True


class TestEscape:
    def test_html_characters(self) -> None:
        assert escape("<b>&\"'") == "&lt;b&gt;&amp;&quot;&#x27;"

    def test_slashes_and_backtick(self) -> None:
        assert escape("a/b\\c`") == "a&#x2F;b&#x5C;c&#96;"

    def test_plain_text_untouched(self) -> None:
        assert escape("Hello World") == "Hello World"


class TestIdShape:
    def test_accepts_uuid_hex(self) -> None:
        assert is_valid_id("0123456789abcdef0123456789abcdef")

    def test_rejects_other_shapes(self) -> None:
        assert not is_valid_id("Hello-World")
        assert not is_valid_id("0123456789ABCDEF0123456789ABCDEF")
        assert not is_valid_id("")


class TestValidator:
    def test_empty_when_valid(self) -> None:
        v = Validator(FieldRules("title", rules=[Length(1, 5, "bad")]))
        assert run(v.validate({"title": "abc"})) == []

    def test_length_bounds_inclusive(self) -> None:
        v = Validator(FieldRules("title", rules=[Length(1, 3, "bad")]))
        assert run(v.validate({"title": "a"})) == []
        assert run(v.validate({"title": "abc"})) == []
        assert len(run(v.validate({"title": ""}))) == 1
        assert len(run(v.validate({"title": "abcd"}))) == 1

    def test_missing_field_treated_as_empty(self) -> None:
        v = Validator(FieldRules("content", rules=[Length(1, 500, "Invalid length")]))
        violations = run(v.validate({}))
        assert violations[0].field == "content"
        assert violations[0].message == "Invalid length"
        assert violations[0].value == ""

    def test_escape_runs_before_length(self) -> None:
        # "<<" is two characters raw but eight once escaped
        v = Validator(FieldRules("title", escape=True, rules=[Length(1, 5, "Invalid title length")]))
        values = {"title": "<<"}
        violations = run(v.validate(values))
        assert values["title"] == "&lt;&lt;"
        assert [x.message for x in violations] == ["Invalid title length"]

    def test_escape_applied_even_when_invalid(self) -> None:
        v = Validator(FieldRules("title", escape=True, rules=[Length(100, 200, "short")]))
        values = {"title": "<i>"}
        run(v.validate(values))
        assert values["title"] == "&lt;i&gt;"

    def test_collects_across_fields_in_order(self) -> None:
        v = Validator(
            FieldRules("title", rules=[Length(1, 2, "title")]),
            FieldRules("body", rules=[Length(1, 2, "body")]),
        )
        violations = run(v.validate({"title": "", "body": "long"}))
        assert [x.field for x in violations] == ["title", "body"]

    def test_full_set_vs_only_first(self) -> None:
        fields = FieldRules("postId", "params", rules=[Length(5, 10, "too short"), Exists(_never, "Post not found")])
        every = run(Validator(fields).validate({"postId": "ab"}))
        first = run(Validator(fields, only_first=True).validate({"postId": "ab"}))
        assert [x.message for x in every] == ["too short", "Post not found"]
        assert [x.message for x in first] == ["too short"]

    def test_existence_violation_kind(self) -> None:
        v = Validator(FieldRules("postId", "params", rules=[Exists(_never, "Post not found")]))
        violations = run(v.validate({"postId": "x"}))
        assert violations[0].kind == "not_found"
        assert violations[0].location == "params"

    def test_bad_shape_skips_existence_check(self) -> None:
        calls: list[str] = []

        async def spy(value: str) -> bool:
            calls.append(value)
            return True

        v = Validator(FieldRules("postId", "params", rules=[IdShape("Post not found"), Exists(spy, "Post not found")]))
        violations = run(v.validate({"postId": "not-an-id"}))
        assert len(violations) == 1
        assert calls == []

    def test_good_shape_runs_existence_check(self) -> None:
        v = Validator(FieldRules("postId", "params", rules=[IdShape("Post not found"), Exists(_always, "Post not found")]))
        assert run(v.validate({"postId": "0123456789abcdef0123456789abcdef"})) == []

    def test_only_first_can_be_chosen_per_call(self) -> None:
        fields = FieldRules("postId", "params", rules=[Length(5, 10, "too short"), Exists(_never, "Post not found")])
        v = Validator(fields)
        assert len(run(v.validate({"postId": "ab"}))) == 2
        assert len(run(v.validate({"postId": "ab"}, only_first=True))) == 1
        assert len(run(Validator(fields, only_first=True).validate({"postId": "ab"}, only_first=False))) == 2
