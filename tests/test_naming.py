import random
import re

import pytest

from conftest import BOOL, DOUBLE, INT, arg, make_database, member

from ffi_surface_generator.errors import NamingExhausted
from ffi_surface_generator.models import FfiCandidate, FfiGeneratorConfig, Indirection, NativeMethod, NativeType
from ffi_surface_generator.naming import (
    MethodCaptionStrategy,
    NameCollisionResolver,
    differing_positions,
    group_by_base_name,
    method_caption,
)
from ffi_surface_generator.type_mapping import FfiSignatureTranslator, base_name

IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
QSTRING_REF = NativeType.class_type("QString", Indirection.REF, is_const=True)
QSTRING_PTR = NativeType.class_type("QString", Indirection.PTR)


def _candidates(methods: list, config: FfiGeneratorConfig, unit: str = "a") -> list:
    translator = FfiSignatureTranslator(make_database(methods, classes=["A", "B", "QString"]), config)
    out = []
    for m in methods:
        signature = translator.translate(m)
        out.append(FfiCandidate(m, signature, base_name(config.library_name, m, signature, unit), unit))
    return out


def _names(methods: list, config: FfiGeneratorConfig) -> dict:
    named = NameCollisionResolver().resolve(_candidates(methods, config))
    return {m.method.short_text(): m.c_name for m in named}


def test_single_method_keeps_base_name(config) -> None:
    method = member("A", "foo", arg("x", INT))

    assert list(_names([method], config).values()) == ["mylib_A_foo"]


def test_overloads_use_least_verbose_caption(config) -> None:
    foo_int = member("A", "foo", arg("x", INT))
    foo_double = member("A", "foo", arg("x", DOUBLE))

    names = _names([foo_int, foo_double], config)

    assert names[foo_int.short_text()] == "mylib_A_foo_int"
    assert names[foo_double.short_text()] == "mylib_A_foo_double"


def test_only_differing_positions_are_captioned(config) -> None:
    a = member("A", "set", arg("k", INT), arg("v", BOOL))
    b = member("A", "set", arg("k", DOUBLE), arg("v", BOOL))

    assert sorted(_names([a, b], config).values()) == ["mylib_A_set_double", "mylib_A_set_int"]


def test_missing_argument_counts_as_differing(config) -> None:
    short = member("A", "open")
    long = member("A", "open", arg("mode", INT))

    names = _names([short, long], config)

    assert names[short.short_text()] == "mylib_A_open"
    assert names[long.short_text()] == "mylib_A_open_int"


def test_const_overloads_use_const_caption(config) -> None:
    data = member("A", "data", return_type=NativeType.primitive("char", Indirection.PTR))
    data_const = member("A", "data", return_type=NativeType.primitive("char", Indirection.PTR, True), is_const=True)

    names = _names([data, data_const], config)

    assert names[data.short_text()] == "mylib_A_data"
    assert names[data_const.short_text()] == "mylib_A_data_const"


def test_indirection_only_differences_fall_back_to_full_captions(config) -> None:
    by_ref = member("A", "append", arg("s", QSTRING_REF))
    by_ptr = member("A", "append", arg("s", QSTRING_PTR))

    names = _names([by_ref, by_ptr], config)

    assert names[by_ref.short_text()] == "mylib_A_append_const_QString_ref"
    assert names[by_ptr.short_text()] == "mylib_A_append_QString_ptr"


def test_caption_must_not_take_another_groups_base_name(config) -> None:
    # differing-argument captions would produce mylib_A_foo_int, which is already a base name
    foo_int = member("A", "foo", arg("x", INT), arg("flag", BOOL))
    foo_double = member("A", "foo", arg("x", DOUBLE), arg("flag", BOOL))
    foo_int_method = member("A", "foo_int")

    names = _names([foo_int, foo_double, foo_int_method], config)

    assert names[foo_int_method.short_text()] == "mylib_A_foo_int"
    assert names[foo_int.short_text()] == "mylib_A_foo_int_bool"
    assert names[foo_double.short_text()] == "mylib_A_foo_double_bool"


def test_identical_signatures_exhaust_all_strategies(config, caplog) -> None:
    methods = [
        member("A", "value", arg("i", INT), return_type=INT),
        member("A", "value", arg("i", INT), return_type=DOUBLE),
        member("A", "value", arg("i", INT), return_type=BOOL),
    ]

    with pytest.raises(NamingExhausted) as exc_info:
        NameCollisionResolver().resolve(_candidates(methods, config))

    assert exc_info.value.base_name == "mylib_A_value"
    assert len(exc_info.value.signatures) == 3
    assert "All type caption strategies have failed!" in caplog.text


def test_resolution_is_independent_of_input_order(config) -> None:
    methods = [
        member("A", "foo", arg("x", INT)),
        member("A", "foo", arg("x", DOUBLE)),
        member("A", "foo", arg("x", INT), arg("y", INT)),
        member("A", "bar"),
        member("B", "foo", arg("s", QSTRING_REF)),
        member("B", "foo", arg("s", QSTRING_PTR)),
    ]
    expected = NameCollisionResolver().resolve(_candidates(methods, config))

    rng = random.Random(7)
    for _ in range(5):
        shuffled = list(methods)
        rng.shuffle(shuffled)
        assert NameCollisionResolver().resolve(_candidates(shuffled, config)) == expected


def test_names_are_unique_identifiers_with_library_prefix(config) -> None:
    methods = [
        member("A", "foo", arg("x", INT)),
        member("A", "foo", arg("x", DOUBLE)),
        member("A", "foo", arg("x", INT), arg("y", INT)),
        member("A", "foo", arg("s", QSTRING_REF)),
        member("A", "foo", arg("s", QSTRING_PTR)),
    ]

    named = NameCollisionResolver().resolve(_candidates(methods, config))
    names = [m.c_name for m in named]

    assert len(set(names)) == len(methods)
    assert names == sorted(names)
    for name in names:
        assert IDENTIFIER_RE.match(name)
        assert name.startswith("mylib_")


def test_group_by_base_name_is_immutable(config) -> None:
    groups = group_by_base_name(_candidates([member("A", "foo")], config))

    with pytest.raises(TypeError):
        groups["x"] = ()  # type: ignore[index]


def test_method_caption_strategies(config) -> None:
    method = member("A", "find", arg("s", QSTRING_REF), arg("from", INT), is_const=True)
    (candidate,) = _candidates([method], config)

    assert differing_positions([candidate]) == ()
    assert method_caption(candidate, MethodCaptionStrategy.DIFFERING_ARGUMENTS, (1,)) == "int"
    assert method_caption(candidate, MethodCaptionStrategy.CONST_ONLY) == "const"
    assert method_caption(candidate, MethodCaptionStrategy.ARGUMENTS) == "QString_int"
    assert method_caption(candidate, MethodCaptionStrategy.CONST_AND_ARGUMENTS) == "const_QString_int"
    assert method_caption(candidate, MethodCaptionStrategy.ARGUMENTS_FULL) == "const_QString_ref_int"
    assert method_caption(candidate, MethodCaptionStrategy.CONST_AND_ARGUMENTS_FULL) == "const_const_QString_ref_int"


def test_named_method_exposes_signature_hash(config) -> None:
    (named,) = NameCollisionResolver().resolve(_candidates([member("A", "foo")], config))

    assert len(named.signature_hash) == 12
    assert named.to_dict()["c_prototype"] == "void mylib_A_foo(A* this_ptr)"
